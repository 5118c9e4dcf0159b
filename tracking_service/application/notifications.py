import logging

from pydantic import BaseModel

from tracking_service.application.access_control import AccessControlGate, normalize_email
from tracking_service.application.limits import clamp_limit
from tracking_service.core.errors import NotFound, ValidationError
from tracking_service.core.models import Identity, Notification
from tracking_service.infrastructure.document_store import is_valid_id
from tracking_service.infrastructure.repositories import NotificationRepository
from tracking_service.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 5
MAX_LIST_LIMIT = 200


class NotificationPage(BaseModel):
    notifications: list[Notification]
    unread_count: int


class NotificationDispatcher:
    """Sole writer of notification records."""

    def __init__(self, unit_of_work: UnitOfWork, access_control: AccessControlGate):
        self._unit_of_work = unit_of_work
        self._access_control = access_control

    async def notify_user(
        self,
        email: str,
        title: str,
        message: str,
        shipment_id: str | None = None,
    ) -> str:
        email = normalize_email(email)
        title = (title or "").strip()
        message = (message or "").strip()
        if not email:
            raise ValidationError("userEmail is required.")
        if not title or not message:
            raise ValidationError("Title and message are required.")

        async with self._unit_of_work() as uow:
            notification = await uow.notifications.create(
                NotificationRepository.CreateDTO(
                    user_email=email,
                    title=title,
                    message=message,
                    shipment_id=shipment_id,
                )
            )
            await uow.commit()

        logger.info(f"Notification {notification.id} created for {email}")
        return notification.id

    async def list_for_user(
        self, identity: Identity | None, limit: int | None = None
    ) -> NotificationPage:
        identity = self._access_control.require_identity(identity)
        email = normalize_email(identity.email)
        if not email:
            return NotificationPage(notifications=[], unread_count=0)

        limit = clamp_limit(limit, DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT)
        async with self._unit_of_work() as uow:
            notifications = await uow.notifications.list_for_email(email, limit)
            unread_count = await uow.notifications.count_unread(email)

        return NotificationPage(notifications=notifications, unread_count=unread_count)

    async def mark_read(self, identity: Identity | None, notification_id: str) -> None:
        """Mark a notification read. Marking it again is a no-op."""
        identity = self._access_control.require_identity(identity)
        if not notification_id or not is_valid_id(notification_id):
            raise ValidationError("ID required")

        owner_email = self._access_control.notification_owner(identity)
        async with self._unit_of_work() as uow:
            matched = await uow.notifications.mark_read(notification_id, owner_email)
            await uow.commit()

        if not matched:
            logger.info(f"mark_read matched nothing for notification {notification_id}")

    async def delete_owned(
        self, identity: Identity | None, notification_id: str, owner_email: str
    ) -> None:
        """Delete only when both the id and the owning email match.

        A wrong id and someone else's id both end in NotFound.
        """
        identity = self._access_control.require_identity(identity)
        owner_email = normalize_email(owner_email)
        if not notification_id or not owner_email:
            raise ValidationError("Notification id and email are required.")
        if not is_valid_id(notification_id):
            raise NotFound
        if not identity.is_admin and owner_email != normalize_email(identity.email):
            raise NotFound

        async with self._unit_of_work() as uow:
            deleted = await uow.notifications.delete_owned(notification_id, owner_email)
            await uow.commit()

        if not deleted:
            raise NotFound

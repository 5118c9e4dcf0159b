import logging

from pydantic import BaseModel

from tracking_service.application.access_control import AccessControlGate
from tracking_service.application.notifications import NotificationDispatcher
from tracking_service.core.errors import NotFound, ValidationError
from tracking_service.core.models import BlockedEmail, Identity, User
from tracking_service.infrastructure.document_store import (
    DoesNotExist,
    is_valid_id,
    parse_id,
)
from tracking_service.infrastructure.email_sender import EmailSender
from tracking_service.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

MAX_DELETED_USERS = 300
RESTORED_TITLE = "Account restored"
RESTORED_MESSAGE = (
    "Your account has been restored. You can now log in again. "
    "If you need help, contact support."
)


class SoftDeleteResult(BaseModel):
    email_blocked: bool
    email_sent: bool


class RestoreResult(BaseModel):
    blocked: BlockedEmail
    notified: bool
    email_sent: bool


class UserAdminService:
    """Soft delete and restore of user accounts.

    Restoring is a two-step saga. Step 1 removes the blocked-email record and
    clears the soft-delete flag in one commit. Step 2 tells the user, in-app
    and by email; it is best effort and a failure there never undoes step 1.
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        access_control: AccessControlGate,
        notification_dispatcher: NotificationDispatcher,
        email_sender: EmailSender,
    ):
        self._unit_of_work = unit_of_work
        self._access_control = access_control
        self._notification_dispatcher = notification_dispatcher
        self._email_sender = email_sender

    async def list_deleted_users(self, identity: Identity | None) -> list[User]:
        self._access_control.require_admin(identity)
        async with self._unit_of_work() as uow:
            return await uow.users.list_deleted(limit=MAX_DELETED_USERS)

    async def soft_delete_user(
        self, identity: Identity | None, user_id: str
    ) -> SoftDeleteResult:
        identity = self._access_control.require_admin(identity)
        user_id = self._valid_user_id(user_id)

        async with self._unit_of_work() as uow:
            try:
                user = await uow.users.get_by_id(user_id)
            except DoesNotExist:
                raise NotFound("User not found")
            await uow.users.mark_deleted(user_id, deleted_by=identity.email or identity.id)
            if user.email:
                await uow.blocked_emails.block(user_id, user.email, "Deleted by admin")
            await uow.commit()

        logger.info(f"User {user_id} soft-deleted by {identity.email or identity.id}")

        email_sent = False
        if user.email:
            try:
                await self._email_sender.send_deleted_email(user.email, user.name or "Customer")
                email_sent = True
            except Exception as e:
                logger.error(f"Deletion email to {user.email} failed: {e}", exc_info=True)

        return SoftDeleteResult(email_blocked=bool(user.email), email_sent=email_sent)

    async def restore_blocked_email(
        self, identity: Identity | None, user_id: str
    ) -> RestoreResult:
        self._access_control.require_admin(identity)
        user_id = self._valid_user_id(user_id)

        blocked, name = await self._unblock(user_id)
        notified, email_sent = await self._announce_restore(blocked.email, name)
        return RestoreResult(blocked=blocked, notified=notified, email_sent=email_sent)

    async def _unblock(self, user_id: str) -> tuple[BlockedEmail, str]:
        async with self._unit_of_work() as uow:
            try:
                blocked = await uow.blocked_emails.get_for_user(user_id)
            except DoesNotExist:
                raise NotFound("Blocked email not found")

            if not await uow.blocked_emails.delete(blocked.id):
                raise NotFound("Blocked email not found")
            await uow.users.mark_restored(blocked.email)

            try:
                name = (await uow.users.get_by_email(blocked.email)).name
            except DoesNotExist:
                name = ""
            await uow.commit()

        logger.info(f"Blocked email for user {user_id} removed")
        return blocked, name or "Customer"

    async def _announce_restore(self, email: str, name: str) -> tuple[bool, bool]:
        notified = email_sent = False
        try:
            await self._notification_dispatcher.notify_user(
                email, RESTORED_TITLE, RESTORED_MESSAGE
            )
            notified = True
        except Exception as e:
            logger.error(f"Restore notification for {email} failed: {e}", exc_info=True)

        try:
            await self._email_sender.send_restore_email(email, name)
            email_sent = True
        except Exception as e:
            logger.error(f"Restore email to {email} failed: {e}", exc_info=True)

        return notified, email_sent

    @staticmethod
    def _valid_user_id(user_id: str) -> str:
        if not is_valid_id(user_id):
            raise ValidationError("Invalid id")
        return str(parse_id(user_id))

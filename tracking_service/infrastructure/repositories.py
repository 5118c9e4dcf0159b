from datetime import datetime, timezone

from pydantic import BaseModel
from sqlalchemy import ColumnElement, and_, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from tracking_service.core.models import (
    BlockedEmail,
    Invoice,
    Notification,
    RoleEnum,
    Shipment,
    ShipmentSummary,
    StatusDefinition,
    TrackingEvent,
    User,
    normalize_role,
)
from tracking_service.infrastructure.db_schema import (
    blocked_emails_tbl,
    notifications_tbl,
    shipments_tbl,
    statuses_tbl,
    tracking_history_tbl,
    users_tbl,
)
from tracking_service.infrastructure.document_store import (
    Document,
    DocumentCollection,
    DoesNotExist,
    SortDirection,
    parse_id,
)

SHIPMENT_FIELDS = [
    column.name for column in shipments_tbl.columns if column.name != "id"
]
SUMMARY_FIELDS = [
    "shipment_id",
    "tracking_number",
    "status",
    "sender_country_code",
    "destination_country_code",
    "created_at",
]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ShipmentRepository:
    class CreateDTO(BaseModel):
        shipment_id: str
        tracking_number: str
        sender_country_code: str
        destination_country_code: str
        sender_name: str | None = None
        receiver_name: str | None = None
        created_by_user_id: str | None = None
        created_by_email: str | None = None
        status: str
        status_note: str
        status_color: str = ""
        next_step: str = ""
        invoice: Invoice

    def __init__(self, session: AsyncSession, timeout: float = 5.0):
        self._collection = DocumentCollection(session, shipments_tbl, timeout)

    @staticmethod
    def _construct(document: Document | None) -> Shipment:
        if document is None:
            raise DoesNotExist

        return Shipment(
            shipment_id=document["shipment_id"],
            tracking_number=document["tracking_number"],
            sender_country_code=document["sender_country_code"],
            destination_country_code=document["destination_country_code"],
            sender_name=document["sender_name"],
            receiver_name=document["receiver_name"],
            created_by_user_id=document["created_by_user_id"],
            created_by_email=document["created_by_email"],
            status=document["status"],
            status_note=document["status_note"] or "",
            status_color=document["status_color"] or "",
            next_step=document["next_step"] or "",
            status_updated_at=document["status_updated_at"],
            cancelled_at=document["cancelled_at"],
            invoice=Invoice(
                amount=document["invoice_amount"],
                currency=document["invoice_currency"],
                paid=document["invoice_paid"],
                paid_at=document["invoice_paid_at"],
            ),
            created_at=document["created_at"],
            updated_at=document["updated_at"],
        )

    @staticmethod
    def shipment_id_matches(shipment_id: str) -> ColumnElement[bool]:
        return func.upper(shipments_tbl.c.shipment_id) == shipment_id.strip().upper()

    async def create(self, shipment: CreateDTO) -> Shipment:
        now = _now()
        await self._collection.insert_one(
            {
                "shipment_id": shipment.shipment_id,
                "tracking_number": shipment.tracking_number,
                "sender_country_code": shipment.sender_country_code,
                "destination_country_code": shipment.destination_country_code,
                "sender_name": shipment.sender_name,
                "receiver_name": shipment.receiver_name,
                "created_by_user_id": shipment.created_by_user_id,
                "created_by_email": shipment.created_by_email,
                "status": shipment.status,
                "status_note": shipment.status_note,
                "status_color": shipment.status_color,
                "next_step": shipment.next_step,
                "status_updated_at": now,
                "cancelled_at": None,
                "invoice_amount": shipment.invoice.amount,
                "invoice_currency": shipment.invoice.currency,
                "invoice_paid": shipment.invoice.paid,
                "invoice_paid_at": shipment.invoice.paid_at,
                "created_at": now,
                "updated_at": now,
            }
        )
        return await self.get_by_shipment_id(shipment.shipment_id)

    async def get_by_shipment_id(
        self, shipment_id: str, visibility: ColumnElement[bool] | None = None
    ) -> Shipment:
        where = self.shipment_id_matches(shipment_id)
        if visibility is not None:
            where = and_(where, visibility)
        document = await self._collection.find_one(where, projection=SHIPMENT_FIELDS)
        return self._construct(document)

    async def get_by_identifier(
        self, identifier: str, visibility: ColumnElement[bool] | None = None
    ) -> Shipment:
        """Exact, case-insensitive match on tracking number or shipment id."""
        identifier = identifier.strip().upper()
        where = or_(
            func.upper(shipments_tbl.c.tracking_number) == identifier,
            func.upper(shipments_tbl.c.shipment_id) == identifier,
        )
        if visibility is not None:
            where = and_(where, visibility)
        document = await self._collection.find_one(where, projection=SHIPMENT_FIELDS)
        return self._construct(document)

    async def find_many(
        self,
        where: ColumnElement[bool] | None = None,
        sort: list[tuple[str, SortDirection]] | None = None,
        limit: int | None = None,
    ) -> list[Shipment]:
        documents = await self._collection.find(
            where,
            projection=SHIPMENT_FIELDS,
            sort=sort or [("created_at", "desc")],
            limit=limit,
        )
        return [self._construct(document) for document in documents]

    async def list_summaries(
        self, where: ColumnElement[bool] | None, limit: int
    ) -> list[ShipmentSummary]:
        documents = await self._collection.find(
            where,
            projection=SUMMARY_FIELDS,
            sort=[("created_at", "desc")],
            limit=limit,
        )
        return [ShipmentSummary(**document) for document in documents]

    async def list_status_and_invoice(
        self, where: ColumnElement[bool] | None = None
    ) -> list[Document]:
        return await self._collection.find(
            where,
            projection=["status", "invoice_amount", "invoice_currency", "invoice_paid"],
        )

    async def update_fields(self, shipment_id: str, values: Document) -> int:
        return await self._collection.update_one(
            self.shipment_id_matches(shipment_id), values
        )


class TrackingHistoryRepository:
    class CreateDTO(BaseModel):
        shipment_id: str
        status: str
        location: str = ""
        description: str = ""
        occurred_at: datetime

    def __init__(self, session: AsyncSession, timeout: float = 5.0):
        self._collection = DocumentCollection(session, tracking_history_tbl, timeout)

    @staticmethod
    def _construct(document: Document) -> TrackingEvent:
        return TrackingEvent(
            shipment_id=document["shipment_id"],
            status=document["status"],
            location=document["location"],
            description=document["description"],
            occurred_at=document["occurred_at"],
        )

    async def create(self, event: CreateDTO) -> TrackingEvent:
        await self._collection.insert_one({**event.model_dump(), "created_at": _now()})
        return TrackingEvent(**event.model_dump())

    async def list_for_shipment(self, shipment_id: str) -> list[TrackingEvent]:
        documents = await self._collection.find(
            func.upper(tracking_history_tbl.c.shipment_id) == shipment_id.upper(),
            sort=[("occurred_at", "asc"), ("created_at", "asc")],
        )
        return [self._construct(document) for document in documents]


class UserRepository:
    class CreateDTO(BaseModel):
        email: str
        name: str = ""
        role: RoleEnum = RoleEnum.USER

    def __init__(self, session: AsyncSession, timeout: float = 5.0):
        self._collection = DocumentCollection(session, users_tbl, timeout)

    @staticmethod
    def _construct(document: Document | None) -> User:
        if document is None:
            raise DoesNotExist

        return User(
            id=document["id"],
            email=document["email"],
            name=document["name"] or "",
            role=normalize_role(document["role"]),
            is_deleted=bool(document["is_deleted"]),
            deleted_at=document["deleted_at"],
            deleted_by=document["deleted_by"],
            created_at=document["created_at"],
        )

    async def create(self, user: CreateDTO) -> User:
        user_id = await self._collection.insert_one(
            {
                "email": user.email.strip().lower(),
                "name": user.name,
                "role": user.role,
                "is_deleted": False,
                "created_at": _now(),
            }
        )
        return await self.get_by_id(user_id)

    async def get_by_id(self, user_id: str) -> User:
        document = await self._collection.find_one(users_tbl.c.id == parse_id(user_id))
        return self._construct(document)

    async def get_by_email(self, email: str) -> User:
        document = await self._collection.find_one(
            users_tbl.c.email == email.strip().lower()
        )
        return self._construct(document)

    async def list_deleted(self, limit: int = 300) -> list[User]:
        documents = await self._collection.find(
            users_tbl.c.is_deleted.is_(True),
            sort=[("deleted_at", "desc")],
            limit=limit,
        )
        return [self._construct(document) for document in documents]

    async def mark_deleted(self, user_id: str, deleted_by: str | None) -> int:
        return await self._collection.update_one(
            users_tbl.c.id == parse_id(user_id),
            {"is_deleted": True, "deleted_at": _now(), "deleted_by": deleted_by},
        )

    async def mark_restored(self, email: str) -> int:
        return await self._collection.update_one(
            users_tbl.c.email == email,
            {"is_deleted": False, "deleted_at": None, "deleted_by": None},
        )


class NotificationRepository:
    class CreateDTO(BaseModel):
        user_email: str
        title: str
        message: str
        shipment_id: str | None = None

    def __init__(self, session: AsyncSession, timeout: float = 5.0):
        self._collection = DocumentCollection(session, notifications_tbl, timeout)

    @staticmethod
    def _construct(document: Document | None) -> Notification:
        if document is None:
            raise DoesNotExist

        return Notification(
            id=document["id"],
            user_email=document["user_email"],
            title=document["title"],
            message=document["message"],
            shipment_id=document["shipment_id"],
            read=bool(document["read"]),
            created_at=document["created_at"],
        )

    async def create(self, notification: CreateDTO) -> Notification:
        notification_id = await self._collection.insert_one(
            {
                "user_email": notification.user_email,
                "title": notification.title,
                "message": notification.message,
                "shipment_id": notification.shipment_id,
                "read": False,
                "created_at": _now(),
            }
        )
        return await self.get_by_id(notification_id)

    async def get_by_id(self, notification_id: str) -> Notification:
        document = await self._collection.find_one(
            notifications_tbl.c.id == parse_id(notification_id)
        )
        return self._construct(document)

    async def list_for_email(self, email: str, limit: int) -> list[Notification]:
        documents = await self._collection.find(
            notifications_tbl.c.user_email == email,
            sort=[("created_at", "desc")],
            limit=limit,
        )
        return [self._construct(document) for document in documents]

    async def count_unread(self, email: str) -> int:
        return await self._collection.count(
            and_(
                notifications_tbl.c.user_email == email,
                notifications_tbl.c.read.is_(False),
            )
        )

    async def mark_read(self, notification_id: str, owner_email: str | None) -> int:
        where = notifications_tbl.c.id == parse_id(notification_id)
        if owner_email is not None:
            where = and_(where, notifications_tbl.c.user_email == owner_email)
        return await self._collection.update_one(where, {"read": True})

    async def delete_owned(self, notification_id: str, owner_email: str) -> int:
        return await self._collection.delete_one(
            and_(
                notifications_tbl.c.id == parse_id(notification_id),
                notifications_tbl.c.user_email == owner_email,
            )
        )


class BlockedEmailRepository:
    def __init__(self, session: AsyncSession, timeout: float = 5.0):
        self._collection = DocumentCollection(session, blocked_emails_tbl, timeout)

    @staticmethod
    def _construct(document: Document | None) -> BlockedEmail:
        if document is None:
            raise DoesNotExist

        return BlockedEmail(
            id=document["id"],
            user_id=document["user_id"],
            email=document["email"],
            reason=document["reason"] or "",
            blocked_at=document["blocked_at"],
        )

    async def block(self, user_id: str, email: str, reason: str) -> None:
        values = {"user_id": user_id, "reason": reason, "blocked_at": _now()}
        matched = await self._collection.update_one(
            blocked_emails_tbl.c.email == email, values
        )
        if not matched:
            await self._collection.insert_one({"email": email, **values})

    async def get_for_user(self, user_id: str) -> BlockedEmail:
        document = await self._collection.find_one(
            blocked_emails_tbl.c.user_id == user_id
        )
        return self._construct(document)

    async def is_blocked(self, email: str) -> bool:
        return bool(await self._collection.count(blocked_emails_tbl.c.email == email))

    async def delete(self, blocked_id: str) -> int:
        return await self._collection.delete_one(
            blocked_emails_tbl.c.id == parse_id(blocked_id)
        )


class StatusRepository:
    def __init__(self, session: AsyncSession, timeout: float = 5.0):
        self._collection = DocumentCollection(session, statuses_tbl, timeout)

    @staticmethod
    def _construct(document: Document) -> StatusDefinition:
        return StatusDefinition(
            key=document["key"],
            label=document["label"],
            color=document["color"],
            default_update=document["default_update"] or "",
            next_step=document["next_step"] or "",
        )

    async def list_all(self) -> list[StatusDefinition]:
        documents = await self._collection.find(sort=[("label", "asc")])
        return [self._construct(document) for document in documents]

    async def upsert(self, status: StatusDefinition) -> StatusDefinition:
        now = _now()
        values = {
            "label": status.label,
            "color": status.color,
            "default_update": status.default_update,
            "next_step": status.next_step,
            "updated_at": now,
        }
        matched = await self._collection.update_one(
            statuses_tbl.c.key == status.key, values
        )
        if not matched:
            await self._collection.insert_one(
                {"key": status.key, "created_at": now, **values}
            )
        return status

import logging
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Awaitable, Callable

from pydantic import BaseModel

from tracking_service.application.access_control import AccessControlGate, normalize_email
from tracking_service.application.limits import clamp_limit
from tracking_service.application.notifications import NotificationDispatcher
from tracking_service.core.errors import InternalError, NotFound, ValidationError
from tracking_service.core.identifiers import new_shipment_id, new_tracking_number
from tracking_service.core.models import (
    CANCELLED_STATUS,
    DashboardStats,
    Identity,
    Invoice,
    InvoiceParties,
    InvoiceShipment,
    InvoiceView,
    Shipment,
    ShipmentStatusEnum,
    StatusDefinition,
    TrackingEvent,
)
from tracking_service.infrastructure.document_store import DoesNotExist, DuplicateKey
from tracking_service.infrastructure.email_sender import EmailSender
from tracking_service.infrastructure.repositories import (
    ShipmentRepository,
    TrackingHistoryRepository,
)
from tracking_service.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 5
DEFAULT_LIST_LIMIT = 10
MAX_LIST_LIMIT = 50

STATUS_COLORS = frozenset(
    {
        "blue",
        "green",
        "red",
        "orange",
        "yellow",
        "purple",
        "pink",
        "cyan",
        "indigo",
        "emerald",
        "rose",
        "slate",
        "gray",
    }
)
DEFAULT_STATUS_COLOR = "blue"

_STATUS_SEPARATORS = re.compile(r"[\s_-]+")
_INVOICE_NUMBER_JUNK = re.compile(r"[^A-Z0-9-]", re.IGNORECASE)


def status_key(status: str | None) -> str:
    return _STATUS_SEPARATORS.sub("", (status or "").strip().lower())


DEFAULT_STATUSES = [
    StatusDefinition(
        key=status_key(ShipmentStatusEnum.CREATED),
        label=ShipmentStatusEnum.CREATED,
        color="slate",
        default_update="Shipment has been created and is being processed.",
        next_step="Dispatch will be scheduled once processing is complete.",
    ),
    StatusDefinition(
        key=status_key(ShipmentStatusEnum.IN_TRANSIT),
        label=ShipmentStatusEnum.IN_TRANSIT,
        color="blue",
        default_update="Shipment is in transit and moving toward the destination.",
        next_step="Continue tracking for real-time movement updates.",
    ),
    StatusDefinition(
        key=status_key(ShipmentStatusEnum.CUSTOM_CLEARANCE),
        label=ShipmentStatusEnum.CUSTOM_CLEARANCE,
        color="orange",
        default_update=(
            "Shipment is undergoing customs clearance. "
            "Additional verification may be required."
        ),
        next_step="We will update you once customs clearance is completed.",
    ),
    StatusDefinition(
        key=status_key(ShipmentStatusEnum.DELIVERED),
        label=ShipmentStatusEnum.DELIVERED,
        color="green",
        default_update="Shipment has been delivered successfully to the destination.",
        next_step=(
            "If there are delivery concerns, "
            "please contact support with your tracking number."
        ),
    ),
    StatusDefinition(
        key=status_key(ShipmentStatusEnum.UNCLAIMED),
        label=ShipmentStatusEnum.UNCLAIMED,
        color="red",
        default_update="Shipment is available for pickup but has not yet been claimed.",
        next_step="Please arrange pickup or contact support for assistance.",
    ),
]
_DEFAULT_LABELS = {status.key: ShipmentStatusEnum(status.label) for status in DEFAULT_STATUSES}


def status_label(status: str | None) -> ShipmentStatusEnum:
    """Built-in label for an initial status. Anything unrecognised starts as Created."""
    return _DEFAULT_LABELS.get(status_key(status), ShipmentStatusEnum.CREATED)


def status_color(color: str | None) -> str:
    color = (color or "").strip().lower()
    return color if color in STATUS_COLORS else DEFAULT_STATUS_COLOR


def merge_statuses(stored: list[StatusDefinition]) -> list[StatusDefinition]:
    """Built-in statuses overlaid with stored ones of the same key, sorted by label."""
    merged = {status.key: status for status in DEFAULT_STATUSES}
    merged.update({status.key: status for status in stored})
    return sorted(merged.values(), key=lambda status: status.label.lower())


def find_status(
    catalogue: list[StatusDefinition], status: str | None
) -> StatusDefinition | None:
    """Catalogue entry whose key or label matches the given status, if any."""
    key = status_key(status)
    if not key:
        return None
    for definition in catalogue:
        if definition.key == key or status_key(definition.label) == key:
            return definition
    return None


def is_cancelled(status: str) -> bool:
    return status.strip().casefold() == CANCELLED_STATUS


def invoice_number(shipment_id: str) -> str:
    return f"INV-{_INVOICE_NUMBER_JUNK.sub('', shipment_id)}"


class ShipmentDTO(BaseModel):
    sender_country_code: str
    destination_country_code: str
    sender_name: str | None = None
    receiver_name: str | None = None
    invoice_amount: Decimal = Decimal("0")
    invoice_currency: str = "USD"
    invoice_paid: bool = False
    status: str | None = None
    status_note: str | None = None
    created_by_user_id: str | None = None
    created_by_email: str | None = None


class InvoicePaymentDTO(BaseModel):
    paid: bool
    paid_at: datetime | None = None


class ShipmentPatchDTO(BaseModel):
    status: str | None = None
    status_note: str | None = None
    status_color: str | None = None
    next_step: str | None = None
    invoice: InvoicePaymentDTO | None = None


class StatusDTO(BaseModel):
    label: str
    key: str | None = None
    color: str | None = None
    default_update: str = ""
    next_step: str = ""


class TrackingEventDTO(BaseModel):
    status: str
    location: str = ""
    description: str = ""
    occurred_at: datetime | None = None


class ShipmentLifecycleManager:
    """Sole writer of shipment status and invoice fields, and the shipment read paths."""

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

    async def create_shipment(
        self, identity: Identity | None, shipment: ShipmentDTO
    ) -> Shipment:
        identity = self._access_control.require_identity(identity)

        sender_country = shipment.sender_country_code.strip().upper()
        destination_country = shipment.destination_country_code.strip().upper()
        if len(sender_country) != 2 or not sender_country.isalpha():
            raise ValidationError("senderCountryCode must be 2 letters (e.g. US)")
        if len(destination_country) != 2 or not destination_country.isalpha():
            raise ValidationError("destinationCountryCode must be 2 letters (e.g. NG)")
        if shipment.invoice_amount < 0:
            raise ValidationError("invoiceAmount must be a valid number >= 0")

        label = status_label(shipment.status)
        async with self._unit_of_work() as uow:
            definition = find_status(merge_statuses(await uow.statuses.list_all()), label)

        owner_id, owner_email = identity.id, identity.email
        requested_owner_id = (shipment.created_by_user_id or "").strip()
        requested_owner_email = normalize_email(shipment.created_by_email)
        # an admin may file on behalf of someone, but a shipment never ends up ownerless
        if identity.is_admin and (requested_owner_id or requested_owner_email):
            owner_id = requested_owner_id or None
            owner_email = requested_owner_email or None

        now = datetime.now(timezone.utc)
        invoice = Invoice(
            amount=shipment.invoice_amount,
            currency=(shipment.invoice_currency or "USD").strip().upper(),
            paid=shipment.invoice_paid,
            paid_at=now if shipment.invoice_paid else None,
        )

        for attempt in range(1, MAX_ID_ATTEMPTS + 1):
            try:
                async with self._unit_of_work() as uow:
                    created = await uow.shipments.create(
                        ShipmentRepository.CreateDTO(
                            shipment_id=new_shipment_id(now),
                            tracking_number=new_tracking_number(sender_country, now),
                            sender_country_code=sender_country,
                            destination_country_code=destination_country,
                            sender_name=shipment.sender_name,
                            receiver_name=shipment.receiver_name,
                            created_by_user_id=owner_id,
                            created_by_email=owner_email,
                            status=definition.label,
                            status_note=(
                                shipment.status_note or definition.default_update
                            ).strip(),
                            status_color=definition.color,
                            next_step=definition.next_step,
                            invoice=invoice,
                        )
                    )
                    await uow.commit()
            except DuplicateKey:
                logger.warning(
                    f"Identifier collision on attempt {attempt}/{MAX_ID_ATTEMPTS}, retrying"
                )
                continue

            logger.info(f"Shipment {created.shipment_id} created by {owner_email or owner_id}")
            return created

        logger.error("Could not generate a unique shipment identifier")
        raise InternalError("Could not generate a unique ID, try again.")

    async def update_status(
        self,
        identity: Identity | None,
        shipment_id: str,
        status: str,
        note: str | None = None,
    ) -> None:
        identity = self._access_control.require_admin(identity)

        shipment_id = (shipment_id or "").strip()
        status = (status or "").strip()
        if not shipment_id or not status:
            raise ValidationError("shipmentId and status are required")

        now = datetime.now(timezone.utc)
        values = {
            "status": status,
            "status_note": (note or "").strip(),
            "status_updated_at": now,
            "updated_at": now,
        }
        # cancelled_at is stamped on every cancellation and never cleared
        if is_cancelled(status):
            values["cancelled_at"] = now

        async with self._unit_of_work() as uow:
            try:
                existing = await uow.shipments.get_by_shipment_id(shipment_id)
            except DoesNotExist:
                raise NotFound(f"Shipment {shipment_id} not found")
            await uow.shipments.update_fields(existing.shipment_id, values)
            await uow.commit()

        logger.info(f"Shipment {existing.shipment_id} status set to {status!r}")
        await self._notify_status_change(identity, existing, status)

    async def update_shipment(
        self, identity: Identity | None, shipment_id: str, patch: ShipmentPatchDTO
    ) -> Shipment:
        """Apply an admin edit of status and/or invoice payment.

        The status is resolved against the catalogue by key or label. A match
        fills note, colour and next step from the catalogue unless the patch
        sets them. An unknown status is stored as given.
        """
        identity = self._access_control.require_admin(identity)

        shipment_id = (shipment_id or "").strip()
        if not shipment_id:
            raise ValidationError("shipmentId is required")
        requested_status = (patch.status or "").strip()
        if not requested_status and patch.invoice is None:
            raise ValidationError("status or invoice is required")

        now = datetime.now(timezone.utc)
        values = {"updated_at": now}
        async with self._unit_of_work() as uow:
            try:
                existing = await uow.shipments.get_by_shipment_id(shipment_id)
            except DoesNotExist:
                raise NotFound(f"Shipment {shipment_id} not found")

            if requested_status:
                definition = find_status(
                    merge_statuses(await uow.statuses.list_all()), requested_status
                )
                values.update(self._status_values(requested_status, definition, patch))
                values["status_updated_at"] = now
                if is_cancelled(values["status"]):
                    values["cancelled_at"] = now

            if patch.invoice is not None:
                values["invoice_paid"] = patch.invoice.paid
                values["invoice_paid_at"] = (
                    (patch.invoice.paid_at or now) if patch.invoice.paid else None
                )

            await uow.shipments.update_fields(existing.shipment_id, values)
            updated = await uow.shipments.get_by_shipment_id(existing.shipment_id)
            await uow.commit()

        logger.info(f"Shipment {updated.shipment_id} updated: {sorted(values)}")
        if requested_status:
            await self._notify_status_change(identity, updated, updated.status)
        if patch.invoice is not None:
            await self._notify_invoice_change(identity, updated)
        return updated

    async def update_invoice(
        self,
        identity: Identity | None,
        shipment_id: str,
        paid: bool,
        paid_at: datetime | None = None,
    ) -> Shipment:
        return await self.update_shipment(
            identity,
            shipment_id,
            ShipmentPatchDTO(invoice=InvoicePaymentDTO(paid=paid, paid_at=paid_at)),
        )

    @staticmethod
    def _status_values(
        status: str, definition: StatusDefinition | None, patch: ShipmentPatchDTO
    ) -> dict:
        color = status_color(patch.status_color) if patch.status_color else None
        if definition is None:
            return {
                "status": status,
                "status_note": (patch.status_note or "").strip(),
                "status_color": color or "",
                "next_step": (patch.next_step or "").strip(),
            }
        return {
            "status": definition.label,
            "status_note": (
                patch.status_note if patch.status_note is not None else definition.default_update
            ).strip(),
            "status_color": color or definition.color,
            "next_step": (
                patch.next_step if patch.next_step is not None else definition.next_step
            ).strip(),
        }

    async def _notify_status_change(
        self, identity: Identity, shipment: Shipment, status: str
    ) -> None:
        async def send_email(to: str, name: str) -> None:
            await self._email_sender.send_shipment_status_email(
                to, shipment.shipment_id, status, name
            )

        await self._notify_owner(
            identity,
            shipment,
            "Shipment Status Updated",
            f"Shipment {shipment.shipment_id} status changed to {status}.",
            send_email,
        )

    async def _notify_invoice_change(self, identity: Identity, shipment: Shipment) -> None:
        paid = shipment.invoice.paid

        async def send_email(to: str, name: str) -> None:
            await self._email_sender.send_invoice_update_email(
                to, shipment.shipment_id, paid, name
            )

        await self._notify_owner(
            identity,
            shipment,
            "Invoice Updated",
            f"Invoice for shipment {shipment.shipment_id} is now {'PAID' if paid else 'UNPAID'}.",
            send_email,
        )

    async def _notify_owner(
        self,
        identity: Identity,
        shipment: Shipment,
        title: str,
        message: str,
        send_email: Callable[[str, str], Awaitable[None]],
    ) -> None:
        owner_email = normalize_email(shipment.created_by_email)
        if not owner_email or owner_email == normalize_email(identity.email):
            return

        try:
            await self._notification_dispatcher.notify_user(
                owner_email, title, message, shipment_id=shipment.shipment_id
            )
            await send_email(owner_email, await self._owner_name(owner_email))
        except Exception as e:
            logger.error(
                f"Owner notification failed for shipment {shipment.shipment_id}: {e}",
                exc_info=True,
            )

    async def _owner_name(self, email: str) -> str:
        async with self._unit_of_work() as uow:
            try:
                user = await uow.users.get_by_email(email)
            except DoesNotExist:
                return "Customer"
        return user.name or "Customer"

    async def list_statuses(self) -> list[StatusDefinition]:
        async with self._unit_of_work() as uow:
            return merge_statuses(await uow.statuses.list_all())

    async def get_status(self, key: str) -> StatusDefinition:
        definition = find_status(await self.list_statuses(), key)
        if definition is None:
            raise NotFound("Status not found")
        return definition

    async def upsert_status(
        self, identity: Identity | None, status: StatusDTO
    ) -> StatusDefinition:
        self._access_control.require_admin(identity)

        label = status.label.strip()
        if not label:
            raise ValidationError("Label is required.")
        key = status_key(status.key or label)
        if not key:
            raise ValidationError("Status key is required.")

        definition = StatusDefinition(
            key=key,
            label=label,
            color=status_color(status.color),
            default_update=status.default_update.strip(),
            next_step=status.next_step.strip(),
        )
        async with self._unit_of_work() as uow:
            await uow.statuses.upsert(definition)
            await uow.commit()

        logger.info(f"Status {key!r} saved as {label!r}")
        return definition

    async def invoice_for(self, identity: Identity | None, query: str) -> InvoiceView:
        identity = self._access_control.require_identity(identity)
        query = (query or "").strip()
        if not query:
            raise ValidationError("q is required")

        async with self._unit_of_work() as uow:
            try:
                shipment = await uow.shipments.get_by_identifier(
                    query, self._access_control.shipment_visibility(identity)
                )
            except DoesNotExist:
                raise NotFound("Shipment not found")

        return InvoiceView(
            invoice_number=invoice_number(shipment.shipment_id),
            status="paid" if shipment.invoice.paid else "pending",
            currency=shipment.invoice.currency.upper(),
            total=shipment.invoice.amount,
            paid=shipment.invoice.paid,
            paid_at=shipment.invoice.paid_at,
            shipment=InvoiceShipment(
                shipment_id=shipment.shipment_id,
                tracking_number=shipment.tracking_number,
                origin=shipment.sender_country_code,
                destination=shipment.destination_country_code,
                status=shipment.status,
            ),
            parties=InvoiceParties(
                sender_name=shipment.sender_name or "Sender",
                receiver_name=shipment.receiver_name or "Receiver",
                receiver_email=shipment.created_by_email or "",
            ),
            created_at=shipment.created_at,
            updated_at=shipment.updated_at,
        )

    async def list_for_owner(
        self, identity: Identity | None, limit: int | None = None
    ) -> list[Shipment]:
        identity = self._access_control.require_identity(identity)
        limit = clamp_limit(limit, DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT)

        async with self._unit_of_work() as uow:
            return await uow.shipments.find_many(
                self._access_control.shipment_visibility(identity),
                sort=[("created_at", "desc")],
                limit=limit,
            )

    async def list_for_user(self, identity: Identity | None, user_id: str) -> list[Shipment]:
        self._access_control.require_admin(identity)

        async with self._unit_of_work() as uow:
            try:
                email = (await uow.users.get_by_id(user_id)).email
            except DoesNotExist:
                email = None
            return await uow.shipments.find_many(
                self._access_control.owned_by(user_id, email),
                sort=[("created_at", "desc")],
            )

    async def get_shipment(self, identity: Identity | None, shipment_id: str) -> Shipment:
        identity = self._access_control.require_identity(identity)
        shipment_id = (shipment_id or "").strip()
        if not shipment_id:
            raise ValidationError("shipmentId is required")

        async with self._unit_of_work() as uow:
            try:
                return await uow.shipments.get_by_shipment_id(
                    shipment_id, self._access_control.shipment_visibility(identity)
                )
            except DoesNotExist:
                raise NotFound(f"Shipment {shipment_id} not found")

    async def dashboard_stats(self, identity: Identity | None) -> DashboardStats:
        identity = self._access_control.require_identity(identity)

        async with self._unit_of_work() as uow:
            rows = await uow.shipments.list_status_and_invoice(
                self._access_control.shipment_visibility(identity)
            )

        counts = {status.key: 0 for status in DEFAULT_STATUSES}
        pending: dict[str, Decimal] = {}
        pending_count = 0
        for row in rows:
            key = status_key(row["status"])
            if key in counts:
                counts[key] += 1

            amount = Decimal(row["invoice_amount"] or 0)
            if not row["invoice_paid"] and amount > 0:
                currency = (row["invoice_currency"] or "USD").upper()
                pending[currency] = pending.get(currency, Decimal("0")) + amount
                pending_count += 1

        return DashboardStats(
            total=len(rows),
            in_transit=counts["intransit"],
            delivered=counts["delivered"],
            custom=counts["customclearance"],
            unclaimed=counts["unclaimed"],
            pending_invoices_count=pending_count,
            pending_invoices_by_currency=pending,
            pending_invoices_currencies=sorted(pending, key=pending.get, reverse=True),
        )

    async def record_tracking_event(
        self, identity: Identity | None, shipment_id: str, event: TrackingEventDTO
    ) -> TrackingEvent:
        self._access_control.require_admin(identity)
        shipment_id = (shipment_id or "").strip()
        if not shipment_id or not event.status.strip():
            raise ValidationError("shipmentId and status are required")

        async with self._unit_of_work() as uow:
            tracking_event = await uow.tracking_history.create(
                TrackingHistoryRepository.CreateDTO(
                    shipment_id=shipment_id,
                    status=event.status.strip(),
                    location=event.location.strip(),
                    description=event.description.strip(),
                    occurred_at=event.occurred_at or datetime.now(timezone.utc),
                )
            )
            await uow.commit()
            return tracking_event

    async def tracking_history(
        self, identity: Identity | None, shipment_id: str
    ) -> list[TrackingEvent]:
        """Events for a shipment, oldest first. Unknown shipments have none."""
        identity = self._access_control.require_identity(identity)
        shipment_id = (shipment_id or "").strip()
        if not shipment_id:
            raise ValidationError("Shipment ID is required")

        async with self._unit_of_work() as uow:
            if not identity.is_admin:
                try:
                    await uow.shipments.get_by_shipment_id(
                        shipment_id, self._access_control.shipment_visibility(identity)
                    )
                except DoesNotExist:
                    return []
            return await uow.tracking_history.list_for_shipment(shipment_id)

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel


class RoleEnum(StrEnum):
    ADMIN = "ADMIN"
    USER = "USER"


def normalize_role(raw: str | None) -> RoleEnum:
    """Anything other than ADMIN, including a missing role, is a plain user."""
    if str(raw or "").strip().upper() == RoleEnum.ADMIN:
        return RoleEnum.ADMIN
    return RoleEnum.USER


class Identity(BaseModel):
    id: str | None = None
    email: str | None = None
    role: RoleEnum = RoleEnum.USER

    @property
    def is_admin(self) -> bool:
        return self.role == RoleEnum.ADMIN


class ShipmentStatusEnum(StrEnum):
    CREATED = "Created"
    IN_TRANSIT = "In Transit"
    CUSTOM_CLEARANCE = "Custom Clearance"
    DELIVERED = "Delivered"
    UNCLAIMED = "Unclaimed"


CANCELLED_STATUS = "cancelled"


class Invoice(BaseModel):
    amount: Decimal = Decimal("0")
    currency: str = "USD"
    paid: bool = False
    paid_at: datetime | None = None


class Shipment(BaseModel):
    shipment_id: str
    tracking_number: str
    sender_country_code: str
    destination_country_code: str
    sender_name: str | None = None
    receiver_name: str | None = None
    created_by_user_id: str | None = None
    created_by_email: str | None = None
    status: str
    status_note: str = ""
    status_color: str = ""
    next_step: str = ""
    status_updated_at: datetime | None = None
    cancelled_at: datetime | None = None
    invoice: Invoice
    created_at: datetime
    updated_at: datetime


class ShipmentSummary(BaseModel):
    shipment_id: str
    tracking_number: str
    status: str
    sender_country_code: str | None = None
    destination_country_code: str | None = None
    created_at: datetime | None = None


class TrackingEvent(BaseModel):
    shipment_id: str
    status: str
    location: str = ""
    description: str = ""
    occurred_at: datetime


class User(BaseModel):
    id: str
    email: str
    name: str = ""
    role: RoleEnum = RoleEnum.USER
    is_deleted: bool = False
    deleted_at: datetime | None = None
    deleted_by: str | None = None
    created_at: datetime | None = None


class Notification(BaseModel):
    id: str
    user_email: str
    title: str
    message: str
    shipment_id: str | None = None
    read: bool = False
    created_at: datetime


class BlockedEmail(BaseModel):
    id: str
    user_id: str | None = None
    email: str
    reason: str = ""
    blocked_at: datetime


class DashboardStats(BaseModel):
    total: int
    in_transit: int
    delivered: int
    custom: int
    unclaimed: int
    pending_invoices_count: int
    pending_invoices_by_currency: dict[str, Decimal]
    pending_invoices_currencies: list[str]


class StatusDefinition(BaseModel):
    key: str
    label: str
    color: str = "blue"
    default_update: str = ""
    next_step: str = ""


class InvoiceShipment(BaseModel):
    shipment_id: str
    tracking_number: str
    origin: str
    destination: str
    status: str


class InvoiceParties(BaseModel):
    sender_name: str
    receiver_name: str
    receiver_email: str


class InvoiceView(BaseModel):
    invoice_number: str
    status: str
    currency: str
    total: Decimal
    paid: bool
    paid_at: datetime | None = None
    shipment: InvoiceShipment
    parties: InvoiceParties
    created_at: datetime | None = None
    updated_at: datetime | None = None

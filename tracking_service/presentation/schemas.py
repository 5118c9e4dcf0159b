from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from tracking_service.application.shipment_lifecycle import (
    InvoicePaymentDTO,
    ShipmentDTO,
    ShipmentPatchDTO,
    StatusDTO,
    TrackingEventDTO,
)
from tracking_service.core.models import (
    DashboardStats,
    Invoice,
    InvoiceParties,
    InvoiceShipment,
    InvoiceView,
    Notification,
    Shipment,
    ShipmentSummary,
    StatusDefinition,
    TrackingEvent,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RequestModel(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )


# Requests


class ShipmentCreateRequest(RequestModel, ShipmentDTO):
    pass


class StatusUpdateRequest(RequestModel):
    shipment_id: str
    status: str
    status_note: str | None = None


class TrackingEventRequest(RequestModel, TrackingEventDTO):
    pass


class InvoicePaymentRequest(RequestModel, InvoicePaymentDTO):
    pass


class ShipmentPatchRequest(RequestModel, ShipmentPatchDTO):
    invoice: InvoicePaymentRequest | None = None


class StatusUpsertRequest(RequestModel, StatusDTO):
    pass


class MarkReadRequest(RequestModel):
    id: str


class AdminNotificationRequest(RequestModel):
    user_email: str
    title: str
    message: str
    shipment_id: str | None = None


# Responses


class ErrorResponseModel(BaseModel):
    error: str
    message: str


class OkResponseModel(CamelModel):
    ok: bool = True


class InvoiceResponseModel(CamelModel, Invoice):
    pass


class ShipmentResponseModel(CamelModel, Shipment):
    invoice: InvoiceResponseModel


class ShipmentSummaryResponseModel(CamelModel, ShipmentSummary):
    pass


class TrackingEventResponseModel(CamelModel, TrackingEvent):
    pass


class NotificationResponseModel(CamelModel, Notification):
    pass


class DashboardStatsResponseModel(CamelModel, DashboardStats):
    pass


class ShipmentCreatedResponseModel(OkResponseModel):
    shipment: ShipmentResponseModel


class ShipmentUpdatedResponseModel(OkResponseModel):
    shipment: ShipmentResponseModel


class ShipmentDetailResponseModel(CamelModel):
    shipment: ShipmentResponseModel


class ShipmentListResponseModel(CamelModel):
    results: list[ShipmentResponseModel]


class UserShipmentsResponseModel(CamelModel):
    shipments: list[ShipmentResponseModel]


class SearchResponseModel(CamelModel):
    items: list[ShipmentSummaryResponseModel]


class TrackingHistoryResponseModel(CamelModel):
    events: list[TrackingEventResponseModel]


class StatusDefinitionResponseModel(CamelModel, StatusDefinition):
    pass


class StatusListResponseModel(CamelModel):
    statuses: list[StatusDefinitionResponseModel]


class StatusDetailResponseModel(CamelModel):
    status: StatusDefinitionResponseModel


class StatusSavedResponseModel(OkResponseModel):
    status: StatusDefinitionResponseModel


class InvoiceShipmentResponseModel(CamelModel, InvoiceShipment):
    pass


class InvoicePartiesResponseModel(CamelModel, InvoiceParties):
    pass


class InvoiceViewResponseModel(CamelModel, InvoiceView):
    shipment: InvoiceShipmentResponseModel
    parties: InvoicePartiesResponseModel


class InvoiceLookupResponseModel(CamelModel):
    invoice: InvoiceViewResponseModel


class DeletedUserResponseModel(CamelModel):
    id: str
    name: str
    email: str
    deleted_at: datetime | None = None


class DeletedUsersResponseModel(CamelModel):
    users: list[DeletedUserResponseModel]


class SoftDeleteResponseModel(OkResponseModel):
    email_blocked: bool
    email_sent: bool


class NotificationListResponseModel(CamelModel):
    notifications: list[NotificationResponseModel]
    unread_count: int


class NotificationCreatedResponseModel(OkResponseModel):
    id: str


class HealthResponseModel(BaseModel):
    status: str

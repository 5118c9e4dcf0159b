from http import HTTPStatus

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from tracking_service.application.access_control import AccessControlGate
from tracking_service.application.container import ApplicationContainer
from tracking_service.application.notifications import NotificationDispatcher
from tracking_service.application.shipment_lifecycle import ShipmentLifecycleManager
from tracking_service.application.shipment_search import ShipmentSearch
from tracking_service.application.user_admin import UserAdminService
from tracking_service.core.models import Identity
from tracking_service.presentation.error_handlers import BoundaryRoute
from tracking_service.presentation.identity import current_identity
from tracking_service.presentation.schemas import (
    AdminNotificationRequest,
    DashboardStatsResponseModel,
    DeletedUserResponseModel,
    DeletedUsersResponseModel,
    ErrorResponseModel,
    HealthResponseModel,
    InvoiceLookupResponseModel,
    InvoicePaymentRequest,
    MarkReadRequest,
    NotificationCreatedResponseModel,
    NotificationListResponseModel,
    OkResponseModel,
    SearchResponseModel,
    ShipmentCreatedResponseModel,
    ShipmentCreateRequest,
    ShipmentDetailResponseModel,
    ShipmentListResponseModel,
    ShipmentPatchRequest,
    ShipmentUpdatedResponseModel,
    SoftDeleteResponseModel,
    StatusDetailResponseModel,
    StatusListResponseModel,
    StatusSavedResponseModel,
    StatusUpdateRequest,
    StatusUpsertRequest,
    TrackingEventRequest,
    TrackingHistoryResponseModel,
    UserShipmentsResponseModel,
)

router = APIRouter(
    route_class=BoundaryRoute,
    responses={
        code.value: {"model": ErrorResponseModel}
        for code in (
            HTTPStatus.BAD_REQUEST,
            HTTPStatus.UNAUTHORIZED,
            HTTPStatus.FORBIDDEN,
            HTTPStatus.NOT_FOUND,
            HTTPStatus.INTERNAL_SERVER_ERROR,
        )
    },
)


@router.get("/health", response_model=HealthResponseModel)
async def health():
    return HealthResponseModel(status="ok")


# Shipments


@router.post(
    "/shipments",
    status_code=HTTPStatus.CREATED,
    response_model=ShipmentCreatedResponseModel,
)
@inject
async def create_shipment(
    shipment: ShipmentCreateRequest,
    identity: Identity | None = Depends(current_identity),
    shipment_lifecycle: ShipmentLifecycleManager = Depends(
        Provide[ApplicationContainer.shipment_lifecycle]
    ),
):
    created = await shipment_lifecycle.create_shipment(identity, shipment)
    return ShipmentCreatedResponseModel.model_validate(
        {"ok": True, "shipment": created.model_dump()}
    )


@router.get("/shipments", response_model=ShipmentListResponseModel)
@inject
async def list_shipments(
    limit: int | None = None,
    identity: Identity | None = Depends(current_identity),
    shipment_lifecycle: ShipmentLifecycleManager = Depends(
        Provide[ApplicationContainer.shipment_lifecycle]
    ),
):
    shipments = await shipment_lifecycle.list_for_owner(identity, limit)
    return ShipmentListResponseModel.model_validate(
        {"results": [shipment.model_dump() for shipment in shipments]}
    )


@router.get("/shipments/search", response_model=SearchResponseModel)
@inject
async def search_shipments(
    q: str = "",
    identity: Identity | None = Depends(current_identity),
    shipment_search: ShipmentSearch = Depends(
        Provide[ApplicationContainer.shipment_search]
    ),
):
    items = await shipment_search.search_by_prefix(identity, q)
    return SearchResponseModel.model_validate(
        {"items": [item.model_dump() for item in items]}
    )


@router.get("/shipments/{shipment_id}", response_model=ShipmentDetailResponseModel)
@inject
async def get_shipment(
    shipment_id: str,
    identity: Identity | None = Depends(current_identity),
    shipment_lifecycle: ShipmentLifecycleManager = Depends(
        Provide[ApplicationContainer.shipment_lifecycle]
    ),
):
    shipment = await shipment_lifecycle.get_shipment(identity, shipment_id)
    return ShipmentDetailResponseModel.model_validate(
        {"shipment": shipment.model_dump()}
    )


@router.get(
    "/shipments/{shipment_id}/tracking",
    response_model=TrackingHistoryResponseModel,
)
@inject
async def get_tracking_history(
    shipment_id: str,
    identity: Identity | None = Depends(current_identity),
    shipment_lifecycle: ShipmentLifecycleManager = Depends(
        Provide[ApplicationContainer.shipment_lifecycle]
    ),
):
    events = await shipment_lifecycle.tracking_history(identity, shipment_id)
    return TrackingHistoryResponseModel.model_validate(
        {"events": [event.model_dump() for event in events]}
    )


@router.post(
    "/shipments/{shipment_id}/tracking",
    status_code=HTTPStatus.CREATED,
    response_model=OkResponseModel,
)
@inject
async def record_tracking_event(
    shipment_id: str,
    event: TrackingEventRequest,
    identity: Identity | None = Depends(current_identity),
    shipment_lifecycle: ShipmentLifecycleManager = Depends(
        Provide[ApplicationContainer.shipment_lifecycle]
    ),
):
    await shipment_lifecycle.record_tracking_event(identity, shipment_id, event)
    return OkResponseModel()


@router.get("/dashboard/stats", response_model=DashboardStatsResponseModel)
@inject
async def dashboard_stats(
    identity: Identity | None = Depends(current_identity),
    shipment_lifecycle: ShipmentLifecycleManager = Depends(
        Provide[ApplicationContainer.shipment_lifecycle]
    ),
):
    stats = await shipment_lifecycle.dashboard_stats(identity)
    return DashboardStatsResponseModel.model_validate(stats.model_dump())


@router.get("/invoice", response_model=InvoiceLookupResponseModel)
@inject
async def lookup_invoice(
    q: str = "",
    identity: Identity | None = Depends(current_identity),
    shipment_lifecycle: ShipmentLifecycleManager = Depends(
        Provide[ApplicationContainer.shipment_lifecycle]
    ),
):
    invoice = await shipment_lifecycle.invoice_for(identity, q)
    return InvoiceLookupResponseModel.model_validate({"invoice": invoice.model_dump()})


# Statuses


@router.get("/statuses", response_model=StatusListResponseModel)
@inject
async def list_statuses(
    shipment_lifecycle: ShipmentLifecycleManager = Depends(
        Provide[ApplicationContainer.shipment_lifecycle]
    ),
):
    statuses = await shipment_lifecycle.list_statuses()
    return StatusListResponseModel.model_validate(
        {"statuses": [status.model_dump() for status in statuses]}
    )


@router.get("/statuses/{key}", response_model=StatusDetailResponseModel)
@inject
async def get_status(
    key: str,
    shipment_lifecycle: ShipmentLifecycleManager = Depends(
        Provide[ApplicationContainer.shipment_lifecycle]
    ),
):
    status = await shipment_lifecycle.get_status(key)
    return StatusDetailResponseModel.model_validate({"status": status.model_dump()})


# Admin


@router.patch("/admin/shipments/status", response_model=OkResponseModel)
@inject
async def update_shipment_status(
    update: StatusUpdateRequest,
    identity: Identity | None = Depends(current_identity),
    shipment_lifecycle: ShipmentLifecycleManager = Depends(
        Provide[ApplicationContainer.shipment_lifecycle]
    ),
):
    await shipment_lifecycle.update_status(
        identity, update.shipment_id, update.status, update.status_note
    )
    return OkResponseModel()


@router.patch(
    "/admin/shipments/{shipment_id}",
    response_model=ShipmentUpdatedResponseModel,
)
@inject
async def update_shipment(
    shipment_id: str,
    patch: ShipmentPatchRequest,
    identity: Identity | None = Depends(current_identity),
    shipment_lifecycle: ShipmentLifecycleManager = Depends(
        Provide[ApplicationContainer.shipment_lifecycle]
    ),
):
    updated = await shipment_lifecycle.update_shipment(identity, shipment_id, patch)
    return ShipmentUpdatedResponseModel.model_validate(
        {"ok": True, "shipment": updated.model_dump()}
    )


@router.patch(
    "/admin/shipments/{shipment_id}/invoice",
    response_model=ShipmentUpdatedResponseModel,
)
@inject
async def update_invoice(
    shipment_id: str,
    payment: InvoicePaymentRequest,
    identity: Identity | None = Depends(current_identity),
    shipment_lifecycle: ShipmentLifecycleManager = Depends(
        Provide[ApplicationContainer.shipment_lifecycle]
    ),
):
    updated = await shipment_lifecycle.update_invoice(
        identity, shipment_id, payment.paid, payment.paid_at
    )
    return ShipmentUpdatedResponseModel.model_validate(
        {"ok": True, "shipment": updated.model_dump()}
    )


@router.post("/admin/statuses", response_model=StatusSavedResponseModel)
@inject
async def upsert_status(
    status: StatusUpsertRequest,
    identity: Identity | None = Depends(current_identity),
    shipment_lifecycle: ShipmentLifecycleManager = Depends(
        Provide[ApplicationContainer.shipment_lifecycle]
    ),
):
    saved = await shipment_lifecycle.upsert_status(identity, status)
    return StatusSavedResponseModel.model_validate(
        {"ok": True, "status": saved.model_dump()}
    )


@router.get(
    "/admin/users/{user_id}/shipments",
    response_model=UserShipmentsResponseModel,
)
@inject
async def list_user_shipments(
    user_id: str,
    identity: Identity | None = Depends(current_identity),
    shipment_lifecycle: ShipmentLifecycleManager = Depends(
        Provide[ApplicationContainer.shipment_lifecycle]
    ),
):
    shipments = await shipment_lifecycle.list_for_user(identity, user_id)
    return UserShipmentsResponseModel.model_validate(
        {"shipments": [shipment.model_dump() for shipment in shipments]}
    )


@router.get("/admin/deleted-users", response_model=DeletedUsersResponseModel)
@inject
async def list_deleted_users(
    identity: Identity | None = Depends(current_identity),
    user_admin: UserAdminService = Depends(Provide[ApplicationContainer.user_admin]),
):
    users = await user_admin.list_deleted_users(identity)
    return DeletedUsersResponseModel(
        users=[
            DeletedUserResponseModel(
                id=user.id, name=user.name, email=user.email, deleted_at=user.deleted_at
            )
            for user in users
        ]
    )


@router.delete("/admin/deleted-users/{user_id}", response_model=OkResponseModel)
@inject
async def restore_blocked_email(
    user_id: str,
    identity: Identity | None = Depends(current_identity),
    user_admin: UserAdminService = Depends(Provide[ApplicationContainer.user_admin]),
):
    await user_admin.restore_blocked_email(identity, user_id)
    return OkResponseModel()


@router.delete("/admin/users/{user_id}", response_model=SoftDeleteResponseModel)
@inject
async def soft_delete_user(
    user_id: str,
    identity: Identity | None = Depends(current_identity),
    user_admin: UserAdminService = Depends(Provide[ApplicationContainer.user_admin]),
):
    result = await user_admin.soft_delete_user(identity, user_id)
    return SoftDeleteResponseModel(
        email_blocked=result.email_blocked, email_sent=result.email_sent
    )


@router.post(
    "/admin/notifications",
    status_code=HTTPStatus.CREATED,
    response_model=NotificationCreatedResponseModel,
)
@inject
async def create_notification(
    notification: AdminNotificationRequest,
    identity: Identity | None = Depends(current_identity),
    access_control: AccessControlGate = Depends(
        Provide[ApplicationContainer.access_control]
    ),
    notification_dispatcher: NotificationDispatcher = Depends(
        Provide[ApplicationContainer.notification_dispatcher]
    ),
):
    access_control.require_admin(identity)
    notification_id = await notification_dispatcher.notify_user(
        notification.user_email,
        notification.title,
        notification.message,
        shipment_id=notification.shipment_id,
    )
    return NotificationCreatedResponseModel(id=notification_id)


# Notifications


@router.get("/notifications", response_model=NotificationListResponseModel)
@inject
async def list_notifications(
    limit: int | None = None,
    identity: Identity | None = Depends(current_identity),
    notification_dispatcher: NotificationDispatcher = Depends(
        Provide[ApplicationContainer.notification_dispatcher]
    ),
):
    page = await notification_dispatcher.list_for_user(identity, limit)
    return NotificationListResponseModel.model_validate(page.model_dump())


@router.post("/notifications/read", response_model=OkResponseModel)
@inject
async def mark_notification_read(
    body: MarkReadRequest,
    identity: Identity | None = Depends(current_identity),
    notification_dispatcher: NotificationDispatcher = Depends(
        Provide[ApplicationContainer.notification_dispatcher]
    ),
):
    await notification_dispatcher.mark_read(identity, body.id)
    return OkResponseModel()


@router.delete("/notifications/{notification_id}", response_model=OkResponseModel)
@inject
async def delete_notification(
    notification_id: str,
    email: str = "",
    identity: Identity | None = Depends(current_identity),
    notification_dispatcher: NotificationDispatcher = Depends(
        Provide[ApplicationContainer.notification_dispatcher]
    ),
):
    await notification_dispatcher.delete_owned(identity, notification_id, email)
    return OkResponseModel()


# Quote


@router.post("/quote")
async def quote():
    return JSONResponse(
        content={
            "message": "Quote unavailable at this moment. "
            "Please try again later or contact support."
        },
        status_code=HTTPStatus.SERVICE_UNAVAILABLE,
    )

from dependency_injector.wiring import Provide, inject
from fastapi import Depends, Request

from tracking_service.application.access_control import AccessControlGate
from tracking_service.application.container import ApplicationContainer
from tracking_service.core.models import Identity


@inject
async def current_identity(
    request: Request,
    access_control: AccessControlGate = Depends(
        Provide[ApplicationContainer.access_control]
    ),
) -> Identity | None:
    return access_control.resolve_identity(request.headers)

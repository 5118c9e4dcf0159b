import logging
from http import HTTPStatus
from typing import Callable

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute

from tracking_service.core.errors import InternalError, TrackingError, ValidationError

logger = logging.getLogger(__name__)


class BoundaryRoute(APIRoute):
    """Route whose handler never lets an unmapped exception escape."""

    def get_route_handler(self) -> Callable:
        original_route_handler = super().get_route_handler()

        async def route_handler(request: Request) -> Response:
            try:
                return await original_route_handler(request)
            except (TrackingError, HTTPException, RequestValidationError):
                raise
            except Exception:
                logger.exception(
                    f"Unhandled error on {request.method} {request.url.path}"
                )
                raise InternalError

        return route_handler


def _error_response(error: TrackingError) -> JSONResponse:
    return JSONResponse(
        content={"error": error.code, "message": error.message},
        status_code=error.status_code,
    )


async def tracking_error_handler(request: Request, exc: TrackingError) -> JSONResponse:
    if exc.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
        return _error_response(InternalError())
    return _error_response(exc)


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = sorted(
        {".".join(str(part) for part in error["loc"][1:]) for error in exc.errors()}
        - {""}
    )
    message = "Invalid request"
    if fields:
        message = f"Invalid or missing fields: {', '.join(fields)}"
    return _error_response(ValidationError(message))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TrackingError, tracking_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

"""
HTTP rendering of the service error taxonomy.

Precondition failures map to 4xx and leave the task untouched. Settlement
failures map to 502; PAYMENT_FAILED carries the still-confirmed task in
``details.task`` so the caller knows a retry of /confirm pays it. Anything
else, including InvariantViolationError, is logged with its traceback and
answered with a bare 500.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskflow_service.exceptions import ServiceError, SettlementError
from taskflow_service.logging import get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI, Request
    from starlette.types import ExceptionHandler


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render a ServiceError as its status code and error body."""
    logger = get_logger(__name__)
    extra = {
        "error_code": exc.error,
        "status_code": exc.status_code,
        "path": str(request.url.path),
    }
    task_id = exc.details.get("task_id")
    if task_id is not None:
        extra["task_id"] = task_id
    if isinstance(exc, SettlementError):
        logger.error("Settlement error", extra=extra)
    else:
        logger.warning("Service error", extra=extra)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_exception_handler(request: Request, _exc: Exception) -> JSONResponse:
    """Log an unexpected exception and answer 500 without internals."""
    logger = get_logger(__name__)
    logger.exception("Unhandled exception", extra={"path": str(request.url.path)})
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "details": {},
        },
    )


async def http_exception_handler(
    _request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Shape routing errors (unknown path, wrong method) like service errors."""
    if exc.status_code == 405:
        return JSONResponse(
            status_code=405,
            content={
                "error": "METHOD_NOT_ALLOWED",
                "message": "Method not allowed",
                "details": {},
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "HTTP_ERROR",
            "message": str(exc.detail),
            "details": {},
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers on the app, most specific first."""
    app.add_exception_handler(ServiceError, cast("ExceptionHandler", service_error_handler))
    app.add_exception_handler(
        StarletteHTTPException,
        cast("ExceptionHandler", http_exception_handler),
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)

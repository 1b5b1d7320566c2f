"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from taskflow_service.config import get_settings
from taskflow_service.core.exceptions import register_exception_handlers
from taskflow_service.core.lifespan import lifespan
from taskflow_service.core.middleware import RequestValidationMiddleware
from taskflow_service.routers import balances, events, health, tasks


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI instance with all routers registered.
    """
    settings = get_settings()

    app = FastAPI(
        title=f"{settings.service.name} Service",
        version=settings.service.version,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["Operations"])
    app.include_router(tasks.router, tags=["Tasks"])
    app.include_router(balances.router, tags=["Settlement"])
    app.include_router(events.router, tags=["Events"])

    app.add_middleware(
        RequestValidationMiddleware,
        max_body_size=settings.request.max_body_size,
    )

    return app

"""
FastAPI Application Entry Point.

Intake HTTP service of the CRM-to-ERP bridge.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crm_erp.api import health, users
from crm_erp.core.config import get_app_config
from crm_erp.core.exception_handlers import register_exception_handlers
from crm_erp.core.logging import get_logger, setup_logging
from crm_erp.core.middleware import RequestContextMiddleware

logger = get_logger(__name__)

_app: FastAPI | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    app_config = get_app_config()
    setup_logging(level=app_config.logging.level)

    broker = None
    if app_config.features.events_enabled:
        from crm_erp.events.broker import get_event_broker

        broker = get_event_broker()
        await broker.connect()

    logger.info(
        "Application starting",
        extra={
            "app_name": app_config.application.name,
            "env": app_config.application.environment,
            "events_enabled": app_config.features.events_enabled,
        },
    )
    try:
        yield
    finally:
        if broker is not None:
            await broker.close()
        logger.info("Application shutting down")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app_config = get_app_config()
    app_settings = app_config.application

    app = FastAPI(
        title=app_settings.name,
        description=app_settings.description,
        version=app_settings.version,
        docs_url="/docs" if app_settings.debug else None,
        redoc_url="/redoc" if app_settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        RequestContextMiddleware,
        log_requests=app_config.features.api_request_logging,
    )

    cors_origins = app_settings.cors.origins
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(users.router, prefix="/users", tags=["users"])

    return app


def get_app() -> FastAPI:
    """
    Get the application instance (lazy initialization).

    Use this instead of importing `app` directly to avoid
    import-time configuration errors.
    """
    global _app
    if _app is None:
        _app = create_app()
    return _app


# For uvicorn: `uvicorn crm_erp.main:app`
def __getattr__(name: str) -> FastAPI:
    """Support lazy access to `app` for uvicorn compatibility."""
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

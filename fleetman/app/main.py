"""
FastAPI Application Entry Point.

This is the main application file for the FleetMan backend.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError, OperationalError

from fleetman.app.core.config import Settings, get_settings
from fleetman.app.api.v1.router import router as api_router
from fleetman.app.core.observability import ObservabilityMiddleware
from fleetman.app.core.redis_client import create_redis_client, ping_redis
from fleetman.app.db.session import Base, create_engine_from_settings, create_session_factory
from fleetman.app.services.auth_service import AuthService
from fleetman.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    integrity_error_handler,
    operational_error_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from fleetman.app.models.user import User  # noqa: F401
from fleetman.app.models.car import Car  # noqa: F401
from fleetman.app.models.driver import Driver  # noqa: F401
from fleetman.app.models.assignment import Assignment  # noqa: F401
from fleetman.app.models.audit_log import AuditLog  # noqa: F401

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables and checks Redis on startup.
    2. Disposes the engine and closes Redis on shutdown.
    """
    async with app.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")
    if not await ping_redis(app.state.redis):
        logger.warning("Redis is unreachable, dashboard stats will not be cached")
    yield
    await app.state.redis.aclose()
    await app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application.

    Everything stateful (engine, session factory, Redis client, auth service)
    is created here from ``settings`` and attached to ``app.state``.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        description="Fleet management API: cars, drivers and their assignments",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = create_engine_from_settings(settings)
    app.state.session_factory = create_session_factory(app.state.engine)
    app.state.redis = create_redis_client(settings)
    app.state.auth_service = AuthService(settings)

    app.add_middleware(ObservabilityMiddleware)

    # Register global exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(OperationalError, operational_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """
        Health check endpoint.

        Returns:
            dict: Status and application information
        """
        return {
            "status": "healthy",
            "app_name": settings.app_name,
            "version": settings.app_version,
        }

    app.include_router(api_router, prefix=settings.api_prefix)

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("fleetman.app.main:create_app", factory=True, host="0.0.0.0", port=8000)

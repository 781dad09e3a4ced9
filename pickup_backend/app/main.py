"""
FastAPI Application Entry Point.

This is the main application file for the Pickup Assignment Backend.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Depends, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import OperationalError
from pickup_backend.app.core.config import settings
from pickup_backend.app.api.v1.router import router as api_v1_router
from pickup_backend.app.core.dependencies import get_current_user
from pickup_backend.app.core.jwt import create_user_token, TokenClaimsError
from pickup_backend.app.core.redis_client import ping_redis
from pickup_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from pickup_backend.app.models.enums import UserRole
from pickup_backend.app.db.session import engine, Base
from pickup_backend.app.core.exceptions import (
    AppException,
    PickupValidationError,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    operational_error_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from pickup_backend.app.models.tenant import Tenant, Scrapyard
from pickup_backend.app.models.driver import Driver
from pickup_backend.app.models.pickup_order import PickupOrder
from pickup_backend.app.models.assignment_event import AssignmentEvent
from pickup_backend.app.models.driver_status_history import DriverStatusHistory

configure_logging(settings.log_level)
logger = logging.getLogger("pickup_backend")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s %s started", settings.app_name, settings.api_version)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Multi-tenant pickup assignment service for scrapyard drivers",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
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
        "version": settings.api_version,
        "redis": "up" if await ping_redis() else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to Pickup Assignment Backend API",
        "docs": "/docs",
        "health": "/health",
    }


@app.post("/auth/test-token", tags=["Authentication"])
async def generate_test_token(
    subject: str = "driver-1",
    role: UserRole = UserRole.DRIVER,
    tenant_id: Optional[int] = None
):
    """
    Generate a test JWT token.

    Tokens are normally issued by the identity provider; this endpoint only
    exists in debug mode for local development.
    """
    if not settings.debug:
        raise HTTPException(status_code=404, detail="Not Found")

    try:
        token = create_user_token(subject, role, tenant_id)
    except TokenClaimsError as e:
        raise PickupValidationError(str(e), details={"role": role.value, "tenant_id": tenant_id})
    return {
        "access_token": token,
        "token_type": "bearer",
        "subject": subject,
        "role": role.value,
        "tenant_id": tenant_id,
    }


@app.get("/auth/protected", tags=["Authentication"])
async def protected_route(current_user: dict = Depends(get_current_user)):
    """
    Returns the verified token claims; 401 if the token is missing or invalid.
    """
    return {
        "message": "Access granted to protected resource",
        "authenticated_user": current_user,
    }

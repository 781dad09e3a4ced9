"""
Driver Profile API Endpoints.

The driver's own record, presence (availability) and logout.
"""

from fastapi import APIRouter, Depends, Query
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from pickup_backend.app.db.session import get_db
from pickup_backend.app.models.driver import Driver
from pickup_backend.app.models.enums import DriverStatus
from pickup_backend.app.schemas.driver import (
    DriverResponse, DriverStatusUpdate, DriverStatusHistoryResponse, DriverStatusChangeResponse
)
from pickup_backend.app.core.guards import get_driver_context
from pickup_backend.app.core.dependencies import security
from pickup_backend.app.core.exceptions import ResourceNotFoundError
from pickup_backend.app.core.token_revocation import revoke_token
from pickup_backend.app.domain.pickups.context import DriverContext
from pickup_backend.app.services.driver_presence import DriverPresenceService

router = APIRouter(prefix="/driver", tags=["Driver - Profile"])


@router.get("/me", response_model=DriverResponse)
async def get_my_driver_record(
    ctx: DriverContext = Depends(get_driver_context),
    db: AsyncSession = Depends(get_db)
):
    """Driver record of the authenticated user."""
    driver = await db.get(Driver, ctx.driver_id)
    if driver is None:
        raise ResourceNotFoundError("Driver", ctx.driver_id)
    return driver


@router.put("/status", response_model=DriverStatusChangeResponse)
async def update_my_status(
    body: DriverStatusUpdate,
    ctx: DriverContext = Depends(get_driver_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Change the driver's availability.

    No history entry is written when the status does not change.
    """
    driver, history = await DriverPresenceService.driver_status_manager(
        db, ctx, body.new_status, body.reason
    )
    return DriverStatusChangeResponse(
        driver=DriverResponse.model_validate(driver),
        changed=history is not None,
        history=DriverStatusHistoryResponse.model_validate(history) if history else None
    )


@router.get("/status/history", response_model=list[DriverStatusHistoryResponse])
async def get_my_status_history(
    limit: int = Query(10, ge=1, le=100),
    ctx: DriverContext = Depends(get_driver_context),
    db: AsyncSession = Depends(get_db)
):
    """Recent availability changes, most recent first."""
    return await DriverPresenceService.get_status_history(db, ctx, limit)


@router.post("/logout")
async def logout(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    ctx: DriverContext = Depends(get_driver_context),
    db: AsyncSession = Depends(get_db)
):
    """
    End the driver's session.

    Marks the driver offline and revokes the bearer token.
    """
    driver, _ = await DriverPresenceService.driver_status_manager(
        db, ctx, DriverStatus.OFFLINE.value, reason="Driver logged out"
    )
    revoked = await revoke_token(credentials.credentials, ctx.auth_user_id)

    return {
        "driver_id": driver.id,
        "driver_status": driver.driver_status.value,
        "token_revoked": revoked
    }

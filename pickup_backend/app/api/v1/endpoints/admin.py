"""
Super Admin API Endpoints.

Tenant management, driver onboarding and the per-tenant assignment audit
trail.
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from pickup_backend.app.db.session import get_db
from pickup_backend.app.models.tenant import Tenant
from pickup_backend.app.models.driver import Driver
from pickup_backend.app.models.enums import DriverStatus
from pickup_backend.app.schemas.tenant import TenantCreate, TenantResponse
from pickup_backend.app.schemas.driver import DriverCreate, DriverResponse, DriverDeactivationResponse
from pickup_backend.app.schemas.pickup import AssignmentEventResponse
from pickup_backend.app.core.guards import require_super_admin
from pickup_backend.app.core.exceptions import ResourceNotFoundError
from pickup_backend.app.services.audit import get_tenant_audit_trail
from pickup_backend.app.services.driver_presence import DriverPresenceService
from pickup_backend.app.domain.pickups.context import AdminContext
from pickup_backend.app.api.v1.endpoints.driver_pickups import assignment_service

router = APIRouter(prefix="/admin", tags=["Super Admin"])


@router.post("/tenants", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    tenant_data: TenantCreate,
    admin: dict = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a tenant (scrapyard business).
    """
    existing = await db.execute(select(Tenant).where(Tenant.name == tenant_data.name))
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Tenant name already registered"
        )

    tenant = Tenant(name=tenant_data.name, is_active=True)
    db.add(tenant)
    await db.commit()
    await db.refresh(tenant)

    return tenant


@router.get("/tenants", response_model=list[TenantResponse])
async def list_tenants(
    admin: dict = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(Tenant).order_by(Tenant.name))
    return result.scalars().all()


@router.post("/tenants/{tenant_id}/drivers", response_model=DriverResponse, status_code=status.HTTP_201_CREATED)
async def create_driver(
    driver_data: DriverCreate,
    tenant_id: int = Path(..., description="Tenant ID"),
    admin: dict = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Onboard a driver into a tenant.

    The driver starts offline and goes available from the driver app.
    """
    tenant = await db.get(Tenant, tenant_id)
    if not tenant:
        raise ResourceNotFoundError("Tenant", tenant_id)

    if not tenant.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tenant is not active"
        )

    driver = Driver(
        tenant_id=tenant.id,
        auth_user_id=driver_data.auth_user_id,
        full_name=driver_data.full_name,
        phone_number=driver_data.phone_number,
        email=driver_data.email,
        vehicle_registration=driver_data.vehicle_registration,
        driver_status=DriverStatus.OFFLINE,
        is_active=True
    )
    db.add(driver)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A driver is already linked to this account"
        )
    await db.refresh(driver)

    return driver


@router.patch("/drivers/{driver_id}/deactivate", response_model=DriverDeactivationResponse)
async def deactivate_driver(
    driver_id: int = Path(..., description="Driver ID"),
    admin: dict = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Deactivate a driver. Inactive drivers cannot sign in or claim pickups.

    Their assigned pickups go back to the pool; pickups already in progress
    are reported for the dispatcher to resolve.
    """
    driver = await db.get(Driver, driver_id)
    if not driver:
        raise ResourceNotFoundError("Driver", driver_id)

    driver.is_active = False
    await DriverPresenceService.apply_status(
        db, driver, DriverStatus.OFFLINE, reason="Driver deactivated", source="admin"
    )
    await db.commit()

    ctx = AdminContext(user_id=str(admin["sub"]), tenant_id=driver.tenant_id)
    released, in_progress = await assignment_service.release_driver_pickups(
        db, ctx, driver.id, reason="Driver deactivated"
    )
    await db.refresh(driver)

    return DriverDeactivationResponse(
        driver=DriverResponse.model_validate(driver),
        released_pickup_ids=released,
        in_progress_pickup_ids=in_progress
    )


@router.get("/tenants/{tenant_id}/audit", response_model=list[AssignmentEventResponse])
async def get_tenant_audit(
    tenant_id: int = Path(..., description="Tenant ID"),
    action: Optional[str] = Query(None, description="Filter by action"),
    limit: int = Query(100, ge=1, le=500),
    admin: dict = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Assignment audit trail of a tenant, most recent first.
    """
    if not await db.get(Tenant, tenant_id):
        raise ResourceNotFoundError("Tenant", tenant_id)
    return await get_tenant_audit_trail(db, tenant_id, action, limit)

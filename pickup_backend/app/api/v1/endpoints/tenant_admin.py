"""
Tenant Admin API Endpoints.

Scrapyard staff dispatch pickups to their own drivers, take them back and
cancel orders. All queries are scoped to the tenant in the admin's token.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from pickup_backend.app.db.session import get_db
from pickup_backend.app.models.driver import Driver
from pickup_backend.app.models.enums import PickupStatus
from pickup_backend.app.schemas.pickup import (
    PickupListResponse, PickupOrderSummary, AssignmentResultResponse,
    AssignmentEventResponse, DriverAssignmentRequest, UnassignRequest, CancelRequest
)
from pickup_backend.app.schemas.driver import DriverResponse
from pickup_backend.app.core.guards import get_admin_context
from pickup_backend.app.domain.pickups.context import AdminContext
from pickup_backend.app.api.v1.endpoints.driver_pickups import assignment_service, to_result_response

router = APIRouter(prefix="/tenant-admin", tags=["Tenant Admin - Dispatch"])


@router.get("/pickups", response_model=PickupListResponse)
async def list_tenant_pickups(
    status_filter: Optional[PickupStatus] = Query(None, alias="status", description="Filter by status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    ctx: AdminContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db)
):
    """
    List the tenant's pickups, newest first.
    """
    pickups, total = await assignment_service.list_tenant_pickups(db, ctx, status_filter, limit, offset)
    return PickupListResponse(
        pickups=[PickupOrderSummary.model_validate(p) for p in pickups],
        total=total,
        limit=limit,
        offset=offset
    )


@router.patch("/pickups/{pickup_order_id}/assign-driver", response_model=AssignmentResultResponse)
async def assign_driver_to_pickup(
    assignment: DriverAssignmentRequest,
    pickup_order_id: int = Path(..., description="Pickup order ID"),
    ctx: AdminContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Assign one of the tenant's drivers to an unassigned pickup.

    Validates:
    - Pickup belongs to the tenant and is still in the pool
    - Driver belongs to the tenant and is active
    """
    result = await assignment_service.assign_driver(
        db, ctx, pickup_order_id, assignment.driver_id, assignment.notes
    )
    return to_result_response(result)


@router.patch("/pickups/{pickup_order_id}/unassign-driver", response_model=AssignmentResultResponse)
async def unassign_driver_from_pickup(
    pickup_order_id: int = Path(..., description="Pickup order ID"),
    body: UnassignRequest = UnassignRequest(),
    ctx: AdminContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Unassign the driver of an assigned pickup.

    Only allowed before the pickup has started.
    """
    result = await assignment_service.unassign_driver(db, ctx, pickup_order_id, body.reason)
    return to_result_response(result)


@router.post("/pickups/{pickup_order_id}/cancel", response_model=AssignmentResultResponse)
async def cancel_pickup(
    body: CancelRequest,
    pickup_order_id: int = Path(..., description="Pickup order ID"),
    ctx: AdminContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Cancel a pickup that is not yet completed.
    """
    result = await assignment_service.cancel(db, ctx, pickup_order_id, body.reason)
    return to_result_response(result)


@router.get("/pickups/{pickup_order_id}/history", response_model=list[AssignmentEventResponse])
async def get_pickup_history(
    pickup_order_id: int = Path(..., description="Pickup order ID"),
    ctx: AdminContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db)
):
    return await assignment_service.get_pickup_history(db, ctx.tenant_id, pickup_order_id)


@router.get("/drivers", response_model=list[DriverResponse])
async def list_tenant_drivers(
    ctx: AdminContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db)
):
    """
    List the tenant's drivers with their current availability.
    """
    result = await db.execute(
        select(Driver).where(Driver.tenant_id == ctx.tenant_id).order_by(Driver.full_name)
    )
    return result.scalars().all()

"""
Driver Pickup API Endpoints.

Drivers browse the unassigned pool, claim pickups, hand them back and
drive them to completion.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, WebSocket, WebSocketDisconnect, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pickup_backend.app.db.session import get_db, get_session_factory
from pickup_backend.app.models.enums import PickupStatus, UserRole
from pickup_backend.app.schemas.pickup import (
    PickupOrderSummary, AssignmentEventResponse, AssignmentResultResponse,
    SelfAssignRequest, RejectRequest, RescheduleRequest, StatusUpdateRequest
)
from pickup_backend.app.core.guards import get_driver_context, resolve_driver_context
from pickup_backend.app.core.dependencies import authenticate_token
from pickup_backend.app.domain.pickups.context import DriverContext
from pickup_backend.app.domain.pickups.assignment_service import AssignmentService, AssignmentResult
from pickup_backend.app.services.pickup_notifier import pickup_notifier

router = APIRouter(prefix="/driver", tags=["Driver - Pickups"])
assignment_service = AssignmentService(notifier=pickup_notifier)


def to_result_response(result: AssignmentResult) -> AssignmentResultResponse:
    return AssignmentResultResponse(
        pickup=PickupOrderSummary.model_validate(result.pickup),
        event=AssignmentEventResponse.model_validate(result.event) if result.event else None,
        previous_status=result.previous_status
    )


@router.get("/pickups/available", response_model=list[PickupOrderSummary])
async def list_available_pickups(
    limit: Optional[int] = Query(None, ge=1, description="Maximum number of pickups"),
    ctx: DriverContext = Depends(get_driver_context),
    db: AsyncSession = Depends(get_db)
):
    """
    List unassigned pickups of the driver's tenant, oldest first.
    """
    return await assignment_service.list_unassigned(db, ctx, limit)


@router.get("/pickups", response_model=list[PickupOrderSummary])
async def list_my_pickups(
    status_filter: Optional[PickupStatus] = Query(None, alias="status", description="Filter by status"),
    ctx: DriverContext = Depends(get_driver_context),
    db: AsyncSession = Depends(get_db)
):
    """
    List pickups assigned to the driver, soonest scheduled first.
    """
    return await assignment_service.list_driver_pickups(db, ctx, status_filter)


@router.post("/pickups/{pickup_order_id}/assign", response_model=AssignmentResultResponse)
async def self_assign_pickup(
    pickup_order_id: int = Path(..., description="Pickup order ID"),
    body: SelfAssignRequest = SelfAssignRequest(),
    ctx: DriverContext = Depends(get_driver_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Claim an unassigned pickup.

    Returns 409 if another driver claimed it first.
    """
    result = await assignment_service.self_assign(db, ctx, pickup_order_id, body.notes)
    return to_result_response(result)


@router.post("/pickups/{pickup_order_id}/reject", response_model=AssignmentResultResponse)
async def reject_pickup(
    pickup_order_id: int = Path(..., description="Pickup order ID"),
    body: RejectRequest = RejectRequest(),
    ctx: DriverContext = Depends(get_driver_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Hand an assigned pickup back to the unassigned pool.
    """
    result = await assignment_service.reject(db, ctx, pickup_order_id, body.reason)
    return to_result_response(result)


@router.post("/pickups/{pickup_order_id}/reschedule", response_model=AssignmentResultResponse)
async def reschedule_pickup(
    body: RescheduleRequest,
    pickup_order_id: int = Path(..., description="Pickup order ID"),
    ctx: DriverContext = Depends(get_driver_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Return an assigned pickup to the pool with a new pickup date.
    """
    result = await assignment_service.reschedule(
        db, ctx, pickup_order_id, body.scheduled_pickup_date, body.reason
    )
    return to_result_response(result)


@router.patch("/pickups/{pickup_order_id}/status", response_model=AssignmentResultResponse)
async def update_pickup_status(
    body: StatusUpdateRequest,
    pickup_order_id: int = Path(..., description="Pickup order ID"),
    ctx: DriverContext = Depends(get_driver_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Advance a pickup: assigned -> in_progress -> completed.

    Completing requires final_price.
    """
    result = await assignment_service.advance_status(
        db, ctx, pickup_order_id,
        new_status=body.new_status,
        final_price=body.final_price,
        driver_notes=body.driver_notes,
        completion_photos=body.completion_photos
    )
    return to_result_response(result)


@router.get("/pickups/{pickup_order_id}/history", response_model=list[AssignmentEventResponse])
async def get_pickup_history(
    pickup_order_id: int = Path(..., description="Pickup order ID"),
    ctx: DriverContext = Depends(get_driver_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Status and assignment history of a pickup, oldest first.
    """
    return await assignment_service.get_pickup_history(db, ctx.tenant_id, pickup_order_id)


@router.websocket("/pickups/stream")
async def pickup_stream(
    websocket: WebSocket,
    token: str = Query(...),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """
    Push "pickup changed" messages for the driver's tenant.

    Browsers cannot set headers on WebSocket upgrades, so the bearer token
    comes in the query string. The driver lookup uses its own session,
    closed before streaming starts.
    """
    try:
        payload = await authenticate_token(token)
        if payload.get("role") != UserRole.DRIVER.value:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Driver access required")
        async with session_factory() as db:
            ctx = await resolve_driver_context(db, payload)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await pickup_notifier.connect(ctx.tenant_id, websocket)
    try:
        while True:
            # Heartbeat
            await websocket.receive_text()
            await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        await pickup_notifier.disconnect(ctx.tenant_id, websocket)

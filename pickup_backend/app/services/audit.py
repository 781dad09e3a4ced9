"""
Assignment audit service.

Writes and reads the append-only trail of pickup status and assignment
changes. Events are flushed into the caller's transaction so that a pickup
change and its event commit together or not at all.
"""

from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from pickup_backend.app.models.assignment_event import AssignmentEvent
from pickup_backend.app.models.pickup_order import PickupOrder
from pickup_backend.app.models.enums import PickupStatus, ActorType


# Audit event constants
class AssignmentAction:
    """Standardized assignment action constants."""
    SELF_ASSIGNED = "SELF_ASSIGNED"
    ADMIN_ASSIGNED = "ADMIN_ASSIGNED"
    UNASSIGNED = "UNASSIGNED"
    REJECTED = "REJECTED"
    RESCHEDULED = "RESCHEDULED"
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


async def record_event(
    db: AsyncSession,
    pickup: PickupOrder,
    action: str,
    old_status: Optional[PickupStatus],
    old_driver_id: Optional[int],
    actor_type: ActorType,
    actor_id: Optional[str] = None,
    reason: Optional[str] = None,
    photos: Optional[List[str]] = None
) -> AssignmentEvent:
    """
    Append an assignment event for a pickup that has just been changed.

    The new status and driver are read from the pickup itself, so call this
    after the pickup row reflects the change.

    Args:
        db: Database session (the caller commits)
        pickup: The changed pickup order
        action: Action performed (use AssignmentAction constants)
        old_status: Status before the change
        old_driver_id: Assigned driver before the change
        actor_type: Driver, admin or system
        actor_id: Identifier of the actor
        reason: Free-text reason or notes
        photos: Completion photo references

    Returns:
        Flushed AssignmentEvent instance
    """
    assignment_event = AssignmentEvent(
        pickup_order_id=pickup.id,
        tenant_id=pickup.tenant_id,
        action=action,
        old_status=old_status,
        new_status=pickup.status,
        old_driver_id=old_driver_id,
        new_driver_id=pickup.assigned_driver_id,
        actor_type=actor_type,
        actor_id=str(actor_id) if actor_id is not None else None,
        reason=reason,
        photos=photos
    )

    db.add(assignment_event)
    await db.flush()
    await db.refresh(assignment_event)

    return assignment_event


async def get_pickup_events(
    db: AsyncSession,
    pickup_order_id: int
) -> list[AssignmentEvent]:
    """Events for one pickup, oldest first."""
    result = await db.execute(
        select(AssignmentEvent)
        .where(AssignmentEvent.pickup_order_id == pickup_order_id)
        .order_by(AssignmentEvent.id)
    )
    return result.scalars().all()


async def get_tenant_audit_trail(
    db: AsyncSession,
    tenant_id: int,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AssignmentEvent]:
    """
    Retrieve a tenant's audit trail with optional filtering.

    Args:
        db: Database session
        tenant_id: Tenant to read
        action: Filter by action type
        limit: Maximum number of records to return

    Returns:
        List of AssignmentEvent instances, most recent first
    """
    query = select(AssignmentEvent).where(
        AssignmentEvent.tenant_id == tenant_id
    ).order_by(desc(AssignmentEvent.id))

    if action:
        query = query.where(AssignmentEvent.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()

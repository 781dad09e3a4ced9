"""
Assignment Service (Domain Logic).

Claiming, rejecting, rescheduling, advancing and administratively
assigning or canceling pickup orders.

Every mutation follows the same shape:
1. Load the pickup scoped to the caller's tenant
2. Validate the precondition in Python (clear error for the common case)
3. Apply one conditional UPDATE whose WHERE clause restates the observed
   status and assignee (compare-and-set)
4. If no row matched, another writer won: roll back, reload, and report
   why the precondition no longer holds
5. Append the assignment event and commit both together
6. Notify the tenant's subscribers after commit
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional, List, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from pickup_backend.app.core.config import settings
from pickup_backend.app.core.exceptions import (
    ResourceNotFoundError,
    TenantScopeError,
    InsufficientPermissionsError,
    AssignmentConflictError,
    NotOwnerError,
    IllegalTransitionError,
    TerminalStateError,
    PickupValidationError,
)
from pickup_backend.app.models.pickup_order import PickupOrder
from pickup_backend.app.models.driver import Driver
from pickup_backend.app.models.assignment_event import AssignmentEvent
from pickup_backend.app.models.enums import PickupStatus, DriverStatus, ActorType
from pickup_backend.app.domain.pickups.context import DriverContext, AdminContext
from pickup_backend.app.domain.pickups import status_rules
from pickup_backend.app.services.audit import record_event, get_pickup_events, AssignmentAction
from pickup_backend.app.services.driver_presence import DriverPresenceService
from pickup_backend.app.services.pickup_notifier import PickupChangeNotifier

logger = logging.getLogger("pickup_backend.assignment")

REJECT_NOTE_PREFIX = "Avvisad"
RESCHEDULE_NOTE_PREFIX = "Omschemalagd"


@dataclass
class AssignmentResult:
    pickup: PickupOrder
    event: Optional[AssignmentEvent]
    previous_status: PickupStatus


class AssignmentService:

    def __init__(self, notifier: Optional[PickupChangeNotifier] = None):
        self.notifier = notifier

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_unassigned(
        self,
        db: AsyncSession,
        ctx: DriverContext,
        limit: Optional[int] = None
    ) -> List[PickupOrder]:
        """
        Pickups in the caller's tenant that nobody has claimed yet.

        Oldest first. An empty pool is an empty list, not an error.
        """
        if limit is None:
            limit = settings.unassigned_default_limit
        limit = max(1, min(limit, settings.unassigned_max_limit))

        result = await db.execute(
            select(PickupOrder)
            .where(
                PickupOrder.tenant_id == ctx.tenant_id,
                PickupOrder.assigned_driver_id.is_(None),
                PickupOrder.status.in_(list(status_rules.CLAIMABLE_STATUSES))
            )
            .order_by(PickupOrder.created_at, PickupOrder.id)
            .limit(limit)
        )
        return result.scalars().all()

    async def list_driver_pickups(
        self,
        db: AsyncSession,
        ctx: DriverContext,
        status: Optional[PickupStatus] = None
    ) -> List[PickupOrder]:
        """The acting driver's active and completed pickups, soonest scheduled first."""
        query = select(PickupOrder).where(
            PickupOrder.tenant_id == ctx.tenant_id,
            PickupOrder.assigned_driver_id == ctx.driver_id,
            PickupOrder.status.in_(list(status_rules.DRIVER_VISIBLE_STATUSES))
        )
        if status is not None:
            query = query.where(PickupOrder.status == status)

        query = query.order_by(
            PickupOrder.scheduled_pickup_date.is_(None),
            PickupOrder.scheduled_pickup_date,
            PickupOrder.created_at,
            PickupOrder.id
        )
        result = await db.execute(query)
        return result.scalars().all()

    async def list_tenant_pickups(
        self,
        db: AsyncSession,
        ctx: AdminContext,
        status: Optional[PickupStatus] = None,
        limit: int = 50,
        offset: int = 0
    ) -> tuple[List[PickupOrder], int]:
        """All pickups of a tenant for the dispatch dashboard, newest first."""
        filters = [PickupOrder.tenant_id == ctx.tenant_id]
        if status is not None:
            filters.append(PickupOrder.status == status)

        total = await db.scalar(select(func.count(PickupOrder.id)).where(*filters))
        result = await db.execute(
            select(PickupOrder)
            .where(*filters)
            .order_by(PickupOrder.created_at.desc(), PickupOrder.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return result.scalars().all(), total or 0

    async def get_pickup_history(
        self,
        db: AsyncSession,
        tenant_id: int,
        pickup_order_id: int
    ) -> List[AssignmentEvent]:
        await self._load_pickup(db, pickup_order_id, tenant_id)
        return await get_pickup_events(db, pickup_order_id)

    # ------------------------------------------------------------------
    # Driver operations
    # ------------------------------------------------------------------

    async def self_assign(
        self,
        db: AsyncSession,
        ctx: DriverContext,
        pickup_order_id: int,
        notes: Optional[str] = None
    ) -> AssignmentResult:
        """
        Claim an unassigned pickup for the acting driver.

        Exactly one of several concurrent claims on the same pickup succeeds;
        the others fail with AssignmentConflictError. Claiming a pickup the
        driver already holds returns its current state without a new event,
        so a retried request is answered with the claim it already won.
        """
        driver = await self._load_driver(db, ctx.driver_id, ctx.tenant_id)

        pickup = await self._load_pickup(db, pickup_order_id, ctx.tenant_id)
        if pickup.status == PickupStatus.ASSIGNED and pickup.assigned_driver_id == driver.id:
            events = await get_pickup_events(db, pickup.id)
            last_event = events[-1] if events else None
            logger.info("Pickup %s already held by driver %s, claim repeated", pickup.id, driver.id)
            return AssignmentResult(
                pickup=pickup,
                event=last_event,
                previous_status=(last_event.old_status if last_event else None) or pickup.status
            )

        values = {
            "assigned_driver_id": driver.id,
            "status": PickupStatus.ASSIGNED,
        }
        if notes:
            values["driver_notes"] = notes

        return await self._transition(
            db,
            tenant_id=ctx.tenant_id,
            pickup_order_id=pickup_order_id,
            check=_ensure_claimable,
            values=values,
            action=AssignmentAction.SELF_ASSIGNED,
            actor_type=ActorType.DRIVER,
            actor_id=driver.id,
            reason=notes
        )

    async def reject(
        self,
        db: AsyncSession,
        ctx: DriverContext,
        pickup_order_id: int,
        reason: Optional[str] = None
    ) -> AssignmentResult:
        """Hand an assigned pickup back to the pool."""
        values = {
            "assigned_driver_id": None,
            "status": status_rules.POOL_STATUS,
        }
        if reason:
            values["driver_notes"] = f"{REJECT_NOTE_PREFIX}: {reason}"

        return await self._transition(
            db,
            tenant_id=ctx.tenant_id,
            pickup_order_id=pickup_order_id,
            check=_owned_and_assigned(ctx.driver_id),
            values=values,
            action=AssignmentAction.REJECTED,
            actor_type=ActorType.DRIVER,
            actor_id=ctx.driver_id,
            reason=reason
        )

    async def reschedule(
        self,
        db: AsyncSession,
        ctx: DriverContext,
        pickup_order_id: int,
        scheduled_pickup_date: date,
        reason: Optional[str] = None
    ) -> AssignmentResult:
        """Return an assigned pickup to the pool with a new pickup date."""
        if scheduled_pickup_date < date.today():
            raise PickupValidationError(
                "New pickup date cannot be in the past",
                details={"scheduled_pickup_date": scheduled_pickup_date.isoformat()}
            )

        note = f"{RESCHEDULE_NOTE_PREFIX} till {scheduled_pickup_date.isoformat()}"
        if reason:
            note = f"{note}: {reason}"

        return await self._transition(
            db,
            tenant_id=ctx.tenant_id,
            pickup_order_id=pickup_order_id,
            check=_owned_and_assigned(ctx.driver_id),
            values={
                "assigned_driver_id": None,
                "status": status_rules.POOL_STATUS,
                "scheduled_pickup_date": scheduled_pickup_date,
                "driver_notes": note,
            },
            action=AssignmentAction.RESCHEDULED,
            actor_type=ActorType.DRIVER,
            actor_id=ctx.driver_id,
            reason=note
        )

    async def advance_status(
        self,
        db: AsyncSession,
        ctx: DriverContext,
        pickup_order_id: int,
        new_status: Any,
        final_price: Optional[float] = None,
        driver_notes: Optional[str] = None,
        completion_photos: Optional[List[str]] = None
    ) -> AssignmentResult:
        """
        Move an owned pickup forward: assigned -> in_progress -> completed.

        Completion requires a final price and is terminal.
        """
        requested = status_rules.parse_status(new_status)

        def check(pickup: PickupOrder):
            _ensure_not_terminal(pickup)
            if pickup.assigned_driver_id != ctx.driver_id:
                raise NotOwnerError(pickup.id)
            if not status_rules.is_legal_advance(pickup.status, requested):
                raise IllegalTransitionError(pickup.id, pickup.status.value, str(getattr(requested, "value", new_status)))
            if requested == PickupStatus.COMPLETED:
                if final_price is None:
                    raise PickupValidationError(
                        "A final price is required to complete a pickup",
                        details={"pickup_order_id": pickup.id, "field": "final_price"}
                    )
                if final_price < 0:
                    raise PickupValidationError(
                        "Final price cannot be negative",
                        details={"pickup_order_id": pickup.id, "field": "final_price"}
                    )

        now = datetime.utcnow()
        values: Dict[str, Any] = {"status": requested}
        if requested == PickupStatus.IN_PROGRESS:
            values["started_at"] = now
            action = AssignmentAction.STARTED
        else:
            values["final_price"] = final_price
            values["completed_at"] = now
            values["actual_pickup_date"] = now.date()
            values["completion_photos"] = completion_photos
            action = AssignmentAction.COMPLETED
        if driver_notes:
            values["driver_notes"] = driver_notes

        return await self._transition(
            db,
            tenant_id=ctx.tenant_id,
            pickup_order_id=pickup_order_id,
            check=check,
            values=values,
            action=action,
            actor_type=ActorType.DRIVER,
            actor_id=ctx.driver_id,
            reason=driver_notes,
            photos=completion_photos if requested == PickupStatus.COMPLETED else None,
            after=self._sync_presence if settings.sync_driver_presence else None
        )

    # ------------------------------------------------------------------
    # Tenant admin operations
    # ------------------------------------------------------------------

    async def assign_driver(
        self,
        db: AsyncSession,
        ctx: AdminContext,
        pickup_order_id: int,
        driver_id: int,
        notes: Optional[str] = None
    ) -> AssignmentResult:
        """Dispatch a pickup from the pool to a specific driver of the tenant."""
        driver = await self._load_driver(db, driver_id, ctx.tenant_id)

        values = {
            "assigned_driver_id": driver.id,
            "status": PickupStatus.ASSIGNED,
        }
        if notes:
            values["driver_notes"] = notes

        return await self._transition(
            db,
            tenant_id=ctx.tenant_id,
            pickup_order_id=pickup_order_id,
            check=_ensure_claimable,
            values=values,
            action=AssignmentAction.ADMIN_ASSIGNED,
            actor_type=ActorType.ADMIN,
            actor_id=ctx.user_id,
            reason=notes
        )

    async def unassign_driver(
        self,
        db: AsyncSession,
        ctx: AdminContext,
        pickup_order_id: int,
        reason: Optional[str] = None,
        expected_driver_id: Optional[int] = None
    ) -> AssignmentResult:
        """Take an assigned (not yet started) pickup away from its driver."""

        def check(pickup: PickupOrder):
            _ensure_not_terminal(pickup)
            if expected_driver_id is not None and pickup.assigned_driver_id != expected_driver_id:
                raise NotOwnerError(pickup.id)
            if pickup.status != PickupStatus.ASSIGNED:
                raise IllegalTransitionError(pickup.id, pickup.status.value, status_rules.POOL_STATUS.value)

        return await self._transition(
            db,
            tenant_id=ctx.tenant_id,
            pickup_order_id=pickup_order_id,
            check=check,
            values={"assigned_driver_id": None, "status": status_rules.POOL_STATUS},
            action=AssignmentAction.UNASSIGNED,
            actor_type=ActorType.ADMIN,
            actor_id=ctx.user_id,
            reason=reason
        )

    async def cancel(
        self,
        db: AsyncSession,
        ctx: AdminContext,
        pickup_order_id: int,
        reason: str
    ) -> AssignmentResult:
        """Cancel any non-terminal pickup."""
        return await self._transition(
            db,
            tenant_id=ctx.tenant_id,
            pickup_order_id=pickup_order_id,
            check=_ensure_not_terminal,
            values={
                "assigned_driver_id": None,
                "status": PickupStatus.CANCELED,
                "canceled_at": datetime.utcnow(),
            },
            action=AssignmentAction.CANCELED,
            actor_type=ActorType.ADMIN,
            actor_id=ctx.user_id,
            reason=reason
        )

    async def release_driver_pickups(
        self,
        db: AsyncSession,
        ctx: AdminContext,
        driver_id: int,
        reason: str
    ) -> tuple[List[int], List[int]]:
        """
        Return a driver's not-yet-started pickups to the pool.

        Used when a driver is deactivated. Pickups already in progress stay
        with the driver for the dispatcher to resolve.

        Returns:
            (released pickup ids, in-progress pickup ids left in place)
        """
        result = await db.execute(
            select(PickupOrder.id, PickupOrder.status)
            .where(
                PickupOrder.tenant_id == ctx.tenant_id,
                PickupOrder.assigned_driver_id == driver_id,
                PickupOrder.status.in_(list(status_rules.ACTIVE_STATUSES))
            )
            .order_by(PickupOrder.id)
        )
        rows = result.all()

        released = []
        in_progress = [pickup_id for pickup_id, status in rows if status == PickupStatus.IN_PROGRESS]
        for pickup_id, status in rows:
            if status != PickupStatus.ASSIGNED:
                continue
            try:
                await self.unassign_driver(db, ctx, pickup_id, reason=reason, expected_driver_id=driver_id)
            except (AssignmentConflictError, NotOwnerError, IllegalTransitionError, TerminalStateError) as e:
                # Changed since the query; the current holder keeps it
                logger.warning("Could not release pickup %s from driver %s: %s", pickup_id, driver_id, e.message)
                continue
            released.append(pickup_id)

        if in_progress:
            logger.warning("Driver %s left with pickups in progress: %s", driver_id, in_progress)
        return released, in_progress

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _transition(
        self,
        db: AsyncSession,
        tenant_id: int,
        pickup_order_id: int,
        check: Callable[[PickupOrder], None],
        values: Dict[str, Any],
        action: str,
        actor_type: ActorType,
        actor_id: Any,
        reason: Optional[str] = None,
        photos: Optional[List[str]] = None,
        after: Optional[Callable] = None
    ) -> AssignmentResult:
        pickup = await self._load_pickup(db, pickup_order_id, tenant_id)
        try:
            check(pickup)
        except Exception:
            logger.warning("Rejected %s on pickup %s (status=%s)", action, pickup.id, pickup.status.value)
            raise

        old_status = pickup.status
        old_driver_id = pickup.assigned_driver_id

        if old_driver_id is None:
            driver_guard = PickupOrder.assigned_driver_id.is_(None)
        else:
            driver_guard = PickupOrder.assigned_driver_id == old_driver_id

        result = await db.execute(
            update(PickupOrder)
            .where(
                PickupOrder.id == pickup.id,
                PickupOrder.tenant_id == tenant_id,
                PickupOrder.status == old_status,
                driver_guard
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            # Lost a race: report the state that beat us
            await db.rollback()
            pickup = await self._load_pickup(db, pickup_order_id, tenant_id)
            logger.warning("Concurrent change on pickup %s during %s (now %s)", pickup.id, action, pickup.status.value)
            check(pickup)
            raise AssignmentConflictError(
                pickup.id,
                pickup.status.value,
                message=f"Pickup {pickup.id} was changed by someone else, please refresh"
            )

        pickup = await self._load_pickup(db, pickup_order_id, tenant_id)
        assignment_event = await record_event(
            db,
            pickup=pickup,
            action=action,
            old_status=old_status,
            old_driver_id=old_driver_id,
            actor_type=actor_type,
            actor_id=actor_id,
            reason=reason,
            photos=photos
        )

        if after is not None:
            await after(db, pickup)

        await db.commit()

        logger.info(
            "Pickup %s %s: %s -> %s (driver %s -> %s)",
            pickup.id, action, old_status.value, pickup.status.value, old_driver_id, pickup.assigned_driver_id
        )
        await self._notify(pickup, action)

        return AssignmentResult(pickup=pickup, event=assignment_event, previous_status=old_status)

    async def _sync_presence(self, db: AsyncSession, pickup: PickupOrder):
        """Mirror pickup execution onto the driver's presence."""
        driver = await db.get(Driver, pickup.assigned_driver_id)
        if driver is None:
            return

        if pickup.status == PickupStatus.IN_PROGRESS:
            await DriverPresenceService.apply_status(
                db, driver, DriverStatus.BUSY,
                reason=f"Started pickup {pickup.id}", source="pickup_assignment"
            )
        elif pickup.status == PickupStatus.COMPLETED:
            still_busy = await db.scalar(
                select(func.count(PickupOrder.id)).where(
                    PickupOrder.assigned_driver_id == driver.id,
                    PickupOrder.status == PickupStatus.IN_PROGRESS
                )
            )
            if not still_busy:
                await DriverPresenceService.apply_status(
                    db, driver, DriverStatus.AVAILABLE,
                    reason=f"Completed pickup {pickup.id}", source="pickup_completion"
                )

    async def _notify(self, pickup: PickupOrder, action: str):
        if self.notifier is None:
            return
        await self.notifier.publish(
            pickup.tenant_id,
            f"pickup.{action.lower()}",
            {
                "pickup_order_id": pickup.id,
                "status": pickup.status.value,
                "assigned_driver_id": pickup.assigned_driver_id,
            }
        )

    @staticmethod
    async def _load_pickup(db: AsyncSession, pickup_order_id: int, tenant_id: int) -> PickupOrder:
        result = await db.execute(
            select(PickupOrder)
            .where(PickupOrder.id == pickup_order_id)
            .execution_options(populate_existing=True)
        )
        pickup = result.scalar_one_or_none()
        if pickup is None:
            raise ResourceNotFoundError("Pickup order", pickup_order_id)
        if pickup.tenant_id != tenant_id:
            raise TenantScopeError("pickup order", pickup_order_id)
        return pickup

    @staticmethod
    async def _load_driver(db: AsyncSession, driver_id: int, tenant_id: int) -> Driver:
        driver = await db.get(Driver, driver_id)
        if driver is None:
            raise ResourceNotFoundError("Driver", driver_id)
        if driver.tenant_id != tenant_id:
            raise TenantScopeError("driver", driver_id)
        if not driver.is_active:
            raise InsufficientPermissionsError("Driver account is inactive", details={"driver_id": driver_id})
        return driver


def _ensure_not_terminal(pickup: PickupOrder):
    if status_rules.is_terminal(pickup.status):
        raise TerminalStateError(pickup.id, pickup.status.value)


def _ensure_claimable(pickup: PickupOrder):
    _ensure_not_terminal(pickup)
    if pickup.assigned_driver_id is not None or not status_rules.is_claimable(pickup.status):
        raise AssignmentConflictError(pickup.id, pickup.status.value)


def _owned_and_assigned(driver_id: int) -> Callable[[PickupOrder], None]:
    def check(pickup: PickupOrder):
        _ensure_not_terminal(pickup)
        if pickup.assigned_driver_id != driver_id:
            raise NotOwnerError(pickup.id)
        if pickup.status != PickupStatus.ASSIGNED:
            raise IllegalTransitionError(pickup.id, pickup.status.value, status_rules.POOL_STATUS.value)
    return check

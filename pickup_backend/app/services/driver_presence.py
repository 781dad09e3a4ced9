"""
Driver presence service.

Owns the single canonical operation for changing a driver's availability
(available / busy / break / offline) and its history.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc

from pickup_backend.app.models.driver import Driver
from pickup_backend.app.models.driver_status_history import DriverStatusHistory
from pickup_backend.app.models.enums import DriverStatus
from pickup_backend.app.core.exceptions import ResourceNotFoundError, PickupValidationError
from pickup_backend.app.domain.pickups.context import DriverContext

logger = logging.getLogger("pickup_backend.presence")

# Legacy values still sent by older clients
STATUS_ALIASES = {
    "on_duty": DriverStatus.AVAILABLE,
    "on_job": DriverStatus.BUSY,
    "in_progress": DriverStatus.BUSY,
    "rest": DriverStatus.BREAK,
    "off_duty": DriverStatus.OFFLINE,
    "inactive": DriverStatus.OFFLINE,
}

DEFAULT_REASON = "Status changed via API"


def parse_driver_status(value: Optional[str]) -> Optional[DriverStatus]:
    """Canonical status for a known value or alias, None otherwise."""
    key = (value or "").strip().lower()
    if key in STATUS_ALIASES:
        return STATUS_ALIASES[key]
    try:
        return DriverStatus(key)
    except ValueError:
        return None


def normalize_driver_status(value: Optional[str]) -> DriverStatus:
    """Lenient variant for display: anything unknown counts as offline."""
    return parse_driver_status(value) or DriverStatus.OFFLINE


class DriverPresenceService:

    @staticmethod
    async def apply_status(
        db: AsyncSession,
        driver: Driver,
        new_status: DriverStatus,
        reason: Optional[str] = None,
        source: str = "driver_app"
    ) -> Optional[DriverStatusHistory]:
        """
        Change a loaded driver's presence inside the caller's transaction.

        Returns the flushed history row, or None when the status is unchanged.
        """
        old_status = driver.driver_status
        if old_status == new_status:
            return None

        driver.driver_status = new_status
        driver.last_activity_update = datetime.utcnow()

        history = DriverStatusHistory(
            driver_id=driver.id,
            old_status=old_status,
            new_status=new_status,
            reason=reason or DEFAULT_REASON,
            source=source
        )
        db.add(history)
        await db.flush()
        await db.refresh(history)

        logger.info(
            "Driver %s presence %s -> %s (%s)",
            driver.id, old_status.value if old_status else None, new_status.value, history.reason
        )
        return history

    @staticmethod
    async def driver_status_manager(
        db: AsyncSession,
        ctx: DriverContext,
        new_status: str,
        reason: Optional[str] = None,
        source: str = "driver_app"
    ) -> tuple[Driver, Optional[DriverStatusHistory]]:
        """
        Change the acting driver's presence and record it.

        Raises:
            PickupValidationError: Unknown status value
            ResourceNotFoundError: Driver record missing
        """
        status = parse_driver_status(new_status)
        if status is None:
            valid = ", ".join(s.value for s in DriverStatus)
            raise PickupValidationError(
                f"Invalid status: {new_status}. Valid statuses are: {valid}",
                details={"new_status": new_status}
            )

        driver = await db.get(Driver, ctx.driver_id)
        if driver is None or driver.tenant_id != ctx.tenant_id:
            raise ResourceNotFoundError("Driver", ctx.driver_id)

        history = await DriverPresenceService.apply_status(db, driver, status, reason, source)
        await db.commit()
        await db.refresh(driver)

        return driver, history

    @staticmethod
    async def get_status_history(
        db: AsyncSession,
        ctx: DriverContext,
        limit: int = 10
    ) -> list[DriverStatusHistory]:
        """Recent presence changes of the acting driver, most recent first."""
        result = await db.execute(
            select(DriverStatusHistory)
            .where(DriverStatusHistory.driver_id == ctx.driver_id)
            .order_by(desc(DriverStatusHistory.id))
            .limit(limit)
        )
        return result.scalars().all()

"""
Pickup status rules.

The pickup state machine expressed as data:

    pending/scheduled --(assign)--> assigned --(reject)--> scheduled
    assigned --(advance)--> in_progress --(advance)--> completed
    any non-terminal --(cancel, admin only)--> canceled
"""

from typing import Optional, Union

from pickup_backend.app.models.enums import PickupStatus


CLAIMABLE_STATUSES = frozenset({PickupStatus.PENDING, PickupStatus.SCHEDULED})
ACTIVE_STATUSES = frozenset({PickupStatus.ASSIGNED, PickupStatus.IN_PROGRESS})
TERMINAL_STATUSES = frozenset({PickupStatus.COMPLETED, PickupStatus.CANCELED})

# What a driver sees under "my pickups"
DRIVER_VISIBLE_STATUSES = ACTIVE_STATUSES | {PickupStatus.COMPLETED}

# Forward moves a driver may make on a pickup they own
DRIVER_TRANSITIONS = {
    PickupStatus.ASSIGNED: PickupStatus.IN_PROGRESS,
    PickupStatus.IN_PROGRESS: PickupStatus.COMPLETED,
}

# Status a pickup returns to when it goes back to the pool
POOL_STATUS = PickupStatus.SCHEDULED


def parse_status(value: Union[str, PickupStatus]) -> Optional[PickupStatus]:
    """Return the PickupStatus for a value, or None when it is not a known status."""
    if isinstance(value, PickupStatus):
        return value
    try:
        return PickupStatus(str(value).lower())
    except ValueError:
        return None


def is_claimable(status: PickupStatus) -> bool:
    return status in CLAIMABLE_STATUSES


def is_terminal(status: PickupStatus) -> bool:
    return status in TERMINAL_STATUSES


def is_legal_advance(current: PickupStatus, requested: Optional[PickupStatus]) -> bool:
    """True only for assigned -> in_progress and in_progress -> completed."""
    if requested is None:
        return False
    return DRIVER_TRANSITIONS.get(current) == requested


def next_status(current: PickupStatus) -> Optional[PickupStatus]:
    """The status a driver's primary action button moves the pickup to."""
    return DRIVER_TRANSITIONS.get(current)

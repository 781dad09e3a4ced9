"""
Enumerations for the pickup assignment system.

Defines user roles, pickup lifecycle statuses and driver presence states.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        SUPER_ADMIN: Platform operator, manages tenants and onboards drivers
        TENANT_ADMIN: Scrapyard staff, dispatches pickups within one tenant
        DRIVER: Claims and executes pickups (default role)
    """
    SUPER_ADMIN = "SUPER_ADMIN"
    TENANT_ADMIN = "TENANT_ADMIN"
    DRIVER = "DRIVER"


class PickupStatus(str, enum.Enum):
    """Pickup order lifecycle status."""
    PENDING = "pending"  # New customer request, not yet scheduled
    SCHEDULED = "scheduled"  # In the pool, waiting for a driver
    ASSIGNED = "assigned"  # Claimed by or assigned to a driver
    IN_PROGRESS = "in_progress"  # Driver has started the pickup
    COMPLETED = "completed"  # Vehicle collected, final price set
    CANCELED = "canceled"  # Administratively canceled


class DriverStatus(str, enum.Enum):
    """Driver presence, independent of any pickup's status."""
    AVAILABLE = "available"
    BUSY = "busy"
    BREAK = "break"
    OFFLINE = "offline"


class ActorType(str, enum.Enum):
    """Who caused an assignment event."""
    DRIVER = "driver"
    ADMIN = "admin"
    SYSTEM = "system"

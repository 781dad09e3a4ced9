"""
Explicit actor contexts passed into every pickup workflow call.

The API layer resolves the bearer token into one of these once per request;
the domain layer never looks up the session itself.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DriverContext:
    driver_id: int
    tenant_id: int
    auth_user_id: Optional[str] = None


@dataclass(frozen=True)
class AdminContext:
    """Tenant admin acting within one tenant."""
    user_id: str
    tenant_id: int

"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from pickup_backend.app.api.v1.endpoints import (
    admin, tenant_admin, driver_profile, driver_pickups
)

router = APIRouter()

# Super admin console
router.include_router(admin.router)

# Tenant dispatch
router.include_router(tenant_admin.router)

# Driver app
router.include_router(driver_profile.router)
router.include_router(driver_pickups.router)

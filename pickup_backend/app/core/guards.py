"""
Security guards for role-based and tenant-scoped access control.

Turns the verified token into the explicit actor context the pickup
workflow expects.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from pickup_backend.app.models.enums import UserRole
from pickup_backend.app.models.driver import Driver
from pickup_backend.app.core.dependencies import get_current_user
from pickup_backend.app.db.session import get_db
from pickup_backend.app.domain.pickups.context import DriverContext, AdminContext


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/admin/tenants")
        async def list_tenants(current_user: dict = Depends(require_role([UserRole.SUPER_ADMIN]))):
            ...

    Args:
        allowed_roles: List of UserRole enums that are allowed to access the endpoint

    Returns:
        FastAPI dependency function that validates user role

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role_str = current_user.get("role")

        if not user_role_str:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Role information missing from token"
            )

        # Convert string role to UserRole enum
        try:
            user_role = UserRole(user_role_str)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )

        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


async def resolve_driver_context(db: AsyncSession, current_user: dict) -> DriverContext:
    """
    Resolve a driver token to its driver record.

    current user -> driver record -> tenant, done once per request.
    """
    result = await db.execute(
        select(Driver).where(Driver.auth_user_id == str(current_user["sub"]))
    )
    driver = result.scalar_one_or_none()

    if not driver:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No driver record found for this account. Contact your administrator."
        )

    if not driver.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Driver account is inactive"
        )

    token_tenant = current_user.get("tenant_id")
    if token_tenant is not None and int(token_tenant) != driver.tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token tenant does not match driver tenant"
        )

    return DriverContext(
        driver_id=driver.id,
        tenant_id=driver.tenant_id,
        auth_user_id=driver.auth_user_id
    )


async def get_driver_context(
    current_user: dict = Depends(require_role([UserRole.DRIVER])),
    db: AsyncSession = Depends(get_db)
) -> DriverContext:
    """Dependency for driver endpoints."""
    return await resolve_driver_context(db, current_user)


async def get_admin_context(
    current_user: dict = Depends(require_role([UserRole.TENANT_ADMIN]))
) -> AdminContext:
    """
    Dependency for tenant admin endpoints.

    The tenant comes from the token; admins never pick a tenant per request.
    """
    tenant_id = current_user.get("tenant_id")
    if tenant_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Tenant information missing from token"
        )

    return AdminContext(user_id=str(current_user["sub"]), tenant_id=int(tenant_id))


def require_super_admin(current_user: dict = Depends(get_current_user)) -> dict:
    """
    Dependency for super-admin-only endpoints.

    Args:
        current_user: Authenticated user from JWT

    Returns:
        User payload if super admin, raises 403 otherwise
    """
    if current_user.get("role") != UserRole.SUPER_ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin access required"
        )

    return current_user

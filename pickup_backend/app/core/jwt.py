"""
JWT token utilities for authentication.

Tokens are issued by the identity provider; this module verifies them and,
for development and tests, can mint tokens with the same shape. Drivers and
tenant admins act inside exactly one tenant, so their tokens must carry a
tenant_id; super admin tokens are platform-wide and must not.
"""

from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from pickup_backend.app.core.config import settings
from pickup_backend.app.models.enums import UserRole

TENANT_SCOPED_ROLES = frozenset({UserRole.DRIVER, UserRole.TENANT_ADMIN})


class TokenClaimsError(ValueError):
    """Raised when asked to mint a token whose claims the API would refuse."""


def validate_token_claims(data: Dict[str, Any]) -> UserRole:
    """
    Check the claims a token is about to be minted with.

    Returns:
        The parsed role

    Raises:
        TokenClaimsError: missing subject, unknown role, or a tenant_id that
            does not match the role's scope
    """
    if not data.get("sub"):
        raise TokenClaimsError("Token subject (sub) is required")

    try:
        role = UserRole(data.get("role"))
    except ValueError:
        raise TokenClaimsError(f"Unknown role: {data.get('role')}")

    tenant_id = data.get("tenant_id")
    if role in TENANT_SCOPED_ROLES:
        if tenant_id is None:
            raise TokenClaimsError(f"{role.value} tokens require a tenant_id")
        if isinstance(tenant_id, bool) or not isinstance(tenant_id, int) or tenant_id < 1:
            raise TokenClaimsError(f"Invalid tenant_id: {tenant_id!r}")
    elif tenant_id is not None:
        raise TokenClaimsError(f"{role.value} tokens are not tenant-scoped")

    return role


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode (sub, user_id, role and, for tenant-scoped
            roles, tenant_id)
        expires_delta: Optional custom expiration time

    Example payload:
        {
            "sub": "auth0|driver-17",
            "user_id": "auth0|driver-17",
            "role": "DRIVER",
            "tenant_id": 3,
            "exp": 1234567890
        }
    """
    validate_token_claims(data)

    now = datetime.utcnow()
    to_encode = data.copy()
    to_encode.setdefault("user_id", data["sub"])
    to_encode.update({
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes)),
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_user_token(
    subject: str,
    role: UserRole,
    tenant_id: Optional[int] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Mint a token for one identity-provider subject."""
    claims = {"sub": subject, "user_id": subject, "role": role.value}
    if tenant_id is not None:
        claims["tenant_id"] = tenant_id
    return create_access_token(claims, expires_delta)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify a JWT access token.

    Only the signature and expiry are checked here; role and tenant scope
    are enforced by the guards, which answer 403 rather than 401.

    Returns:
        Decoded token payload if valid, None otherwise
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None

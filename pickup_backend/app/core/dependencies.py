"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pickup_backend.app.core.jwt import decode_access_token
from pickup_backend.app.core.token_revocation import is_token_revoked

# HTTP Bearer security scheme
security = HTTPBearer()


async def authenticate_token(token: str) -> dict:
    """
    Validate a raw bearer token and return its payload.

    Checks:
    1. JWT signature and expiry
    2. Subject present
    3. Token not revoked (logout)

    Raises:
        HTTPException: 401 if any check fails
    """
    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if await is_token_revoked(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Identity is owned by the external identity provider; the service only
    trusts the verified token payload (sub, user_id, role, tenant_id).

    Returns:
        Decoded token payload containing user information
    """
    return await authenticate_token(credentials.credentials)

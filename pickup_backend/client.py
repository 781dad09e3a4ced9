"""
Driver app client.

Thin async wrapper over the driver endpoints. Transient failures
(connection errors, 502/503/504) are retried exactly once; every other
error is raised as a typed exception carrying the server message verbatim.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger("pickup_backend.client")

RETRYABLE_STATUS = {502, 503, 504}


class PickupClientError(Exception):
    """Base class for errors reported by the pickup service."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 status_code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ConflictError(PickupClientError):
    pass


class NotOwnerError(PickupClientError):
    pass


class IllegalTransitionError(PickupClientError):
    pass


class TerminalError(PickupClientError):
    pass


class NotFoundError(PickupClientError):
    pass


class AuthorizationDeniedError(PickupClientError):
    pass


class ValidationFailedError(PickupClientError):
    pass


class TransientError(PickupClientError):
    pass


ERROR_CODES = {
    "ERR_PICKUP_CONFLICT": ConflictError,
    "ERR_PICKUP_NOT_OWNER": NotOwnerError,
    "ERR_PICKUP_ILLEGAL_TRANSITION": IllegalTransitionError,
    "ERR_PICKUP_TERMINAL": TerminalError,
    "ERR_NOT_FOUND_001": NotFoundError,
    "ERR_NOT_FOUND": NotFoundError,
    "ERR_PERM_001": AuthorizationDeniedError,
    "ERR_PERM_002": AuthorizationDeniedError,
    "ERR_FORBIDDEN": AuthorizationDeniedError,
    "ERR_UNAUTHORIZED": AuthorizationDeniedError,
    "ERR_VALIDATION": ValidationFailedError,
    "ERR_TRANSIENT": TransientError,
}

STATUS_FALLBACK = {
    401: AuthorizationDeniedError,
    403: AuthorizationDeniedError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationFailedError,
}


def error_from_response(response: httpx.Response) -> PickupClientError:
    """Build the typed exception for an error response."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    error_code = body.get("error_code")
    message = body.get("message") or body.get("detail") or response.text or response.reason_phrase
    exc_class = ERROR_CODES.get(error_code) or STATUS_FALLBACK.get(response.status_code, PickupClientError)
    return exc_class(
        str(message),
        error_code=error_code,
        status_code=response.status_code,
        details=body.get("details")
    )


class PickupServiceClient:
    """
    Usage:
        async with PickupServiceClient("http://localhost:8000", token) as client:
            pickups = await client.list_available()
            await client.self_assign(pickups[0]["id"])
    """

    def __init__(self, base_url: str, token: str, transport: Optional[httpx.AsyncBaseTransport] = None,
                 timeout: float = 10.0, retry_delay: float = 0.25, api_prefix: str = "/v1"):
        self.retry_delay = retry_delay
        self.api_prefix = api_prefix
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
            timeout=httpx.Timeout(timeout, connect=5.0),
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.api_prefix}{path}"
        attempts = 2
        for attempt in range(attempts):
            last_attempt = attempt == attempts - 1
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                if last_attempt:
                    raise TransientError(f"Pickup service unreachable: {e}") from e
                logger.warning("Retrying %s %s after transport error: %s", method, url, e)
                await asyncio.sleep(self.retry_delay)
                continue

            if response.status_code in RETRYABLE_STATUS:
                if last_attempt:
                    error = error_from_response(response)
                    raise TransientError(
                        error.message,
                        error_code=error.error_code,
                        status_code=response.status_code,
                        details=error.details
                    )
                logger.warning("Retrying %s %s after HTTP %s", method, url, response.status_code)
                await asyncio.sleep(self.retry_delay)
                continue

            if response.is_error:
                raise error_from_response(response)

            return response.json()

    # Profile and presence

    async def me(self) -> Dict[str, Any]:
        return await self._request("GET", "/driver/me")

    async def set_status(self, new_status: str, reason: Optional[str] = None) -> Dict[str, Any]:
        return await self._request("PUT", "/driver/status", json={"new_status": new_status, "reason": reason})

    async def status_history(self, limit: int = 10) -> List[Dict[str, Any]]:
        return await self._request("GET", "/driver/status/history", params={"limit": limit})

    async def logout(self) -> Dict[str, Any]:
        return await self._request("POST", "/driver/logout")

    # Pickups

    async def list_available(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {"limit": limit} if limit is not None else None
        return await self._request("GET", "/driver/pickups/available", params=params)

    async def list_my_pickups(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"status": status} if status else None
        return await self._request("GET", "/driver/pickups", params=params)

    async def self_assign(self, pickup_order_id: int, notes: Optional[str] = None) -> Dict[str, Any]:
        return await self._request("POST", f"/driver/pickups/{pickup_order_id}/assign", json={"notes": notes})

    async def reject(self, pickup_order_id: int, reason: Optional[str] = None) -> Dict[str, Any]:
        return await self._request("POST", f"/driver/pickups/{pickup_order_id}/reject", json={"reason": reason})

    async def reschedule(self, pickup_order_id: int, scheduled_pickup_date: date,
                         reason: Optional[str] = None) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/driver/pickups/{pickup_order_id}/reschedule",
            json={"scheduled_pickup_date": scheduled_pickup_date.isoformat(), "reason": reason}
        )

    async def update_status(self, pickup_order_id: int, new_status: str, final_price: Optional[float] = None,
                            driver_notes: Optional[str] = None,
                            completion_photos: Optional[List[str]] = None) -> Dict[str, Any]:
        payload = {"new_status": new_status}
        if final_price is not None:
            payload["final_price"] = final_price
        if driver_notes is not None:
            payload["driver_notes"] = driver_notes
        if completion_photos is not None:
            payload["completion_photos"] = completion_photos
        return await self._request("PATCH", f"/driver/pickups/{pickup_order_id}/status", json=payload)

    async def pickup_history(self, pickup_order_id: int) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/driver/pickups/{pickup_order_id}/history")

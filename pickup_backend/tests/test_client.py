"""
Driver app client tests.

Uses httpx.MockTransport so retry behaviour can be scripted per request,
plus one run against the real app over ASGITransport.
"""

import json
import httpx
import pytest

from pickup_backend.client import (
    PickupServiceClient,
    ConflictError,
    NotOwnerError,
    IllegalTransitionError,
    TerminalError,
    NotFoundError,
    AuthorizationDeniedError,
    ValidationFailedError,
    TransientError,
)
from pickup_backend.app.main import app
from pickup_backend.app.services.audit import get_pickup_events
from pickup_backend.tests.helpers import add_pickup


def scripted(*responses):
    """Transport that replays responses in order and counts the calls."""
    calls = []

    def handler(request: httpx.Request):
        calls.append(request)
        item = responses[min(len(calls), len(responses)) - 1]
        if isinstance(item, Exception):
            raise item
        return item

    return httpx.MockTransport(handler), calls


def error(status_code, error_code, message="boom"):
    return httpx.Response(status_code, json={"error_code": error_code, "message": message, "details": {}})


def make_client(transport):
    return PickupServiceClient("http://pickups.test", "token", transport=transport, retry_delay=0)


@pytest.mark.asyncio
async def test_retries_503_once_then_succeeds():
    transport, calls = scripted(error(503, "ERR_TRANSIENT"), httpx.Response(200, json=[]))

    async with make_client(transport) as client:
        assert await client.list_available() == []
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_retries_once_then_raises_transient():
    transport, calls = scripted(error(503, "ERR_TRANSIENT", "db down"))

    async with make_client(transport) as client:
        with pytest.raises(TransientError) as exc_info:
            await client.list_available()
    assert len(calls) == 2
    assert exc_info.value.message == "db down"


@pytest.mark.asyncio
async def test_transport_error_is_retried():
    transport, calls = scripted(httpx.ConnectError("refused"), httpx.Response(200, json={"id": 1}))

    async with make_client(transport) as client:
        assert await client.me() == {"id": 1}
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_conflict_is_never_retried():
    transport, calls = scripted(error(409, "ERR_PICKUP_CONFLICT", "Pickup 4 has already been taken"))

    async with make_client(transport) as client:
        with pytest.raises(ConflictError) as exc_info:
            await client.self_assign(4)
    assert len(calls) == 1
    assert exc_info.value.message == "Pickup 4 has already been taken"
    assert exc_info.value.status_code == 409


@pytest.mark.parametrize("status_code,error_code,expected", [
    (403, "ERR_PICKUP_NOT_OWNER", NotOwnerError),
    (409, "ERR_PICKUP_ILLEGAL_TRANSITION", IllegalTransitionError),
    (409, "ERR_PICKUP_TERMINAL", TerminalError),
    (404, "ERR_NOT_FOUND_001", NotFoundError),
    (403, "ERR_PERM_002", AuthorizationDeniedError),
    (401, "ERR_UNAUTHORIZED", AuthorizationDeniedError),
    (422, "ERR_VALIDATION", ValidationFailedError),
])
@pytest.mark.asyncio
async def test_error_codes_map_to_typed_errors(status_code, error_code, expected):
    transport, calls = scripted(error(status_code, error_code))

    async with make_client(transport) as client:
        with pytest.raises(expected):
            await client.update_status(1, "in_progress")
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_sends_bearer_token_and_body():
    transport, calls = scripted(httpx.Response(200, json={}))

    async with make_client(transport) as client:
        await client.update_status(9, "completed", final_price=1200.0, completion_photos=["p.jpg"])

    request = calls[0]
    assert request.method == "PATCH"
    assert request.url.path == "/v1/driver/pickups/9/status"
    assert request.headers["Authorization"] == "Bearer token"
    assert json.loads(request.content) == {
        "new_status": "completed", "final_price": 1200.0, "completion_photos": ["p.jpg"]
    }


@pytest.mark.asyncio
async def test_against_the_app(db_session, tenant, driver_a, token_a, token_b):
    pickup = await add_pickup(db_session, tenant)
    transport = httpx.ASGITransport(app=app)

    async with PickupServiceClient("http://test", token_a, transport=transport) as driver_a_app, \
            PickupServiceClient("http://test", token_b, transport=transport) as driver_b_app:
        available = await driver_a_app.list_available()
        assert [p["id"] for p in available] == [pickup.id]

        result = await driver_a_app.self_assign(pickup.id)
        assert result["pickup"]["assigned_driver_id"] == driver_a.id

        with pytest.raises(ConflictError):
            await driver_b_app.self_assign(pickup.id)

        with pytest.raises(NotOwnerError):
            await driver_b_app.reject(pickup.id)


class DropsFirstResponse(httpx.AsyncBaseTransport):
    """Lets the app handle every request but loses the first reply on the way back."""

    def __init__(self, app):
        self.inner = httpx.ASGITransport(app=app)
        self.calls = 0

    async def handle_async_request(self, request):
        self.calls += 1
        response = await self.inner.handle_async_request(request)
        if self.calls == 1:
            await response.aread()
            raise httpx.ReadError("connection reset by peer", request=request)
        return response


@pytest.mark.asyncio
async def test_retried_claim_after_lost_response_reports_the_win(db_session, tenant, driver_a, token_a):
    pickup = await add_pickup(db_session, tenant)
    transport = DropsFirstResponse(app)

    async with PickupServiceClient("http://test", token_a, transport=transport, retry_delay=0) as driver_app:
        result = await driver_app.self_assign(pickup.id)

    assert transport.calls == 2
    assert result["pickup"]["status"] == "assigned"
    assert result["pickup"]["assigned_driver_id"] == driver_a.id
    assert result["event"]["action"] == "SELF_ASSIGNED"

    events = await get_pickup_events(db_session, pickup.id)
    assert [e.action for e in events] == ["SELF_ASSIGNED"]

"""
Deployment Smoke Test Script.

Runs the driver flow against a running server seeded with
`python -m pickup_backend.seed_demo`:
1. Health Check
2. Driver 1 claims the oldest unassigned pickup
3. Driver 2 tries to claim the same pickup and must get a conflict
4. Driver 1 starts and completes the pickup
"""

import asyncio
import os
import sys

import httpx

from pickup_backend.app.core.jwt import create_user_token
from pickup_backend.app.models.enums import UserRole
from pickup_backend.client import PickupServiceClient, ConflictError, PickupClientError

BASE_URL = os.environ.get("PICKUP_BASE_URL", "http://127.0.0.1:8000")
TENANT_ID = int(os.environ.get("PICKUP_TENANT_ID", "1"))


def print_step(step, msg):
    print(f"[{step}] {msg}")

def fail(msg):
    print(f"❌ FAILURE: {msg}")
    sys.exit(1)

def success(msg):
    print(f"✅ {msg}")


def driver_token(subject: str) -> str:
    return create_user_token(subject, UserRole.DRIVER, TENANT_ID)


async def main():
    print("🚀 Starting Deployment Validation...")

    print_step("HEALTH", f"Checking {BASE_URL}/health...")
    try:
        response = httpx.get(f"{BASE_URL}/health", timeout=5.0)
    except httpx.HTTPError as e:
        fail(f"Server unreachable: {e}")
    if response.status_code != 200:
        fail(f"Health check returned {response.status_code}")
    success(f"Healthy (redis: {response.json().get('redis')})")

    async with PickupServiceClient(BASE_URL, driver_token("demo-driver-1")) as first, \
            PickupServiceClient(BASE_URL, driver_token("demo-driver-2")) as second:
        try:
            await first.set_status("available", reason="Smoke test")
            available = await first.list_available(limit=1)
            if not available:
                fail("No unassigned pickups, run the demo seed first")
            pickup_id = available[0]["id"]

            print_step("CLAIM", f"demo-driver-1 claims pickup {pickup_id}")
            await first.self_assign(pickup_id, notes="Smoke test")
            success("Claimed")

            print_step("CONFLICT", "demo-driver-2 claims the same pickup")
            try:
                await second.self_assign(pickup_id)
                fail("Second claim succeeded")
            except ConflictError as e:
                success(f"Rejected as expected: {e.message}")

            print_step("COMPLETE", "Starting and completing the pickup")
            await first.update_status(pickup_id, "in_progress")
            result = await first.update_status(pickup_id, "completed", final_price=available[0].get("quote_amount") or 0)
            if result["pickup"]["status"] != "completed":
                fail(f"Unexpected status {result['pickup']['status']}")

            history = await first.pickup_history(pickup_id)
            success(f"Completed, history: {[e['action'] for e in history]}")
        except PickupClientError as e:
            fail(f"{type(e).__name__}: {e.message}")

    print("\n🎉 Deployment validation passed")


if __name__ == "__main__":
    asyncio.run(main())

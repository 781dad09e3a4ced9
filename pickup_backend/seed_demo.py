"""
Database seeding script for a demo tenant.

Creates one tenant with a scrapyard, two drivers and a handful of pickup
orders in the unassigned pool, then prints bearer tokens for local testing.
Run this script after database is set up but before first use.
"""

import asyncio
import sys
from datetime import date, timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pickup_backend.app.db.session import AsyncSessionLocal, engine, Base
from pickup_backend.app.models.tenant import Tenant, Scrapyard
from pickup_backend.app.models.driver import Driver
from pickup_backend.app.models.pickup_order import PickupOrder
from pickup_backend.app.models.assignment_event import AssignmentEvent  # registers table
from pickup_backend.app.models.driver_status_history import DriverStatusHistory  # registers table
from pickup_backend.app.models.enums import UserRole, PickupStatus, DriverStatus
from pickup_backend.app.core.jwt import create_user_token
from sqlalchemy import select

DEMO_TENANT = "Demo Skrot AB"

DEMO_PICKUPS = [
    ("Anna Svensson", "Storgatan 1, Uppsala", "ABC123", "Volvo", "V70", 2004, 1500.0),
    ("Johan Nilsson", "Kungsgatan 12, Uppsala", "DEF456", "Saab", "9-5", 2001, 1200.0),
    ("Maria Karlsson", "Vaksalagatan 30, Uppsala", "GHI789", "Toyota", "Corolla", 2008, 1800.0),
]


async def seed_demo():
    """
    Seed a demo tenant.

    Creates:
    - 1 tenant with 1 scrapyard
    - 2 drivers (auth subjects demo-driver-1 and demo-driver-2)
    - 3 scheduled, unassigned pickup orders
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting demo seeding...")

        result = await db.execute(select(Tenant).where(Tenant.name == DEMO_TENANT))
        if result.scalar_one_or_none():
            print("ℹ️  Demo tenant already exists, skipping seeding")
            return

        tenant = Tenant(name=DEMO_TENANT, is_active=True)
        db.add(tenant)
        await db.flush()

        yard = Scrapyard(tenant_id=tenant.id, name="Demo Skrot Boländerna", address="Bolandsgatan 5, Uppsala")
        db.add(yard)
        await db.flush()
        print(f"✅ Created tenant '{tenant.name}' (id={tenant.id})")

        drivers = []
        for n in (1, 2):
            driver = Driver(
                tenant_id=tenant.id,
                auth_user_id=f"demo-driver-{n}",
                full_name=f"Demo Driver {n}",
                phone_number=f"+4670000000{n}",
                driver_status=DriverStatus.OFFLINE,
                is_active=True
            )
            db.add(driver)
            drivers.append(driver)
        await db.flush()
        print(f"✅ Created {len(drivers)} drivers")

        for offset, (owner, address, reg, brand, model, year, quote) in enumerate(DEMO_PICKUPS, start=1):
            db.add(PickupOrder(
                tenant_id=tenant.id,
                scrapyard_id=yard.id,
                customer_request_id=f"demo-request-{offset}",
                status=PickupStatus.SCHEDULED,
                owner_name=owner,
                pickup_address=address,
                car_registration_number=reg,
                car_brand=brand,
                car_model=model,
                car_year=year,
                quote_amount=quote,
                scheduled_pickup_date=date.today() + timedelta(days=offset)
            ))
        print(f"✅ Created {len(DEMO_PICKUPS)} pickup orders")

        await db.commit()

        print("\n🎉 Demo seeding completed successfully!")
        print("\nBearer tokens:")
        for driver in drivers:
            token = create_user_token(driver.auth_user_id, UserRole.DRIVER, tenant.id)
            print(f"  - {driver.auth_user_id}: {token}")
        admin_token = create_user_token("demo-admin", UserRole.TENANT_ADMIN, tenant.id)
        print(f"  - demo-admin (TENANT_ADMIN): {admin_token}")


if __name__ == "__main__":
    asyncio.run(seed_demo())

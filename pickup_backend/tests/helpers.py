"""
Shared test helpers: tokens and pickup factories.
"""

from datetime import date, timedelta

from jose import jwt

from pickup_backend.app.core.config import settings
from pickup_backend.app.core.jwt import create_user_token
from pickup_backend.app.models.pickup_order import PickupOrder
from pickup_backend.app.models.enums import PickupStatus, UserRole


def make_token(subject: str, role: UserRole, tenant_id=None) -> str:
    return create_user_token(subject, role, tenant_id)


def make_raw_token(claims: dict) -> str:
    """Sign arbitrary claims, as a misconfigured identity provider might."""
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def add_pickup(db_session, tenant, status=PickupStatus.SCHEDULED, driver=None, **fields) -> PickupOrder:
    pickup = PickupOrder(
        tenant_id=tenant.id,
        status=status,
        assigned_driver_id=driver.id if driver else None,
        owner_name=fields.pop("owner_name", "Anna Svensson"),
        pickup_address=fields.pop("pickup_address", "Storgatan 1, Uppsala"),
        car_registration_number=fields.pop("car_registration_number", "ABC123"),
        car_brand=fields.pop("car_brand", "Volvo"),
        car_model=fields.pop("car_model", "V70"),
        car_year=fields.pop("car_year", 2004),
        quote_amount=fields.pop("quote_amount", 1500.0),
        scheduled_pickup_date=fields.pop("scheduled_pickup_date", date.today() + timedelta(days=1)),
        **fields
    )
    db_session.add(pickup)
    await db_session.commit()
    await db_session.refresh(pickup)
    return pickup

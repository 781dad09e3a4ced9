"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from pickup_backend.app.main import app
from pickup_backend.app.db.session import get_db, get_session_factory, Base
import pickup_backend.app.core.redis_client as redis_client_module
from pickup_backend.app.models.tenant import Tenant
from pickup_backend.app.models.driver import Driver
from pickup_backend.app.models.enums import DriverStatus, UserRole
from pickup_backend.app.domain.pickups.context import DriverContext, AdminContext
from pickup_backend.tests.helpers import make_token

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}

# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()

@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """

    # Patch the global redis client used by token revocation
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client

@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


# ----------------------------------------------------------------------
# Domain fixtures
# ----------------------------------------------------------------------

@pytest.fixture
async def tenant(db_session):
    t = Tenant(name="Uppsala Skrot AB", is_active=True)
    db_session.add(t)
    await db_session.commit()
    await db_session.refresh(t)
    return t


@pytest.fixture
async def other_tenant(db_session):
    t = Tenant(name="Gävle Bilskrot", is_active=True)
    db_session.add(t)
    await db_session.commit()
    await db_session.refresh(t)
    return t


async def _add_driver(db_session, tenant, auth_user_id, full_name, status=DriverStatus.AVAILABLE, is_active=True):
    driver = Driver(
        tenant_id=tenant.id,
        auth_user_id=auth_user_id,
        full_name=full_name,
        phone_number="+46701234567",
        driver_status=status,
        is_active=is_active
    )
    db_session.add(driver)
    await db_session.commit()
    await db_session.refresh(driver)
    return driver


@pytest.fixture
async def driver_a(db_session, tenant):
    return await _add_driver(db_session, tenant, "auth-driver-a", "Erik Andersson")


@pytest.fixture
async def driver_b(db_session, tenant):
    return await _add_driver(db_session, tenant, "auth-driver-b", "Lars Berg")


@pytest.fixture
async def foreign_driver(db_session, other_tenant):
    return await _add_driver(db_session, other_tenant, "auth-driver-x", "Nils Gran")


@pytest.fixture
async def inactive_driver(db_session, tenant):
    return await _add_driver(db_session, tenant, "auth-driver-off", "Olle Ek", status=DriverStatus.OFFLINE, is_active=False)


@pytest.fixture
def ctx_a(driver_a):
    return DriverContext(driver_id=driver_a.id, tenant_id=driver_a.tenant_id, auth_user_id=driver_a.auth_user_id)


@pytest.fixture
def ctx_b(driver_b):
    return DriverContext(driver_id=driver_b.id, tenant_id=driver_b.tenant_id, auth_user_id=driver_b.auth_user_id)


@pytest.fixture
def ctx_foreign(foreign_driver):
    return DriverContext(
        driver_id=foreign_driver.id, tenant_id=foreign_driver.tenant_id, auth_user_id=foreign_driver.auth_user_id
    )


@pytest.fixture
def admin_ctx(tenant):
    return AdminContext(user_id="auth-admin-1", tenant_id=tenant.id)


@pytest.fixture
def token_a(driver_a):
    return make_token(driver_a.auth_user_id, UserRole.DRIVER, driver_a.tenant_id)


@pytest.fixture
def token_b(driver_b):
    return make_token(driver_b.auth_user_id, UserRole.DRIVER, driver_b.tenant_id)


@pytest.fixture
def admin_token(tenant):
    return make_token("auth-admin-1", UserRole.TENANT_ADMIN, tenant.id)


@pytest.fixture
def super_admin_token():
    return make_token("auth-root", UserRole.SUPER_ADMIN)

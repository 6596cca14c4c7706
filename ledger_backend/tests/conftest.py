"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from ledger_backend.app.main import app
from ledger_backend.app.db.session import get_db, Base
from ledger_backend.app.core.jwt import create_actor_token
from ledger_backend.app.domain.party.party_ledger import PartyLedgerService
from ledger_backend.app.models.enums import UserRole
from ledger_backend.app.models.party_enums import PartyType
from ledger_backend.app.services.chart_of_accounts import ChartOfAccountsService

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)).lower():
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


@pytest.fixture(scope="session", autouse=True)
def apply_overrides():
    """Point the API at the test database for the whole session."""

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
async def chart(db_session):
    """Default chart of accounts, committed."""
    await ChartOfAccountsService(db_session).seed_default_chart()
    await db_session.commit()


# Tokens

@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_actor_token('admin', UserRole.ADMIN, 1)}"}


@pytest.fixture
def accountant_headers():
    return {"Authorization": f"Bearer {create_actor_token('accountant', UserRole.ACCOUNTANT, 2)}"}


@pytest.fixture
def auditor_headers():
    return {"Authorization": f"Bearer {create_actor_token('auditor', UserRole.AUDITOR, 3)}"}


# Domain helpers

@pytest.fixture
async def customer(db_session, chart):
    party = await PartyLedgerService(db_session).create_party("Himal Traders", PartyType.CUSTOMER)
    await db_session.commit()
    return party


@pytest.fixture
async def supplier(db_session, chart):
    party = await PartyLedgerService(db_session).create_party("Everest Supplies", PartyType.SUPPLIER)
    await db_session.commit()
    return party


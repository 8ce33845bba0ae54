"""
Shared fixtures.

The suite runs against in-memory SQLite (aiosqlite), not PostgreSQL.
``StaticPool`` keeps a single connection alive for the whole run because
an in-memory database disappears with the connection that created it;
the pytest-asyncio loop is session scoped for the same reason (see
``pyproject.toml``).

The test engine is built by ``build_engine`` like the production one, so
it carries the SQL statement counter and tests can assert exact query
counts.  The schema is created and dropped around every test.

Redis is off: ``cache._redis = None`` turns every cache read into a miss
and every write into a no-op.  Tests that exercise the cache install an
in-memory double themselves.
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from articlefeed.cache import cache
from articlefeed.database import Base, build_engine, get_db, transaction
from articlefeed.main import app

engine_test = build_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
session_factory = async_sessionmaker(engine_test, expire_on_commit=False)


async def _test_db():
    async with transaction(session_factory) as session:
        yield session


app.dependency_overrides[get_db] = _test_db


@pytest_asyncio.fixture(autouse=True)
async def schema():
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    cache._redis = None
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A session for tests that seed rows or call services directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def sessions() -> async_sessionmaker:
    """The test session factory, for tests that drive ``transaction`` themselves."""
    return session_factory


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """Client bound to the app in-process; requests never leave the event loop."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

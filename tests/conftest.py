"""
Test infrastructure for the Conduit API.

Strategy
--------
- SQLite in-memory via aiosqlite, so the suite needs no running Postgres.
- StaticPool makes every async task share the one in-memory connection;
  a second connection would see an empty database.
- The app's get_db dependency is overridden so every request uses the test
  session factory.
- Tables are created before each test and dropped after it.
- Redis is disabled by setting cache._redis = None; CacheManager treats that
  as "no cache", so the tag list is always read from the database.
- bcrypt runs at its minimum cost factor; it must be set before
  ``conduit.security`` builds its CryptContext.
"""
import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from conduit.cache import cache  # noqa: E402
from conduit.database import Base, get_db  # noqa: E402
from conduit.main import app  # noqa: E402
from conduit.middleware import install_query_counter  # noqa: E402

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

async def _register(client: AsyncClient, username: str, password: str = "secret123") -> str:
    """Register *username* through the API and return its token."""
    resp = await client.post("/api/users", json={
        "username": username,
        "email": f"{username}@example.com",
        "password": password,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()["result"]["token"]


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live AsyncSession for tests that call the service layer directly."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """httpx.AsyncClient wired to the FastAPI app via ASGITransport, Redis off."""
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def alice_token(async_client: AsyncClient) -> str:
    return await _register(async_client, "alice")


@pytest_asyncio.fixture
async def bob_token(async_client: AsyncClient) -> str:
    return await _register(async_client, "bob")

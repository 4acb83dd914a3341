"""
Test infrastructure for the Planet API.

Strategy
--------
- SQLite in-memory via aiosqlite: no Postgres needed in CI.
- StaticPool makes every session share the single in-memory connection
  (an in-memory SQLite database only exists on the connection that made it).
- ``get_db`` is overridden so requests use the test session factory; the
  override keeps the commit-or-rollback contract of the real dependency.
- Tables are created before and dropped after each test.
- Redis is disabled (``cache._redis = None``); the CacheManager treats that
  as a permanent miss, so the real database paths are exercised.
- Identity travels in the ``X-User-Id`` header (``settings.AUTH_USER_HEADER``).
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from app.cache import cache
from app.database import Base, get_db
from app.main import app
from app.middleware import install_query_counter
from app.models import User

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

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live session for service-level tests (seeding, asserting ORM state)."""
    async with async_session_test() as session:
        yield session


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory that inserts a user through ``db_session`` and returns its id."""

    async def _make(username: str, is_superuser: bool = False) -> int:
        user = User(username=username, email=f"{username}@example.com", is_superuser=is_superuser)
        db_session.add(user)
        await db_session.flush()
        return user.id

    return _make


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def create_user(async_client: AsyncClient):
    """Factory that creates a user through the API and returns its id."""

    async def _create(username: str, is_superuser: bool = False) -> int:
        resp = await async_client.post("/api/v1/users", json={
            "username": username,
            "email": f"{username}@example.com",
            "is_superuser": is_superuser,
        })
        assert resp.status_code == 201, resp.text
        return resp.json()["id"]

    return _create

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from libs.auth.dependencies import create_access_token
from libs.common.config import get_settings
from libs.db.base import Base
from services.store_service import models as _store_models  # noqa: F401
from tests.fakes import FakePrintifyClient, FakeStripeClient

get_settings.cache_clear()
settings = get_settings()


@pytest_asyncio.fixture
async def test_engine():
    """
    Fresh database per test.

    The default in-memory SQLite database lives as long as the engine, so
    StaticPool keeps a single connection shared by every session.
    """
    if settings.DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(
            settings.DATABASE_URL,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(settings.DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a session bound to the per-test database.

    Store components commit as part of their contract, so tests get a real
    session rather than one wrapped in an outer transaction.
    """
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_printify() -> FakePrintifyClient:
    return FakePrintifyClient()


@pytest.fixture
def fake_stripe() -> FakeStripeClient:
    return FakeStripeClient()


@pytest_asyncio.fixture
async def store_client(db_session, fake_printify, fake_stripe) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient for the store app with DB and provider clients overridden.
    """
    from libs.db.session import get_async_db
    from services.store_service.app.main import app
    from services.store_service.printify_client import get_printify_client
    from services.store_service.stripe_client import get_stripe_client

    app.dependency_overrides[get_async_db] = lambda: db_session
    app.dependency_overrides[get_printify_client] = lambda: fake_printify
    app.dependency_overrides[get_stripe_client] = lambda: fake_stripe

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    """Bearer token for an operator with the admin role."""
    token = create_access_token("admin-user", role="admin", email="ops@example.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def member_headers() -> dict:
    token = create_access_token("shopper", role="authenticated")
    return {"Authorization": f"Bearer {token}"}

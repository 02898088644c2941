import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from libs.auth.dependencies import get_current_user, get_optional_user
from libs.auth.models import AuthUser
from libs.common.cache import MemoryCache
from libs.db.base import Base
from libs.db.session import get_async_db
from services.store_service import models as _store_models  # noqa: F401


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    Engine on a throwaway SQLite file per test, or on TEST_DATABASE_URL when set.
    A file (not :memory:) so concurrent sessions see each other's commits.
    """
    db_url = os.environ.get("TEST_DATABASE_URL") or (
        f"sqlite+aiosqlite:///{tmp_path / 'store.db'}"
    )
    engine = create_async_engine(db_url, future=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def app():
    from services.store_service.app.main import create_app

    store_app = create_app()
    store_app.state.cache = MemoryCache()
    yield store_app
    store_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    AsyncClient against the store app; each request gets its own session.
    """

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_db] = _get_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture
def login(app):
    """
    Authenticate subsequent requests as the given user.

    Usage:
        login("admin-1")
        await client.patch(...)
    """

    def _login(user_id: str = "customer-1", email: str = "customer@example.com"):
        user = AuthUser(user_id=user_id, email=email)
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_optional_user] = lambda: user
        return user

    return _login


@pytest.fixture
def persist(session_factory):
    """
    Commit model instances in their own session and return them.

    Usage:
        product, = await persist(ProductFactory.create())
    """

    async def _persist(*objects):
        async with session_factory() as session:
            session.add_all(objects)
            await session.commit()
        return objects

    return _persist


@pytest.fixture
def staff(persist):
    """Create a UserProfile with the given store role."""
    from tests.factories import UserProfileFactory

    async def _staff(auth_id: str, role):
        (profile,) = await persist(UserProfileFactory.create(auth_id=auth_id, role=role))
        return profile

    return _staff

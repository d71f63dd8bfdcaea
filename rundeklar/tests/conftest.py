"""
Shared pytest configuration for rundeklar tests.

Each test gets its own SQLite database file (aiosqlite), so sessions opened
by the command facade and by the test itself see the same committed data.
"""

import os

# Must be set before the routes package is imported (rate limiter is a no-op in tests)
os.environ.setdefault("ENV", "test")
os.environ.setdefault("APP_LOCALE", "en")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from rundeklar.database import db
from rundeklar.database.db import Base
from rundeklar.database.models import Player, PlayerCategory
from rundeklar.services import court_service, session_service
from rundeklar.services.context import TenantContext
from rundeklar.services.training_api import TrainingApi

TENANT_ID = "club-a"
OTHER_TENANT_ID = "club-b"
COURT_COUNT = 4


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Fresh database per test; db.AsyncSessionLocal is pointed at it."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'rundeklar_test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    test_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = test_session_maker

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    async with db.AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest_asyncio.fixture
async def courts(db_session):
    """Courts 1..4 for both test tenants, committed."""
    await court_service.ensure_courts(db_session, TENANT_ID, COURT_COUNT)
    await court_service.ensure_courts(db_session, OTHER_TENANT_ID, COURT_COUNT)
    await db_session.commit()


@pytest_asyncio.fixture
async def ctx(db_session, courts):
    return TenantContext(session=db_session, tenant_id=TENANT_ID)


@pytest_asyncio.fixture
async def active_ctx(ctx):
    """Tenant context with a started training session."""
    await session_service.start_or_get(ctx)
    await ctx.session.commit()
    return ctx


@pytest_asyncio.fixture
async def api(test_engine, courts):
    return TrainingApi(TENANT_ID)


@pytest.fixture
def make_player(db_session):
    """Factory creating committed players of the test tenant."""

    async def _make_player(
        name,
        level=None,
        category=PlayerCategory.EITHER,
        active=True,
        tenant_id=TENANT_ID,
        **kwargs,
    ):
        player = Player(
            tenant_id=tenant_id,
            name=name,
            level_single=kwargs.pop("level_single", level),
            level_double=kwargs.pop("level_double", level),
            level_mix=kwargs.pop("level_mix", None),
            primary_category=category,
            active=active,
            **kwargs,
        )
        db_session.add(player)
        await db_session.commit()
        return player

    return _make_player

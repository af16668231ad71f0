import sys
import os
from typing import AsyncGenerator, Awaitable, Callable

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure project root is on sys.path so `import services` works
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from database.base import Base
from database.models import Affiliate, AffiliateStatus, Campaign, CommissionType
from database.repositories import AffiliateRepository, CampaignRepository


# In-memory SQLite by default; point at a PostgreSQL test database to run against asyncpg
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {}


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create async engine for tests."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        **_engine_kwargs(TEST_DATABASE_URL),
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(async_engine) -> async_sessionmaker:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def campaign(db_session: AsyncSession) -> Campaign:
    """Default campaign: 20% lifetime, 30-day cookie, 10% recruitment share."""
    campaign = await CampaignRepository(db_session).create(
        name="Default Program",
        slug="default",
        commission_type=CommissionType.PERCENTAGE,
        commission_value=20,
        cookie_duration_days=30,
        is_default=True,
        affiliate_recruitment_enabled=True,
        sub_affiliate_commission_percent=10,
    )
    await db_session.commit()
    return campaign


@pytest_asyncio.fixture
async def make_affiliate(
    db_session: AsyncSession,
    campaign: Campaign,
) -> Callable[..., Awaitable[Affiliate]]:
    """Factory creating affiliates directly through the repository."""
    repo = AffiliateRepository(db_session)

    async def _make(
        user_id: str,
        code: str,
        status: AffiliateStatus = AffiliateStatus.APPROVED,
        campaign_id: int | None = None,
        recruitment_code: str | None = None,
        referred_by_affiliate_id: int | None = None,
    ) -> Affiliate:
        affiliate = await repo.create(
            user_id=user_id,
            campaign_id=campaign_id or campaign.id,
            code=code,
            recruitment_code=recruitment_code or f"R{code}",
            referred_by_affiliate_id=referred_by_affiliate_id,
        )
        affiliate.status = status.value
        await db_session.commit()
        return affiliate

    return _make


@pytest_asyncio.fixture
async def affiliate(make_affiliate) -> Affiliate:
    """Approved affiliate with code JOHN20."""
    return await make_affiliate(user_id="user_john", code="JOHN20")

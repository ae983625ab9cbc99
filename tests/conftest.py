"""
Pytest configuration and fixtures
"""

import random
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import Settings
from core.database import create_tables
from crawler.pacing import Pacer
from crawler.rate_limiter import RateLimiter
from crawler.store import PlateStore
from models.base import Base
from tests.fakes import SleepRecorder

# In-memory SQLite shared by every connection of the engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    await create_tables(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def store(db_session):
    return PlateStore(db_session)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def pacer(sleeper):
    """Pacer that never really waits, with a seeded RNG"""
    return Pacer(sleep=sleeper, rng=random.Random(7))


@pytest.fixture
def limiter(sleeper):
    return RateLimiter(limit=1000, interval_ms=60000, sleep=sleeper)


@pytest.fixture
def test_settings():
    return Settings(
        DATABASE_URL=TEST_DATABASE_URL,
        PORTAL_URL="https://portal.test/queryPickNo",
        STATION_CONFIG_PATH=None,
        RESULT_WAIT_TIMEOUT_MS=200,
        SOLVER_OVERLOAD_COOLDOWN_SEC=30,
    )


@pytest.fixture
def sample_roster():
    """Roster document as stored under the station config key"""
    return [
        {
            "id": "2",
            "name": "臺北區監理所",
            "stations": [
                {"id": "20", "name": "臺北市區監理所", "shard": "A", "no_rental": True},
                {"id": "21", "name": "士林監理站", "shard": "B"},
            ]
        },
        {
            "id": 3,
            "stations": [
                {"id": 30, "name": "新竹區監理所", "shard": "A", "risk_tier": "normal"},
            ]
        }
    ]

"""
Database engine and session factory (SQLAlchemy async)
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)

# Workers are short-lived processes and the API opens one session per request
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    poolclass=NullPool
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)


async def create_tables(target: Optional[AsyncEngine] = None) -> List[str]:
    """Create every table registered on Base.metadata; returns the table names."""
    # Importing the package registers every model on Base.metadata
    from models import Base

    target = target or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    tables = sorted(Base.metadata.tables)
    logger.info(f"Tables ready: {', '.join(tables)}")
    return tables

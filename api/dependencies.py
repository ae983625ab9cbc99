"""
FastAPI dependencies
"""

from typing import AsyncIterator
from sqlalchemy.ext.asyncio import AsyncSession
from core.database import async_session_maker


async def get_db() -> AsyncIterator[AsyncSession]:
    """Database session per request"""
    async with async_session_maker() as session:
        yield session

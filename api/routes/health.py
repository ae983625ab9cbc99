"""
Health check endpoint with database and sync status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from api.dependencies import get_db
from schemas.api import HealthCheckResponse, SyncStatusInfo, overall_health
from models.sync_metadata import SyncMetadata
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Latest status of the full sync and every shard worker
    """

    # Check database connectivity
    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {str(e)}")

    sync_statuses = []

    if db_connected:
        try:
            result = await db.execute(select(SyncMetadata).order_by(SyncMetadata.key))
            sync_statuses = [SyncStatusInfo.from_orm(record) for record in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch sync metadata: {str(e)}")

    return HealthCheckResponse(
        status=overall_health(db_connected, sync_statuses),
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        sync_statuses=sync_statuses
    )

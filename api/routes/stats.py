"""
Sync statistics endpoint
"""
from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db
from crawler.store import PlateStore
from schemas.api import StatsResponse, StationWorkload, SyncRunSummary
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Statistics"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    limit: int = Query(10, ge=1, le=100, description="Number of recent runs to return"),
    db: AsyncSession = Depends(get_db)
):
    """
    Get sync statistics.

    Returns:
    - Production and staging row counts
    - Plates per station in the production view
    - Recent run records
    """
    request_id = f"req_{uuid.uuid4().hex[:12]}"

    logger.info(f"[{request_id}] GET /stats")

    store = PlateStore(db)

    production = await store.count_production()
    staging = await store.count_staging()

    stations = [
        StationWorkload(region_id=region_id, station_id=station_id, station_name=name, plates=count)
        for region_id, station_id, name, count in await store.station_workload()
    ]

    recent_runs = [SyncRunSummary.from_orm(run) for run in await store.recent_runs(limit)]

    logger.info(
        f"[{request_id}] Stats: {production} plates in production, "
        f"{staging} staged, {len(recent_runs)} runs"
    )

    return StatsResponse(
        timestamp=datetime.utcnow(),
        production_plates=production,
        staging_plates=staging,
        stations=stations,
        recent_runs=recent_runs,
        request_id=request_id
    )

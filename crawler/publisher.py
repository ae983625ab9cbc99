"""
Stage-then-swap publishing.

Stations write their rows into their own staging partition. A separate,
explicit publish step swaps the whole staging area into the production
view, guarded so an empty staging area never erases good data.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence
import logging

from crawler.context import QueryOutcome, QueryResult
from crawler.store import PlateStore
from models.base import SyncStatus
from models.sync_metadata import FULL_SYNC_KEY
from schemas.plates import StagingRowCreate, dedupe_plates
from schemas.stations import Station

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    swapped: bool
    staged_rows: int
    status: SyncStatus
    message: Optional[str] = None


def build_rows(station: Station, results: Sequence[QueryResult]) -> List[StagingRowCreate]:
    """StagingRows for every accepted query, deduplicated per query by plate_no."""
    now = datetime.utcnow()
    rows = []
    for result in results:
        if result.outcome is not QueryOutcome.ACCEPTED:
            continue
        ctx = result.context
        for record in dedupe_plates(result.records):
            rows.append(StagingRowCreate(
                plate_no=record.plate_no,
                price=record.price,
                region_id=station.region_id,
                station_id=station.station_id,
                station_name=station.name,
                plate_type=ctx.query.plate_type,
                window_id=ctx.window_id,
                updated_at=now
            ))
    return rows


class StagingPublisher:
    def __init__(self, store: PlateStore):
        self.store = store

    async def stage_station(self, station: Station, results: Sequence[QueryResult]) -> int:
        """
        Replace the station's staging partition with its freshly collected rows.

        The partition is left untouched when no query for the station completed,
        so a failed station keeps whatever an earlier run staged.

        Returns:
            Number of rows staged

        Raises:
            StagingError: If the partition could not be written
        """
        if not any(result.completed for result in results):
            logger.warning(f"[Staging] No completed queries for {station.name}, partition kept.")
            return 0

        rows = build_rows(station, results)
        count = await self.store.replace_partition(station.region_id, station.station_id, rows)
        logger.info(f"[Staging] {station.name}: {count} plates staged")
        return count

    async def publish(self) -> PublishResult:
        """
        Guarded atomic swap of staging into production.

        Raises:
            PublishError: If the swap transaction failed
        """
        staged = await self.store.count_staging()

        if staged == 0:
            message = "Sync completed but 0 plates found."
            logger.warning("[Swap] Staging is empty, swap skipped to protect production data.")
            return PublishResult(swapped=False, staged_rows=0, status=SyncStatus.WARNING, message=message)

        logger.info(f"[Swap] Staging has {staged} rows, swapping...")
        await self.store.swap_production()
        await self.store.report_status(FULL_SYNC_KEY, SyncStatus.COMPLETED)
        return PublishResult(swapped=True, staged_rows=staged, status=SyncStatus.COMPLETED)


__all__ = ["FULL_SYNC_KEY", "PublishResult", "StagingPublisher", "build_rows"]

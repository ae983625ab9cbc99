"""
Data store access for the crawl: roster, staging partitions, atomic swap,
sync metadata and run records.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import DatabaseError, PublishError, StagingError, StationConfigError
from models.base import SyncStatus
from models.plates import AvailablePlate, AvailablePlateStaging, PlateColumns
from models.sync_log import SyncLog
from models.sync_metadata import SyncMetadata
from models.system_config import SystemConfig
from schemas.plates import StagingRowCreate
from schemas.stations import Roster, parse_roster

logger = logging.getLogger(__name__)


class PlateStore:
    """
    Store operations used by the orchestrator, publisher and finalizer.

    Ensures:
    - Staging writes only ever touch their own (region_id, station_id) partition
    - Partition replacement and the production swap are single transactions
    - Driver failures surface as StoreError subclasses with context
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def _rollback(self):
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Rollback failed: {e}")

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    async def load_station_roster(self, key: str) -> Roster:
        """
        Raises:
            StationConfigError: Missing or malformed roster document
            DatabaseError: Store unreachable
        """
        try:
            result = await self.db.execute(select(SystemConfig.value).where(SystemConfig.key == key))
            raw = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to load station roster",
                context={"operation": "SELECT", "table_name": SystemConfig.__tablename__, "config_key": key},
                original_exception=e
            )

        if raw is None:
            raise StationConfigError(
                "Station roster not found",
                context={"config_key": key}
            )
        return parse_roster(raw, source=key)

    async def save_station_roster(self, key: str, value: List[Dict[str, Any]]):
        try:
            existing = await self.db.get(SystemConfig, key)
            if existing is None:
                self.db.add(SystemConfig(key=key, value=value, updated_at=datetime.utcnow()))
            else:
                existing.value = value
                existing.updated_at = datetime.utcnow()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._rollback()
            raise DatabaseError(
                "Failed to save station roster",
                context={"operation": "UPSERT", "table_name": SystemConfig.__tablename__, "config_key": key},
                original_exception=e
            )

    # ------------------------------------------------------------------
    # Staging
    # ------------------------------------------------------------------

    async def clear_staging(self) -> int:
        try:
            result = await self.db.execute(delete(AvailablePlateStaging))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._rollback()
            raise StagingError(
                "Failed to clear staging area",
                context={"operation": "DELETE", "table_name": AvailablePlateStaging.__tablename__},
                original_exception=e
            )
        logger.info(f"Cleared {result.rowcount} staging rows")
        return result.rowcount

    async def replace_partition(
        self,
        region_id: str,
        station_id: str,
        rows: Sequence[StagingRowCreate]
    ) -> int:
        """
        Delete the (region_id, station_id) partition and insert `rows` in one transaction.

        Returns:
            Number of rows inserted
        """
        try:
            await self.db.execute(
                delete(AvailablePlateStaging).where(
                    AvailablePlateStaging.region_id == region_id,
                    AvailablePlateStaging.station_id == station_id
                )
            )
            if rows:
                await self.db.execute(
                    insert(AvailablePlateStaging),
                    [row.dict() for row in rows]
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._rollback()
            raise StagingError(
                "Failed to replace staging partition",
                context={"region_id": region_id, "station_id": station_id, "row_count": len(rows)},
                original_exception=e
            )
        return len(rows)

    async def count_staging(
        self,
        region_id: Optional[str] = None,
        station_id: Optional[str] = None
    ) -> int:
        query = select(func.count()).select_from(AvailablePlateStaging)
        if region_id is not None:
            query = query.where(AvailablePlateStaging.region_id == region_id)
        if station_id is not None:
            query = query.where(AvailablePlateStaging.station_id == station_id)
        return await self._count(query, AvailablePlateStaging.__tablename__)

    async def count_production(self) -> int:
        query = select(func.count()).select_from(AvailablePlate)
        return await self._count(query, AvailablePlate.__tablename__)

    async def _count(self, query, table_name: str) -> int:
        try:
            result = await self.db.execute(query)
            return result.scalar_one()
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Count query failed",
                context={"operation": "COUNT", "table_name": table_name},
                original_exception=e
            )

    # ------------------------------------------------------------------
    # Production swap
    # ------------------------------------------------------------------

    async def swap_production(self) -> int:
        """
        Replace the production view with the staging contents in one transaction.

        Returns:
            Number of rows now in production
        """
        columns = PlateColumns.COPY_COLUMNS
        staging = AvailablePlateStaging.__table__
        production = AvailablePlate.__table__
        staged = select(*[staging.c[name] for name in columns])

        try:
            await self.db.execute(delete(production))
            result = await self.db.execute(
                insert(production).from_select(list(columns), staged)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._rollback()
            raise PublishError(
                "Atomic swap failed, production view unchanged",
                context={"table_name": AvailablePlate.__tablename__},
                original_exception=e
            )

        swapped = result.rowcount
        logger.info(f"[Swap] Production view replaced with {swapped} rows")
        return swapped

    # ------------------------------------------------------------------
    # Sync metadata
    # ------------------------------------------------------------------

    async def report_status(self, key: str, status: SyncStatus, message: Optional[str] = None):
        """Upsert the heartbeat record for a sync key."""
        now = datetime.utcnow()
        try:
            record = await self.db.get(SyncMetadata, key)
            if record is None:
                self.db.add(SyncMetadata(key=key, status=status, status_message=message, last_run_at=now))
            else:
                record.status = status
                record.status_message = message
                record.last_run_at = now
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._rollback()
            raise DatabaseError(
                "Failed to report sync status",
                context={"operation": "UPSERT", "table_name": SyncMetadata.__tablename__, "key": key},
                original_exception=e
            )
        logger.info(f"[Status] {key}: {status.value}" + (f" ({message})" if message else ""))

    async def get_status(self, key: str) -> Optional[SyncMetadata]:
        try:
            result = await self.db.execute(select(SyncMetadata).where(SyncMetadata.key == key))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to read sync status",
                context={"operation": "SELECT", "table_name": SyncMetadata.__tablename__, "key": key},
                original_exception=e
            )

    async def list_statuses(self) -> List[SyncMetadata]:
        try:
            result = await self.db.execute(select(SyncMetadata).order_by(SyncMetadata.key))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to list sync statuses",
                context={"operation": "SELECT", "table_name": SyncMetadata.__tablename__},
                original_exception=e
            )

    # ------------------------------------------------------------------
    # Run records
    # ------------------------------------------------------------------

    async def save_run(self, record: Dict[str, Any]):
        """Insert or update the SyncLog row for record["run_id"]."""
        try:
            result = await self.db.execute(select(SyncLog).where(SyncLog.run_id == record["run_id"]))
            existing = result.scalar_one_or_none()
            if existing is None:
                self.db.add(SyncLog(**record))
            else:
                for field, value in record.items():
                    setattr(existing, field, value)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._rollback()
            raise DatabaseError(
                "Failed to save run record",
                context={"operation": "UPSERT", "table_name": SyncLog.__tablename__, "run_id": record.get("run_id")},
                original_exception=e
            )

    async def recent_runs(self, limit: int = 10) -> List[SyncLog]:
        try:
            result = await self.db.execute(
                select(SyncLog).order_by(SyncLog.start_time.desc()).limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to read run records",
                context={"operation": "SELECT", "table_name": SyncLog.__tablename__},
                original_exception=e
            )

    # ------------------------------------------------------------------
    # Workload
    # ------------------------------------------------------------------

    async def station_workload(self) -> List[Tuple[str, str, str, int]]:
        """(region_id, station_id, station_name, plate count) in the production view, busiest first."""
        count = func.count(AvailablePlate.id)
        query = (
            select(AvailablePlate.region_id, AvailablePlate.station_id, func.max(AvailablePlate.station_name), count)
            .group_by(AvailablePlate.region_id, AvailablePlate.station_id)
            .order_by(count.desc())
        )
        try:
            result = await self.db.execute(query)
            return [tuple(row) for row in result.all()]
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Workload query failed",
                context={"operation": "SELECT", "table_name": AvailablePlate.__tablename__},
                original_exception=e
            )


def load_roster_file(path: str) -> Roster:
    """Read a roster document from a JSON file instead of the store."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise StationConfigError(
            "Cannot read station roster file",
            context={"config_key": path},
            original_exception=e
        )
    return parse_roster(raw, source=path)

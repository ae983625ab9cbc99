"""
Run statistics accumulator.

One SyncStats is owned by the orchestrator for the whole run. Every stage
records into it through method calls; it is flushed to the store once, at
the end of the run (including failed runs).
"""

import time
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from core.exceptions import StoreError
from models.base import StationStatus, SyncStatus

logger = logging.getLogger(__name__)

MAX_ERRORS = 50


class SyncStats:
    def __init__(self, run_id: str, shard: Optional[str] = None):
        self.run_id = run_id
        self.shard = shard
        self.status = SyncStatus.RUNNING
        self.start_time = datetime.utcnow()
        self.end_time: Optional[datetime] = None
        self._started = time.monotonic()

        self.total_plates = 0
        self.stations_success = 0
        self.stations_failed = 0
        self.captcha_attempts = 0
        self.captcha_success = 0

        self.errors: List[str] = []
        self.station_stats: Dict[str, Dict[str, Any]] = {}

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def add_error(self, message: str):
        """Keep the first MAX_ERRORS messages; later ones are only counted in the log."""
        if len(self.errors) < MAX_ERRORS:
            self.errors.append(message)
        else:
            logger.debug(f"Error list full, dropping: {message}")

    def record_captcha_attempt(self):
        self.captcha_attempts += 1

    def record_captcha_success(self):
        self.captcha_success += 1

    def add_plates(self, count: int):
        self.total_plates += count

    def record_station(
        self,
        region_id: str,
        station_id: str,
        name: str,
        status: StationStatus,
        plates: int = 0,
        duration_sec: float = 0.0,
        retries: int = 0
    ):
        if status == StationStatus.SUCCESS:
            self.stations_success += 1
        else:
            self.stations_failed += 1

        self.station_stats[f"{region_id}-{station_id}"] = {
            "name": name,
            "status": status.value,
            "plates": plates,
            "duration_sec": round(duration_sec, 2),
            "retries": retries,
        }

    def finish(self, status: SyncStatus):
        self.status = status
        self.end_time = datetime.utcnow()

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @property
    def runtime_sec(self) -> float:
        return time.monotonic() - self._started

    @property
    def captcha_rate(self) -> float:
        if self.captcha_attempts == 0:
            return 0.0
        return self.captcha_success / self.captcha_attempts * 100

    @property
    def error_summary(self) -> Optional[str]:
        return "\n".join(self.errors) if self.errors else None

    def to_record(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "shard": self.shard,
            "status": self.status,
            "start_time": self.start_time,
            "end_time": self.end_time or datetime.utcnow(),
            "runtime_sec": round(self.runtime_sec, 2),
            "total_plates": self.total_plates,
            "stations_success": self.stations_success,
            "stations_failed": self.stations_failed,
            "captcha_attempts": self.captcha_attempts,
            "captcha_success": self.captcha_success,
            "error_summary": self.error_summary,
            "station_stats": self.station_stats,
        }

    def log_summary(self):
        logger.info("=" * 50)
        logger.info(f"Run {self.run_id} finished: {self.status.value}")
        logger.info(f"Runtime: {self.runtime_sec:.1f}s")
        logger.info(f"Stations: {self.stations_success} ok, {self.stations_failed} failed")
        logger.info(f"Plates staged: {self.total_plates}")
        logger.info(
            f"CAPTCHA: {self.captcha_success}/{self.captcha_attempts} "
            f"({self.captcha_rate:.1f}%)"
        )
        if self.errors:
            logger.info(f"Errors recorded: {len(self.errors)}")
        logger.info("=" * 50)

    async def save(self, store) -> bool:
        """Persist the run record; failures are logged, never raised."""
        try:
            await store.save_run(self.to_record())
            return True
        except StoreError as e:
            logger.error(f"Failed to save run stats for {self.run_id}: {e}")
            return False

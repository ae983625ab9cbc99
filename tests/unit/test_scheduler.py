import pytest
from unittest.mock import AsyncMock, patch
from core.exceptions import StationConfigError
from crawler.scheduler import SyncScheduler
from crawler.stats import SyncStats
from models.base import SyncStatus


def test_scheduler_initialization():
    scheduler = SyncScheduler(interval_minutes=15)
    assert scheduler.scheduler is not None
    assert scheduler.interval_minutes == 15


@pytest.mark.asyncio
async def test_scheduler_job_execution():
    stats = SyncStats("plates_full_sync_test")
    stats.finish(SyncStatus.COMPLETED)

    with patch("crawler.scheduler.run_worker", new=AsyncMock(return_value=stats)) as mock_worker:
        await SyncScheduler().run_sync_job()

    mock_worker.assert_awaited_once_with()


@pytest.mark.asyncio
async def test_scheduler_job_survives_failure():
    failing = AsyncMock(side_effect=StationConfigError("Station roster not found"))

    with patch("crawler.scheduler.run_worker", new=failing):
        await SyncScheduler().run_sync_job()

    assert failing.await_count == 1


@pytest.mark.asyncio
async def test_scheduler_registers_single_interval_job():
    scheduler = SyncScheduler(interval_minutes=30)
    scheduler.start()
    try:
        job = scheduler.scheduler.get_job("plate_sync_job")
        assert job is not None
        assert job.max_instances == 1
        assert job.trigger.interval.total_seconds() == 1800
    finally:
        scheduler.stop()

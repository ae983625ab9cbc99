import pytest
from unittest.mock import AsyncMock, patch
from core.exceptions import FinalizerError, StationConfigError
from crawler.publisher import PublishResult
from crawler.stats import SyncStats
from models.base import SyncStatus
from scripts import analyze_workload, run_sync, trigger_swap


def finished(status: SyncStatus) -> SyncStats:
    stats = SyncStats("run-1")
    stats.finish(status)
    return stats


def test_format_workload():
    text = analyze_workload.format_workload([("2", "20", "臺北市區監理所", 12), ("2", "21", None, 3)])

    assert "2/21: Unknown" in text
    assert text.endswith("Total Stations: 2\nTotal Plates: 15")


@pytest.mark.asyncio
@pytest.mark.parametrize("status, exit_code", [
    (SyncStatus.COMPLETED, 0),
    (SyncStatus.WARNING, 0),
    (SyncStatus.FAILED, 1),
])
async def test_run_sync_exit_code(status, exit_code):
    with patch("scripts.run_sync.setup_logging"), \
            patch("scripts.run_sync.run_worker", new=AsyncMock(return_value=finished(status))) as worker:
        assert await run_sync.main(["--shard", "B"]) == exit_code

    worker.assert_awaited_once_with(shard="B")


@pytest.mark.asyncio
async def test_run_sync_fatal_error():
    with patch("scripts.run_sync.setup_logging"), \
            patch("scripts.run_sync.run_worker", new=AsyncMock(side_effect=StationConfigError("Station roster not found"))):
        assert await run_sync.main([]) == 1


@pytest.mark.asyncio
async def test_trigger_swap_passes_shards(session_maker):
    finalize = AsyncMock(return_value=PublishResult(swapped=True, staged_rows=5, status=SyncStatus.COMPLETED))

    with patch("scripts.trigger_swap.setup_logging"), \
            patch("scripts.trigger_swap.async_session_maker", new=session_maker), \
            patch("scripts.trigger_swap.SwapFinalizer.finalize", new=finalize):
        code = await trigger_swap.main(["--shards", "A, B", "--wait-timeout", "60"])

    assert code == 0
    kwargs = finalize.await_args.kwargs
    assert kwargs["shards"] == ["A", "B"]
    assert kwargs["wait_timeout"] == 60
    assert kwargs["since"] is None


@pytest.mark.asyncio
async def test_trigger_swap_timeout_exit_code(session_maker):
    finalize = AsyncMock(side_effect=FinalizerError("Timed out waiting for shard workers"))

    with patch("scripts.trigger_swap.setup_logging"), \
            patch("scripts.trigger_swap.async_session_maker", new=session_maker), \
            patch("scripts.trigger_swap.SwapFinalizer.finalize", new=finalize):
        assert await trigger_swap.main(["--shards", "A"]) == 1

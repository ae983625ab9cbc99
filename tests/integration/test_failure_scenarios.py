"""
Tests for failure scenarios and error handling
"""

import pytest
from core.config import Settings
from core.exceptions import BrowserClosedError, BrowserError, ConfigurationError
from crawler import portal
from crawler.orchestrator import StationOrchestrator
from models.base import SyncStatus
from models.sync_metadata import FULL_SYNC_KEY
from tests.fakes import REJECT, FakeBrowserSession, FakeSolver, result_page, session_factory_for

SINGLE_STATION_ROSTER = [
    {"id": "2", "stations": [{"id": "20", "name": "臺北市區監理所", "no_rental": True}]}
]


def orchestrator(store, session, config, pacer, limiter, solver_factory=None):
    return StationOrchestrator(
        store=store,
        session_factory=session_factory_for(session),
        solver_factory=solver_factory or FakeSolver,
        config=config,
        pacer=pacer,
        limiter=limiter,
        run_id="run-failure"
    )


@pytest.mark.asyncio
async def test_missing_roster_fails_run_and_persists_outcome(store, test_settings, pacer, limiter):
    """
    Test: No roster configured, run FAILED but stats and status are saved
    """
    session = FakeBrowserSession()

    stats = await orchestrator(store, session, test_settings, pacer, limiter).run()

    assert stats.status == SyncStatus.FAILED
    assert session.navigations == 0

    status = await store.get_status(FULL_SYNC_KEY)
    assert status.status == SyncStatus.FAILED
    assert "roster" in status.status_message.lower()

    runs = await store.recent_runs()
    assert runs[0].status == SyncStatus.FAILED
    assert runs[0].error_summary.startswith("Run failed")


@pytest.mark.asyncio
async def test_solver_configuration_error_fails_run(store, test_settings, pacer, limiter, sample_roster):
    """
    Test: Solver cannot be built (e.g. missing API key), run FAILED before crawling
    """
    await store.save_station_roster("mvdis_stations", sample_roster)

    def broken_solver():
        raise ConfigurationError("GEMINI_API_KEY is required for the gemini CAPTCHA engine")

    session = FakeBrowserSession()
    stats = await orchestrator(store, session, test_settings, pacer, limiter, solver_factory=broken_solver).run()

    assert stats.status == SyncStatus.FAILED
    assert session.navigations == 0

    status = await store.get_status(FULL_SYNC_KEY)
    assert status.status == SyncStatus.FAILED
    assert status.status_message == "GEMINI_API_KEY is required for the gemini CAPTCHA engine"


@pytest.mark.asyncio
async def test_navigation_failure_skips_station_and_continues(store, test_settings, pacer, limiter, sample_roster):
    """
    Test: Portal unreachable for the first station, the run moves on to the next
    """
    await store.save_station_roster("mvdis_stations", sample_roster)
    session = FakeBrowserSession(
        navigate_failures=test_settings.NAVIGATION_RETRIES,
        result_sets=[[result_page([("BBB-0001", "2000")])]]
    )

    stats = await orchestrator(store, session, test_settings, pacer, limiter).run()

    assert stats.stations_failed == 1
    assert stats.stations_success == 2
    assert stats.station_stats["2-20"]["status"] == "FAILED"
    assert any("unreachable" in error for error in stats.errors)

    # The remaining stations still publish
    assert stats.status == SyncStatus.COMPLETED
    assert await store.count_production() == 1


@pytest.mark.asyncio
async def test_exhausted_captcha_budget_fails_station(store, pacer, limiter):
    """
    Test: Every code rejected, the query fails and staging stays empty
    """
    config = Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        PORTAL_URL="https://portal.test/queryPickNo",
        STATION_CONFIG_PATH=None,
        MAX_QUERY_ATTEMPTS=2,
        RESULT_WAIT_TIMEOUT_MS=200
    )
    await store.save_station_roster("mvdis_stations", SINGLE_STATION_ROSTER)
    session = FakeBrowserSession(submissions=[REJECT, REJECT])

    stats = await orchestrator(store, session, config, pacer, limiter).run()

    assert stats.stations_failed == 1
    assert stats.captcha_attempts == 2
    assert stats.captcha_success == 0
    assert any("CAPTCHA not accepted" in error for error in stats.errors)

    # Nothing staged, so the swap is skipped
    assert stats.status == SyncStatus.WARNING
    assert await store.count_production() == 0


@pytest.mark.asyncio
async def test_roster_file_takes_precedence(store, test_settings, pacer, limiter, tmp_path):
    """
    Test: STATION_CONFIG_PATH is read instead of the stored roster
    """
    path = tmp_path / "stations.json"
    path.write_text('[{"id": "2", "stations": [{"id": "21", "name": "士林監理站", "no_rental": true}]}]', encoding="utf-8")
    config = Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        PORTAL_URL="https://portal.test/queryPickNo",
        STATION_CONFIG_PATH=str(path),
        RESULT_WAIT_TIMEOUT_MS=200
    )

    stats = await orchestrator(store, FakeBrowserSession(), config, pacer, limiter).run()

    assert set(stats.station_stats) == {"2-21"}


@pytest.mark.asyncio
async def test_broken_result_walk_discards_partial_pages(store, test_settings, pacer, limiter):
    """
    Test: Next-page click fails on page 1 of 3, nothing from the query is staged
    """
    await store.save_station_roster("mvdis_stations", SINGLE_STATION_ROSTER)
    pages = [
        result_page([("P1-0001", "1000")], text="共 3 筆 1 / 3 頁", has_next=True),
        result_page([("P2-0001", "1000")], text="共 3 筆 2 / 3 頁", has_next=True),
        result_page([("P3-0001", "1000")], text="共 3 筆 3 / 3 頁"),
    ]
    session = FakeBrowserSession(
        result_sets=[pages],
        next_click_error=BrowserError("Browser click failed")
    )

    stats = await orchestrator(store, session, test_settings, pacer, limiter).run()

    assert stats.stations_failed == 1
    assert stats.stations_success == 0
    assert any("Next page click failed" in error for error in stats.errors)
    assert await store.count_staging("2", "20") == 0

    # Nothing staged, so production is left alone
    assert stats.status == SyncStatus.WARNING
    assert await store.count_production() == 0


@pytest.mark.asyncio
async def test_page_error_fails_query_and_run_continues(store, test_settings, pacer, limiter, sample_roster):
    """
    Test: A page script error on the first station fails that query only
    """
    await store.save_station_roster("mvdis_stations", sample_roster)
    session = FakeBrowserSession(
        result_sets=[
            [result_page([("AAA-0001", "1000")])],
            [result_page([("BBB-0001", "2000")])],
        ],
        evaluate_errors={portal.PAGE_TEXT_SCRIPT: [BrowserError("Browser evaluate failed")]}
    )

    stats = await orchestrator(store, session, test_settings, pacer, limiter).run()

    assert stats.station_stats["2-20"]["status"] == "FAILED"
    assert stats.station_stats["2-21"]["status"] == "SUCCESS"
    assert stats.stations_failed == 1
    assert stats.stations_success == 2
    assert any("Browser evaluate failed" in error for error in stats.errors)

    assert stats.status == SyncStatus.COMPLETED
    assert await store.count_staging("2", "20") == 0
    assert await store.count_production() == 1


@pytest.mark.asyncio
async def test_closed_page_fails_run(store, test_settings, pacer, limiter, sample_roster):
    """
    Test: The page is closed mid-query, the run stops and is recorded as FAILED
    """
    await store.save_station_roster("mvdis_stations", sample_roster)
    session = FakeBrowserSession(
        result_sets=[[result_page([("AAA-0001", "1000")])]],
        evaluate_errors={
            portal.PAGE_TEXT_SCRIPT: [BrowserClosedError("Browser page closed during evaluate")]
        }
    )

    stats = await orchestrator(store, session, test_settings, pacer, limiter).run()

    assert stats.status == SyncStatus.FAILED
    assert "2-21" not in stats.station_stats
    assert session.navigations == 1

    status = await store.get_status(FULL_SYNC_KEY)
    assert status.status == SyncStatus.FAILED
    assert status.status_message == "Browser page closed during evaluate"
    assert await store.count_production() == 0


@pytest.mark.asyncio
async def test_solver_close_failure_keeps_run_outcome(store, test_settings, pacer, limiter):
    """
    Test: Solver cleanup raising does not lose the saved stats or final status
    """
    class LeakySolver(FakeSolver):
        async def close(self):
            raise RuntimeError("client already closed")

    await store.save_station_roster("mvdis_stations", SINGLE_STATION_ROSTER)
    session = FakeBrowserSession(result_sets=[[result_page([("AAA-0001", "1000")])]])

    stats = await orchestrator(store, session, test_settings, pacer, limiter, solver_factory=LeakySolver).run()

    assert stats.status == SyncStatus.COMPLETED

    status = await store.get_status(FULL_SYNC_KEY)
    assert status.status == SyncStatus.COMPLETED

    runs = await store.recent_runs()
    assert runs[0].status == SyncStatus.COMPLETED
    assert runs[0].total_plates == 1

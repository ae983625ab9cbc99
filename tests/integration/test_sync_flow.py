"""
End-to-end runs of the orchestrator against a scripted portal and an in-memory store
"""

import pytest
from sqlalchemy import select

from crawler.orchestrator import StationOrchestrator
from models.base import PlateType, SyncStatus
from models.plates import AvailablePlate, AvailablePlateStaging
from models.sync_metadata import FULL_SYNC_KEY, shard_sync_key
from schemas.plates import StagingRowCreate
from tests.fakes import ACCEPT, REJECT, FakeBrowserSession, FakeSolver, result_page, session_factory_for

SINGLE_STATION_ROSTER = [
    {"id": "2", "stations": [{"id": "20", "name": "臺北市區監理所", "no_rental": True}]}
]


@pytest.fixture
def make_orchestrator(store, test_settings, pacer, limiter):
    def factory(session, solver=None, shard=None, config=None):
        solver = solver or FakeSolver()
        return StationOrchestrator(
            store=store,
            session_factory=session_factory_for(session),
            solver_factory=lambda: solver,
            shard=shard,
            config=config or test_settings,
            pacer=pacer,
            limiter=limiter,
            run_id="run-test"
        )
    return factory


@pytest.mark.asyncio
async def test_full_run_stages_and_swaps(store, db_session, make_orchestrator):
    """One wrong code, then an accepted one with a single result page."""
    await store.save_station_roster("mvdis_stations", SINGLE_STATION_ROSTER)
    session = FakeBrowserSession(
        submissions=[REJECT, ACCEPT],
        result_sets=[[result_page([("ABC-1234", "50,000")])]]
    )
    solver = FakeSolver()

    stats = await make_orchestrator(session, solver).run()

    assert stats.status == SyncStatus.COMPLETED
    assert stats.captcha_attempts == 2
    assert stats.captcha_success == 1
    assert stats.stations_success == 1
    assert stats.stations_failed == 0
    assert stats.total_plates == 1
    assert solver.closed is True

    # No rental query for a station without rental plates
    assert session.submits == 2
    assert ("#selPlateType", "h") not in session.selected

    staged = (await db_session.execute(select(AvailablePlateStaging))).scalars().all()
    assert [(r.region_id, r.station_id, r.plate_type, r.plate_no, r.price) for r in staged] == [
        ("2", "20", "g", "ABC-1234", 50000)
    ]

    production = (await db_session.execute(select(AvailablePlate))).scalars().all()
    assert [(r.plate_no, r.price) for r in production] == [("ABC-1234", 50000)]

    status = await store.get_status(FULL_SYNC_KEY)
    assert status.status == SyncStatus.COMPLETED

    runs = await store.recent_runs()
    assert runs[0].run_id == "run-test"
    assert runs[0].status == SyncStatus.COMPLETED
    assert runs[0].station_stats["2-20"]["retries"] == 1


@pytest.mark.asyncio
async def test_no_data_run_keeps_production(store, db_session, make_orchestrator):
    await store.save_station_roster("mvdis_stations", SINGLE_STATION_ROSTER)
    db_session.add(AvailablePlate(region_id="2", station_id="20", plate_type="g", window_id="01", plate_no="LIVE-1", price=1))
    await db_session.commit()

    stats = await make_orchestrator(FakeBrowserSession()).run()

    assert stats.status == SyncStatus.WARNING
    assert stats.stations_success == 1
    assert stats.total_plates == 0
    assert await store.count_production() == 1

    status = await store.get_status(FULL_SYNC_KEY)
    assert status.status == SyncStatus.WARNING
    assert status.status_message == "Sync completed but 0 plates found."


@pytest.mark.asyncio
async def test_full_run_crawls_every_station(store, sample_roster, make_orchestrator):
    await store.save_station_roster("mvdis_stations", sample_roster)
    session = FakeBrowserSession(result_sets=[
        [result_page([("AAA-0001", "1000")])],   # 20 private
        [result_page([("BBB-0001", "2000")])],   # 21 private
        [result_page([("BBB-0002", "3000")])],   # 21 rental
    ])

    stats = await make_orchestrator(session).run()

    assert stats.status == SyncStatus.COMPLETED
    assert stats.stations_success == 3
    assert stats.total_plates == 3
    assert session.submits == 5
    assert await store.count_production() == 3


@pytest.mark.asyncio
async def test_shard_run_only_touches_own_partitions(store, sample_roster, make_orchestrator):
    await store.save_station_roster("mvdis_stations", sample_roster)
    await store.replace_partition("2", "21", [
        StagingRowCreate(plate_no="OTHER-1", price=1, region_id="2", station_id="21", plate_type=PlateType.PRIVATE)
    ])
    session = FakeBrowserSession(result_sets=[[result_page([("AAA-0001", "1000")])]])

    stats = await make_orchestrator(session, shard="A").run()

    assert stats.status == SyncStatus.COMPLETED
    assert stats.shard == "A"
    assert set(stats.station_stats) == {"2-20", "3-30"}

    # Shard B's partition survives, nothing is published
    assert await store.count_staging("2", "21") == 1
    assert await store.count_staging("2", "20") == 1
    assert await store.count_production() == 0

    assert (await store.get_status(shard_sync_key("A"))).status == SyncStatus.COMPLETED
    assert await store.get_status(FULL_SYNC_KEY) is None

import json
import pytest
from core.exceptions import StationConfigError
from crawler.store import load_roster_file
from models.base import PlateType, SyncStatus
from models.plates import AvailablePlate
from models.system_config import SystemConfig
from schemas.plates import StagingRowCreate


@pytest.mark.asyncio
async def test_load_station_roster_from_config(store, db_session, sample_roster):
    db_session.add(SystemConfig(key="mvdis_stations", value=sample_roster))
    await db_session.commit()

    roster = await store.load_station_roster("mvdis_stations")

    assert roster.total_stations == 3


@pytest.mark.asyncio
async def test_missing_roster_is_config_error(store):
    with pytest.raises(StationConfigError) as exc_info:
        await store.load_station_roster("mvdis_stations")
    assert exc_info.value.context["config_key"] == "mvdis_stations"


@pytest.mark.asyncio
async def test_save_station_roster_upserts(store, sample_roster):
    await store.save_station_roster("mvdis_stations", sample_roster[:1])
    await store.save_station_roster("mvdis_stations", sample_roster)

    roster = await store.load_station_roster("mvdis_stations")
    assert len(roster) == 2


def test_load_roster_file(tmp_path, sample_roster):
    path = tmp_path / "stations.json"
    path.write_text(json.dumps(sample_roster, ensure_ascii=False), encoding="utf-8")

    assert load_roster_file(str(path)).total_stations == 3


def test_load_roster_file_unreadable(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StationConfigError):
        load_roster_file(str(path))


@pytest.mark.asyncio
async def test_report_status_overwrites_single_record(store):
    await store.report_status("plates_sync_shard_A", SyncStatus.RUNNING, "Starting")
    first = (await store.get_status("plates_sync_shard_A")).last_run_at

    await store.report_status("plates_sync_shard_A", SyncStatus.COMPLETED)

    record = await store.get_status("plates_sync_shard_A")
    assert record.status == SyncStatus.COMPLETED
    assert record.status_message is None
    assert record.last_run_at >= first
    assert len(await store.list_statuses()) == 1


@pytest.mark.asyncio
async def test_save_run_inserts_then_updates(store):
    record = {"run_id": "run-1", "shard": None, "status": SyncStatus.RUNNING, "total_plates": 0}
    await store.save_run(record)
    await store.save_run({**record, "status": SyncStatus.COMPLETED, "total_plates": 12})

    runs = await store.recent_runs()
    assert len(runs) == 1
    assert runs[0].status == SyncStatus.COMPLETED
    assert runs[0].total_plates == 12


@pytest.mark.asyncio
async def test_clear_staging_and_counts(store):
    rows = [
        StagingRowCreate(plate_no=f"P-{i}", price=i, region_id="2", station_id=sid, plate_type=PlateType.PRIVATE)
        for i, sid in enumerate(["20", "20", "21"])
    ]
    await store.replace_partition("2", "20", rows[:2])
    await store.replace_partition("2", "21", rows[2:])

    assert await store.count_staging() == 3
    assert await store.count_staging("2", "20") == 2

    await store.clear_staging()
    assert await store.count_staging() == 0


@pytest.mark.asyncio
async def test_station_workload_busiest_first(store, db_session):
    for i in range(3):
        db_session.add(AvailablePlate(region_id="2", station_id="21", station_name="士林監理站",
                                      plate_type="g", window_id="01", plate_no=f"B-{i}", price=0))
    db_session.add(AvailablePlate(region_id="2", station_id="20", station_name="臺北市區監理所",
                                  plate_type="g", window_id="01", plate_no="A-0", price=0))
    await db_session.commit()

    workload = await store.station_workload()

    assert workload == [("2", "21", "士林監理站", 3), ("2", "20", "臺北市區監理所", 1)]

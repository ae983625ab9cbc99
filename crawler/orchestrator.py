# ============================================================================
# File: crawler/orchestrator.py
# Description: Station-by-station crawl with staged publishing
# ============================================================================
"""
Station Orchestrator - drives one worker run over the station roster.

Flow per run:
1. Report RUNNING on the run's sync key
2. Load the roster (optionally narrowed to one shard)
3. Full runs only: clear the whole staging area
4. For each department → station → plate type:
   navigate → CAPTCHA loop → paginate, then stage the station's partition
5. Full runs only: guarded swap into the production view
6. Persist RunStats and the final SyncMetadata status (also on failure)

Error handling:
- Wrong CAPTCHA / page timeout / solver overload: retried inside their loops
- Query retry budget exhausted, broken result walk or page error: query failed,
  station continues
- Navigation retries exhausted: station failed, run continues
- Closed page or crashed browser: run FAILED
- Roster/config failure or anything uncaught: run FAILED
"""

import time
import uuid
from typing import AsyncContextManager, Callable, List, Optional
import logging

from core.config import Settings, settings as default_settings
from core.exceptions import (
    BrowserClosedError,
    BrowserError,
    NonRetryableError,
    StagingError,
    StoreError,
)
from crawler.browser import BrowserSession
from crawler.captcha_loop import CaptchaRetryLoop
from crawler.context import QueryContext, QueryOutcome, QueryResult
from crawler.navigator import StationFormNavigator
from crawler.pacing import Pacer
from crawler.paginator import ResultPaginator
from crawler.publisher import StagingPublisher
from crawler.rate_limiter import RateLimiter
from crawler.solvers.base import CaptchaSolver
from crawler.stats import SyncStats
from crawler.store import PlateStore, load_roster_file
from models.base import StationStatus, SyncStatus
from models.sync_metadata import sync_key
from schemas.stations import Roster, Station

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[BrowserSession]]


class StationOrchestrator:
    """
    One worker run over the roster, full or shard-scoped.

    Only full runs (shard=None) clear staging up front and swap at the end.
    Shard runs leave the swap to the finalizer, which waits for every
    shard's key to report a terminal status.
    """

    def __init__(
        self,
        store: PlateStore,
        session_factory: SessionFactory,
        solver_factory: Callable[[], CaptchaSolver],
        shard: Optional[str] = None,
        config: Optional[Settings] = None,
        pacer: Optional[Pacer] = None,
        limiter: Optional[RateLimiter] = None,
        run_id: Optional[str] = None
    ):
        self.config = config or default_settings
        self.store = store
        self.session_factory = session_factory
        self.solver_factory = solver_factory
        self.shard = shard
        self.sync_key = sync_key(shard)
        self.run_id = run_id or f"{self.sync_key}_{uuid.uuid4().hex[:12]}"

        self.pacer = pacer or Pacer()
        self.limiter = limiter or RateLimiter(
            self.config.SOLVER_RATE_LIMIT,
            self.config.SOLVER_RATE_INTERVAL_MS,
            self.config.RATE_LIMIT_MARGIN_MS
        )
        self.navigator = StationFormNavigator(
            self.pacer,
            self.config.PORTAL_URL,
            navigation_timeout_ms=self.config.NAVIGATION_TIMEOUT_MS,
            navigation_retries=self.config.NAVIGATION_RETRIES
        )
        self.paginator = ResultPaginator(self.pacer, max_pages=self.config.MAX_RESULT_PAGES)
        self.publisher = StagingPublisher(store)
        self.captcha_loop: Optional[CaptchaRetryLoop] = None

    def build_captcha_loop(self, solver: CaptchaSolver) -> CaptchaRetryLoop:
        return CaptchaRetryLoop(
            solver,
            self.limiter,
            self.pacer,
            max_attempts=self.config.MAX_QUERY_ATTEMPTS,
            max_solve_attempts=self.config.MAX_SOLVE_ATTEMPTS,
            result_wait_timeout_ms=self.config.RESULT_WAIT_TIMEOUT_MS,
            overload_cooldown_sec=self.config.SOLVER_OVERLOAD_COOLDOWN_SEC
        )

    @property
    def is_full_run(self) -> bool:
        return self.shard is None

    async def load_roster(self) -> Roster:
        if self.config.STATION_CONFIG_PATH:
            roster = load_roster_file(self.config.STATION_CONFIG_PATH)
        else:
            roster = await self.store.load_station_roster(self.config.STATION_CONFIG_KEY)
        return roster.for_shard(self.shard)

    async def heartbeat(self, message: str):
        """Best-effort RUNNING update; a missed heartbeat does not stop the crawl."""
        try:
            await self.store.report_status(self.sync_key, SyncStatus.RUNNING, message)
        except StoreError as e:
            logger.warning(f"Heartbeat failed: {e.message}")

    async def run(self) -> SyncStats:
        """
        Execute the run and persist its outcome.

        Returns:
            SyncStats with final status; FAILED means the process should exit 1
        """
        stats = SyncStats(self.run_id, self.shard)
        status = SyncStatus.FAILED
        message: Optional[str] = None
        solver: Optional[CaptchaSolver] = None

        logger.info(f"Starting run {self.run_id} ({'full sync' if self.is_full_run else f'shard {self.shard}'})")

        try:
            await self.store.report_status(self.sync_key, SyncStatus.RUNNING, "Starting")

            solver = self.solver_factory()
            self.captcha_loop = self.build_captcha_loop(solver)

            roster = await self.load_roster()
            logger.info(f"Loaded {roster.total_stations} stations in {len(roster)} departments")

            if self.is_full_run:
                await self.store.clear_staging()

            if roster.total_stations == 0:
                logger.warning("No stations to process")
            else:
                async with self.session_factory() as session:
                    await self.crawl(session, roster, stats)

            if self.is_full_run:
                result = await self.publisher.publish()
                status, message = result.status, result.message
            else:
                status = SyncStatus.COMPLETED

        except Exception as e:
            logger.exception(f"Run {self.run_id} failed: {e}")
            stats.add_error(f"Run failed: {e}")
            status = SyncStatus.FAILED
            message = getattr(e, "message", None) or str(e)

        if solver is not None:
            try:
                await solver.close()
            except Exception as e:
                logger.error(f"Failed to close CAPTCHA solver: {e}")

        stats.finish(status)
        await stats.save(self.store)
        try:
            await self.store.report_status(self.sync_key, status, message)
        except StoreError as e:
            logger.error(f"Failed to report final status: {e}")
        stats.log_summary()
        return stats

    async def crawl(self, session: BrowserSession, roster: Roster, stats: SyncStats):
        for dept_index, (region_id, stations) in enumerate(roster):
            if dept_index > 0:
                await self.pacer.random_sleep(1500, 2500)

            logger.info(f"=== Department {region_id}: {len(stations)} stations ===")

            for station_index, station in enumerate(stations):
                if station_index > 0:
                    await self.pacer.random_sleep(1000, 2000)
                await self.heartbeat(f"Processing {station.name} ({region_id}/{station.station_id})")
                await self.process_station(session, station, stats)

    async def process_station(self, session: BrowserSession, station: Station, stats: SyncStats) -> StationStatus:
        started = time.monotonic()
        results: List[QueryResult] = []
        failed = False

        logger.info(f"--- Station {station.name} ({station.region_id}/{station.station_id}) ---")

        for query_index, query in enumerate(station.plate_queries()):
            if query_index > 0:
                await self.pacer.random_sleep(1000, 2000)

            ctx = QueryContext.for_station(
                station,
                query,
                self.config.DEFAULT_LATENCY_MS,
                self.config.HIGH_RISK_LATENCY_MS
            )

            try:
                result = await self.run_query(session, ctx, stats)
            except BrowserClosedError:
                raise
            except BrowserError as e:
                logger.error(f"[Fail] {ctx.describe()}: {e.message}")
                stats.add_error(f"{ctx.describe()}: {e.message}")
                results.append(QueryResult(ctx, QueryOutcome.FAILED, error=e.message))
                failed = True
                # Portal unreachable: skip the station's remaining plate types
                if isinstance(e, NonRetryableError):
                    break
                continue

            results.append(result)
            if result.outcome is QueryOutcome.FAILED:
                failed = True

        plates = 0
        try:
            plates = await self.publisher.stage_station(station, results)
        except StagingError as e:
            logger.error(f"[Staging] {station.name}: {e}")
            stats.add_error(f"{station.name}: {e.message}")
            failed = True
        stats.add_plates(plates)

        status = StationStatus.FAILED if failed else StationStatus.SUCCESS
        stats.record_station(
            station.region_id,
            station.station_id,
            station.name,
            status,
            plates=plates,
            duration_sec=time.monotonic() - started,
            retries=sum(result.context.retries for result in results)
        )
        logger.info(f"[Station] {station.name}: {status.value}, {plates} plates")
        return status

    async def run_query(self, session: BrowserSession, ctx: QueryContext, stats: SyncStats) -> QueryResult:
        """Navigate, get past the CAPTCHA and collect every result page for one PlateQuery."""
        logger.info(f"[Query] {ctx.describe()}")

        if not await self.navigator.prepare(session, ctx):
            return QueryResult(ctx, QueryOutcome.SKIPPED)

        if not await self.captcha_loop.run(session, ctx, stats):
            error = f"CAPTCHA not accepted after {ctx.attempts} attempts"
            logger.error(f"[Fail] {ctx.describe()}: {error}")
            stats.add_error(f"{ctx.describe()}: {error}")
            return QueryResult(ctx, QueryOutcome.FAILED, error=error)

        records = await self.paginator.collect(session)
        logger.info(f"[Success] {ctx.describe()}: {len(records)} plates collected")
        return QueryResult(ctx, QueryOutcome.ACCEPTED, records)

"""
Drives the query form through its dependent dropdowns for one PlateQuery.
"""

import time
import logging

from core.exceptions import BrowserClosedError, BrowserError, NavigationError
from crawler import portal
from crawler.browser import BrowserSession
from crawler.context import QueryContext
from crawler.pacing import Pacer

logger = logging.getLogger(__name__)


class StationFormNavigator:
    """
    Region → station → service window → vehicle class → energy class → plate type.

    Each selection triggers the portal to repopulate the next dropdown, so
    selections are paced with adaptive, human-like pauses. Reaching the query
    page is retried with growing backoff; running out of attempts raises
    NavigationError, which ends the current station.
    """

    def __init__(
        self,
        pacer: Pacer,
        portal_url: str,
        navigation_timeout_ms: int = 180000,
        navigation_retries: int = 3,
        window_wait_timeout_ms: int = 10000
    ):
        self.pacer = pacer
        self.portal_url = portal_url
        self.navigation_timeout_ms = navigation_timeout_ms
        self.navigation_retries = navigation_retries
        self.window_wait_timeout_ms = window_wait_timeout_ms

    async def open_query_page(self, session: BrowserSession, ctx: QueryContext):
        """Load the portal form, recording the round trip as the new latency estimate."""
        for attempt in range(1, self.navigation_retries + 1):
            try:
                started = time.monotonic()
                await session.navigate(self.portal_url, self.navigation_timeout_ms)
                ctx.latency_ms = (time.monotonic() - started) * 1000
                logger.debug(f"[Network] Latency: {ctx.latency_ms:.0f}ms")
                return
            except BrowserClosedError:
                raise
            except BrowserError as e:
                logger.warning(f"[Network] Navigation attempt {attempt} failed: {e.message}")
                if attempt >= self.navigation_retries:
                    raise NavigationError(
                        f"Query page unreachable after {attempt} attempts",
                        context={
                            "url": self.portal_url,
                            "attempts": attempt,
                            "region_id": ctx.query.region_id,
                            "station_id": ctx.query.station_id,
                            "plate_type": ctx.query.plate_type.value
                        },
                        original_exception=e
                    )
                await self.pacer.random_sleep(2000 * attempt, 5000 * attempt)

    async def _select_window(self, session: BrowserSession, ctx: QueryContext):
        try:
            await session.wait_for_selector(portal.window_option(ctx.query.window_id), self.window_wait_timeout_ms)
            await session.select(portal.WINDOW_SELECT, ctx.query.window_id)
        except BrowserClosedError:
            raise
        except BrowserError:
            # Window codes differ per station; fall back to the first real option
            fallback = await session.evaluate(portal.SELECT_FIRST_WINDOW_SCRIPT)
            if fallback:
                logger.info(f"Window {ctx.query.window_id} not offered, using {fallback}")
                ctx.window_id = str(fallback)

    async def prepare(self, session: BrowserSession, ctx: QueryContext) -> bool:
        """
        Bring the form to the CAPTCHA step for this query.

        Returns:
            False when the station does not offer the requested plate type

        Raises:
            NavigationError: If the query page could not be reached
        """
        query = ctx.query

        await self.open_query_page(session, ctx)
        await self.pacer.adaptive_sleep(800, 1500, ctx.latency_ms)

        await session.select(portal.DEPARTMENT_SELECT, query.region_id)
        await self.pacer.adaptive_sleep(800, 1200, ctx.latency_ms)

        await session.select(portal.STATION_SELECT, query.station_id)
        await self.pacer.adaptive_sleep(800, 1200, ctx.latency_ms)

        await self._select_window(session, ctx)
        await self.pacer.adaptive_sleep(600, 1000, ctx.latency_ms)

        await session.select(portal.CAR_TYPE_SELECT, portal.CAR_TYPE_VALUE)
        await self.pacer.adaptive_sleep(400, 800, ctx.latency_ms)

        await session.select(portal.ENERGY_TYPE_SELECT, portal.ENERGY_TYPE_VALUE)
        await self.pacer.adaptive_sleep(800, 1500, ctx.latency_ms)

        if not await session.exists(portal.plate_type_option(query.plate_type.value)):
            logger.info(f"[Skip] Plate type {query.plate_type.value} not available.")
            return False

        await session.select(portal.PLATE_TYPE_SELECT, query.plate_type.value)
        await self.pacer.adaptive_sleep(600, 1000, ctx.latency_ms)
        return True

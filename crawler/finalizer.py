"""
Shard finalizer: waits for every shard worker to finish, then publishes.
"""

import asyncio
import time
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Sequence
import logging

from core.exceptions import FinalizerError
from crawler.publisher import PublishResult, StagingPublisher
from crawler.store import PlateStore
from models.base import SyncStatus
from models.sync_metadata import FULL_SYNC_KEY, shard_sync_key

logger = logging.getLogger(__name__)


class SwapFinalizer:
    def __init__(
        self,
        store: PlateStore,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        self.store = store
        self.publisher = StagingPublisher(store)
        self._sleep = sleep
        self._clock = clock

    async def pending_shards(self, shards: Sequence[str], since: Optional[datetime]) -> Dict[str, str]:
        """Shards without a terminal status reported at or after `since`, with the reason."""
        pending = {}
        for shard in shards:
            record = await self.store.get_status(shard_sync_key(shard))
            if record is None:
                pending[shard] = "never reported"
            elif not record.status.is_terminal:
                pending[shard] = record.status.value
            elif since is not None and record.last_run_at < since:
                pending[shard] = f"stale ({record.last_run_at.isoformat()})"
        return pending

    async def wait_for_shards(
        self,
        shards: Sequence[str],
        since: Optional[datetime] = None,
        wait_timeout: float = 3600,
        poll_interval: float = 30
    ):
        """
        Raises:
            FinalizerError: If a shard is still pending when the timeout expires
        """
        deadline = self._clock() + wait_timeout

        while True:
            pending = await self.pending_shards(shards, since)
            if not pending:
                logger.info(f"All {len(shards)} shards reported")
                return

            if self._clock() >= deadline:
                raise FinalizerError(
                    "Timed out waiting for shard workers",
                    context={"pending_shards": pending, "wait_timeout": wait_timeout}
                )

            logger.info(f"Waiting on {len(pending)} shards: {', '.join(sorted(pending))}")
            await self._sleep(poll_interval)

    async def finalize(
        self,
        shards: Optional[List[str]] = None,
        since: Optional[datetime] = None,
        wait_timeout: float = 3600,
        poll_interval: float = 30
    ) -> PublishResult:
        """
        Wait for the shards (if any are named), then run the guarded swap.

        A timeout is recorded as WARNING on the full-sync key and re-raised;
        no swap happens.
        """
        if shards:
            try:
                await self.wait_for_shards(shards, since, wait_timeout, poll_interval)
            except FinalizerError as e:
                await self.store.report_status(
                    FULL_SYNC_KEY,
                    SyncStatus.WARNING,
                    f"Swap not attempted: shards pending {sorted(e.context['pending_shards'])}"
                )
                raise

            failed = []
            for shard in shards:
                record = await self.store.get_status(shard_sync_key(shard))
                if record.status == SyncStatus.FAILED:
                    failed.append(shard)
            if failed:
                logger.warning(f"Shards finished with FAILED status: {', '.join(failed)}")

        result = await self.publisher.publish()
        if not result.swapped:
            await self.store.report_status(FULL_SYNC_KEY, result.status, result.message)
        return result

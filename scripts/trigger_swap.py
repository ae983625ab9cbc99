"""
Publish staging into the production view once every shard worker has finished.

    python scripts/trigger_swap.py                       # swap now (guarded)
    python scripts/trigger_swap.py --shards A,B,C --wait-timeout 7200
"""

import argparse
import asyncio
import sys
import os
import logging
from datetime import datetime, timedelta

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import async_session_maker
from core.exceptions import SyncException
from core.logging import setup_logging
from crawler.finalizer import SwapFinalizer
from crawler.store import PlateStore

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Atomic swap of staging into production")
    parser.add_argument("--shards", default="", help="Comma separated shard labels to wait for")
    parser.add_argument("--wait-timeout", type=float, default=3600, help="Seconds to wait for shards")
    parser.add_argument("--poll-interval", type=float, default=30, help="Seconds between status polls")
    parser.add_argument(
        "--since-minutes",
        type=float,
        default=None,
        help="Only accept shard statuses reported within this many minutes"
    )
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging()

    shards = [s.strip() for s in args.shards.split(",") if s.strip()]
    since = datetime.utcnow() - timedelta(minutes=args.since_minutes) if args.since_minutes else None

    logger.info("Starting atomic swap...")
    try:
        async with async_session_maker() as db:
            result = await SwapFinalizer(PlateStore(db)).finalize(
                shards=shards,
                since=since,
                wait_timeout=args.wait_timeout,
                poll_interval=args.poll_interval
            )
    except SyncException as e:
        logger.error(f"Swap failed: {e}")
        return 1

    if result.swapped:
        logger.info(f"Swap successful: {result.staged_rows} plates published")
    else:
        logger.warning(f"Swap skipped: {result.message}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

"""
Run one crawl worker.

    python scripts/run_sync.py              # every station, clear staging, swap
    python scripts/run_sync.py --shard A    # shard A only, swap left to trigger_swap.py

Exit code 0 on normal completion (including failed stations), 1 on a fatal failure.
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.exceptions import SyncException
from core.logging import setup_logging
from crawler.worker import run_worker
from models.base import SyncStatus

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Crawl plate availability into staging")
    parser.add_argument("--shard", default=None, help="Only process stations assigned to this shard label")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging()

    try:
        stats = await run_worker(shard=args.shard)
    except SyncException as e:
        logger.error(f"Fatal: {e}")
        return 1

    return 1 if stats.status == SyncStatus.FAILED else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

"""
Plates per station in the production view, busiest first.
Useful for rebalancing shard assignments.
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import async_session_maker
from core.exceptions import SyncException
from core.logging import setup_logging
from crawler.store import PlateStore

logger = logging.getLogger(__name__)


def format_workload(rows) -> str:
    lines = ["--- Station Workload (Plate Count) ---"]
    total = 0
    for region_id, station_id, name, count in rows:
        label = f"{region_id}/{station_id}: {name or 'Unknown'}"
        lines.append(f"{label:<30} : {count} plates")
        total += count
    lines.append("-" * 38)
    lines.append(f"Total Stations: {len(rows)}")
    lines.append(f"Total Plates: {total}")
    return "\n".join(lines)


async def main() -> int:
    setup_logging()
    try:
        async with async_session_maker() as db:
            rows = await PlateStore(db).station_workload()
    except SyncException as e:
        logger.error(f"Database Error: {e}")
        return 1

    if not rows:
        print("No plates found in available_plates table.")
        return 0

    print(format_workload(rows))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

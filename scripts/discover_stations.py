"""
Walk the portal's dropdowns and print (optionally save) a station roster.

    python scripts/discover_stations.py --departments 2,3 --save
"""

import argparse
import asyncio
import json
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import async_session_maker
from core.exceptions import SyncException
from core.logging import setup_logging
from crawler.browser import PlaywrightSession
from crawler.discovery import DEFAULT_DEPARTMENTS, StationDiscovery, build_roster
from crawler.pacing import Pacer
from crawler.store import PlateStore

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Discover stations and their plate types")
    parser.add_argument("--departments", default=",".join(DEFAULT_DEPARTMENTS), help="Comma separated region codes")
    parser.add_argument("--save", action="store_true", help=f"Store the roster under {settings.STATION_CONFIG_KEY}")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging()
    departments = [d.strip() for d in args.departments.split(",") if d.strip()]

    try:
        async with PlaywrightSession.launch() as session:
            found = await StationDiscovery(Pacer(), settings.PORTAL_URL).discover(session, departments)

        roster = build_roster(found)
        print(json.dumps(roster, ensure_ascii=False, indent=2))

        if args.save:
            async with async_session_maker() as db:
                await PlateStore(db).save_station_roster(settings.STATION_CONFIG_KEY, roster)
            logger.info(f"Roster saved under {settings.STATION_CONFIG_KEY}")
    except SyncException as e:
        logger.error(f"Discovery failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

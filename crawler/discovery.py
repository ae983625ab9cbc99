"""
Walks the portal's dropdowns to find which stations offer which plate types.

The output can be saved as the station roster.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence
import logging

from core.exceptions import BrowserClosedError, BrowserError
from crawler import portal
from crawler.browser import BrowserSession
from crawler.pacing import Pacer
from models.base import PlateType

logger = logging.getLogger(__name__)

DEFAULT_DEPARTMENTS = ("2", "3", "4", "5", "6", "7", "8")


@dataclass
class WindowOptions:
    region_id: str
    station_id: str
    station_name: str
    window_id: str
    private: bool
    rental: bool


def build_roster(found: Sequence[WindowOptions]) -> List[Dict[str, Any]]:
    """
    Collapse per-window findings into a roster document.

    A station supports rental if any of its windows offers the rental option.
    """
    departments: Dict[str, Dict[str, Dict[str, Any]]] = {}
    for option in found:
        stations = departments.setdefault(option.region_id, {})
        entry = stations.setdefault(
            option.station_id,
            {"id": option.station_id, "name": option.station_name, "no_rental": True}
        )
        if option.rental:
            entry["no_rental"] = False

    return [
        {"id": region_id, "stations": list(stations.values())}
        for region_id, stations in departments.items()
    ]


class StationDiscovery:
    def __init__(self, pacer: Pacer, portal_url: str, navigation_timeout_ms: int = 60000):
        self.pacer = pacer
        self.portal_url = portal_url
        self.navigation_timeout_ms = navigation_timeout_ms

    async def options(self, session: BrowserSession, selector: str) -> List[Dict[str, str]]:
        return await session.evaluate(portal.SELECT_OPTIONS_SCRIPT, selector) or []

    async def discover(
        self,
        session: BrowserSession,
        departments: Sequence[str] = DEFAULT_DEPARTMENTS
    ) -> List[WindowOptions]:
        await session.navigate(self.portal_url, self.navigation_timeout_ms)
        found: List[WindowOptions] = []

        for region_id in departments:
            await session.select(portal.DEPARTMENT_SELECT, region_id)
            await self.pacer.sleep_ms(1500)

            stations = await self.options(session, portal.STATION_SELECT)
            logger.info(f"Dept {region_id}: Found {len(stations)} stations.")

            for station in stations:
                try:
                    found.extend(await self.discover_station(session, region_id, station))
                except BrowserClosedError:
                    raise
                except BrowserError as e:
                    logger.error(f"  Error checking station {station['value']}: {e.message}")

        return found

    async def discover_station(
        self,
        session: BrowserSession,
        region_id: str,
        station: Dict[str, str]
    ) -> List[WindowOptions]:
        station_id = station["value"]
        await session.select(portal.STATION_SELECT, station_id)
        await self.pacer.sleep_ms(2000)

        windows = await self.options(session, portal.WINDOW_SELECT)
        logger.info(f"  [Station {station_id}] Found {len(windows)} windows.")

        found = []
        for window in windows:
            window_id = window["value"]
            try:
                await session.select(portal.WINDOW_SELECT, window_id)
                await self.pacer.sleep_ms(1000)
                await session.select(portal.CAR_TYPE_SELECT, portal.CAR_TYPE_VALUE)
                await session.select(portal.ENERGY_TYPE_SELECT, portal.ENERGY_TYPE_VALUE)
                await self.pacer.sleep_ms(1500)

                plate_types = {o["value"] for o in await self.options(session, portal.PLATE_TYPE_SELECT)}
            except BrowserClosedError:
                raise
            except BrowserError as e:
                logger.warning(f"    - Window {window_id}: Error checking options ({e.message})")
                continue

            if not plate_types:
                continue

            option = WindowOptions(
                region_id=region_id,
                station_id=station_id,
                station_name=station["label"],
                window_id=window_id,
                private=PlateType.PRIVATE.value in plate_types,
                rental=PlateType.RENTAL.value in plate_types
            )
            logger.info(f"    - Window {window_id}: g={option.private}, h={option.rental}")
            found.append(option)

        return found

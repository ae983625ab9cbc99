"""
Station roster schemas.

The roster is loaded once per run from the store (or a JSON file) as a
loosely-typed document and parsed here into immutable Station and
PlateQuery values. Malformed entries are rejected up front with a
StationConfigError naming the entry, rather than failing mid-crawl.
"""

from pydantic import BaseModel, Field, ValidationError, validator
from typing import Any, Dict, Iterator, List, Optional, Tuple
from core.exceptions import StationConfigError
from models.base import PlateType, RiskTier

# Stations known to be slow or high traffic, requiring slower interaction
HIGH_RISK_STATION_IDS = frozenset({
    "20", "21",                          # Taipei City, Shilin
    "25", "26", "28",                    # Keelung, Kinmen, Lienchiang
    "40", "43", "44",                    # New Taipei, Yilan, Hualien
    "52", "54",                          # Taoyuan, Miaoli
    "60", "63", "64", "65",              # Taichung area
    "70", "72", "73", "74", "75", "76",  # Chiayi / Tainan / Yunlin
    "80", "81", "82", "83", "84",        # Kaohsiung / Pingtung / Taitung / Penghu
})

DEFAULT_WINDOW_ID = "01"


class PlateQuery(BaseModel):
    """One navigable form-state combination that yields a result listing."""
    region_id: str
    station_id: str
    plate_type: PlateType
    window_id: str = DEFAULT_WINDOW_ID

    class Config:
        frozen = True


class Station(BaseModel):
    """An administrative office endpoint within the portal."""
    region_id: str
    station_id: str
    name: str
    supports_rental: bool = True
    risk_tier: RiskTier = RiskTier.NORMAL
    shard_label: Optional[str] = None

    class Config:
        frozen = True

    @property
    def partition(self) -> Tuple[str, str]:
        return (self.region_id, self.station_id)

    @property
    def is_high_risk(self) -> bool:
        return self.risk_tier == RiskTier.HIGH

    def plate_queries(self) -> List[PlateQuery]:
        """Private plates always, rental plates only where the station offers them."""
        plate_types = [PlateType.PRIVATE]
        if self.supports_rental:
            plate_types.append(PlateType.RENTAL)
        return [
            PlateQuery(
                region_id=self.region_id,
                station_id=self.station_id,
                plate_type=plate_type
            )
            for plate_type in plate_types
        ]


# ============================================================================
# Raw roster entries
# ============================================================================

class StationEntry(BaseModel):
    """Raw station entry as stored in the roster document."""
    id: str = Field(..., min_length=1, max_length=10)
    name: str = Field(..., min_length=1, max_length=100)
    shard: Optional[str] = None
    no_rental: Optional[bool] = None
    supports_rental: Optional[bool] = None
    risk_tier: Optional[RiskTier] = None

    @validator("id", "shard", pre=True)
    def coerce_code(cls, v):
        """Station codes and shard labels arrive as numbers or strings"""
        if v is None:
            return v
        return str(v).strip()

    @validator("name")
    def clean_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Station name cannot be empty")
        return v

    def to_station(self, region_id: str) -> Station:
        if self.supports_rental is not None:
            supports_rental = self.supports_rental
        else:
            supports_rental = not bool(self.no_rental)

        risk_tier = self.risk_tier
        if risk_tier is None:
            risk_tier = RiskTier.HIGH if self.id in HIGH_RISK_STATION_IDS else RiskTier.NORMAL

        return Station(
            region_id=region_id,
            station_id=self.id,
            name=self.name,
            supports_rental=supports_rental,
            risk_tier=risk_tier,
            shard_label=self.shard or None
        )


class DepartmentEntry(BaseModel):
    """Raw department (region) entry with its stations."""
    id: str = Field(..., min_length=1, max_length=10)
    name: Optional[str] = None
    stations: List[StationEntry] = Field(default_factory=list)

    @validator("id", pre=True)
    def coerce_code(cls, v):
        if v is None:
            return v
        return str(v).strip()


# ============================================================================
# Parsed roster
# ============================================================================

class Roster:
    """Ordered departments → stations, optionally narrowed to a shard."""

    def __init__(self, departments: Dict[str, List[Station]]):
        self.departments = departments

    def __iter__(self) -> Iterator[Tuple[str, List[Station]]]:
        return iter(self.departments.items())

    def __len__(self) -> int:
        return len(self.departments)

    @property
    def total_stations(self) -> int:
        return sum(len(stations) for stations in self.departments.values())

    @property
    def shard_labels(self) -> List[str]:
        labels = []
        for stations in self.departments.values():
            for station in stations:
                if station.shard_label and station.shard_label not in labels:
                    labels.append(station.shard_label)
        return labels

    def for_shard(self, shard: Optional[str]) -> "Roster":
        """Stations assigned to one shard; departments left empty are dropped."""
        if shard is None:
            return self

        departments = {}
        for region_id, stations in self.departments.items():
            selected = [s for s in stations if s.shard_label == shard]
            if selected:
                departments[region_id] = selected
        return Roster(departments)


def parse_roster(raw: Any, source: str = "roster") -> Roster:
    """
    Validate a raw roster document.

    Args:
        raw: List of department dicts, each with "id" and "stations"
        source: Config key or file path, for error context

    Returns:
        Parsed Roster

    Raises:
        StationConfigError: If the document or any entry is malformed
    """
    if not isinstance(raw, list):
        raise StationConfigError(
            "Station roster must be a list of departments",
            context={"config_key": source, "found_type": type(raw).__name__}
        )

    departments: Dict[str, List[Station]] = {}

    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise StationConfigError(
                "Department entry must be an object",
                context={"config_key": source, "entry_index": index}
            )

        try:
            department = DepartmentEntry(**entry)
        except ValidationError as e:
            raise StationConfigError(
                "Invalid department entry in station roster",
                context={
                    "config_key": source,
                    "entry_index": index,
                    "department_id": entry.get("id"),
                    "field_errors": e.errors()
                },
                original_exception=e
            )

        stations = departments.setdefault(department.id, [])
        seen = {s.station_id for s in stations}

        for station_entry in department.stations:
            if station_entry.id in seen:
                raise StationConfigError(
                    "Duplicate station in department",
                    context={
                        "config_key": source,
                        "department_id": department.id,
                        "station_id": station_entry.id
                    }
                )
            seen.add(station_entry.id)
            stations.append(station_entry.to_station(department.id))

    return Roster(departments)

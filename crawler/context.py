"""
Per-query crawl state.

Everything the nested navigation / CAPTCHA / pagination loops need to
share about one PlateQuery lives on a QueryContext that is passed into
each stage, instead of being captured from an enclosing scope.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from schemas.plates import PlateRecord
from schemas.stations import PlateQuery, Station


class QueryOutcome(str, Enum):
    ACCEPTED = "ACCEPTED"   # CAPTCHA accepted, results collected
    SKIPPED = "SKIPPED"     # plate type not offered at this station
    FAILED = "FAILED"       # retry budget exhausted


@dataclass
class QueryContext:
    query: PlateQuery
    station_name: str
    latency_ms: float
    window_id: str = ""
    attempts: int = 0
    solve_attempts: int = 0

    def __post_init__(self):
        if not self.window_id:
            self.window_id = self.query.window_id

    @classmethod
    def for_station(
        cls,
        station: Station,
        query: PlateQuery,
        default_latency_ms: float,
        high_risk_latency_ms: float
    ) -> "QueryContext":
        """High-risk stations start from an inflated latency so the first interactions are already slow."""
        latency = high_risk_latency_ms if station.is_high_risk else default_latency_ms
        return cls(query=query, station_name=station.name, latency_ms=latency)

    @property
    def retries(self) -> int:
        return max(self.attempts - 1, 0)

    def describe(self) -> str:
        q = self.query
        return f"{self.station_name} ({q.region_id}/{q.station_id}, {q.plate_type.label})"


@dataclass
class QueryResult:
    context: QueryContext
    outcome: QueryOutcome
    records: List[PlateRecord] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.outcome is not QueryOutcome.FAILED

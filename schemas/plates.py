"""
Pydantic schemas for collected plates with validation
"""

from pydantic import BaseModel, Field, validator
from typing import Iterable, List
from datetime import datetime
from models.base import PlateStatus, PlateType


class PlateRecord(BaseModel):
    """
    One plate scraped from a result page.

    Ensures:
    - plate_no is trimmed and non-empty
    - price is a non-negative integer ("50,000元" -> 50000, garbage -> 0)
    """
    plate_no: str = Field(..., min_length=1, max_length=20)
    price: int = Field(0, ge=0)

    @validator("plate_no", pre=True)
    def clean_plate_no(cls, v):
        if v is None:
            return v
        return str(v).strip()

    @validator("price", pre=True)
    def parse_price(cls, v):
        """Parse the rendered price cell"""
        if v is None:
            return 0
        if isinstance(v, (int, float)):
            return max(int(v), 0)
        text = str(v).split("元")[0].replace(",", "").strip()
        try:
            return max(int(text), 0)
        except ValueError:
            return 0


class StagingRowCreate(PlateRecord):
    """PlateRecord enriched with its partition and query identity."""
    region_id: str
    station_id: str
    station_name: str = ""
    plate_type: PlateType
    window_id: str = "01"
    status: PlateStatus = PlateStatus.AVAILABLE
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        use_enum_values = True


def dedupe_plates(records: Iterable[PlateRecord]) -> List[PlateRecord]:
    """Deduplicate by plate_no; the last occurrence wins."""
    unique = {}
    for record in records:
        unique[record.plate_no] = record
    return list(unique.values())

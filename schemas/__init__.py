"""
Pydantic schemas for data validation and serialization.

Schemas:
    stations: Station roster documents → Station / PlateQuery values
    plates: Scraped plate rows and the staging rows built from them
    api: API endpoint response schemas

Usage:
    from schemas.stations import parse_roster, Station
    from schemas.plates import PlateRecord, StagingRowCreate
    from schemas.api import PlatesResponse, HealthCheckResponse

Example:
    # Price cells arrive as rendered text
    record = PlateRecord(plate_no=" ABC-1234 ", price="50,000元")
    assert record.plate_no == "ABC-1234"
    assert record.price == 50000

Validation:
    Roster entries are validated once when the roster is loaded; a bad
    entry raises StationConfigError naming the department and station.
    Unparseable result rows are dropped by the paginator.
"""

__all__ = [
    "PlateQuery",
    "Station",
    "Roster",
    "parse_roster",
    "PlateRecord",
    "StagingRowCreate",
    "PlatesResponse",
    "HealthCheckResponse",
    "StatsResponse",
]

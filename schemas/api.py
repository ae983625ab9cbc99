"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from models.base import SyncStatus

# ============================================================================
# Health Check Schemas
# ============================================================================


class SyncStatusInfo(BaseModel):
    """SyncMetadata record for a full or shard sync key"""
    key: str
    status: SyncStatus
    status_message: Optional[str] = None
    last_run_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True


def overall_health(database_connected: bool, statuses: List[SyncStatusInfo]) -> str:
    """healthy / degraded / unhealthy from DB reachability and the latest sync statuses."""
    if not database_connected:
        return "unhealthy"
    if not statuses:
        return "healthy"  # Nothing has run yet

    failed = sum(1 for s in statuses if s.status == SyncStatus.FAILED.value)
    if failed == 0:
        return "healthy"
    elif failed < len(statuses):
        return "degraded"
    return "unhealthy"


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    sync_statuses: List[SyncStatusInfo] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "sync_statuses": [
                    {
                        "key": "plates_full_sync",
                        "status": "COMPLETED",
                        "status_message": None,
                        "last_run_at": "2024-01-15T10:00:00Z"
                    }
                ]
            }
        }

# ============================================================================
# Plate Query Schemas
# ============================================================================


class PlateResponse(BaseModel):
    """One plate in the production view"""
    id: int
    region_id: str
    station_id: str
    station_name: Optional[str]
    plate_type: str
    window_id: str
    plate_no: str
    price: int
    status: str
    updated_at: datetime

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": 1,
                "region_id": "2",
                "station_id": "20",
                "station_name": "臺北市區監理所",
                "plate_type": "g",
                "window_id": "01",
                "plate_no": "ABC-1234",
                "price": 50000,
                "status": "AVAILABLE",
                "updated_at": "2024-01-15T10:30:00Z"
            }
        }


class PaginationMetadata(BaseModel):
    """Pagination metadata"""
    total_items: int
    total_pages: int
    current_page: int
    page_size: int
    has_next: bool
    has_previous: bool


class PlatesResponse(BaseModel):
    """Paginated plates response"""
    items: List[PlateResponse]
    pagination: PaginationMetadata
    filters_applied: Dict[str, Any] = Field(default_factory=dict)

# ============================================================================
# Statistics Schemas
# ============================================================================


class SyncRunSummary(BaseModel):
    run_id: str
    shard: Optional[str] = None
    status: SyncStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    runtime_sec: Optional[float] = None
    total_plates: int = 0
    stations_success: int = 0
    stations_failed: int = 0
    captcha_attempts: int = 0
    captcha_success: int = 0
    error_summary: Optional[str] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class StationWorkload(BaseModel):
    region_id: str
    station_id: str
    station_name: Optional[str] = None
    plates: int


class StatsResponse(BaseModel):
    """Statistics response model"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    production_plates: int
    staging_plates: int
    stations: List[StationWorkload] = Field(default_factory=list)
    recent_runs: List[SyncRunSummary] = Field(default_factory=list)
    request_id: Optional[str] = None

# ============================================================================
# Error Response Schema
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

from sqlalchemy import JSON
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# ENUMS
# ============================================================================

class SyncStatus(str, enum.Enum):
    """Run / sync key status"""
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    WARNING = "WARNING"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not SyncStatus.RUNNING


class StationStatus(str, enum.Enum):
    """Per-station outcome within a run"""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class PlateStatus(str, enum.Enum):
    """Plate listing status"""
    AVAILABLE = "AVAILABLE"


class PlateType(str, enum.Enum):
    """Plate type, valued by the portal's form option code"""
    PRIVATE = "g"
    RENTAL = "h"

    @property
    def label(self) -> str:
        return "Private (g)" if self is PlateType.PRIVATE else "Rental (h)"


class RiskTier(str, enum.Enum):
    """Station traffic tier"""
    NORMAL = "normal"
    HIGH = "high"

"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class and shared enums (SyncStatus, PlateType, ...)
    plates: Staging area and production view of available plates
    sync_log: Per-run statistics record
    sync_metadata: Current status per sync key (heartbeat)
    system_config: Key/value configuration documents (station roster)

Usage:
    from models.plates import AvailablePlate, AvailablePlateStaging
    from models.base import SyncStatus, PlateType

Tables:
    available_plates_staging -> available_plates (atomic swap)
"""

from models.base import Base, SyncStatus, StationStatus, PlateStatus, PlateType, RiskTier
from models.plates import AvailablePlate, AvailablePlateStaging
from models.sync_log import SyncLog
from models.sync_metadata import SyncMetadata, FULL_SYNC_KEY, shard_sync_key, sync_key
from models.system_config import SystemConfig

__all__ = [
    "Base",
    "SyncStatus",
    "StationStatus",
    "PlateStatus",
    "PlateType",
    "RiskTier",
    "AvailablePlate",
    "AvailablePlateStaging",
    "SyncLog",
    "SyncMetadata",
    "FULL_SYNC_KEY",
    "shard_sync_key",
    "sync_key",
    "SystemConfig",
]

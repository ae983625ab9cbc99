from sqlalchemy import Column, String, Enum, DateTime, Text
from datetime import datetime
from typing import Optional
from models.base import Base, SyncStatus


class SyncMetadata(Base):
    """
    Current status per sync key.

    Design:
    - One row per key: "plates_full_sync" or "plates_sync_shard_<label>"
    - Overwritten on every status transition; external monitors poll
      last_run_at as the worker heartbeat
    """
    __tablename__ = "sync_metadata"

    key = Column(String(100), primary_key=True)
    status = Column(Enum(SyncStatus), nullable=False)
    status_message = Column(Text, nullable=True)
    last_run_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


FULL_SYNC_KEY = "plates_full_sync"
SHARD_SYNC_KEY_PREFIX = "plates_sync_shard_"


def shard_sync_key(shard: str) -> str:
    return f"{SHARD_SYNC_KEY_PREFIX}{shard}"


def sync_key(shard: Optional[str] = None) -> str:
    """Status key for a full run (no shard) or a shard worker."""
    return shard_sync_key(shard) if shard else FULL_SYNC_KEY

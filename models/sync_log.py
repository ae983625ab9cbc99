from sqlalchemy import Column, BigInteger, Integer, String, Enum, DateTime, Float, Text
from datetime import datetime
from models.base import Base, JSONType, SyncStatus


class SyncLog(Base):
    """
    One summary record per orchestrator invocation.

    Purpose:
    - Audit trail of every full or shard run
    - CAPTCHA success rate and runtime monitoring
    - Per-station breakdown for workload balancing between shards
    """
    __tablename__ = "sync_logs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    run_id = Column(String(64), unique=True, nullable=False, index=True)
    shard = Column(String(50), nullable=True, index=True)

    # Run metadata
    status = Column(Enum(SyncStatus), default=SyncStatus.RUNNING, nullable=False, index=True)
    start_time = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    end_time = Column(DateTime, nullable=True)
    runtime_sec = Column(Float, nullable=True)

    # Counters
    total_plates = Column(Integer, default=0)
    stations_success = Column(Integer, default=0)
    stations_failed = Column(Integer, default=0)
    captcha_attempts = Column(Integer, default=0)
    captcha_success = Column(Integer, default=0)

    # Error tracking
    error_summary = Column(Text, nullable=True)  # Bounded, newline separated

    # Per-station durations, plate counts, retries and outcome
    station_stats = Column(JSONType, nullable=True)

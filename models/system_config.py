from sqlalchemy import Column, String, DateTime
from datetime import datetime
from models.base import Base, JSONType


class SystemConfig(Base):
    """
    Key/value configuration documents.

    The station roster lives under the "mvdis_stations" key as a list of
    departments, each with its stations and shard assignments.
    """
    __tablename__ = "system_configs"

    key = Column(String(100), primary_key=True)
    value = Column(JSONType, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

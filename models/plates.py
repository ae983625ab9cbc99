from sqlalchemy import Column, BigInteger, String, Integer, DateTime, Index
from datetime import datetime
from models.base import Base, PlateStatus


class PlateColumns:
    """
    Columns shared by the staging area and the production view.

    The swap copies staging rows into production column-for-column,
    so both tables must keep this exact layout.
    """

    # Partition
    region_id = Column(String(10), nullable=False)
    station_id = Column(String(10), nullable=False)
    station_name = Column(String(100), nullable=True)

    # Query identity
    plate_type = Column(String(1), nullable=False)  # PlateType value ("g" / "h")
    window_id = Column(String(10), nullable=False, default="01")

    # Listing
    plate_no = Column(String(20), nullable=False)
    price = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=PlateStatus.AVAILABLE.value)

    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    COPY_COLUMNS = (
        "region_id",
        "station_id",
        "station_name",
        "plate_type",
        "window_id",
        "plate_no",
        "price",
        "status",
        "updated_at",
    )


class AvailablePlateStaging(PlateColumns, Base):
    """
    Write-ahead staging area for freshly collected plates.

    Design:
    - Logically partitioned by (region_id, station_id); every writer only
      ever deletes and inserts within its own partitions
    - Never read by external consumers
    - Copied wholesale into the production view by the swap
    """
    __tablename__ = "available_plates_staging"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    __table_args__ = (
        Index("idx_staging_partition", "region_id", "station_id"),
        Index(
            "idx_staging_query_plate",
            "region_id", "station_id", "plate_type", "plate_no",
            unique=True
        ),
    )


class AvailablePlate(PlateColumns, Base):
    """
    Production view of available plates.

    Only ever replaced as a whole by the atomic swap, never row-by-row.
    """
    __tablename__ = "available_plates"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    __table_args__ = (
        Index("idx_plates_station", "region_id", "station_id", "plate_type"),
        Index("idx_plates_plate_no", "plate_no"),
    )

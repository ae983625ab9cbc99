"""
Production view retrieval endpoint with pagination and filtering
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from api.dependencies import get_db
from schemas.api import PlatesResponse, PlateResponse, PaginationMetadata
from models.plates import AvailablePlate
from models.base import PlateType
from typing import Optional
import time
import uuid
import math
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Plates"])


@router.get("/plates", response_model=PlatesResponse)
async def get_plates(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=1000, description="Items per page"),
    region_id: Optional[str] = Query(None, description="Filter by region code"),
    station_id: Optional[str] = Query(None, description="Filter by station code"),
    plate_type: Optional[PlateType] = Query(None, description="Filter by plate type (g / h)"),
    search: Optional[str] = Query(None, description="Substring of the plate number"),
    min_price: Optional[int] = Query(None, ge=0, description="Minimum price"),
    max_price: Optional[int] = Query(None, ge=0, description="Maximum price"),
    db: AsyncSession = Depends(get_db)
):
    """
    Retrieve paginated and filtered plates from the production view.

    Staging rows are never visible here; the view only changes on a swap.
    """
    start_time = time.time()
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")

    logger.info(
        f"[{request_id}] GET /plates - page={page}, page_size={page_size}, "
        f"filters: region_id={region_id}, station_id={station_id}, plate_type={plate_type}, search={search}"
    )

    filters = []

    if region_id:
        filters.append(AvailablePlate.region_id == region_id)

    if station_id:
        filters.append(AvailablePlate.station_id == station_id)

    if plate_type:
        filters.append(AvailablePlate.plate_type == plate_type.value)

    if search:
        filters.append(AvailablePlate.plate_no.ilike(f"%{search}%"))

    if min_price is not None:
        filters.append(AvailablePlate.price >= min_price)

    if max_price is not None:
        filters.append(AvailablePlate.price <= max_price)

    query = select(AvailablePlate)
    count_query = select(func.count()).select_from(AvailablePlate)
    if filters:
        query = query.where(and_(*filters))
        count_query = count_query.where(and_(*filters))

    count_result = await db.execute(count_query)
    total_items = count_result.scalar()

    # Calculate pagination
    total_pages = math.ceil(total_items / page_size) if total_items > 0 else 0
    offset = (page - 1) * page_size

    query = query.order_by(AvailablePlate.region_id, AvailablePlate.station_id, AvailablePlate.plate_no)
    query = query.offset(offset).limit(page_size)

    result = await db.execute(query)
    items = [PlateResponse.from_orm(plate) for plate in result.scalars().all()]

    api_latency_ms = (time.time() - start_time) * 1000
    logger.info(f"[{request_id}] Returned {len(items)} plates ({api_latency_ms:.2f}ms)")

    return PlatesResponse(
        items=items,
        pagination=PaginationMetadata(
            current_page=page,
            page_size=page_size,
            total_items=total_items,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1
        ),
        filters_applied={k: v for k, v in {
            "region_id": region_id,
            "station_id": station_id,
            "plate_type": plate_type.value if plate_type else None,
            "search": search,
            "min_price": min_price,
            "max_price": max_price
        }.items() if v is not None}
    )

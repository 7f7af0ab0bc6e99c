"""
Business-scoped endpoints: availability and the business's booking list.
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_booking_service, get_current_user_id
from app.core.config import get_settings
from app.db.session import get_db
from app.models.booking import BookingStatus
from app.schemas.availability import AvailabilityResponse
from app.schemas.booking import BookingListResponse, BookingResponse
from app.services.booking_service import BookingService

settings = get_settings()
router = APIRouter(prefix="/businesses", tags=["Businesses"])


@router.get("/{business_id}/availability", response_model=AvailabilityResponse)
async def get_availability(
    business_id: uuid.UUID,
    day: date = Query(..., alias="date"),
    service_id: Optional[str] = Query(None, max_length=255),
    duration: Optional[int] = Query(None, ge=settings.MIN_BOOKING_DURATION, le=settings.MAX_BOOKING_DURATION),
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """
    Open slots for one day.
    Results are cached for 5 minutes and dropped whenever a booking for
    this business and date is created or cancelled.
    """
    slots = await service.get_availability(db, business_id, day, service_id=service_id, duration=duration)
    return AvailabilityResponse(business_id=business_id, date=day, slots=slots)


@router.get("/{business_id}/bookings", response_model=BookingListResponse)
async def list_business_bookings(
    business_id: uuid.UUID,
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    day: Optional[date] = Query(None, alias="date"),
    limit: int = Query(50, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    _user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    bookings, total = await service.list_business_bookings(
        db,
        business_id,
        status=status_filter.value if status_filter else None,
        day=day,
        limit=limit,
        offset=offset,
    )
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        limit=limit,
        offset=offset,
    )

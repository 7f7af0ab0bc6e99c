"""
Booking endpoints: create, cancel, status updates and the caller's history.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_booking_service, get_current_user_id
from app.core.config import get_settings
from app.db.session import get_db
from app.models.booking import BookingStatus
from app.schemas.booking import (
    BookingCancelRequest,
    BookingCancelResponse,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatusUpdate,
)
from app.services.booking_service import BookingService

settings = get_settings()
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """
    Reserve a time slot at a business.

    The business row and any overlapping bookings are locked while the
    conflict check and insert run, so of two overlapping requests only one
    succeeds; the other gets 409 SLOT_UNAVAILABLE.
    """
    return await service.create_booking(db, booking_data, consumer_id=user_id)


@router.get("/", response_model=BookingListResponse)
async def list_user_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    business_id: Optional[uuid.UUID] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """The caller's bookings, most recent appointment first."""
    bookings, total = await service.list_user_bookings(
        db,
        user_id,
        status=status_filter.value if status_filter else None,
        business_id=business_id,
        limit=limit,
        offset=offset,
    )
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    return await service.get_booking(db, booking_id, user_id)


@router.post("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: uuid.UUID,
    cancel_data: Optional[BookingCancelRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """
    Cancel a booking. The refund amount depends on notice given:
    full refund 24h+ ahead, 50% from 2h to 24h, nothing under 2h.
    """
    cancel_data = cancel_data or BookingCancelRequest()
    result = await service.cancel_booking(
        db,
        booking_id,
        user_id,
        reason=cancel_data.reason,
        notify_business=cancel_data.notify_business,
    )
    return BookingCancelResponse(
        booking=BookingResponse.model_validate(result.booking),
        refund_amount=result.refund_amount,
        refund_tier=result.refund_tier,
        message=result.message,
    )


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: uuid.UUID,
    update: BookingStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    return await service.update_booking_status(db, booking_id, update.status, user_id=user_id)

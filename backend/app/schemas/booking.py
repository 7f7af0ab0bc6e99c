"""
Pydantic schemas for booking-related request/response validation.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.config import get_settings
from app.models.booking import BookingStatus

settings = get_settings()


class CustomerInfo(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    phone: str = Field(..., min_length=10, max_length=20, pattern=r"^\+?[\d\s\-().]+$")
    email: EmailStr = Field(..., max_length=255)


class BookingCreate(BaseModel):
    business_id: uuid.UUID
    service_id: Optional[str] = Field(None, max_length=255)
    scheduled_at: datetime
    duration: int = Field(..., ge=settings.MIN_BOOKING_DURATION, le=settings.MAX_BOOKING_DURATION)
    customer_info: CustomerInfo
    notes: Optional[str] = Field(None, max_length=settings.MAX_NOTES_LENGTH)
    total_amount: Decimal = Field(..., ge=0, le=settings.MAX_TOTAL_AMOUNT, decimal_places=2)

    @field_validator("scheduled_at")
    @classmethod
    def scheduled_in_future(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        if value < datetime.now(timezone.utc):
            raise ValueError("Scheduled time cannot be in the past")
        return value


class BookingResponse(BaseModel):
    id: uuid.UUID
    consumer_id: str
    business_id: uuid.UUID
    service_id: Optional[str]
    scheduled_at: datetime
    ends_at: datetime
    duration: int
    total_amount: Decimal
    status: str
    notes: Optional[str]
    customer_info: dict[str, Any]
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, min_length=10, max_length=500)
    notify_business: bool = True


class BookingCancelResponse(BaseModel):
    booking: BookingResponse
    refund_amount: Decimal
    refund_tier: str
    message: str


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    total: int
    limit: int
    offset: int

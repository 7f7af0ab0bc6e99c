from app.schemas.availability import AvailabilityResponse, TimeSlot
from app.schemas.booking import (
    BookingCancelRequest,
    BookingCancelResponse,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatusUpdate,
    CustomerInfo,
)
from app.schemas.business import BusinessConfig, DayHours, ServiceOffering

__all__ = [
    "AvailabilityResponse", "TimeSlot",
    "BookingCancelRequest", "BookingCancelResponse", "BookingCreate",
    "BookingListResponse", "BookingResponse", "BookingStatusUpdate", "CustomerInfo",
    "BusinessConfig", "DayHours", "ServiceOffering",
]

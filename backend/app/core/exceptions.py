"""
Domain error taxonomy for the booking engine.

Every error carries a stable `code` so clients can branch on it
(e.g. offer alternate slots on SLOT_UNAVAILABLE), and an HTTP status used
by the API exception handler. Services raise these; routes never build
HTTPExceptions themselves.
"""

from typing import Any, Optional

from fastapi import status


class BookingEngineError(Exception):
    """Base class for all booking engine errors."""

    code = "BOOKING_ENGINE_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}

class FormatError(BookingEngineError):
    """Malformed time-of-day string or other unparseable input."""

    code = "FORMAT_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

class NotFoundError(BookingEngineError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

class BusinessInactiveError(BookingEngineError):
    code = "BUSINESS_INACTIVE"
    status_code = status.HTTP_409_CONFLICT

class ServiceUnavailableError(BookingEngineError):
    code = "SERVICE_UNAVAILABLE"
    status_code = 422

class SlotUnavailableError(BookingEngineError):
    """Requested interval overlaps an existing non-cancelled booking."""

    code = "SLOT_UNAVAILABLE"
    status_code = status.HTTP_409_CONFLICT

class TimingViolationError(BookingEngineError):
    """Outside the advance-booking window or the business's opening hours."""

    code = "TIMING_VIOLATION"
    status_code = 422

class UnauthorizedError(BookingEngineError):
    """Acting user does not own the booking."""

    code = "UNAUTHORIZED"
    status_code = status.HTTP_403_FORBIDDEN

class InvalidStateError(BookingEngineError):
    code = "INVALID_STATE"
    status_code = status.HTTP_409_CONFLICT

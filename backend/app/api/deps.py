"""
Shared FastAPI dependencies: caller identity and the booking service.
"""

from functools import lru_cache
from typing import Optional

import structlog
from fastapi import Header, HTTPException, status

from app.core.config import get_settings
from app.repositories.booking_repository import BookingRepository
from app.repositories.business_repository import BusinessDirectory
from app.services.booking_service import BookingService
from app.services.cache_service import AvailabilityCache
from app.services.interfaces.logging_notifier import LoggingNotifier


async def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """
    Identity of the caller, as asserted by the upstream auth gateway.

    Token verification happens before requests reach this service.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-ID header",
        )
    user_id = x_user_id.strip()
    structlog.contextvars.bind_contextvars(user_id=user_id)
    return user_id


@lru_cache()
def get_booking_service() -> BookingService:
    settings = get_settings()
    return BookingService(
        bookings=BookingRepository(),
        directory=BusinessDirectory(settings),
        cache=AvailabilityCache(
            ttl_seconds=settings.AVAILABILITY_CACHE_TTL,
            prefix=settings.AVAILABILITY_CACHE_PREFIX,
        ),
        notifier=LoggingNotifier(),
        settings=settings,
    )

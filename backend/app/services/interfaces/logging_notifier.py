"""
Notifier that only writes structured log events.
"""

from decimal import Decimal
from typing import Optional

from app.core.logging import get_logger
from app.services.interfaces.notifier import BookingNotifier

logger = get_logger(__name__)


class LoggingNotifier(BookingNotifier):
    """Default notifier when no delivery channel is configured."""

    async def booking_created(self, booking) -> None:
        logger.info(
            "notify_booking_created",
            booking_id=str(booking.id),
            business_id=str(booking.business_id),
            scheduled_at=booking.scheduled_at.isoformat(),
            customer_info=booking.customer_info,
        )

    async def booking_cancelled(self, booking, refund_amount: Decimal, reason: Optional[str] = None) -> None:
        logger.info(
            "notify_booking_cancelled",
            booking_id=str(booking.id),
            business_id=str(booking.business_id),
            refund_amount=str(refund_amount),
            reason=reason,
        )

    async def booking_status_changed(self, booking, previous_status: str) -> None:
        logger.info(
            "notify_booking_status_changed",
            booking_id=str(booking.id),
            previous_status=previous_status,
            status=booking.status,
        )

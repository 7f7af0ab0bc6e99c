"""
Booking notification interface.

Delivery (email/push/SMS) lives outside this service. BookingService only
calls these hooks after its transaction has committed, and a failing hook
never undoes the booking change.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional


class BookingNotifier(ABC):
    """
    Implementations:
    - LoggingNotifier: records the event in the structured log
    - a queue/webhook publisher in deployments that send messages
    """

    @abstractmethod
    async def booking_created(self, booking) -> None:
        """A new booking was committed in `pending` status."""

    @abstractmethod
    async def booking_cancelled(
        self,
        booking,
        refund_amount: Decimal,
        reason: Optional[str] = None,
    ) -> None:
        """
        A booking was cancelled.

        Args:
            booking: The cancelled booking
            refund_amount: Amount the payment collaborator should refund
            reason: Free-text reason given by the customer, if any
        """

    @abstractmethod
    async def booking_status_changed(self, booking, previous_status: str) -> None:
        """Status moved by the external workflow (confirm, complete, no-show)."""

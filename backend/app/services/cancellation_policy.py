"""
Notice-period refund tiers for cancelled bookings.

    hours until start >= full_refund_hours      -> full refund
    partial_refund_hours <= hours < full        -> partial_rate * total
    hours < partial_refund_hours                -> no refund

Cancelling after the scheduled start (negative notice) falls in the
no-refund tier; it is not an error.

The thresholds are constructor arguments so a business-specific policy can
be swapped in without touching BookingService.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from app.services.clock_math import hours_between

FULL = "full"
PARTIAL = "partial"
NO_REFUND = "no-refund"

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class RefundDecision:
    refund_amount: Decimal
    tier: str
    message: str
    hours_until_booking: float


class CancellationPolicy:
    def __init__(
        self,
        full_refund_hours: int = 24,
        partial_refund_hours: int = 2,
        partial_refund_rate: Decimal = Decimal("0.5"),
    ) -> None:
        if partial_refund_hours > full_refund_hours:
            raise ValueError("partial_refund_hours must not exceed full_refund_hours")
        self.full_refund_hours = full_refund_hours
        self.partial_refund_hours = partial_refund_hours
        self.partial_refund_rate = Decimal(partial_refund_rate)

    @classmethod
    def from_settings(cls, settings) -> "CancellationPolicy":
        return cls(
            full_refund_hours=settings.CANCELLATION_FULL_REFUND_HOURS,
            partial_refund_hours=settings.CANCELLATION_PARTIAL_REFUND_HOURS,
            partial_refund_rate=settings.CANCELLATION_PARTIAL_REFUND_RATE,
        )

    def compute_refund(self, booking, now: datetime) -> RefundDecision:
        """`booking` needs `scheduled_at` and `total_amount`."""
        hours = hours_between(now, booking.scheduled_at)
        total = Decimal(booking.total_amount)

        if hours >= self.full_refund_hours:
            return RefundDecision(
                refund_amount=total.quantize(_CENTS, rounding=ROUND_HALF_UP),
                tier=FULL,
                message="Booking cancelled with full refund",
                hours_until_booking=hours,
            )

        if hours >= self.partial_refund_hours:
            percent = int(self.partial_refund_rate * 100)
            return RefundDecision(
                refund_amount=(total * self.partial_refund_rate).quantize(_CENTS, rounding=ROUND_HALF_UP),
                tier=PARTIAL,
                message=f"Booking cancelled with {percent}% refund due to short notice period",
                hours_until_booking=hours,
            )

        return RefundDecision(
            refund_amount=Decimal("0.00"),
            tier=NO_REFUND,
            message="Booking cancelled with no refund due to short notice period",
            hours_until_booking=hours,
        )

"""
Conflict detection between a proposed interval and existing bookings.

Both paths share `intervals_overlap`:
- `has_conflict` runs inside the caller's transaction and locks the
  matching rows (write path).
- `filter_available` is a pure, unlocked pass over bookings already loaded
  for a day (read path).

Cancelled bookings never block a slot.
"""

import uuid
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.models.booking import NON_BLOCKING_STATUSES, Booking
from app.repositories.booking_repository import BookingRepository
from app.schemas.availability import TimeSlot

logger = get_logger(__name__)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open [a_start, a_end) vs [b_start, b_end). Adjacent intervals do not overlap."""
    return a_start < b_end and b_start < a_end


def booking_interval(booking: Booking) -> tuple[datetime, datetime]:
    end = getattr(booking, "ends_at", None) or booking.scheduled_at + timedelta(minutes=booking.duration)
    return booking.scheduled_at, end


class ConflictDetector:
    def __init__(self, repository: BookingRepository) -> None:
        self.repository = repository

    async def has_conflict(
        self,
        db: AsyncSession,
        business_id: uuid.UUID,
        start_time: datetime,
        duration_minutes: int,
        exclude_statuses: Iterable[str] = NON_BLOCKING_STATUSES,
        exclude_booking_id: Optional[uuid.UUID] = None,
    ) -> bool:
        excluded = set(exclude_statuses) | set(NON_BLOCKING_STATUSES)
        conflicts = await self.repository.find_conflicting_bookings(
            db,
            business_id,
            start_time,
            duration_minutes,
            exclude_statuses=sorted(excluded),
            exclude_booking_id=exclude_booking_id,
            lock=True,
        )
        if conflicts:
            logger.info(
                "booking_conflict",
                business_id=str(business_id),
                start_time=start_time.isoformat(),
                duration=duration_minutes,
                conflicting_ids=[str(b.id) for b in conflicts],
            )
        return bool(conflicts)

    def filter_available(self, candidate_slots: Sequence[TimeSlot], existing_bookings: Iterable[Booking]) -> list[TimeSlot]:
        """Return every candidate, with is_available cleared where a booking overlaps it."""
        intervals = [
            booking_interval(b) for b in existing_bookings if b.status not in NON_BLOCKING_STATUSES
        ]

        marked = []
        for slot in candidate_slots:
            taken = any(
                intervals_overlap(slot.start_time, slot.end_time, start, end) for start, end in intervals
            )
            marked.append(slot.model_copy(update={"is_available": False}) if taken else slot)
        return marked

    def available_only(self, candidate_slots: Sequence[TimeSlot], existing_bookings: Iterable) -> list[TimeSlot]:
        return [slot for slot in self.filter_available(candidate_slots, existing_bookings) if slot.is_available]

"""
Booking persistence.

Every method takes the caller's AsyncSession; the repository never opens or
commits transactions. Reads that precede a mutation must use the
`..._for_update` / `lock=True` variants so the rows stay locked until the
caller's transaction ends.

Overlap predicate for a requested [start, end) against a stored booking:

    scheduled_at < end AND ends_at > start

Half-open intervals, so a booking ending exactly when another starts is not
a conflict.
"""

import uuid
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Iterable, Optional

from sqlalchemy import Select, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, SlotUnavailableError
from app.core.logging import get_logger
from app.models.booking import NO_OVERLAP_CONSTRAINT, NON_BLOCKING_STATUSES, Booking
from app.services.clock_math import day_bounds

logger = get_logger(__name__)

UPDATABLE_FIELDS = frozenset({"status", "notes", "cancelled_at", "cancellation_reason"})


def overlapping_bookings_query(
    business_id: uuid.UUID,
    start_time: datetime,
    end_time: datetime,
    exclude_statuses: Iterable[str] = NON_BLOCKING_STATUSES,
    exclude_booking_id: Optional[uuid.UUID] = None,
    lock: bool = False,
) -> Select:
    query = (
        select(Booking)
        .where(
            Booking.business_id == business_id,
            Booking.scheduled_at < end_time,
            Booking.ends_at > start_time,
        )
        .order_by(Booking.scheduled_at)
    )

    excluded = list(exclude_statuses)
    if excluded:
        query = query.where(Booking.status.not_in(excluded))
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    if lock:
        query = query.with_for_update()
    return query


def user_bookings_query(
    user_id: str,
    status: Optional[str] = None,
    business_id: Optional[uuid.UUID] = None,
) -> Select:
    query = select(Booking).where(Booking.consumer_id == user_id)
    if status:
        query = query.where(Booking.status == status)
    if business_id:
        query = query.where(Booking.business_id == business_id)
    return query


class BookingRepository:
    async def create(self, db: AsyncSession, data: dict[str, Any]) -> Booking:
        values = dict(data)
        values.setdefault("ends_at", values["scheduled_at"] + timedelta(minutes=values["duration"]))
        booking = Booking(**values)
        db.add(booking)
        try:
            await db.flush()
        except IntegrityError as exc:
            if NO_OVERLAP_CONSTRAINT in str(exc.orig):
                logger.warning(
                    "booking_overlap_constraint",
                    business_id=str(values.get("business_id")),
                    scheduled_at=values["scheduled_at"].isoformat(),
                )
                raise SlotUnavailableError("Time slot no longer available") from exc
            raise
        await db.refresh(booking)
        return booking

    async def find_by_id(self, db: AsyncSession, booking_id: uuid.UUID) -> Optional[Booking]:
        result = await db.execute(select(Booking).where(Booking.id == booking_id))
        return result.scalar_one_or_none()

    async def find_by_id_for_update(self, db: AsyncSession, booking_id: uuid.UUID) -> Optional[Booking]:
        """Exclusive row lock; use whenever the row is mutated afterwards."""
        result = await db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_conflicting_bookings(
        self,
        db: AsyncSession,
        business_id: uuid.UUID,
        start_time: datetime,
        duration: int,
        exclude_statuses: Iterable[str] = NON_BLOCKING_STATUSES,
        exclude_booking_id: Optional[uuid.UUID] = None,
        lock: bool = True,
    ) -> list[Booking]:
        query = overlapping_bookings_query(
            business_id,
            start_time,
            start_time + timedelta(minutes=duration),
            exclude_statuses=exclude_statuses,
            exclude_booking_id=exclude_booking_id,
            lock=lock,
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    async def find_bookings_for_date(
        self,
        db: AsyncSession,
        business_id: uuid.UUID,
        day: date,
        tz: tzinfo,
        exclude_statuses: Iterable[str] = NON_BLOCKING_STATUSES,
    ) -> list[Booking]:
        """Unlocked read of everything touching the local day, including overnight spill."""
        day_start, day_end = day_bounds(day, tz)
        query = overlapping_bookings_query(
            business_id, day_start, day_end, exclude_statuses=exclude_statuses
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    async def update(self, db: AsyncSession, booking_id: uuid.UUID, **fields: Any) -> Booking:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update booking fields: {sorted(unknown)}")

        result = await db.execute(
            update(Booking)
            .where(Booking.id == booking_id)
            .values(**fields, updated_at=func.now())
            .returning(Booking)
            .execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFoundError("Booking not found", details={"booking_id": str(booking_id)})
        return booking

    async def find_user_bookings(
        self,
        db: AsyncSession,
        user_id: str,
        status: Optional[str] = None,
        business_id: Optional[uuid.UUID] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Booking], int]:
        query = user_bookings_query(user_id, status, business_id)

        # Count and page come from the same filtered query
        count_query = select(func.count()).select_from(query.subquery())
        total = (await db.execute(count_query)).scalar() or 0

        page = query.order_by(Booking.scheduled_at.desc()).limit(limit).offset(offset)
        result = await db.execute(page)
        return list(result.scalars().all()), total

    async def find_business_bookings(
        self,
        db: AsyncSession,
        business_id: uuid.UUID,
        status: Optional[str] = None,
        day: Optional[date] = None,
        tz: Optional[tzinfo] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Booking], int]:
        query = select(Booking).where(Booking.business_id == business_id)
        if status:
            query = query.where(Booking.status == status)
        if day is not None:
            day_start, day_end = day_bounds(day, tz or timezone.utc)
            query = query.where(Booking.scheduled_at >= day_start, Booking.scheduled_at < day_end)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await db.execute(count_query)).scalar() or 0

        page = query.order_by(Booking.scheduled_at.asc()).limit(limit).offset(offset)
        result = await db.execute(page)
        return list(result.scalars().all()), total

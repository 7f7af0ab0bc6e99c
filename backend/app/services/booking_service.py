"""
Booking service: creation, cancellation and availability for time-slot
bookings.

CONCURRENCY STRATEGY: Pessimistic row locks, lock-then-check
=============================================================

Problem:
  Two customers request overlapping times at the same business at once.
  Both check for conflicts, both see none, both insert.
  Result: double booking.

Solution:
  Each write runs in one short transaction on the caller's session:

  1. SELECT ... FROM businesses WHERE id = :id FOR UPDATE
  2. SELECT ... FROM bookings WHERE business_id = :id
        AND scheduled_at < :end AND ends_at > :start
        AND status <> 'cancelled' FOR UPDATE
  3. INSERT the booking, invalidate cached availability, COMMIT

  Step 1 is what serializes two creations when no overlapping row exists
  yet (FOR UPDATE in step 2 cannot lock a row that is about to be
  inserted). The second transaction waits at step 1 until the first
  commits or rolls back, then re-runs the overlap query and sees the new
  row. An exclusion constraint on bookings is the last line of defence.

  Cancellation locks the booking row itself, so concurrent cancel/status
  updates of one booking are applied one at a time.

  No network call to a collaborator (notifications, payment) happens while
  a lock is held; notifications are sent after commit.

Availability reads take no locks. A cached or freshly computed answer may
already be stale when it reaches the client; the write path re-checks.
A computed answer is only cached if no invalidation for that business
and date ran while it was being computed (AvailabilityCache generations).
"""

import time
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    BookingEngineError,
    BusinessInactiveError,
    InvalidStateError,
    NotFoundError,
    ServiceUnavailableError,
    SlotUnavailableError,
    TimingViolationError,
    UnauthorizedError,
)
from app.core.logging import get_logger
from app.core.metrics import availability_latency, booking_latency, record_booking_attempt, record_cancellation
from app.db.session import transaction
from app.models.booking import TERMINAL_STATUSES, Booking, BookingStatus
from app.repositories.booking_repository import BookingRepository
from app.repositories.business_repository import BusinessDirectory
from app.schemas.availability import TimeSlot
from app.schemas.booking import BookingCreate
from app.schemas.business import BusinessConfig
from app.services.cache_service import AvailabilityCache, AvailabilityKey
from app.services.cancellation_policy import CancellationPolicy
from app.services.clock_math import (
    day_of_week,
    hours_between,
    local_date,
    minutes_to_datetime,
    time_string_to_minutes,
)
from app.services.conflict_detector import ConflictDetector
from app.services.interfaces.notifier import BookingNotifier
from app.services.slot_generator import SlotGenerator

logger = get_logger(__name__)


@dataclass(frozen=True)
class CancellationResult:
    booking: Booking
    refund_amount: Decimal
    refund_tier: str
    message: str


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BookingService:
    def __init__(
        self,
        bookings: BookingRepository,
        directory: BusinessDirectory,
        cache: AvailabilityCache,
        notifier: BookingNotifier,
        settings: Optional[Settings] = None,
        conflict_detector: Optional[ConflictDetector] = None,
        slot_generator: Optional[SlotGenerator] = None,
        cancellation_policy: Optional[CancellationPolicy] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings or get_settings()
        self.bookings = bookings
        self.directory = directory
        self.cache = cache
        self.notifier = notifier
        self.conflict_detector = conflict_detector or ConflictDetector(bookings)
        self.slot_generator = slot_generator or SlotGenerator()
        self.cancellation_policy = cancellation_policy or CancellationPolicy.from_settings(self.settings)
        self.clock = clock

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def create_booking(self, db: AsyncSession, data: BookingCreate, consumer_id: str) -> Booking:
        """
        Reserve [scheduled_at, scheduled_at + duration) for the consumer.

        Raises NotFoundError, BusinessInactiveError, SlotUnavailableError,
        ServiceUnavailableError or TimingViolationError; any of them rolls
        the transaction back.
        """
        started = time.perf_counter()
        scheduled_at = _as_utc(data.scheduled_at)
        now = self.clock()

        try:
            async with transaction(db):
                business = await self.directory.get_business(db, data.business_id, for_update=True)
                if business is None:
                    raise NotFoundError("Business not found", details={"business_id": str(data.business_id)})
                if not business.is_active:
                    raise BusinessInactiveError("Business is not accepting bookings")

                if await self.conflict_detector.has_conflict(db, business.id, scheduled_at, data.duration):
                    raise SlotUnavailableError(
                        "Time slot no longer available",
                        details={"scheduled_at": scheduled_at.isoformat(), "duration": data.duration},
                    )

                if data.service_id:
                    service = business.find_service(data.service_id)
                    if service is None:
                        raise ServiceUnavailableError(
                            "Service not available", details={"service_id": data.service_id}
                        )
                    if service.duration and service.duration != data.duration:
                        logger.warning(
                            "service_duration_mismatch",
                            service_id=data.service_id,
                            requested_duration=data.duration,
                            service_duration=service.duration,
                        )

                self._validate_timing(business, scheduled_at, data.duration, now)

                booking = await self.bookings.create(
                    db,
                    {
                        "consumer_id": consumer_id,
                        "business_id": business.id,
                        "service_id": data.service_id,
                        "scheduled_at": scheduled_at,
                        "duration": data.duration,
                        "status": BookingStatus.PENDING.value,
                        "notes": data.notes,
                        "total_amount": data.total_amount,
                        "customer_info": data.customer_info.model_dump(mode="json"),
                    },
                )
                booking_day = local_date(scheduled_at, business.tzinfo)
                await self.cache.invalidate(business.id, booking_day)
        except SlotUnavailableError:
            record_booking_attempt("conflict")
            raise
        except BookingEngineError as e:
            record_booking_attempt("rejected")
            logger.info("booking_rejected", business_id=str(data.business_id), reason=e.code)
            raise
        except Exception:
            record_booking_attempt("error")
            raise

        # A reader that recomputed between our invalidation and the commit
        # cached the pre-commit day; drop it again now that the row is visible.
        await self.cache.invalidate(business.id, booking_day)

        record_booking_attempt("created")
        booking_latency.observe(time.perf_counter() - started)
        logger.info(
            "booking_created",
            booking_id=str(booking.id),
            business_id=str(business.id),
            consumer_id=consumer_id,
            scheduled_at=scheduled_at.isoformat(),
            duration=data.duration,
        )

        await self._notify("booking_created", self.notifier.booking_created(booking))
        return booking

    async def cancel_booking(
        self,
        db: AsyncSession,
        booking_id: uuid.UUID,
        user_id: str,
        reason: Optional[str] = None,
        notify_business: bool = True,
    ) -> CancellationResult:
        """
        Cancel the caller's booking and work out the refund.

        The refund itself is executed by the payment collaborator, which the
        caller invokes with the returned amount.
        """
        now = self.clock()

        async with transaction(db):
            booking = await self.bookings.find_by_id_for_update(db, booking_id)
            if booking is None:
                raise NotFoundError("Booking not found", details={"booking_id": str(booking_id)})

            if booking.consumer_id != user_id:
                raise UnauthorizedError("Unauthorized to cancel this booking")

            if booking.status == BookingStatus.CANCELLED.value:
                raise InvalidStateError("Booking is already cancelled")
            if booking.status == BookingStatus.COMPLETED.value:
                raise InvalidStateError("Booking cannot be cancelled (already completed)")

            decision = self.cancellation_policy.compute_refund(booking, now)

            cancelled = await self.bookings.update(
                db,
                booking.id,
                status=BookingStatus.CANCELLED.value,
                cancelled_at=now,
                cancellation_reason=reason,
            )

            business = await self.directory.get_business(db, cancelled.business_id)
            tz = business.tzinfo if business else timezone.utc
            booking_day = local_date(cancelled.scheduled_at, tz)
            await self.cache.invalidate(cancelled.business_id, booking_day)

        await self.cache.invalidate(cancelled.business_id, booking_day)

        record_cancellation(decision.tier)
        logger.info(
            "booking_cancelled",
            booking_id=str(cancelled.id),
            user_id=user_id,
            reason=reason,
            refund_amount=str(decision.refund_amount),
            refund_tier=decision.tier,
            hours_notice=round(decision.hours_until_booking, 2),
        )

        if notify_business:
            await self._notify(
                "booking_cancelled",
                self.notifier.booking_cancelled(cancelled, decision.refund_amount, reason),
            )

        return CancellationResult(
            booking=cancelled,
            refund_amount=decision.refund_amount,
            refund_tier=decision.tier,
            message=decision.message,
        )

    async def update_booking_status(
        self,
        db: AsyncSession,
        booking_id: uuid.UUID,
        status: BookingStatus,
        user_id: Optional[str] = None,
    ) -> Booking:
        """Move a booking along pending -> confirmed -> completed / no_show."""
        status = BookingStatus(status)
        if status == BookingStatus.CANCELLED:
            raise InvalidStateError("Use the cancel operation to cancel a booking")

        async with transaction(db):
            booking = await self.bookings.find_by_id_for_update(db, booking_id)
            if booking is None:
                raise NotFoundError("Booking not found", details={"booking_id": str(booking_id)})

            if user_id is not None and booking.consumer_id != user_id:
                raise UnauthorizedError("Unauthorized to modify this booking")

            previous = booking.status
            if previous == status.value:
                return booking
            if BookingStatus(previous) in TERMINAL_STATUSES:
                raise InvalidStateError(
                    f"Booking is {previous} and cannot change status",
                    details={"status": previous, "requested": status.value},
                )

            updated = await self.bookings.update(db, booking.id, status=status.value)

        logger.info(
            "booking_status_updated",
            booking_id=str(booking_id),
            old_status=previous,
            new_status=status.value,
            user_id=user_id,
        )
        await self._notify("booking_status_changed", self.notifier.booking_status_changed(updated, previous))
        return updated

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def get_availability(
        self,
        db: AsyncSession,
        business_id: uuid.UUID,
        day: date,
        service_id: Optional[str] = None,
        duration: Optional[int] = None,
    ) -> list[TimeSlot]:
        """Open slots for the business on `day`, served from cache when possible."""
        key = AvailabilityKey(business_id, day, service_id, duration)

        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        # Read before loading bookings; a booking committed after this point
        # bumps the generation and the put below is dropped.
        generation = await self.cache.generation(business_id, day)

        business = await self.directory.get_business(db, business_id)
        if business is None:
            raise NotFoundError("Business not found", details={"business_id": str(business_id)})

        with availability_latency.time():
            slots = await self._compute_availability(db, business, day, service_id, duration)

        if generation is not None:
            await self.cache.put(key, slots, generation=generation)
        return slots

    async def _compute_availability(
        self,
        db: AsyncSession,
        business: BusinessConfig,
        day: date,
        service_id: Optional[str],
        duration: Optional[int],
    ) -> list[TimeSlot]:
        if not business.is_active:
            return []

        slot_duration = duration or self.settings.DEFAULT_SLOT_DURATION_MINUTES
        buffer_minutes = business.default_buffer_minutes
        price = None

        if service_id:
            service = business.find_service(service_id)
            if service is None:
                logger.warning("availability_unknown_service", business_id=str(business.id), service_id=service_id)
            else:
                if service.duration is not None:
                    slot_duration = service.duration
                if service.buffer_time is not None:
                    buffer_minutes = service.buffer_time
                price = service.price

        candidates = self.slot_generator.generate(
            business.hours_for(day_of_week(day)),
            slot_duration,
            buffer_minutes,
            day,
            tz=business.tzinfo,
            price=price,
            service_id=service_id,
        )
        if not candidates:
            return []

        existing = await self.bookings.find_bookings_for_date(db, business.id, day, business.tzinfo)
        return self.conflict_detector.available_only(candidates, existing)

    async def get_booking(self, db: AsyncSession, booking_id: uuid.UUID, user_id: str) -> Booking:
        booking = await self.bookings.find_by_id(db, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found", details={"booking_id": str(booking_id)})
        if booking.consumer_id != user_id:
            raise UnauthorizedError("Unauthorized to view this booking")
        return booking

    async def list_user_bookings(
        self,
        db: AsyncSession,
        user_id: str,
        status: Optional[str] = None,
        business_id: Optional[uuid.UUID] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> tuple[list[Booking], int]:
        return await self.bookings.find_user_bookings(
            db,
            user_id,
            status=status,
            business_id=business_id,
            limit=self._page_size(limit),
            offset=max(offset, 0),
        )

    async def list_business_bookings(
        self,
        db: AsyncSession,
        business_id: uuid.UUID,
        status: Optional[str] = None,
        day: Optional[date] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> tuple[list[Booking], int]:
        business = await self.directory.get_business(db, business_id)
        if business is None:
            raise NotFoundError("Business not found", details={"business_id": str(business_id)})
        return await self.bookings.find_business_bookings(
            db,
            business.id,
            status=status,
            day=day,
            tz=business.tzinfo,
            limit=self._page_size(limit),
            offset=max(offset, 0),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_timing(self, business: BusinessConfig, scheduled_at: datetime, duration: int, now: datetime) -> None:
        hours_until = hours_between(now, scheduled_at)

        if hours_until < 0:
            raise TimingViolationError("Scheduled time cannot be in the past")

        min_hours = business.min_advance_booking_hours
        if hours_until < min_hours:
            raise TimingViolationError(
                f"Minimum advance booking time is {min_hours} hours",
                details={"min_advance_booking_hours": min_hours},
            )

        max_days = business.max_advance_booking_days
        if hours_until / 24 > max_days:
            raise TimingViolationError(
                f"Maximum advance booking window is {max_days} days",
                details={"max_advance_booking_days": max_days},
            )

        tz = business.tzinfo
        local_day = local_date(scheduled_at, tz)
        day_hours = business.hours_for(day_of_week(local_day))
        if day_hours is None or not day_hours.is_open or not day_hours.open or not day_hours.close:
            raise TimingViolationError("Business is closed on this day")

        # Exact instants; a start at 16:00:30 must not round down to 16:00.
        open_at = minutes_to_datetime(local_day, time_string_to_minutes(day_hours.open), tz)
        close_at = minutes_to_datetime(local_day, time_string_to_minutes(day_hours.close), tz)
        if scheduled_at < open_at or scheduled_at + timedelta(minutes=duration) > close_at:
            raise TimingViolationError(
                "Booking time is outside business hours",
                details={"open": day_hours.open, "close": day_hours.close},
            )

    def _page_size(self, limit: Optional[int]) -> int:
        if not limit or limit < 1:
            return self.settings.DEFAULT_PAGE_SIZE
        return min(limit, self.settings.MAX_PAGE_SIZE)

    async def _notify(self, event: str, call) -> None:
        try:
            await call
        except Exception as e:
            logger.error("notification_failed", notification=event, error=str(e))


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)

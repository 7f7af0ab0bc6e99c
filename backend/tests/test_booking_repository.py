"""
Tests for the SQL repositories against PostgreSQL.

Needs a server at TEST_DATABASE_URL; skipped otherwise (see conftest.db_session).
"""

import asyncio
import uuid
from datetime import timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, InvalidRequestError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import NotFoundError, SlotUnavailableError
from app.models.booking import Booking, BookingStatus
from app.models.business import Business
from app.repositories.booking_repository import BookingRepository
from app.repositories.business_repository import BusinessDirectory
from app.services.booking_service import BookingService
from app.services.cache_service import AvailabilityCache
from conftest import (
    BUSINESS_ID,
    CUSTOMER,
    OTHER_CUSTOMER,
    RecordingNotifier,
    TestSessionLocal,
    at,
    make_request,
)

repository = BookingRepository()


def booking_row(scheduled_at, duration=60, consumer=CUSTOMER, status=BookingStatus.PENDING.value):
    return {
        "consumer_id": consumer,
        "business_id": BUSINESS_ID,
        "service_id": "haircut",
        "scheduled_at": scheduled_at,
        "duration": duration,
        "total_amount": Decimal("40.00"),
        "status": status,
        "customer_info": {"name": "Alice Doe"},
    }


def hours_of(bookings):
    return [b.scheduled_at.astimezone(timezone.utc).hour for b in bookings]


@pytest_asyncio.fixture
async def db(db_session: AsyncSession, store) -> AsyncSession:
    db_session.add_all([Business(**row) for row in store.businesses.values()])
    await db_session.commit()
    return db_session


@pytest.mark.asyncio
async def test_create_fills_end_and_server_defaults(db, booking_day):
    booking = await repository.create(db, booking_row(at(booking_day, 10)))
    await db.commit()

    assert booking.ends_at == at(booking_day, 11)
    assert booking.created_at is not None
    assert booking.total_amount == Decimal("40.00")
    assert (await repository.find_by_id(db, booking.id)).consumer_id == CUSTOMER


@pytest.mark.asyncio
async def test_exclusion_constraint_rejects_overlap_without_service_checks(db, booking_day):
    """A writer that skips the conflict check still cannot double-book."""
    await repository.create(db, booking_row(at(booking_day, 10)))
    await db.commit()

    with pytest.raises(SlotUnavailableError):
        await repository.create(db, booking_row(at(booking_day, 10, 30), consumer=OTHER_CUSTOMER))
    await db.rollback()

    bookings, total = await repository.find_business_bookings(db, BUSINESS_ID)
    assert total == 1
    assert bookings[0].consumer_id == CUSTOMER


@pytest.mark.asyncio
async def test_exclusion_constraint_ignores_cancelled_and_adjacent(db, booking_day):
    await repository.create(db, booking_row(at(booking_day, 10), status=BookingStatus.CANCELLED.value))
    await repository.create(db, booking_row(at(booking_day, 10, 30)))
    await repository.create(db, booking_row(at(booking_day, 11, 30)))
    await db.commit()

    _, total = await repository.find_business_bookings(db, BUSINESS_ID)
    assert total == 3


@pytest.mark.asyncio
async def test_unloaded_relationship_raises_instead_of_querying(db, booking_day):
    booking = await repository.create(db, booking_row(at(booking_day, 10)))
    await db.commit()

    loaded = await repository.find_by_id(db, booking.id)
    with pytest.raises(InvalidRequestError):
        loaded.business


@pytest.mark.asyncio
async def test_update_returns_refreshed_row(db, booking_day):
    booking = await repository.create(db, booking_row(at(booking_day, 10)))
    await db.commit()

    updated = await repository.update(db, booking.id, status=BookingStatus.CONFIRMED.value, notes="Window seat")
    await db.commit()

    assert updated.id == booking.id
    assert updated.status == BookingStatus.CONFIRMED.value
    assert updated.notes == "Window seat"
    assert updated.updated_at >= updated.created_at

    stored = (await db.execute(select(Booking.status).where(Booking.id == booking.id))).scalar_one()
    assert stored == BookingStatus.CONFIRMED.value


@pytest.mark.asyncio
async def test_update_missing_booking(db):
    with pytest.raises(NotFoundError):
        await repository.update(db, uuid.uuid4(), status=BookingStatus.CONFIRMED.value)


@pytest.mark.asyncio
async def test_update_rejects_unlisted_fields(db, booking_day):
    booking = await repository.create(db, booking_row(at(booking_day, 10)))

    with pytest.raises(ValueError, match="scheduled_at"):
        await repository.update(db, booking.id, scheduled_at=at(booking_day, 12))


@pytest.mark.asyncio
async def test_find_conflicting_bookings(db, booking_day):
    first = await repository.create(db, booking_row(at(booking_day, 10)))
    await repository.create(db, booking_row(at(booking_day, 12)))
    await db.commit()

    conflicts = await repository.find_conflicting_bookings(db, BUSINESS_ID, at(booking_day, 10, 30), 120)
    assert hours_of(conflicts) == [10, 12]

    conflicts = await repository.find_conflicting_bookings(
        db, BUSINESS_ID, at(booking_day, 10, 30), 120, exclude_booking_id=first.id
    )
    assert hours_of(conflicts) == [12]

    # Back to back with both neighbours
    assert await repository.find_conflicting_bookings(db, BUSINESS_ID, at(booking_day, 11), 60) == []
    await db.rollback()


@pytest.mark.asyncio
async def test_find_bookings_for_date(db, booking_day):
    await repository.create(db, booking_row(at(booking_day, 9)))
    await repository.create(db, booking_row(at(booking_day, 13), status=BookingStatus.CANCELLED.value))
    await repository.create(db, booking_row(at(booking_day + timedelta(days=2), 9)))
    await db.commit()

    bookings = await repository.find_bookings_for_date(db, BUSINESS_ID, booking_day, timezone.utc)
    assert hours_of(bookings) == [9]


@pytest.mark.asyncio
async def test_user_bookings_total_matches_filtered_page(db, booking_day):
    for hour in (9, 11, 13):
        await repository.create(db, booking_row(at(booking_day, hour)))
    await repository.create(db, booking_row(at(booking_day, 15), consumer=OTHER_CUSTOMER))
    await db.commit()

    page, total = await repository.find_user_bookings(db, CUSTOMER, limit=2)
    assert total == 3
    assert hours_of(page) == [13, 11]

    page, total = await repository.find_user_bookings(db, CUSTOMER, limit=2, offset=2)
    assert total == 3
    assert hours_of(page) == [9]

    page, total = await repository.find_user_bookings(db, CUSTOMER, status=BookingStatus.CANCELLED.value)
    assert (page, total) == ([], 0)


@pytest.mark.asyncio
async def test_business_bookings_for_one_day(db, booking_day):
    await repository.create(db, booking_row(at(booking_day, 9)))
    await repository.create(db, booking_row(at(booking_day, 14), consumer=OTHER_CUSTOMER))
    await repository.create(db, booking_row(at(booking_day + timedelta(days=2), 9)))
    await db.commit()

    page, total = await repository.find_business_bookings(db, BUSINESS_ID, day=booking_day, tz=timezone.utc)
    assert total == 2
    assert hours_of(page) == [9, 14]


@pytest.mark.asyncio
async def test_get_business_for_update_holds_row_lock(db):
    directory = BusinessDirectory(get_settings())

    business = await directory.get_business(db, BUSINESS_ID, for_update=True)
    assert business.name == "Downtown Barbers"
    assert [s.id for s in business.services] == ["haircut", "shave"]

    async with TestSessionLocal() as other:
        with pytest.raises(DBAPIError):
            await other.execute(select(Business).where(Business.id == BUSINESS_ID).with_for_update(nowait=True))
        await other.rollback()

    await db.rollback()
    assert await directory.get_business(db, uuid.uuid4()) is None


@pytest.mark.asyncio
async def test_concurrent_creates_over_postgres(db, clock, booking_day):
    """Two transactions racing for one slot: the business row lock lets one through."""

    async def no_redis():
        return None

    service = BookingService(
        bookings=repository,
        directory=BusinessDirectory(get_settings()),
        cache=AvailabilityCache(client_factory=no_redis),
        notifier=RecordingNotifier(),
        clock=clock,
    )

    async def attempt(consumer):
        async with TestSessionLocal() as session:
            return await service.create_booking(session, make_request(at(booking_day, 14)), consumer_id=consumer)

    results = await asyncio.gather(attempt("racer-1"), attempt("racer-2"), return_exceptions=True)

    assert sum(isinstance(r, Booking) for r in results) == 1
    assert sum(isinstance(r, SlotUnavailableError) for r in results) == 1
    _, total = await repository.find_business_bookings(db, BUSINESS_ID, day=booking_day, tz=timezone.utc)
    assert total == 1

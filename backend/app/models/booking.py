"""
Booking model: one customer's reservation of a time interval at a business.

Key design decisions:
- `ends_at` is denormalized (scheduled_at + duration) so the overlap
  predicate is a plain range comparison and can use the composite index
- Rows are never deleted; cancellation is a status transition that keeps
  the refund/audit trail
- `customer_info` is a snapshot taken at booking time, so later profile
  edits do not rewrite historical bookings
- Overlap between non-cancelled bookings of one business is also rejected
  by an exclusion constraint (migration 001, and the DDL hooks below for
  metadata.create_all)
"""

import enum
import uuid

from sqlalchemy import (
    DDL,
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    event,
)
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})

# Statuses that never block a slot.
NON_BLOCKING_STATUSES = (BookingStatus.CANCELLED.value,)

NO_OVERLAP_CONSTRAINT = "excl_bookings_no_overlap"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    consumer_id = Column(String(64), nullable=False)
    business_id = Column(Uuid, ForeignKey("businesses.id"), nullable=False)
    service_id = Column(String(255), nullable=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    notes = Column(Text, nullable=True)
    customer_info = Column(JSON, nullable=False, default=dict)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)

    business = relationship("Business", back_populates="bookings", lazy="raise")

    __table_args__ = (
        CheckConstraint("duration BETWEEN 15 AND 480", name="check_booking_duration_range"),
        CheckConstraint("total_amount >= 0", name="check_booking_amount_non_negative"),
        CheckConstraint("ends_at > scheduled_at", name="check_booking_ends_after_start"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'no_show')",
            name="check_booking_status",
        ),
        # Conflict checks and day listings: WHERE business_id = ? AND scheduled_at < ? ...
        Index("ix_bookings_business_scheduled", "business_id", "scheduled_at"),
        # User history, newest first
        Index("ix_bookings_consumer_scheduled", "consumer_id", "scheduled_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, business={self.business_id}, "
            f"at={self.scheduled_at}, status={self.status})>"
        )


event.listen(
    Booking.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE bookings ADD CONSTRAINT {NO_OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (business_id WITH =, tstzrange(scheduled_at, ends_at, '[)') WITH &&) "
        "WHERE (status <> 'cancelled')"
    ).execute_if(dialect="postgresql"),
)

"""Initial schema: businesses and bookings with overlap protection.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # btree_gist lets a GiST exclusion constraint mix "=" on business_id
    # with "&&" on the booking time range.
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "businesses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("timezone", sa.String(64), nullable=True),
        sa.Column("hours", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("services", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("min_advance_booking_hours", sa.Integer(), nullable=True),
        sa.Column("max_advance_booking_days", sa.Integer(), nullable=True),
        sa.Column("default_buffer_minutes", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("consumer_id", sa.String(64), nullable=False),
        sa.Column("business_id", sa.Uuid(), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("service_id", sa.String(255), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("customer_info", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("duration BETWEEN 15 AND 480", name="check_booking_duration_range"),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_amount_non_negative"),
        sa.CheckConstraint("ends_at > scheduled_at", name="check_booking_ends_after_start"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'no_show')",
            name="check_booking_status",
        ),
    )
    # Conflict checks and day listings filter on business and start time.
    op.create_index("ix_bookings_business_scheduled", "bookings", ["business_id", "scheduled_at"])
    op.create_index("ix_bookings_consumer_scheduled", "bookings", ["consumer_id", "scheduled_at"])

    # Storage-level guarantee of the no-overlap invariant. The application
    # already serializes writers with row locks; this catches anything that
    # bypasses BookingService.
    op.execute(
        """
        ALTER TABLE bookings
        ADD CONSTRAINT excl_bookings_no_overlap
        EXCLUDE USING gist (
            business_id WITH =,
            tstzrange(scheduled_at, ends_at, '[)') WITH &&
        )
        WHERE (status <> 'cancelled')
        """
    )


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("businesses")

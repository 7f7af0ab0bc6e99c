"""
Business model: the directory record this engine reads hours, advance
booking rules and service offerings from.

`hours` and `services` are JSON documents owned by the business profile
flow; this engine only reads them through `map_business`.
"""

import uuid

from sqlalchemy import JSON, Boolean, Column, Integer, String, Uuid
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class Business(Base, TimestampMixin):
    __tablename__ = "businesses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    timezone = Column(String(64), nullable=True)

    # {"0": {"isOpen": false}, "1": {"isOpen": true, "open": "09:00", "close": "17:00"}, ...}
    hours = Column(JSON, nullable=False, default=dict)
    # [{"id": "cut", "name": "Haircut", "duration": 60, "bufferTime": 15, "price": 40}, ...]
    services = Column(JSON, nullable=False, default=list)

    # NULL means "use the configured default"; 0 is a real value.
    min_advance_booking_hours = Column(Integer, nullable=True)
    max_advance_booking_days = Column(Integer, nullable=True)
    default_buffer_minutes = Column(Integer, nullable=True)

    bookings = relationship("Booking", back_populates="business", lazy="raise")

    def __repr__(self) -> str:
        return f"<Business(id={self.id}, name={self.name}, active={self.is_active})>"

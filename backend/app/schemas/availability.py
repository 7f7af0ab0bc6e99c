"""
Pydantic schemas for availability queries.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TimeSlot(BaseModel):
    """A candidate interval [start_time, end_time). Derived, never persisted."""

    model_config = ConfigDict(frozen=True)

    start_time: datetime
    end_time: datetime
    is_available: bool = True
    price: Optional[Decimal] = None
    service_id: Optional[str] = None


class AvailabilityResponse(BaseModel):
    business_id: uuid.UUID
    date: date
    slots: list[TimeSlot]

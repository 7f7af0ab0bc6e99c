"""
Candidate slot generation for one business day.

Slots tile the opening window from `open`, stepping by duration + buffer,
and every slot must end at or before `close`. Output depends only on the
arguments: no clock reads, no randomness.
"""

from datetime import date, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Optional

from app.schemas.availability import TimeSlot
from app.schemas.business import DayHours
from app.services.clock_math import minutes_to_datetime, time_string_to_minutes


class SlotGenerator:
    def generate(
        self,
        hours: Optional[DayHours],
        duration_minutes: int,
        buffer_minutes: int,
        day: date,
        tz: tzinfo = timezone.utc,
        price: Optional[Decimal] = None,
        service_id: Optional[str] = None,
    ) -> list[TimeSlot]:
        if hours is None or not hours.is_open or not hours.open or not hours.close:
            return []
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")
        if buffer_minutes < 0:
            raise ValueError("buffer_minutes must not be negative")

        open_minutes = time_string_to_minutes(hours.open)
        close_minutes = time_string_to_minutes(hours.close)
        step = duration_minutes + buffer_minutes
        length = timedelta(minutes=duration_minutes)

        slots = []
        minute = open_minutes
        while minute + duration_minutes <= close_minutes:
            start = minutes_to_datetime(day, minute, tz)
            end = (start.astimezone(timezone.utc) + length).astimezone(tz)
            slots.append(
                TimeSlot(
                    start_time=start,
                    end_time=end,
                    is_available=True,
                    price=price,
                    service_id=service_id,
                )
            )
            minute += step
        return slots

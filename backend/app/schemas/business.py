"""
Read-only views of the business directory used by the booking engine.

These are produced by `app.repositories.mappers.map_business`, which is
where unset directory values are resolved to configured defaults.
"""

import uuid
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field


class DayHours(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    is_open: bool = Field(False, alias="isOpen")
    open: Optional[str] = None  # "HH:MM"
    close: Optional[str] = None  # "HH:MM"


class ServiceOffering(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    name: Optional[str] = None
    duration: Optional[int] = None
    buffer_time: Optional[int] = Field(None, alias="bufferTime")
    price: Optional[Decimal] = None


class BusinessConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    name: str
    is_active: bool
    timezone: str
    # Keyed by day of week, 0 = Sunday ... 6 = Saturday
    business_hours: dict[int, DayHours]
    services: tuple[ServiceOffering, ...] = ()
    min_advance_booking_hours: int
    max_advance_booking_days: int
    default_buffer_minutes: int

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def hours_for(self, day: int) -> Optional[DayHours]:
        return self.business_hours.get(day)

    def find_service(self, service_id: str) -> Optional[ServiceOffering]:
        for service in self.services:
            if service.id == service_id:
                return service
        return None

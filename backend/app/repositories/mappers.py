"""
Explicit row -> value-object mapping for directory data.

The businesses table stores hours and services as JSON documents written by
other parts of the platform; everything the engine reads from them goes
through these functions. A value is replaced by the configured default only
when it is missing or None, never when it is 0.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from app.core.config import Settings, get_settings
from app.schemas.business import BusinessConfig, DayHours, ServiceOffering

DAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")


def _coalesce(value: Optional[Any], default: Any) -> Any:
    return default if value is None else value


def _day_index(key: Any) -> Optional[int]:
    if isinstance(key, int):
        index = key
    elif isinstance(key, str) and key.strip().isdigit():
        index = int(key)
    elif isinstance(key, str) and key.strip().lower() in DAY_NAMES:
        return DAY_NAMES.index(key.strip().lower())
    else:
        return None
    return index if 0 <= index <= 6 else None


def map_day_hours(raw: Optional[dict[str, Any]]) -> DayHours:
    if not raw:
        return DayHours(is_open=False)
    return DayHours(
        is_open=bool(raw.get("isOpen", raw.get("is_open", False))),
        open=raw.get("open"),
        close=raw.get("close"),
    )


def map_business_hours(raw: Any) -> dict[int, DayHours]:
    """Accepts a 7-element list or a mapping keyed by index or day name."""
    if not raw:
        return {}
    if isinstance(raw, list):
        items = enumerate(raw)
    else:
        items = raw.items()

    hours = {}
    for key, value in items:
        index = _day_index(key)
        if index is not None:
            hours[index] = map_day_hours(value)
    return hours


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def map_service(raw: dict[str, Any]) -> ServiceOffering:
    return ServiceOffering(
        id=str(raw["id"]),
        name=raw.get("name"),
        duration=raw.get("duration"),
        buffer_time=raw.get("bufferTime", raw.get("buffer_time")),
        price=_to_decimal(raw.get("price")),
    )


def map_business(row: Any, settings: Optional[Settings] = None) -> BusinessConfig:
    """Build a BusinessConfig from a `businesses` row (ORM object or mapping)."""
    settings = settings or get_settings()
    get = row.get if isinstance(row, dict) else lambda name: getattr(row, name, None)

    return BusinessConfig(
        id=get("id"),
        name=get("name") or "",
        is_active=bool(_coalesce(get("is_active"), True)),
        timezone=get("timezone") or settings.DEFAULT_TIMEZONE,
        business_hours=map_business_hours(get("hours")),
        services=tuple(map_service(s) for s in (get("services") or []) if s.get("id") is not None),
        min_advance_booking_hours=_coalesce(
            get("min_advance_booking_hours"), settings.DEFAULT_MIN_ADVANCE_BOOKING_HOURS
        ),
        max_advance_booking_days=_coalesce(
            get("max_advance_booking_days"), settings.DEFAULT_MAX_ADVANCE_BOOKING_DAYS
        ),
        default_buffer_minutes=_coalesce(
            get("default_buffer_minutes"), settings.DEFAULT_BUFFER_MINUTES
        ),
    )

"""
Structured logging configuration using structlog.

JSON lines in production, console output elsewhere. Every event carries the
service name and environment; request_id and user_id are bound per request
through structlog contextvars (see app.api.middleware and app.api.deps).

Booking events may include a customer_info snapshot; contact fields in it
are masked before rendering.
"""

import logging
import sys
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import structlog

from app.core.config import Settings, get_settings

MASKED_CUSTOMER_FIELDS = frozenset({"email", "phone"})


def _json_default(value: Any) -> Any:
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return repr(value)


def _mask(value: str) -> str:
    return value[:2] + "***" if len(value) > 2 else "***"


def mask_customer_contact(_, __, event_dict: dict) -> dict:
    info = event_dict.get("customer_info")
    if isinstance(info, dict):
        event_dict["customer_info"] = {
            key: _mask(str(val)) if key in MASKED_CUSTOMER_FIELDS and val else val
            for key, val in info.items()
        }
    return event_dict


def _service_context(settings: Settings):
    def add_service_context(_, __, event_dict: dict) -> dict:
        event_dict.setdefault("service", settings.APP_NAME)
        event_dict.setdefault("environment", settings.ENVIRONMENT)
        return event_dict

    return add_service_context


def _renderer(settings: Settings):
    if settings.ENVIRONMENT == "production":
        return structlog.processors.JSONRenderer(default=_json_default)
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging() -> None:
    settings = get_settings()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_context(settings),
        mask_customer_contact,
    ]
    if settings.ENVIRONMENT == "production":
        shared_processors.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # stdlib records (uvicorn, sqlalchemy, alembic) go through the same chain
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer(settings)],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DEBUG else logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

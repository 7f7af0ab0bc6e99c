"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .logging_notifier import LoggingNotifier
from .notifier import BookingNotifier

__all__ = ["BookingNotifier", "LoggingNotifier"]

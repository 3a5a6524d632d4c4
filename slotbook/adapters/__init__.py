"""
Adapters layer - Persistence, notification and clock implementations.
"""

from .clock import FixedClock, SystemClock
from .memory_store import MemoryBookingStore
from .notifiers import LoggingNotifier, WebhookNotifier
from .sql_store import SqlBookingStore

__all__ = [
    "FixedClock",
    "LoggingNotifier",
    "MemoryBookingStore",
    "SqlBookingStore",
    "SystemClock",
    "WebhookNotifier",
]

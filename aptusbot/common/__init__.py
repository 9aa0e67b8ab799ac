"""
Common utilities for the Aptus booking bot
"""
from .config import Config, load_config
from .models import (
    SlotStatus,
    SlotKey,
    Slot,
    ScrapeResult,
    ScrapeStatus,
    Transition,
    FailureReason,
    LoginResult,
    LoginState,
    ActionResult,
    CycleReport,
    NotificationPayload,
)
from .schedule import PassSchedule, PassTime
from .scheduler import IntervalScheduler, RetryStrategy
from .storage import SlotStore, InMemorySlotStore, SQLiteSlotStore, open_store

__all__ = [
    "Config",
    "load_config",
    "SlotStatus",
    "SlotKey",
    "Slot",
    "ScrapeResult",
    "ScrapeStatus",
    "Transition",
    "FailureReason",
    "LoginResult",
    "LoginState",
    "ActionResult",
    "CycleReport",
    "NotificationPayload",
    "PassSchedule",
    "PassTime",
    "IntervalScheduler",
    "RetryStrategy",
    "SlotStore",
    "InMemorySlotStore",
    "SQLiteSlotStore",
    "open_store",
]

"""LedgerLock core: error taxonomy and ledger event stream."""

from ledgerlock.core.exceptions import (
    LedgerLockError,
    InvalidInput,
    AlreadyRegistered,
    NotFound,
    Unauthorized,
    LedgerError,
    CommitFailed,
    Unavailable,
    LoggingFailed,
)
from ledgerlock.core.event_bus import Event, EventBus, EventType, get_event_bus

__all__ = [
    "LedgerLockError",
    "InvalidInput",
    "AlreadyRegistered",
    "NotFound",
    "Unauthorized",
    "LedgerError",
    "CommitFailed",
    "Unavailable",
    "LoggingFailed",
    "Event",
    "EventBus",
    "EventType",
    "get_event_bus",
]

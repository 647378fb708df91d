"""Database module."""

from ledgerlock.api.db.session import get_session_maker, init_db, close_db
from ledgerlock.api.db.models import (
    Base,
    LedgerTransaction,
    LedgerEventRecord,
    IdentityRecord,
    PermissionEdgeRecord,
)

__all__ = [
    "get_session_maker",
    "init_db",
    "close_db",
    "Base",
    "LedgerTransaction",
    "LedgerEventRecord",
    "IdentityRecord",
    "PermissionEdgeRecord",
]

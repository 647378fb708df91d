"""
LEDGERLOCK - Access Module

Access decisions and the audit log of every attempt.

Components:
- engine.py: AuthorizationEngine, the fail-closed request_access protocol
- audit.py: Audit log reads, export and summaries

Usage:
    from ledgerlock.api.access import AuthorizationEngine, AccessLogFilter

    engine = AuthorizationEngine(ledger)
    decision = await engine.request_access("0xA1", "0xA2", signer="0xA1")

    async for attempt in engine.query_access_log(AccessLogFilter(requester="0xA1")):
        print(attempt.resource, attempt.is_success)
"""

from ledgerlock.api.access.audit import (
    AccessAttemptEvent,
    AccessLogFilter,
    AccessLogSummary,
    AuditLog,
)
from ledgerlock.api.access.engine import AccessDecision, AuthorizationEngine

__all__ = [
    "AccessAttemptEvent",
    "AccessLogFilter",
    "AccessLogSummary",
    "AuditLog",
    "AccessDecision",
    "AuthorizationEngine",
]

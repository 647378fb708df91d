"""
LEDGERLOCK - Access Audit Log

Append-only, commit-ordered trail of access attempts.
Every entry is an AccessAttempt event on the ledger; this module appends
them on behalf of the authorization engine and reads them back.
"""

import hashlib
import json
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional
from uuid import uuid4

from ledgerlock.api.ledger.adapter import ACCESS_ATTEMPT, LedgerAdapter
from ledgerlock.api.ledger.operations import (
    EventFilter,
    EventRange,
    LedgerEvent,
    Operation,
    Receipt,
)


logger = logging.getLogger(__name__)


# ============================================================
# Audit Event Structure
# ============================================================


@dataclass(frozen=True)
class AccessAttemptEvent:
    """One evaluated permission edge, as committed to the ledger."""

    requester: str
    resource: str
    is_success: bool
    timestamp: datetime
    sequence_id: int
    tx_hash: str

    @classmethod
    def from_ledger_event(cls, event: LedgerEvent) -> "AccessAttemptEvent":
        return cls(
            requester=event.payload["requester"],
            resource=event.payload["resource"],
            is_success=bool(event.payload["is_success"]),
            timestamp=event.timestamp,
            sequence_id=event.sequence_id,
            tx_hash=event.tx_hash,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for transport."""
        return {
            "requester": self.requester,
            "resource": self.resource,
            "is_success": self.is_success,
            "timestamp": self.timestamp.isoformat(),
            "sequence_id": self.sequence_id,
            "tx_hash": self.tx_hash,
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def compute_hash(self) -> str:
        """Compute SHA256 hash for integrity verification."""
        content = (
            f"{self.sequence_id}{self.tx_hash}{self.requester}"
            f"{self.resource}{self.is_success}{self.timestamp.isoformat()}"
        )
        return hashlib.sha256(content.encode()).hexdigest()


@dataclass(frozen=True)
class AccessLogFilter:
    """Optional predicates over the access log. None means any."""

    requester: Optional[str] = None
    resource: Optional[str] = None
    is_success: Optional[bool] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None

    def to_event_filter(self) -> EventFilter:
        return EventFilter(
            requester=self.requester,
            resource=self.resource,
            is_success=self.is_success,
            since=self.since,
            until=self.until,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requester": self.requester,
            "resource": self.resource,
            "is_success": self.is_success,
            "since": self.since.isoformat() if self.since else None,
            "until": self.until.isoformat() if self.until else None,
        }


@dataclass
class AccessLogSummary:
    """Aggregate view over a slice of the access log."""

    report_id: str
    generated_at: datetime
    filter: AccessLogFilter
    total_attempts: int
    granted: int
    denied: int
    by_requester: Dict[str, int]
    by_resource: Dict[str, int]
    denied_by_requester: Dict[str, int]
    first_sequence_id: Optional[int]
    last_sequence_id: Optional[int]
    integrity_hash: str


def _integrity_hash(data: Dict[str, Any]) -> str:
    return hashlib.sha256(json.dumps(data, sort_keys=True, default=str).encode()).hexdigest()


# ============================================================
# Audit Log
# ============================================================


class AuditLog:
    """
    Access attempt log.

    Appends go through the ledger signed by the requester; reads re-query
    committed state on every call and are never cached.
    """

    def __init__(self, ledger: LedgerAdapter, max_limit: Optional[int] = None):
        self.ledger = ledger
        self.max_limit = max_limit

    async def append(self, requester: str, resource: str, is_success: bool) -> AccessAttemptEvent:
        """
        Commit one access attempt signed by the requester.

        `is_success` is recorded exactly as given.
        """
        receipt: Receipt = await self.ledger.commit(
            Operation.request_access(requester, resource, is_success), requester
        )
        event = AccessAttemptEvent.from_ledger_event(receipt.first_event(ACCESS_ATTEMPT))

        logger.info(
            "ACCESS_ATTEMPT",
            extra={
                "access_attempt": event.to_dict(),
                "event_hash": event.compute_hash(),
            },
        )
        return event

    def _bounded(self, event_range: Optional[EventRange], capped: bool) -> EventRange:
        event_range = event_range or EventRange()
        if not capped or self.max_limit is None:
            return event_range
        limit = event_range.limit
        if limit is None or limit > self.max_limit:
            limit = self.max_limit
        return EventRange(event_range.from_sequence, event_range.to_sequence, limit)

    async def query(
        self,
        log_filter: Optional[AccessLogFilter] = None,
        event_range: Optional[EventRange] = None,
        capped: bool = True,
    ) -> AsyncIterator[AccessAttemptEvent]:
        """
        Stream matching attempts in commit order.

        With `capped`, at most `max_limit` events are returned. Export and
        summary reads pass `capped=False` so they always cover the whole
        range; only an explicit `limit` in the range bounds them.
        """
        log_filter = log_filter or AccessLogFilter()
        async for event in self.ledger.query_events(
            ACCESS_ATTEMPT, log_filter.to_event_filter(), self._bounded(event_range, capped)
        ):
            yield AccessAttemptEvent.from_ledger_event(event)

    async def collect(
        self,
        log_filter: Optional[AccessLogFilter] = None,
        event_range: Optional[EventRange] = None,
        capped: bool = True,
    ) -> List[AccessAttemptEvent]:
        """Materialize a query into a list."""
        return [event async for event in self.query(log_filter, event_range, capped)]

    async def export(
        self,
        log_filter: Optional[AccessLogFilter] = None,
        event_range: Optional[EventRange] = None,
        include_hash: bool = True,
    ) -> Dict[str, Any]:
        """Export attempts with an integrity hash over the document."""
        log_filter = log_filter or AccessLogFilter()
        events = await self.collect(log_filter, event_range, capped=False)

        export_data = {
            "export_timestamp": datetime.now(timezone.utc).isoformat(),
            "filter": log_filter.to_dict(),
            "event_count": len(events),
            "events": [e.to_dict() for e in events],
        }
        if include_hash:
            export_data["integrity_hash"] = _integrity_hash(export_data)

        return export_data

    async def summarize(
        self,
        log_filter: Optional[AccessLogFilter] = None,
        event_range: Optional[EventRange] = None,
    ) -> AccessLogSummary:
        """Aggregate granted/denied counts per requester and resource."""
        log_filter = log_filter or AccessLogFilter()
        by_requester: Counter = Counter()
        by_resource: Counter = Counter()
        denied_by_requester: Counter = Counter()
        granted = denied = 0
        first_sequence_id = last_sequence_id = None
        digest = hashlib.sha256()

        async for event in self.query(log_filter, event_range, capped=False):
            if first_sequence_id is None:
                first_sequence_id = event.sequence_id
            last_sequence_id = event.sequence_id

            by_requester[event.requester] += 1
            by_resource[event.resource] += 1
            if event.is_success:
                granted += 1
            else:
                denied += 1
                denied_by_requester[event.requester] += 1
            digest.update(event.compute_hash().encode())

        return AccessLogSummary(
            report_id=f"rpt_{uuid4().hex[:16]}",
            generated_at=datetime.now(timezone.utc),
            filter=log_filter,
            total_attempts=granted + denied,
            granted=granted,
            denied=denied,
            by_requester=dict(by_requester),
            by_resource=dict(by_resource),
            denied_by_requester=dict(denied_by_requester),
            first_sequence_id=first_sequence_id,
            last_sequence_id=last_sequence_id,
            integrity_hash=digest.hexdigest(),
        )

"""
Ledger Operations

Value types that cross the ledger adapter boundary: the operations a
signer submits, the receipts commits return, and the events they emit.
"""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class OperationKind(str, Enum):
    """State-changing operations the ledger accepts."""

    REGISTER_IDENTITY = "registerIdentity"
    GRANT_ACCESS = "grantAccess"
    REVOKE_ACCESS = "revokeAccess"
    REQUEST_ACCESS = "requestAccess"


class EntityType(str, Enum):
    """Keyed state readable through LedgerAdapter.query."""

    IDENTITY = "identity"
    PERMISSION = "permission"


@dataclass(frozen=True)
class Operation:
    """A single state change, submitted with one signer."""

    kind: OperationKind
    arguments: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def register_identity(cls, address: str, name: str, role: str) -> "Operation":
        return cls(OperationKind.REGISTER_IDENTITY, {"address": address, "name": name, "role": role})

    @classmethod
    def grant_access(cls, requester: str, resource: str) -> "Operation":
        return cls(OperationKind.GRANT_ACCESS, {"requester": requester, "resource": resource})

    @classmethod
    def revoke_access(cls, requester: str, resource: str) -> "Operation":
        return cls(OperationKind.REVOKE_ACCESS, {"requester": requester, "resource": resource})

    @classmethod
    def request_access(cls, requester: str, resource: str, is_success: bool) -> "Operation":
        # is_success is the engine's pre-commit evaluation; the ledger records it verbatim
        return cls(
            OperationKind.REQUEST_ACCESS,
            {"requester": requester, "resource": resource, "is_success": is_success},
        )


@dataclass(frozen=True)
class LedgerEvent:
    """Event emitted by a committed transaction."""

    event_type: str
    sequence_id: int
    tx_hash: str
    timestamp: datetime
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Receipt:
    """Proof that an operation was committed."""

    tx_hash: str
    sequence_id: int
    signer: str
    operation: OperationKind
    committed_at: datetime
    events: List[LedgerEvent] = field(default_factory=list)

    def first_event(self, event_type: str) -> Optional[LedgerEvent]:
        for event in self.events:
            if event.event_type == event_type:
                return event
        return None


@dataclass(frozen=True)
class Identity:
    """Registered entity as stored on the ledger."""

    address: str
    name: str
    role: str
    registered: bool
    registration_timestamp: datetime
    registration_tx_hash: Optional[str] = None


@dataclass(frozen=True)
class EventFilter:
    """Optional predicates for LedgerAdapter.query_events. None means any."""

    requester: Optional[str] = None
    resource: Optional[str] = None
    is_success: Optional[bool] = None
    entity_address: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None


@dataclass(frozen=True)
class EventRange:
    """Inclusive sequence window plus an optional cap on results."""

    from_sequence: Optional[int] = None
    to_sequence: Optional[int] = None
    limit: Optional[int] = None


def compute_tx_hash(
    sequence_id: int,
    signer: str,
    operation: OperationKind,
    arguments: Dict[str, Any],
    committed_at: datetime,
) -> str:
    """Deterministic transaction reference over the committed content."""
    content = json.dumps(
        {
            "sequence_id": sequence_id,
            "signer": signer,
            "operation": operation.value,
            "arguments": arguments,
            "committed_at": committed_at.isoformat(),
        },
        sort_keys=True,
        default=str,
    )
    return "0x" + hashlib.sha256(content.encode()).hexdigest()


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted to it."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

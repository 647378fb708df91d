"""
Authorization Engine

Orchestrates registration, grant/revoke, and the request-access protocol
on top of the ledger. Holds no state of its own: every read is a ledger
query and every write is a single ledger commit.

Request-access protocol:
1. Read the (requester, resource) edge (pure lookup, no commit)
2. Commit an AccessAttempt carrying that result, signed by the requester
3. Return the result

If step 2 does not land, the call fails with LoggingFailed and no access
decision is returned. A decision that is not durably audited is never
honored.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional

from ledgerlock.core.event_bus import Event, EventBus, EventType
from ledgerlock.core.exceptions import (
    InvalidInput,
    LedgerLockError,
    LoggingFailed,
    NotFound,
    Unauthorized,
)
from ledgerlock.api.access.audit import (
    AccessAttemptEvent,
    AccessLogFilter,
    AccessLogSummary,
    AuditLog,
)
from ledgerlock.api.identity.service import IdentityRegistry
from ledgerlock.api.ledger.adapter import LedgerAdapter
from ledgerlock.api.ledger.operations import EventRange, Identity, Receipt, as_utc
from ledgerlock.api.permissions.service import PermissionMatrix

logger = logging.getLogger(__name__)


DEFAULT_ADDRESS_PATTERN = r"0x[0-9a-fA-F]{1,64}"


class AccessState(str, Enum):
    """Progress of a single request_access call."""

    IDLE = "idle"
    PERMISSION_CHECKED = "permission_checked"
    ATTEMPT_LOGGED = "attempt_logged"
    COMPLETED = "completed"


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of request_access; only produced once the attempt is logged."""

    access_granted: bool
    event: AccessAttemptEvent
    state: AccessState = AccessState.COMPLETED


class AuthorizationEngine:
    """Access-control core over a ledger adapter."""

    def __init__(
        self,
        ledger: LedgerAdapter,
        event_bus: Optional[EventBus] = None,
        address_pattern: str = DEFAULT_ADDRESS_PATTERN,
        audit_max_limit: Optional[int] = None,
    ):
        self.ledger = ledger
        self.identities = IdentityRegistry(ledger)
        self.permissions = PermissionMatrix(ledger)
        self.audit = AuditLog(ledger, max_limit=audit_max_limit)
        self.event_bus = event_bus
        self._address_re = re.compile(address_pattern)

    # ==================== Validation ====================

    def _require_address(self, value: object, field_name: str) -> str:
        if not isinstance(value, str) or not value:
            raise InvalidInput(f"{field_name} is required", details={"field": field_name})
        if not self._address_re.fullmatch(value):
            raise InvalidInput(
                f"{field_name} is not a valid address: {value!r}",
                details={"field": field_name},
            )
        return value

    @staticmethod
    def _require_text(value: object, field_name: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise InvalidInput(f"{field_name} must be a non-empty string", details={"field": field_name})
        return value

    # ==================== Notifications ====================

    async def _notify(self, receipt: Receipt) -> None:
        if self.event_bus is None:
            return
        for ledger_event in receipt.events:
            await self.event_bus.publish(
                Event(
                    event_type=EventType(ledger_event.event_type),
                    data=dict(ledger_event.payload),
                    tx_hash=ledger_event.tx_hash,
                    sequence_id=ledger_event.sequence_id,
                    timestamp=ledger_event.timestamp,
                )
            )

    # ==================== Identity Registry ====================

    async def register_identity(self, address: str, name: str, role: str, signer: str) -> Receipt:
        """
        Register an identity. Owner only.

        Raises:
            InvalidInput: Empty field or malformed address
            AlreadyRegistered: Address already registered
            Unauthorized: Signer is not the ledger owner
            CommitFailed: Ledger could not finalize the write
        """
        self._require_address(address, "address")
        self._require_text(name, "name")
        self._require_text(role, "role")

        receipt = await self.identities.register(address, name, role, signer)
        logger.info(f"Identity registered: {name} ({address}) role={role} tx={receipt.tx_hash}")
        await self._notify(receipt)
        return receipt

    async def get_identity(self, address: str) -> Identity:
        """Read view of a registered identity."""
        self._require_address(address, "address")
        identity = await self.identities.get(address)
        if identity is None:
            raise NotFound(f"No identity registered for {address}", details={"address": address})
        return identity

    # ==================== Permission Matrix ====================

    async def grant_access(self, requester: str, resource: str, signer: str) -> Receipt:
        """Set (requester, resource) to granted. Owner only; idempotent."""
        self._require_address(requester, "requester")
        self._require_address(resource, "resource")

        receipt = await self.permissions.grant(requester, resource, signer)
        logger.info(f"Access granted: {requester} -> {resource} tx={receipt.tx_hash}")
        await self._notify(receipt)
        return receipt

    async def revoke_access(self, requester: str, resource: str, signer: str) -> Receipt:
        """Set (requester, resource) to not granted. Owner only; idempotent."""
        self._require_address(requester, "requester")
        self._require_address(resource, "resource")

        receipt = await self.permissions.revoke(requester, resource, signer)
        logger.info(f"Access revoked: {requester} -> {resource} tx={receipt.tx_hash}")
        await self._notify(receipt)
        return receipt

    async def has_access(self, requester: str, resource: str) -> bool:
        """Read view of the edge. Does not log an attempt."""
        self._require_address(requester, "requester")
        self._require_address(resource, "resource")
        return await self.permissions.has_access(requester, resource)

    # ==================== Request Access ====================

    async def request_access(
        self,
        requester: str,
        resource: str,
        signer: Optional[str] = None,
    ) -> AccessDecision:
        """
        Evaluate and durably log one access attempt.

        Args:
            requester: Address asking for access; signs the audit commit
            resource: Address being accessed
            signer: Authenticated caller, when it was established upstream;
                must equal requester

        Raises:
            InvalidInput: Malformed address
            Unauthorized: signer is someone other than the requester
            Unavailable: Permission read hit a transient ledger failure
            LoggingFailed: Audit commit did not land; treat as denied
        """
        self._require_address(requester, "requester")
        self._require_address(resource, "resource")
        if signer is not None and signer != requester:
            raise Unauthorized(
                "Access requests must be signed by the requester",
                signer=signer,
                details={"requester": requester},
            )

        state = AccessState.IDLE

        # Step 1: pure read; Unavailable propagates and the caller may retry
        granted = await self.permissions.has_access(requester, resource)
        state = AccessState.PERMISSION_CHECKED

        # Step 2: the attempt is recorded whatever step 1 said
        try:
            event = await self.audit.append(requester, resource, granted)
        except LedgerLockError as e:
            logger.warning(
                f"Access attempt {requester} -> {resource} not logged "
                f"after {state.value}: {e}"
            )
            raise LoggingFailed(
                requester,
                resource,
                reason=str(e),
                details={"cause": e.code},
                recoverable=e.recoverable,
            ) from e

        await self._notify_attempt(event)

        logger.info(
            f"Access {'GRANTED' if granted else 'DENIED'}: {requester} -> {resource} "
            f"seq={event.sequence_id}"
        )
        return AccessDecision(access_granted=event.is_success, event=event)

    async def _notify_attempt(self, event: AccessAttemptEvent) -> None:
        if self.event_bus is None:
            return
        await self.event_bus.publish(
            Event(
                event_type=EventType.ACCESS_ATTEMPT,
                data={
                    "requester": event.requester,
                    "resource": event.resource,
                    "is_success": event.is_success,
                },
                tx_hash=event.tx_hash,
                sequence_id=event.sequence_id,
                timestamp=event.timestamp,
            )
        )

    # ==================== Audit Log ====================

    def _validate_log_filter(self, log_filter: Optional[AccessLogFilter]) -> AccessLogFilter:
        log_filter = log_filter or AccessLogFilter()
        for field_name in ("requester", "resource"):
            value = getattr(log_filter, field_name)
            if value is not None:
                self._require_address(value, field_name)
        if log_filter.since and log_filter.until and as_utc(log_filter.since) > as_utc(log_filter.until):
            raise InvalidInput("since must not be after until")
        return log_filter

    def query_access_log(
        self,
        log_filter: Optional[AccessLogFilter] = None,
        event_range: Optional[EventRange] = None,
    ) -> AsyncIterator[AccessAttemptEvent]:
        """
        Stream matching access attempts in commit order.

        Each call re-queries committed state. Validation errors are raised
        here, before iteration starts.
        """
        return self.audit.query(self._validate_log_filter(log_filter), event_range)

    async def export_access_log(
        self,
        log_filter: Optional[AccessLogFilter] = None,
        event_range: Optional[EventRange] = None,
    ) -> Dict[str, Any]:
        return await self.audit.export(self._validate_log_filter(log_filter), event_range)

    async def summarize_access_log(
        self,
        log_filter: Optional[AccessLogFilter] = None,
        event_range: Optional[EventRange] = None,
    ) -> AccessLogSummary:
        return await self.audit.summarize(self._validate_log_filter(log_filter), event_range)

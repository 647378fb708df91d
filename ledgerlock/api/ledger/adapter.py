"""
Ledger Adapter

Durable, totally ordered, append-only store behind the authorization
engine. The engine only sees the LedgerAdapter protocol; SqlLedger is
the implementation backed by async SQLAlchemy.

Guarantees provided by SqlLedger:
1. Every commit is one database transaction: it lands fully or not at all
2. Commits are serialized by a single write lock; sequence ids and
   timestamps are assigned inside it
3. Authority is checked before anything is written
4. Event reads are pinned at the head observed when iteration starts
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledgerlock.core.exceptions import (
    AlreadyRegistered,
    CommitFailed,
    LedgerLockError,
    Unavailable,
)
from ledgerlock.api.db.models import (
    IdentityRecord,
    LedgerEventRecord,
    LedgerTransaction,
    PermissionEdgeRecord,
)
from ledgerlock.api.ledger.authority import check_operation_authority
from ledgerlock.api.ledger.operations import (
    EntityType,
    EventFilter,
    EventRange,
    Identity,
    LedgerEvent,
    Operation,
    OperationKind,
    Receipt,
    as_utc,
    compute_tx_hash,
)

logger = logging.getLogger(__name__)


IDENTITY_REGISTERED = "IdentityRegistered"
ACCESS_GRANTED = "AccessGranted"
ACCESS_REVOKED = "AccessRevoked"
ACCESS_ATTEMPT = "AccessAttempt"


class LedgerAdapter(Protocol):
    """Primitives the engine consumes from the ledger."""

    owner_address: str

    async def commit(self, operation: Operation, signer: str) -> Receipt:
        ...

    async def query(self, entity_type: EntityType, key: Any) -> Optional[Any]:
        ...

    def query_events(
        self,
        event_type: str,
        event_filter: Optional[EventFilter] = None,
        event_range: Optional[EventRange] = None,
    ) -> AsyncIterator[LedgerEvent]:
        ...


def _event_payload(record: LedgerEventRecord) -> Dict[str, Any]:
    if record.event_type == IDENTITY_REGISTERED:
        return {"entity_address": record.entity_address, "role": record.role}
    payload = {"requester": record.requester, "resource": record.resource}
    if record.event_type == ACCESS_ATTEMPT:
        payload["is_success"] = bool(record.is_success)
    return payload


def _to_ledger_event(record: LedgerEventRecord) -> LedgerEvent:
    return LedgerEvent(
        event_type=record.event_type,
        sequence_id=record.sequence_id,
        tx_hash=record.tx_hash,
        timestamp=as_utc(record.timestamp),
        payload=_event_payload(record),
    )


class SqlLedger:
    """LedgerAdapter backed by an async SQLAlchemy database."""

    def __init__(
        self,
        session_maker: async_sessionmaker,
        owner_address: str,
        commit_timeout: Optional[float] = None,
        query_timeout: Optional[float] = None,
        page_size: int = 500,
    ):
        self._session_maker = session_maker
        self.owner_address = owner_address
        self._commit_timeout = commit_timeout
        self._query_timeout = query_timeout
        self._page_size = page_size
        self._write_lock = asyncio.Lock()

    # ==================== Commit ====================

    async def commit(self, operation: Operation, signer: str) -> Receipt:
        """
        Commit one operation signed by `signer`.

        Raises:
            Unauthorized: Signer lacks the authority for the operation
            AlreadyRegistered: Identity registration for a taken address
            CommitFailed: Database rejected the write
            Unavailable: Database unreachable, or the commit timed out
        """
        check_operation_authority(operation, signer, self.owner_address)

        try:
            return await asyncio.wait_for(
                self._commit(operation, signer), timeout=self._commit_timeout
            )
        except asyncio.TimeoutError:
            raise Unavailable(
                f"{operation.kind.value} commit timed out; its outcome is observable by querying the ledger",
                details={"operation": operation.kind.value, "signer": signer},
            )

    async def _commit(self, operation: Operation, signer: str) -> Receipt:
        async with self._write_lock:
            try:
                async with self._session_maker() as session:
                    async with session.begin():
                        receipt = await self._apply(session, operation, signer)
            except LedgerLockError:
                raise
            except IntegrityError as e:
                # Another writer registered the address between our check and insert
                if operation.kind == OperationKind.REGISTER_IDENTITY and await self._is_registered(
                    operation.arguments["address"]
                ):
                    raise AlreadyRegistered(operation.arguments["address"]) from e
                raise CommitFailed(
                    f"{operation.kind.value} rejected by ledger store: {e.orig}",
                    details={"operation": operation.kind.value},
                    recoverable=False,
                ) from e
            except (OperationalError, InterfaceError) as e:
                raise Unavailable(
                    f"Ledger store unavailable: {e.orig}",
                    details={"operation": operation.kind.value},
                ) from e
            except SQLAlchemyError as e:
                raise CommitFailed(
                    f"{operation.kind.value} could not be finalized: {e}",
                    details={"operation": operation.kind.value},
                ) from e

        logger.debug(
            f"Committed {receipt.operation.value} #{receipt.sequence_id} "
            f"by {receipt.signer} ({receipt.tx_hash[:12]}...)"
        )
        return receipt

    async def _is_registered(self, address: str) -> bool:
        try:
            async with self._session_maker() as session:
                record = await session.get(IdentityRecord, address)
        except SQLAlchemyError:
            logger.warning(f"Could not re-read identity {address} after a rejected registration")
            return False
        return record is not None and record.registered

    async def _apply(self, session: AsyncSession, operation: Operation, signer: str) -> Receipt:
        committed_at = datetime.now(timezone.utc)
        arguments = dict(operation.arguments)

        tx = LedgerTransaction(
            tx_hash=f"pending-{uuid4().hex}",
            signer=signer,
            operation=operation.kind.value,
            arguments=arguments,
            committed_at=committed_at,
        )
        session.add(tx)
        await session.flush()
        tx.tx_hash = compute_tx_hash(tx.sequence_id, signer, operation.kind, arguments, committed_at)

        if operation.kind == OperationKind.REGISTER_IDENTITY:
            records = await self._apply_register(session, tx, arguments)
        elif operation.kind in (OperationKind.GRANT_ACCESS, OperationKind.REVOKE_ACCESS):
            records = await self._apply_permission(session, tx, operation.kind, arguments)
        elif operation.kind == OperationKind.REQUEST_ACCESS:
            records = [
                LedgerEventRecord(
                    event_type=ACCESS_ATTEMPT,
                    requester=arguments["requester"],
                    resource=arguments["resource"],
                    is_success=bool(arguments["is_success"]),
                )
            ]
        else:
            raise CommitFailed(f"Unsupported operation: {operation.kind}", recoverable=False)

        for record in records:
            record.tx_sequence_id = tx.sequence_id
            record.tx_hash = tx.tx_hash
            record.timestamp = committed_at
            session.add(record)
        await session.flush()

        return Receipt(
            tx_hash=tx.tx_hash,
            sequence_id=tx.sequence_id,
            signer=signer,
            operation=operation.kind,
            committed_at=committed_at,
            events=[_to_ledger_event(record) for record in records],
        )

    async def _apply_register(
        self, session: AsyncSession, tx: LedgerTransaction, arguments: Dict[str, Any]
    ) -> List[LedgerEventRecord]:
        address = arguments["address"]
        existing = await session.get(IdentityRecord, address)
        if existing is not None and existing.registered:
            raise AlreadyRegistered(address)

        session.add(
            IdentityRecord(
                address=address,
                name=arguments["name"],
                role=arguments["role"],
                registered=True,
                registration_timestamp=tx.committed_at,
                registration_tx_hash=tx.tx_hash,
            )
        )
        return [
            LedgerEventRecord(
                event_type=IDENTITY_REGISTERED,
                entity_address=address,
                role=arguments["role"],
            )
        ]

    async def _apply_permission(
        self,
        session: AsyncSession,
        tx: LedgerTransaction,
        kind: OperationKind,
        arguments: Dict[str, Any],
    ) -> List[LedgerEventRecord]:
        requester = arguments["requester"]
        resource = arguments["resource"]
        granted = kind == OperationKind.GRANT_ACCESS

        edge = await session.get(PermissionEdgeRecord, (requester, resource))
        if edge is None:
            edge = PermissionEdgeRecord(requester=requester, resource=resource)
            session.add(edge)
        edge.granted = granted
        edge.updated_at = tx.committed_at
        edge.updated_tx_hash = tx.tx_hash

        return [
            LedgerEventRecord(
                event_type=ACCESS_GRANTED if granted else ACCESS_REVOKED,
                requester=requester,
                resource=resource,
            )
        ]

    # ==================== Reads ====================

    async def _read(self, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self._query_timeout)
        except asyncio.TimeoutError:
            raise Unavailable("Ledger query timed out")
        except SQLAlchemyError as e:
            raise Unavailable(f"Ledger store unavailable: {e}") from e

    async def query(self, entity_type: EntityType, key: Any) -> Optional[Any]:
        """
        Read current committed state for one key.

        Returns:
            Identity for EntityType.IDENTITY (key: address),
            bool for EntityType.PERMISSION (key: (requester, resource)),
            None when absent
        """
        return await self._read(self._query(entity_type, key))

    async def _query(self, entity_type: EntityType, key: Any) -> Optional[Any]:
        async with self._session_maker() as session:
            if entity_type == EntityType.IDENTITY:
                record = await session.get(IdentityRecord, key)
                if record is None:
                    return None
                return Identity(
                    address=record.address,
                    name=record.name,
                    role=record.role,
                    registered=record.registered,
                    registration_timestamp=as_utc(record.registration_timestamp),
                    registration_tx_hash=record.registration_tx_hash,
                )

            if entity_type == EntityType.PERMISSION:
                requester, resource = key
                edge = await session.get(PermissionEdgeRecord, (requester, resource))
                return None if edge is None else bool(edge.granted)

        raise ValueError(f"Unknown entity type: {entity_type}")

    async def head_sequence(self) -> int:
        """Highest committed event sequence id, 0 when empty."""
        return await self._read(self._head_sequence())

    async def _head_sequence(self) -> int:
        async with self._session_maker() as session:
            head = await session.scalar(select(func.max(LedgerEventRecord.sequence_id)))
            return head or 0

    async def query_events(
        self,
        event_type: str,
        event_filter: Optional[EventFilter] = None,
        event_range: Optional[EventRange] = None,
    ) -> AsyncIterator[LedgerEvent]:
        """
        Stream committed events of one type in commit order.

        Pages through the ledger with keyset pagination on sequence_id.
        Events committed after iteration starts are not included.
        """
        event_filter = event_filter or EventFilter()
        event_range = event_range or EventRange()

        upper = await self.head_sequence()
        if event_range.to_sequence is not None:
            upper = min(upper, event_range.to_sequence)
        cursor = event_range.from_sequence - 1 if event_range.from_sequence is not None else 0
        remaining = event_range.limit

        while cursor < upper:
            page_size = self._page_size if remaining is None else min(self._page_size, remaining)
            if page_size <= 0:
                return

            rows = await self._read(self._fetch_page(event_type, event_filter, cursor, upper, page_size))
            for row in rows:
                yield _to_ledger_event(row)

            if len(rows) < page_size:
                return
            cursor = rows[-1].sequence_id
            if remaining is not None:
                remaining -= len(rows)

    async def _fetch_page(
        self,
        event_type: str,
        event_filter: EventFilter,
        after: int,
        upper: int,
        page_size: int,
    ) -> List[LedgerEventRecord]:
        stmt = select(LedgerEventRecord).where(
            LedgerEventRecord.event_type == event_type,
            LedgerEventRecord.sequence_id > after,
            LedgerEventRecord.sequence_id <= upper,
        )
        if event_filter.requester is not None:
            stmt = stmt.where(LedgerEventRecord.requester == event_filter.requester)
        if event_filter.resource is not None:
            stmt = stmt.where(LedgerEventRecord.resource == event_filter.resource)
        if event_filter.is_success is not None:
            stmt = stmt.where(LedgerEventRecord.is_success == event_filter.is_success)
        if event_filter.entity_address is not None:
            stmt = stmt.where(LedgerEventRecord.entity_address == event_filter.entity_address)
        if event_filter.since is not None:
            stmt = stmt.where(LedgerEventRecord.timestamp >= as_utc(event_filter.since))
        if event_filter.until is not None:
            stmt = stmt.where(LedgerEventRecord.timestamp <= as_utc(event_filter.until))

        stmt = stmt.order_by(LedgerEventRecord.sequence_id).limit(page_size)

        async with self._session_maker() as session:
            result = await session.scalars(stmt)
            return list(result.all())


# Global ledger instance
_ledger: Optional[SqlLedger] = None


def get_ledger() -> SqlLedger:
    """Get the global ledger adapter."""
    global _ledger
    if _ledger is None:
        from ledgerlock.api.config import settings
        from ledgerlock.api.db.session import get_session_maker

        _ledger = SqlLedger(
            get_session_maker(),
            owner_address=settings.LEDGER_OWNER_ADDRESS,
            commit_timeout=settings.LEDGER_COMMIT_TIMEOUT_SEC,
            query_timeout=settings.LEDGER_QUERY_TIMEOUT_SEC,
            page_size=settings.AUDIT_LOG_PAGE_SIZE,
        )
    return _ledger


async def init_ledger() -> None:
    """Initialize the ledger store and adapter."""
    from ledgerlock.api.db.session import init_db

    await init_db()
    ledger = get_ledger()
    logger.info(f"Ledger ready (owner {ledger.owner_address})")


async def close_ledger() -> None:
    """Release the ledger adapter and its store."""
    global _ledger
    from ledgerlock.api.db.session import close_db

    _ledger = None
    await close_db()

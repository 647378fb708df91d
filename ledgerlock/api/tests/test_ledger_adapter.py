"""
Ledger Adapter Tests

Commit ordering, transaction references, authority checks and event
paging of the SQL-backed ledger.
"""

import asyncio
import re

import pytest

from ledgerlock.core.exceptions import AlreadyRegistered, Unauthorized
from ledgerlock.api.ledger.adapter import (
    ACCESS_ATTEMPT,
    ACCESS_GRANTED,
    IDENTITY_REGISTERED,
    SqlLedger,
)
from ledgerlock.api.ledger.operations import (
    EntityType,
    EventFilter,
    EventRange,
    Operation,
    OperationKind,
    compute_tx_hash,
)

from ledgerlock.api.tests.conftest import A1, A2, A3, OWNER, TEST_PAGE_SIZE


TX_HASH = re.compile(r"^0x[0-9a-f]{64}$")


# ==================== Commit ====================


@pytest.mark.asyncio
async def test_receipt_describes_commit(ledger):
    receipt = await ledger.commit(Operation.register_identity(A1, "Employee", "User_Employee"), OWNER)

    assert receipt.signer == OWNER
    assert receipt.operation == OperationKind.REGISTER_IDENTITY
    assert TX_HASH.match(receipt.tx_hash)
    assert receipt.committed_at.tzinfo is not None

    event = receipt.first_event(IDENTITY_REGISTERED)
    assert event.tx_hash == receipt.tx_hash
    assert event.timestamp == receipt.committed_at
    assert receipt.first_event(ACCESS_ATTEMPT) is None


@pytest.mark.asyncio
async def test_tx_hash_covers_committed_content(ledger):
    operation = Operation.grant_access(A1, A2)
    receipt = await ledger.commit(operation, OWNER)

    assert receipt.tx_hash == compute_tx_hash(
        receipt.sequence_id, OWNER, operation.kind, operation.arguments, receipt.committed_at
    )


@pytest.mark.asyncio
async def test_sequence_ids_and_timestamps_increase(ledger):
    receipts = await asyncio.gather(
        *(ledger.commit(Operation.request_access(f"0x{i:02X}", A2, False), f"0x{i:02X}") for i in range(1, 9))
    )

    ordered = sorted(receipts, key=lambda r: r.sequence_id)
    assert len({r.sequence_id for r in receipts}) == len(receipts)
    assert len({r.tx_hash for r in receipts}) == len(receipts)
    for earlier, later in zip(ordered, ordered[1:]):
        assert earlier.committed_at <= later.committed_at


@pytest.mark.asyncio
async def test_request_access_outcome_recorded_verbatim(ledger):
    """The ledger stores the evaluation it was given; it does not re-check the edge."""
    receipt = await ledger.commit(Operation.request_access(A1, A2, True), A1)

    event = receipt.first_event(ACCESS_ATTEMPT)
    assert event.payload == {"requester": A1, "resource": A2, "is_success": True}
    assert await ledger.query(EntityType.PERMISSION, (A1, A2)) is None


@pytest.mark.asyncio
async def test_duplicate_registration_rejected_inside_commit(ledger):
    await ledger.commit(Operation.register_identity(A1, "Employee", "User_Employee"), OWNER)
    head = await ledger.head_sequence()

    with pytest.raises(AlreadyRegistered):
        await ledger.commit(Operation.register_identity(A1, "Other", "Guest"), OWNER)

    assert await ledger.head_sequence() == head


class _StaleIdentityReads:
    """Session view whose identity lookups miss, as if another writer had not committed yet."""

    def __init__(self, session):
        self._session = session

    async def get(self, entity, key):
        return None

    def __getattr__(self, name):
        return getattr(self._session, name)


@pytest.mark.asyncio
async def test_registration_race_between_writers_is_already_registered(ledger, session_maker, monkeypatch):
    """A second writer with its own lock loses the race on the identity row."""
    other = SqlLedger(session_maker, owner_address=OWNER, commit_timeout=5.0, query_timeout=5.0)
    await ledger.commit(Operation.register_identity(A1, "Employee", "User_Employee"), OWNER)
    head = await ledger.head_sequence()

    apply_register = other._apply_register

    async def stale_register(session, tx, arguments):
        return await apply_register(_StaleIdentityReads(session), tx, arguments)

    monkeypatch.setattr(other, "_apply_register", stale_register)

    with pytest.raises(AlreadyRegistered):
        await other.commit(Operation.register_identity(A1, "Other", "Guest"), OWNER)

    assert (await ledger.query(EntityType.IDENTITY, A1)).name == "Employee"
    assert await ledger.head_sequence() == head


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "operation",
    [
        Operation.register_identity(A1, "Employee", "User_Employee"),
        Operation.grant_access(A1, A2),
        Operation.revoke_access(A1, A2),
    ],
)
async def test_admin_operations_need_owner(ledger, operation):
    with pytest.raises(Unauthorized):
        await ledger.commit(operation, A1)

    assert await ledger.head_sequence() == 0


# ==================== Query ====================


@pytest.mark.asyncio
async def test_query_reads_current_state(ledger):
    assert await ledger.query(EntityType.IDENTITY, A1) is None
    assert await ledger.query(EntityType.PERMISSION, (A1, A2)) is None

    await ledger.commit(Operation.register_identity(A1, "Employee", "User_Employee"), OWNER)
    await ledger.commit(Operation.grant_access(A1, A2), OWNER)
    await ledger.commit(Operation.revoke_access(A1, A2), OWNER)

    identity = await ledger.query(EntityType.IDENTITY, A1)
    assert identity.name == "Employee"
    assert await ledger.query(EntityType.PERMISSION, (A1, A2)) is False


# ==================== Events ====================


@pytest.mark.asyncio
async def test_query_events_pages_through_everything(ledger):
    count = TEST_PAGE_SIZE * 2 + 1
    for i in range(count):
        await ledger.commit(Operation.grant_access(A1, f"0x{i + 16:X}"), OWNER)

    events = [event async for event in ledger.query_events(ACCESS_GRANTED)]

    assert len(events) == count
    assert [e.payload["resource"] for e in events] == [f"0x{i + 16:X}" for i in range(count)]


@pytest.mark.asyncio
async def test_query_events_by_type_and_filter(ledger):
    await ledger.commit(Operation.register_identity(A1, "Employee", "User_Employee"), OWNER)
    await ledger.commit(Operation.register_identity(A2, "Lock", "Device_Lock"), OWNER)
    await ledger.commit(Operation.grant_access(A1, A2), OWNER)
    await ledger.commit(Operation.request_access(A3, A2, False), A3)

    registrations = [e async for e in ledger.query_events(IDENTITY_REGISTERED)]
    lock = [
        e async for e in ledger.query_events(IDENTITY_REGISTERED, EventFilter(entity_address=A2))
    ]
    attempts = [e async for e in ledger.query_events(ACCESS_ATTEMPT, EventFilter(requester=A3))]

    assert [e.payload["entity_address"] for e in registrations] == [A1, A2]
    assert lock[0].payload["role"] == "Device_Lock"
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_query_events_range_beyond_head_is_empty(ledger):
    await ledger.commit(Operation.request_access(A1, A2, False), A1)

    events = [e async for e in ledger.query_events(ACCESS_ATTEMPT, event_range=EventRange(from_sequence=100))]

    assert events == []


@pytest.mark.asyncio
async def test_head_sequence_tracks_events(ledger):
    assert await ledger.head_sequence() == 0

    receipt = await ledger.commit(Operation.request_access(A1, A2, False), A1)

    assert await ledger.head_sequence() == receipt.first_event(ACCESS_ATTEMPT).sequence_id

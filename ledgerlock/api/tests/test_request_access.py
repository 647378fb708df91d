"""
Request Access Tests

Every attempt is evaluated against the edge, durably logged with that
result, and only then answered.
"""

import asyncio
from unittest.mock import patch

import pytest

from ledgerlock.core.event_bus import EventType
from ledgerlock.core.exceptions import InvalidInput, Unauthorized
from ledgerlock.api.access.audit import AccessLogFilter
from ledgerlock.api.access.engine import AccessState
from ledgerlock.api.ledger.operations import Operation

from ledgerlock.api.tests.conftest import A1, A2, A3, OWNER


async def _log(engine, **filters):
    return [event async for event in engine.query_access_log(AccessLogFilter(**filters))]


# ==================== Decisions ====================


@pytest.mark.asyncio
async def test_never_granted_is_denied_and_logged_once(engine):
    decision = await engine.request_access(A1, A2)

    assert decision.access_granted is False
    assert decision.state == AccessState.COMPLETED

    log = await _log(engine)
    assert len(log) == 1
    assert (log[0].requester, log[0].resource, log[0].is_success) == (A1, A2, False)


@pytest.mark.asyncio
async def test_grant_then_request_is_directional(engine):
    await engine.grant_access(A1, A2, signer=OWNER)

    forward = await engine.request_access(A1, A2)
    reverse = await engine.request_access(A2, A1)

    assert forward.access_granted is True
    assert reverse.access_granted is False


@pytest.mark.asyncio
async def test_revoke_is_effective(engine):
    await engine.grant_access(A1, A2, signer=OWNER)
    await engine.revoke_access(A1, A2, signer=OWNER)

    decision = await engine.request_access(A1, A2)
    assert decision.access_granted is False


@pytest.mark.asyncio
async def test_logged_outcome_matches_returned_decision(engine):
    await engine.grant_access(A1, A2, signer=OWNER)

    decision = await engine.request_access(A1, A2)
    log = await _log(engine, requester=A1)

    assert log[-1] == decision.event
    assert log[-1].is_success is decision.access_granted is True


@pytest.mark.asyncio
async def test_unregistered_addresses_are_evaluated(engine):
    """Registration is not a precondition: the edge alone decides."""
    await engine.grant_access(A1, A3, signer=OWNER)

    decision = await engine.request_access(A1, A3)
    assert decision.access_granted is True


@pytest.mark.asyncio
async def test_repeated_attempts_are_each_logged(engine):
    for _ in range(3):
        await engine.request_access(A1, A2)

    log = await _log(engine, requester=A1, resource=A2)
    assert len(log) == 3
    assert len({event.sequence_id for event in log}) == 3


@pytest.mark.asyncio
async def test_read_happens_before_commit(engine, ledger):
    """The permission read precedes the audit commit."""
    calls = []
    real_query, real_commit = ledger.query, ledger.commit

    async def traced_query(*args, **kwargs):
        calls.append("query")
        return await real_query(*args, **kwargs)

    async def traced_commit(*args, **kwargs):
        calls.append("commit")
        return await real_commit(*args, **kwargs)

    with patch.object(ledger, "query", traced_query), patch.object(ledger, "commit", traced_commit):
        await engine.request_access(A1, A2)

    assert calls == ["query", "commit"]


# ==================== Attribution ====================


@pytest.mark.asyncio
async def test_attempt_is_signed_by_requester(engine, ledger):
    seen = []
    real_commit = ledger.commit

    async def traced_commit(operation, signer):
        seen.append((operation.kind.value, signer))
        return await real_commit(operation, signer)

    with patch.object(ledger, "commit", traced_commit):
        await engine.request_access(A1, A2, signer=A1)

    assert seen == [("requestAccess", A1)]


@pytest.mark.asyncio
async def test_signer_other_than_requester_rejected(engine):
    with pytest.raises(Unauthorized):
        await engine.request_access(A1, A2, signer=A3)

    assert await _log(engine) == []


@pytest.mark.asyncio
async def test_owner_cannot_log_attempts_for_others(ledger):
    """The ledger itself refuses an attempt not signed by its requester."""
    with pytest.raises(Unauthorized):
        await ledger.commit(Operation.request_access(A1, A2, True), OWNER)

    assert await ledger.head_sequence() == 0


@pytest.mark.asyncio
async def test_malformed_request_logs_nothing(engine):
    with pytest.raises(InvalidInput):
        await engine.request_access("nobody", A2)
    with pytest.raises(InvalidInput):
        await engine.request_access(A1, "")

    assert await _log(engine) == []


@pytest.mark.asyncio
async def test_trailing_newline_address_is_rejected_everywhere(engine):
    with pytest.raises(InvalidInput):
        await engine.grant_access(A1 + "\n", A2, signer=OWNER)
    with pytest.raises(InvalidInput):
        await engine.request_access(A1 + "\n", A2)
    with pytest.raises(InvalidInput):
        await engine.request_access(A1, A2 + "\n")
    with pytest.raises(InvalidInput):
        engine.query_access_log(AccessLogFilter(requester=A1 + "\n"))

    assert await _log(engine) == []


# ==================== Concurrency ====================


@pytest.mark.asyncio
async def test_concurrent_requests_are_all_logged(engine):
    """N concurrent attempts produce exactly N entries with the right outcome."""
    granted_requesters = [f"0x{i:02X}" for i in range(1, 11)]
    denied_requesters = [f"0x{i:02X}" for i in range(11, 21)]
    resource = "0xFF"

    for requester in granted_requesters:
        await engine.grant_access(requester, resource, signer=OWNER)

    requesters = granted_requesters + denied_requesters
    decisions = await asyncio.gather(
        *(engine.request_access(requester, resource) for requester in requesters)
    )

    assert [d.access_granted for d in decisions] == [True] * 10 + [False] * 10

    log = await _log(engine, resource=resource)
    assert len(log) == len(requesters)
    sequence_ids = [event.sequence_id for event in log]
    assert sequence_ids == sorted(sequence_ids)
    assert len(set(sequence_ids)) == len(sequence_ids)

    for requester in requesters:
        entries = await _log(engine, requester=requester)
        assert len(entries) == 1
        assert entries[0].resource == resource
        assert entries[0].is_success is (requester in granted_requesters)


# ==================== Notifications ====================


@pytest.mark.asyncio
async def test_attempt_published_after_commit(engine, event_bus):
    seen = []

    async def on_attempt(event):
        seen.append(event)

    event_bus.subscribe("door_panel", {EventType.ACCESS_ATTEMPT}, on_attempt)
    decision = await engine.request_access(A1, A2)

    assert len(seen) == 1
    assert seen[0].sequence_id == decision.event.sequence_id
    assert seen[0].data == {"requester": A1, "resource": A2, "is_success": False}


@pytest.mark.asyncio
async def test_failing_watcher_does_not_change_decision(engine, event_bus):
    async def broken(event):
        raise RuntimeError("watcher crashed")

    event_bus.subscribe("broken", {EventType.ACCESS_ATTEMPT}, broken)
    await engine.grant_access(A1, A2, signer=OWNER)

    decision = await engine.request_access(A1, A2)

    assert decision.access_granted is True
    assert event_bus.get_stats()["dead_letter_count"] == 1

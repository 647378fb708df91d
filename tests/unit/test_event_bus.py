"""
Tests for LEDGERLOCK Event Bus
==============================

Tests delivery of committed ledger events to watchers.
"""

import pytest

from ledgerlock.core.event_bus import Event, EventBus, EventType, get_event_bus


def make_event(event_type=EventType.ACCESS_ATTEMPT, sequence_id=1, **data):
    return Event(
        event_type=event_type,
        data=data,
        tx_hash=f"0x{sequence_id:064x}",
        sequence_id=sequence_id,
    )


class TestEventCreation:
    """Tests for event creation."""

    def test_event_has_timestamp(self):
        """Event gets a UTC timestamp when none is given."""
        event = make_event()
        assert event.timestamp.tzinfo is not None

    def test_event_to_dict(self, attempt_event):
        """Should convert event to dictionary."""
        data = attempt_event.to_dict()
        assert data["event_type"] == "AccessAttempt"
        assert data["sequence_id"] == 7
        assert data["data"]["is_success"] is True
        assert data["timestamp"] == "2026-01-01T12:00:00+00:00"

    def test_event_type_values_match_ledger_names(self):
        assert {t.value for t in EventType} == {
            "IdentityRegistered",
            "AccessGranted",
            "AccessRevoked",
            "AccessAttempt",
        }


class TestSubscriptions:
    """Tests for event subscriptions."""

    @pytest.mark.asyncio
    async def test_subscribe_and_receive(self, event_bus, attempt_event):
        """Should receive events after subscribing."""
        received = []

        async def handler(event):
            received.append(event)

        event_bus.subscribe("door_panel", {EventType.ACCESS_ATTEMPT}, handler)

        delivered = await event_bus.publish(attempt_event)

        assert delivered == 1
        assert received == [attempt_event]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, event_bus, attempt_event):
        """Should not receive events after unsubscribing."""
        received = []

        async def handler(event):
            received.append(event)

        event_bus.subscribe("door_panel", {EventType.ACCESS_ATTEMPT}, handler)
        assert event_bus.unsubscribe("door_panel") is True
        assert event_bus.unsubscribe("door_panel") is False

        await event_bus.publish(attempt_event)

        assert received == []

    @pytest.mark.asyncio
    async def test_resubscribe_replaces_types(self, event_bus):
        received = []

        async def handler(event):
            received.append(event.event_type)

        event_bus.subscribe("watcher", {EventType.ACCESS_ATTEMPT}, handler)
        event_bus.subscribe("watcher", {EventType.ACCESS_GRANTED}, handler)

        await event_bus.publish(make_event(EventType.ACCESS_ATTEMPT, 1))
        await event_bus.publish(make_event(EventType.ACCESS_GRANTED, 2))

        assert received == [EventType.ACCESS_GRANTED]

    @pytest.mark.asyncio
    async def test_filter_function(self, event_bus):
        """Should apply filter function to events."""
        received = []

        async def handler(event):
            received.append(event)

        event_bus.subscribe(
            "denials_only",
            {EventType.ACCESS_ATTEMPT},
            handler,
            filter_func=lambda event: not event.data["is_success"],
        )

        await event_bus.publish(make_event(sequence_id=1, is_success=True))
        await event_bus.publish(make_event(sequence_id=2, is_success=False))

        assert [e.sequence_id for e in received] == [2]


class TestEventTypes:
    """Tests for event type filtering."""

    @pytest.mark.asyncio
    async def test_only_receive_subscribed_types(self, event_bus):
        """Should only receive subscribed event types."""
        received = []

        async def handler(event):
            received.append(event)

        event_bus.subscribe("registrations", {EventType.IDENTITY_REGISTERED}, handler)

        await event_bus.publish(make_event(EventType.ACCESS_ATTEMPT, 1))
        await event_bus.publish(make_event(EventType.IDENTITY_REGISTERED, 2, entity_address="0xA1"))

        assert len(received) == 1
        assert received[0].data["entity_address"] == "0xA1"

    @pytest.mark.asyncio
    async def test_multiple_subscribers(self, event_bus, attempt_event):
        seen = {"a": 0, "b": 0}

        async def handler_a(event):
            seen["a"] += 1

        async def handler_b(event):
            seen["b"] += 1

        event_bus.subscribe("a", {EventType.ACCESS_ATTEMPT}, handler_a)
        event_bus.subscribe("b", {EventType.ACCESS_ATTEMPT}, handler_b)

        assert await event_bus.publish(attempt_event) == 2
        assert seen == {"a": 1, "b": 1}


class TestFailures:
    """Handler failures never reach the publisher."""

    @pytest.mark.asyncio
    async def test_failing_handler_goes_to_dead_letter(self, event_bus, attempt_event):
        received = []

        async def broken(event):
            raise RuntimeError("watcher crashed")

        async def healthy(event):
            received.append(event)

        event_bus.subscribe("broken", {EventType.ACCESS_ATTEMPT}, broken)
        event_bus.subscribe("healthy", {EventType.ACCESS_ATTEMPT}, healthy)

        delivered = await event_bus.publish(attempt_event)

        assert delivered == 1
        assert received == [attempt_event]
        stats = event_bus.get_stats()
        assert stats["events_failed"] == 1
        assert stats["dead_letter_count"] == 1

        assert event_bus.clear_dead_letter() == [attempt_event]
        assert event_bus.get_stats()["dead_letter_count"] == 0

    @pytest.mark.asyncio
    async def test_dead_letter_is_bounded(self):
        bus = EventBus(dead_letter_size=2)

        async def broken(event):
            raise RuntimeError("watcher crashed")

        bus.subscribe("broken", {EventType.ACCESS_ATTEMPT}, broken)
        for i in range(5):
            await bus.publish(make_event(sequence_id=i + 1))

        stats = bus.get_stats()
        assert stats["events_failed"] == 5
        assert stats["dead_letter_count"] == 2
        assert [e.sequence_id for e in bus.clear_dead_letter()] == [4, 5]


class TestHistory:
    """Tests for event history."""

    @pytest.mark.asyncio
    async def test_history_is_bounded(self, event_bus):
        for i in range(15):
            await event_bus.publish(make_event(sequence_id=i + 1))

        history = event_bus.get_history(limit=100)
        assert len(history) == 10
        assert history[0].sequence_id == 6
        assert event_bus.get_stats()["events_published"] == 15

    @pytest.mark.asyncio
    async def test_history_by_type(self, event_bus):
        await event_bus.publish(make_event(EventType.ACCESS_ATTEMPT, 1))
        await event_bus.publish(make_event(EventType.ACCESS_GRANTED, 2))
        await event_bus.publish(make_event(EventType.ACCESS_ATTEMPT, 3))

        history = event_bus.get_history(EventType.ACCESS_ATTEMPT, limit=1)
        assert [e.sequence_id for e in history] == [3]


def test_global_event_bus_is_shared():
    assert get_event_bus() is get_event_bus()

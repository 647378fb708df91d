"""
LEDGERLOCK Test Configuration
=============================

Fixtures for core unit tests.
"""

from datetime import datetime, timezone

import pytest

from ledgerlock.core.event_bus import Event, EventBus, EventType


@pytest.fixture
def event_bus():
    """Create an event bus for testing."""
    return EventBus(history_size=10)


@pytest.fixture
def attempt_event():
    """A granted access attempt notification."""
    return Event(
        event_type=EventType.ACCESS_ATTEMPT,
        data={"requester": "0xA1", "resource": "0xA2", "is_success": True},
        tx_hash="0x" + "ab" * 32,
        sequence_id=7,
        timestamp=datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc),
    )

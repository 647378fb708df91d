"""
LEDGERLOCK - Ledger Event Bus
=============================

In-process pub/sub for committed ledger events.

The engine publishes here only after a commit has landed, so watchers
see exactly what the ledger holds. Delivery is best effort: a failing
handler lands the event in the dead letter list and never reaches the
caller of the engine operation.
"""

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, FrozenSet, Iterable, List, Optional

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Ledger event names, as they appear on the event stream."""

    IDENTITY_REGISTERED = "IdentityRegistered"
    ACCESS_GRANTED = "AccessGranted"
    ACCESS_REVOKED = "AccessRevoked"
    ACCESS_ATTEMPT = "AccessAttempt"


@dataclass
class Event:
    """Notification for one committed ledger event."""

    event_type: EventType
    data: Dict[str, Any]
    tx_hash: str
    sequence_id: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["event_type"] = self.event_type.value
        payload["timestamp"] = self.timestamp.isoformat()
        return payload


EventHandler = Callable[[Event], Awaitable[None]]
EventPredicate = Callable[[Event], bool]


@dataclass(frozen=True)
class Subscription:
    """A watcher and the events it wants."""

    subscriber_id: str
    event_types: FrozenSet[EventType]
    handler: EventHandler
    filter_func: Optional[EventPredicate] = None

    def matches(self, event: Event) -> bool:
        if event.event_type not in self.event_types:
            return False
        return self.filter_func is None or self.filter_func(event)


@dataclass(frozen=True)
class DeadLetter:
    """An event a handler failed on."""

    event: Event
    subscriber_id: str
    error: str


@dataclass
class BusStats:
    events_published: int = 0
    events_delivered: int = 0
    events_failed: int = 0


class EventBus:
    """
    Async event bus for ledger watchers.

    Handlers run inline, in subscriber-id order, so every watcher sees
    events in commit order.

    Example:
        bus = EventBus()

        async def on_attempt(event: Event):
            print(event.data["requester"], event.data["is_success"])

        bus.subscribe("door_panel", {EventType.ACCESS_ATTEMPT}, on_attempt)
    """

    def __init__(self, history_size: int = 1000, dead_letter_size: int = 1000):
        self._subscriptions: Dict[str, Subscription] = {}
        self._history: Deque[Event] = deque(maxlen=history_size)
        # Oldest failures drop off once full
        self._dead_letters: Deque[DeadLetter] = deque(maxlen=dead_letter_size)
        self._stats = BusStats()

    def subscribe(
        self,
        subscriber_id: str,
        event_types: Iterable[EventType],
        handler: EventHandler,
        filter_func: Optional[EventPredicate] = None,
    ) -> None:
        """
        Register a watcher, replacing any earlier one with the same id.

        Args:
            subscriber_id: Name of the watcher
            event_types: Ledger events to deliver
            handler: Coroutine called once per matching event
            filter_func: Extra predicate checked before delivery
        """
        types = frozenset(event_types)
        self._subscriptions[subscriber_id] = Subscription(
            subscriber_id=subscriber_id,
            event_types=types,
            handler=handler,
            filter_func=filter_func,
        )
        logger.debug(f"{subscriber_id} watching {sorted(t.value for t in types)}")

    def unsubscribe(self, subscriber_id: str) -> bool:
        return self._subscriptions.pop(subscriber_id, None) is not None

    async def publish(self, event: Event) -> int:
        """
        Deliver an event to every matching subscriber.

        Returns:
            Number of handlers that completed without error
        """
        self._history.append(event)
        self._stats.events_published += 1

        matching = [
            subscription
            for _, subscription in sorted(self._subscriptions.items())
            if subscription.matches(event)
        ]

        delivered = 0
        for subscription in matching:
            try:
                await subscription.handler(event)
            except Exception as e:
                logger.error(
                    f"Watcher {subscription.subscriber_id} failed on "
                    f"{event.event_type.value} #{event.sequence_id}: {e}"
                )
                self._dead_letters.append(DeadLetter(event, subscription.subscriber_id, str(e)))
                self._stats.events_failed += 1
            else:
                delivered += 1
                self._stats.events_delivered += 1

        return delivered

    def get_stats(self) -> Dict[str, Any]:
        stats = asdict(self._stats)
        stats.update(
            subscribers=len(self._subscriptions),
            dead_letter_count=len(self._dead_letters),
            history_size=len(self._history),
        )
        return stats

    def get_history(self, event_type: Optional[EventType] = None, limit: int = 100) -> List[Event]:
        """Most recent events, oldest first."""
        history = [e for e in self._history if event_type is None or e.event_type == event_type]
        return history[-limit:]

    def clear_dead_letter(self) -> List[Event]:
        """Drain the dead letter list, returning the failed events."""
        drained = [letter.event for letter in self._dead_letters]
        self._dead_letters.clear()
        return drained


_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get the process-wide event bus."""
    global _bus
    if _bus is None:
        _bus = EventBus()
    return _bus


__all__ = [
    "EventType",
    "Event",
    "EventHandler",
    "Subscription",
    "DeadLetter",
    "EventBus",
    "get_event_bus",
]

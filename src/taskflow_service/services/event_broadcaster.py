"""Notification fan-out for task lifecycle events."""

from __future__ import annotations

import asyncio
import itertools
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from taskflow_service.logging import get_logger
from taskflow_service.models import format_timestamp

if TYPE_CHECKING:
    from collections.abc import Callable

TASK_CREATED = "task:created"
TASK_ACCEPTED = "task:accepted"
TASK_COMPLETED = "task:completed"
TASK_CONFIRMED = "task:confirmed"
PAYMENT_SENT = "payment:sent"
PAYMENT_FAILED = "payment:failed"
MONITOR_STALE_CLAIM = "monitor:stale_claim"
MONITOR_AWAITING_PAYMENT = "monitor:awaiting_payment"

EVENT_NAMES = frozenset(
    {
        TASK_CREATED,
        TASK_ACCEPTED,
        TASK_COMPLETED,
        TASK_CONFIRMED,
        PAYMENT_SENT,
        PAYMENT_FAILED,
        MONITOR_STALE_CLAIM,
        MONITOR_AWAITING_PAYMENT,
    }
)


@dataclass(frozen=True)
class Event:
    """A single notification."""

    sequence: int
    name: str
    payload: dict[str, Any]
    emitted_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation."""
        return {
            "sequence": self.sequence,
            "event": self.name,
            "data": self.payload,
            "emitted_at": format_timestamp(self.emitted_at),
        }


class EventBroadcaster:
    """
    Explicit publish/subscribe port.

    Listeners are plain callables registered with ``subscribe`` and removed
    with ``unsubscribe``. They run synchronously, in subscription order, right
    after the state change they describe has been committed. A listener that
    raises is logged and skipped; the remaining listeners still run.
    """

    def __init__(self, history_size: int = 50) -> None:
        self._listeners: dict[int, Callable[[Event], None]] = {}
        self._next_token = itertools.count(1)
        self._sequence = itertools.count(1)
        self._history: deque[Event] = deque(maxlen=history_size)
        self._logger = get_logger(__name__)

    def subscribe(self, listener: Callable[[Event], None]) -> int:
        """Register a listener and return a token for ``unsubscribe``."""
        token = next(self._next_token)
        self._listeners[token] = listener
        return token

    def unsubscribe(self, token: int) -> bool:
        """Remove a listener. Returns False if the token was unknown."""
        return self._listeners.pop(token, None) is not None

    @property
    def listener_count(self) -> int:
        """Number of registered listeners."""
        return len(self._listeners)

    def publish(self, name: str, payload: dict[str, Any]) -> Event:
        """Deliver an event to every listener and record it in the history."""
        if name not in EVENT_NAMES:
            msg = f"Unknown event name: {name}"
            raise ValueError(msg)

        event = Event(sequence=next(self._sequence), name=name, payload=payload)
        self._history.append(event)
        self._logger.info("Event published", extra={"event": name, "sequence": event.sequence})

        for token, listener in list(self._listeners.items()):
            try:
                listener(event)
            except Exception:
                self._logger.exception(
                    "Event listener failed",
                    extra={"event": name, "listener_token": token},
                )
        return event

    def recent(self, limit: int | None = None) -> list[Event]:
        """Most recent events, oldest first."""
        events = list(self._history)
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    def open_stream(self, max_queue_size: int) -> EventStream:
        """Subscribe a bounded queue, for consumers that read asynchronously."""
        return EventStream(self, max_queue_size)


class EventStream:
    """
    Queue-backed subscription.

    When the consumer falls behind and the queue is full, the oldest queued
    event is dropped so the publisher never blocks.
    """

    def __init__(self, broadcaster: EventBroadcaster, max_queue_size: int) -> None:
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=max_queue_size)
        self._token: int | None = broadcaster.subscribe(self._enqueue)
        self.dropped = 0

    def _enqueue(self, event: Event) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(event)

    async def get(self) -> Event:
        """Wait for the next event."""
        return await self._queue.get()

    def close(self) -> None:
        """Stop receiving events."""
        if self._token is not None:
            self._broadcaster.unsubscribe(self._token)
            self._token = None

    def __enter__(self) -> EventStream:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

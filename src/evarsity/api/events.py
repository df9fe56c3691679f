"""Event manager for Server-Sent Events (SSE).

The manager doubles as the engine's ``EventPublisher``: committed domain
events are converted to SSE events and queued for every subscriber watching
the affected student.
"""

from __future__ import annotations

import asyncio
import json
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from evarsity.engine.events import (
    CertificateIssued,
    ProgressChanged,
    StudentEnrolled,
    StudentWithdrawn,
)
from evarsity.engine.formulas import utcnow
from evarsity.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from evarsity.engine.events import DomainEvent

logger = get_logger("api.events")


class EventType(str, Enum):
    """Types of events that can be emitted."""

    STUDENT_ENROLLED = "student_enrolled"
    PROGRESS_CHANGED = "progress_changed"
    CERTIFICATE_ISSUED = "certificate_issued"
    STUDENT_WITHDRAWN = "student_withdrawn"
    HEARTBEAT = "heartbeat"


_EVENT_TYPES: dict[type, EventType] = {
    StudentEnrolled: EventType.STUDENT_ENROLLED,
    ProgressChanged: EventType.PROGRESS_CHANGED,
    CertificateIssued: EventType.CERTIFICATE_ISSUED,
    StudentWithdrawn: EventType.STUDENT_WITHDRAWN,
}


@dataclass
class Event:
    """An event to be sent via SSE."""

    event_type: EventType
    data: dict[str, Any]
    student_id: str | None = None

    def to_sse(self) -> str:
        """Convert to SSE format."""
        return f"event: {self.event_type.value}\ndata: {json.dumps(self.data, default=str)}\n\n"

    @classmethod
    def from_domain(cls, domain_event: DomainEvent) -> Event:
        """Wrap a committed domain event."""
        return cls(
            event_type=_EVENT_TYPES[type(domain_event)],
            data=asdict(domain_event),
            student_id=domain_event.student_id,
        )


@dataclass
class Subscriber:
    """One open event stream."""

    id: str
    queue: asyncio.Queue[Event]
    student_id: str | None = None  # None means every student
    event_types: frozenset[EventType] | None = None  # None means every type
    loop: asyncio.AbstractEventLoop | None = None

    def wants(self, event: Event) -> bool:
        if self.event_types is not None and event.event_type not in self.event_types:
            return False
        return self.student_id is None or self.student_id == event.student_id

    def deliver(self, event: Event) -> None:
        # publish() runs on worker threads; the queue belongs to the stream's loop
        if self.loop is None or self.loop.is_closed():
            self.queue.put_nowait(event)
        else:
            self.loop.call_soon_threadsafe(self.queue.put_nowait, event)


class EventManager:
    """Fans committed engine events out to SSE subscribers.

    Implements the engine's ``EventPublisher``. The engine publishes from
    FastAPI's threadpool once a transaction has committed, so each event is
    handed to the loop that owns the subscriber's queue.
    """

    def __init__(self, heartbeat_interval: float = 30.0) -> None:
        self.heartbeat_interval = heartbeat_interval
        self._subscribers: dict[str, Subscriber] = {}
        self._lock = threading.Lock()

    def subscribe(
        self,
        student_id: str | None = None,
        event_types: Iterable[EventType] | None = None,
    ) -> Subscriber:
        """Register a stream.

        Args:
            student_id: Only events about this student. None means all students.
            event_types: Only these kinds of event. None or empty means all kinds.

        Returns:
            Subscriber whose queue receives the matching events.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        subscriber = Subscriber(
            id=str(uuid4()),
            queue=asyncio.Queue(),
            student_id=student_id,
            event_types=frozenset(event_types) if event_types else None,
            loop=loop,
        )
        with self._lock:
            self._subscribers[subscriber.id] = subscriber
        logger.debug("Subscriber %s attached (student=%s)", subscriber.id, student_id)
        return subscriber

    def unsubscribe(self, subscriber_id: str) -> None:
        with self._lock:
            removed = self._subscribers.pop(subscriber_id, None)
        if removed is not None:
            logger.debug("Subscriber %s detached", subscriber_id)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def _matching(self, event: Event) -> list[Subscriber]:
        with self._lock:
            return [s for s in self._subscribers.values() if s.wants(event)]

    def publish(self, event: DomainEvent) -> None:
        """Forward a committed domain event to matching subscribers."""
        sse_event = Event.from_domain(event)
        for subscriber in self._matching(sse_event):
            subscriber.deliver(sse_event)

    def heartbeat(self) -> Event:
        return Event(
            event_type=EventType.HEARTBEAT,
            data={"timestamp": utcnow().isoformat()},
        )

    async def stream(self, subscriber: Subscriber) -> AsyncIterator[str]:
        """SSE frames for a subscriber until the client goes away.

        A heartbeat frame is sent whenever ``heartbeat_interval`` seconds pass
        without an event. The subscriber is removed when the stream closes.
        """
        try:
            while True:
                try:
                    event = await asyncio.wait_for(
                        subscriber.queue.get(), timeout=self.heartbeat_interval
                    )
                except TimeoutError:
                    event = self.heartbeat()
                yield event.to_sse()
        finally:
            self.unsubscribe(subscriber.id)

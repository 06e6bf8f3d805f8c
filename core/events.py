"""
Lifecycle events.

The controller and the gates announce request and decision changes on an
injected ``EventBus``. A presentation layer can subscribe to a
``QueueEventBus`` and re-render on events instead of polling state.
"""

import asyncio
from typing import Any, Protocol

from pydantic import BaseModel, Field

# Event types
REQUEST_STARTED = "request.started"
REQUEST_COMPLETED = "request.completed"
APPROVAL_REQUESTED = "approval.requested"
APPROVAL_RESOLVED = "approval.resolved"
ITERATIONS_REQUESTED = "iterations.requested"
ITERATIONS_RESOLVED = "iterations.resolved"


class Event(BaseModel):
    """Domain event that can be published to subscribers."""

    type: str
    properties: dict[str, Any] = Field(default_factory=dict)


class EventBus(Protocol):
    """Abstract interface for publishing events."""

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribers."""
        ...


class NullEventBus:
    """EventBus that drops every event. Used when nobody listens."""

    async def publish(self, event: Event) -> None:
        pass


class QueueEventBus:
    """
    In-process EventBus fanning events out to subscriber queues.

    Each subscriber gets its own queue, optionally limited to event types
    with a given prefix (``"approval"`` matches ``approval.requested`` and
    ``approval.resolved``).
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[str | None, asyncio.Queue[Event]]] = []

    async def publish(self, event: Event) -> None:
        """Publish an event to all matching subscribers."""
        for prefix, queue in list(self._subscribers):
            if prefix is None or event.type == prefix or event.type.startswith(f"{prefix}."):
                await queue.put(event)

    def subscribe(self, prefix: str | None = None) -> asyncio.Queue[Event]:
        """
        Create a new subscription queue.

        Args:
            prefix: Only deliver events of this type family; all events when None

        Returns:
            A queue that will receive matching events
        """
        queue: asyncio.Queue[Event] = asyncio.Queue()
        self._subscribers.append((prefix, queue))
        return queue

    def unsubscribe(self, queue: asyncio.Queue[Event]) -> None:
        self._subscribers = [(p, q) for p, q in self._subscribers if q is not queue]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

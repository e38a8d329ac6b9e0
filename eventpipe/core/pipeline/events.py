"""Fan-out of pipeline notifications to bounded subscriber queues."""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from eventpipe.core.models import PipelineEvent, PipelineEventType


class EventHub:
    """Publishes :class:`PipelineEvent` objects to every subscriber queue.

    Publishing never blocks: an event for a subscriber whose queue is full is
    dropped for that subscriber only.
    """

    def __init__(self, subscriber_capacity: int = 1000) -> None:
        self.subscriber_capacity = subscriber_capacity
        self._subscribers: list[asyncio.Queue[PipelineEvent]] = []
        self.published = 0
        self.dropped = 0

    def subscribe(self, capacity: int | None = None) -> asyncio.Queue[PipelineEvent]:
        queue: asyncio.Queue[PipelineEvent] = asyncio.Queue(maxsize=capacity or self.subscriber_capacity)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[PipelineEvent]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event_type: PipelineEventType, payload: dict[str, Any] | None = None) -> PipelineEvent:
        event = PipelineEvent(type=event_type, payload=payload or {})
        self.published += 1
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                self.dropped += 1
                logger.warning("Subscriber queue full, event dropped", event_type=event_type.value)
        return event


__all__ = ["EventHub"]

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from ..domain.events import BookingEvent

logger = logging.getLogger(__name__)


class EventBus:
    """In-process fan-out of booking events to every live subscriber."""

    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscribers: set[asyncio.Queue[BookingEvent]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: BookingEvent) -> None:
        for queue in list(self._subscribers):
            if queue.full():
                # Slow consumer: drop its oldest event rather than block the publisher.
                dropped = queue.get_nowait()
                logger.warning("event queue full, dropped %s for booking %s", dropped.kind, dropped.booking_id)
            queue.put_nowait(event)

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue[BookingEvent]]:
        queue: asyncio.Queue[BookingEvent] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(queue)
        try:
            yield queue
        finally:
            self._subscribers.discard(queue)

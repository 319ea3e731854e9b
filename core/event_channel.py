"""
Bounded Event Channel

Async delivery path from a connector to its consumer, built on an
asyncio.Queue. Every item is a single-element batch (``[event]``), the same
shape the callback path delivers.

Unlike a fire-and-forget bus, a full queue is never dropped: ``publish``
waits for room, which pushes back on the connector's I/O handler when the
consumer is slower than the feed.

Usage:
    channel = EventChannel(max_queue_size=1000)
    await channel.publish(event)

    async for batch in channel:
        handle(batch[0])
"""

import asyncio
from typing import AsyncIterator, List, Optional

from core.config import settings
from core.logging import get_logger
from core.schemas import BaseEvent

_CLOSED = object()


class EventChannel:
    """
    Single-consumer bounded channel of canonical events.

    Attributes:
        max_queue_size: Capacity before ``publish`` starts waiting
        closed: True once ``close`` was called
    """

    def __init__(self, max_queue_size: Optional[int] = None) -> None:
        self.max_queue_size = max_queue_size or settings.event_queue_size
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._closed = False
        self._error: Optional[BaseException] = None
        self._logger = get_logger(__name__)

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def publish(self, event: BaseEvent) -> bool:
        """
        Publish one event, waiting while the channel is full.

        Returns:
            bool: False if the channel is closed and the event was discarded
        """
        if self._closed:
            return False
        if self._queue.full():
            self._logger.debug(f"Event channel full ({self.max_queue_size}), waiting for consumer")
        await self._queue.put([event])
        return True

    def close(self, error: Optional[BaseException] = None) -> None:
        """
        Close the channel. Pending events are discarded and iteration ends.

        Args:
            error: Raised to the consumer instead of ending iteration quietly
        """
        if self._closed:
            return
        self._closed = True
        self._error = error

        while not self._queue.empty():
            self._queue.get_nowait()

        self._queue.put_nowait(_CLOSED)

    async def get(self) -> List[BaseEvent]:
        """
        Wait for the next batch.

        Raises:
            StopAsyncIteration: If the channel was closed
        """
        item = await self._queue.get()
        if item is _CLOSED:
            # Let any other waiter see the sentinel too
            if not self._queue.full():
                self._queue.put_nowait(_CLOSED)
            if self._error is not None:
                raise self._error
            raise StopAsyncIteration
        return item

    def __aiter__(self) -> AsyncIterator[List[BaseEvent]]:
        return self

    async def __anext__(self) -> List[BaseEvent]:
        return await self.get()

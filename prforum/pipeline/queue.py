"""Bounded FIFO channel between webhook intake and the projector.

Many intake tasks submit concurrently; exactly one supervised task receives.
submit() suspends while the queue is full, so a slow projector throttles
GitHub deliveries.
"""

from __future__ import annotations

import asyncio

import structlog

from prforum.events.models import LifecycleEvent
from prforum.infra.errors import QueueClosedError

logger = structlog.get_logger()

DEFAULT_CAPACITY = 16

# Wakes a receiver blocked on an empty queue when close() is called
_CLOSED = object()


class EventQueue:
    """In-memory, non-durable lifecycle event queue."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=capacity)
        self._capacity = capacity
        self._closed = False
        # Submitters accepted before close() that are still waiting for room
        self._pending_puts = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def full(self) -> bool:
        return self._queue.full()

    async def submit(self, event: LifecycleEvent) -> None:
        """Enqueue an event, waiting for room if the queue is at capacity.

        Raises QueueClosedError if the queue was closed. A submitter already
        waiting when the queue closes still gets its event delivered.
        """
        if self._closed:
            raise QueueClosedError()
        if self._queue.full():
            logger.info("event_queue_full", capacity=self._capacity, kind=type(event).__name__)
        self._pending_puts += 1
        try:
            await self._queue.put(event)
        finally:
            self._pending_puts -= 1
            if self._drained():
                # A cancelled submitter may leave the receiver waiting on an empty queue
                self._wake_receiver()

    async def receive(self) -> LifecycleEvent:
        """Wait for the next event in submission order.

        Raises QueueClosedError once the queue is closed, drained, and no
        submitter is still waiting to put.
        """
        while True:
            if self._drained():
                raise QueueClosedError()
            item = await self._queue.get()
            self._queue.task_done()
            if item is not _CLOSED:
                return item  # type: ignore[return-value]

    def close(self) -> None:
        """Refuse further submissions; already queued events can still be received."""
        if self._closed:
            return
        self._closed = True
        self._wake_receiver()
        logger.info(
            "event_queue_closed", pending=self._queue.qsize(), waiting=self._pending_puts,
        )

    def _drained(self) -> bool:
        return self._closed and self._pending_puts == 0 and self._queue.empty()

    def _wake_receiver(self) -> None:
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # A full queue means the receiver is not blocked; it sees the flag once drained
            pass

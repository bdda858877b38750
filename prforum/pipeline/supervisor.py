"""ProjectorSupervisor: owns the single task that drains the event queue.

start() is called from every Discord "ready" signal; only the first call
installs the consumer. If the consume loop dies from an unexpected exception
it is relaunched against the same queue after a short delay, so queued events
survive the crash. Closing the queue ends the loop for good.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

from prforum.events.models import LifecycleEvent
from prforum.infra.errors import QueueClosedError
from prforum.pipeline.queue import EventQueue

logger = structlog.get_logger()


class EventSink(Protocol):
    async def apply(self, event: LifecycleEvent) -> None: ...


class ProjectorSupervisor:
    """Runs exactly one projector consume loop for the lifetime of the process."""

    def __init__(
        self,
        queue: EventQueue,
        projector: EventSink,
        *,
        restart_delay_s: float = 0.1,
        drain_timeout_s: float = 5.0,
    ) -> None:
        self._queue = queue
        self._projector = projector
        self._restart_delay_s = restart_delay_s
        self._drain_timeout_s = drain_timeout_s
        self._task: asyncio.Task[None] | None = None
        self._install_lock = asyncio.Lock()
        self.restarts = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> bool:
        """Install the consumer. Returns False if it was already installed."""
        async with self._install_lock:
            if self._task is not None:
                logger.debug("projector_already_running")
                return False
            self._task = asyncio.create_task(self._supervise(), name="pr_projector")
        logger.info("projector_started", capacity=self._queue.capacity)
        return True

    async def stop(self) -> None:
        """Close the queue, let the projector drain, cancel it if it takes too long."""
        self._queue.close()
        if self._task is None:
            return
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=self._drain_timeout_s)
        except TimeoutError:
            logger.warning("projector_drain_timeout", pending=self._queue.qsize())
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("projector_stopped", restarts=self.restarts)

    async def _supervise(self) -> None:
        while True:
            try:
                await self._consume()
            except QueueClosedError:
                logger.info("projector_queue_closed")
                return
            except Exception:
                self.restarts += 1
                logger.exception("projector_crashed", restarts=self.restarts)
            await asyncio.sleep(self._restart_delay_s)

    async def _consume(self) -> None:
        while True:
            event = await self._queue.receive()
            await self._projector.apply(event)

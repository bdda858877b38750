"""Tests for ProjectorSupervisor: single installation, ordering, crash restart, shutdown."""

from __future__ import annotations

import asyncio

import pytest

from prforum.events.models import Comment
from prforum.pipeline.queue import EventQueue
from prforum.pipeline.supervisor import ProjectorSupervisor


def _comment(n: int) -> Comment:
    return Comment(pr_number=n, body="hi", author="alice")


class RecordingProjector:
    """Records applied events; optionally raises on selected PR numbers."""

    def __init__(self, *, crash_on: set[int] | None = None, delay: float = 0.0) -> None:
        self.applied: list[int] = []
        self.crash_on = crash_on or set()
        self.delay = delay
        self.concurrent = 0
        self.max_concurrent = 0

    async def apply(self, event) -> None:
        self.concurrent += 1
        self.max_concurrent = max(self.max_concurrent, self.concurrent)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if event.pr_number in self.crash_on:
                raise RuntimeError(f"boom on {event.pr_number}")
            self.applied.append(event.pr_number)
        finally:
            self.concurrent -= 1


async def _wait_until(predicate, timeout: float = 1.0) -> None:
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


class TestInstallation:
    @pytest.mark.asyncio
    async def test_first_start_installs(self):
        supervisor = ProjectorSupervisor(EventQueue(), RecordingProjector())
        assert await supervisor.start() is True
        assert supervisor.running
        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_duplicate_ready_is_noop(self):
        supervisor = ProjectorSupervisor(EventQueue(), RecordingProjector())
        results = await asyncio.gather(*(supervisor.start() for _ in range(5)))
        assert results.count(True) == 1
        assert results.count(False) == 4
        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_single_consumer(self):
        queue = EventQueue(capacity=4)
        projector = RecordingProjector(delay=0.005)
        supervisor = ProjectorSupervisor(queue, projector)
        await supervisor.start()
        await supervisor.start()

        for n in range(10):
            await queue.submit(_comment(n))
        await _wait_until(lambda: len(projector.applied) == 10)

        assert projector.max_concurrent == 1
        await supervisor.stop()


class TestProcessing:
    @pytest.mark.asyncio
    async def test_events_applied_in_submit_order(self):
        queue = EventQueue(capacity=3)
        projector = RecordingProjector()
        supervisor = ProjectorSupervisor(queue, projector)
        await supervisor.start()

        for n in range(12):
            await queue.submit(_comment(n))
        await _wait_until(lambda: len(projector.applied) == 12)

        assert projector.applied == list(range(12))
        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_events_wait_for_installation(self):
        queue = EventQueue(capacity=4)
        projector = RecordingProjector()
        supervisor = ProjectorSupervisor(queue, projector)

        await queue.submit(_comment(1))
        await asyncio.sleep(0.01)
        assert projector.applied == []

        await supervisor.start()
        await _wait_until(lambda: projector.applied == [1])
        await supervisor.stop()


class TestRestart:
    @pytest.mark.asyncio
    async def test_crash_restarts_loop_and_keeps_queue(self):
        queue = EventQueue(capacity=8)
        projector = RecordingProjector(crash_on={2})
        supervisor = ProjectorSupervisor(queue, projector, restart_delay_s=0.01)
        await supervisor.start()

        for n in range(1, 5):
            await queue.submit(_comment(n))
        await _wait_until(lambda: projector.applied == [1, 3, 4])

        assert supervisor.restarts == 1
        assert supervisor.running
        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_closed_queue_is_not_restarted(self):
        queue = EventQueue()
        supervisor = ProjectorSupervisor(queue, RecordingProjector(), restart_delay_s=0.01)
        await supervisor.start()

        queue.close()
        await _wait_until(lambda: not supervisor.running)
        assert supervisor.restarts == 0


class TestStop:
    @pytest.mark.asyncio
    async def test_stop_drains_pending_events(self):
        queue = EventQueue(capacity=8)
        projector = RecordingProjector(delay=0.005)
        supervisor = ProjectorSupervisor(queue, projector, drain_timeout_s=1.0)
        await supervisor.start()

        for n in range(5):
            await queue.submit(_comment(n))
        await supervisor.stop()

        assert projector.applied == [0, 1, 2, 3, 4]
        assert not supervisor.running

    @pytest.mark.asyncio
    async def test_stop_cancels_after_timeout(self):
        queue = EventQueue(capacity=8)
        projector = RecordingProjector(delay=10)
        supervisor = ProjectorSupervisor(queue, projector, drain_timeout_s=0.05)
        await supervisor.start()
        await queue.submit(_comment(1))
        await asyncio.sleep(0.01)

        await asyncio.wait_for(supervisor.stop(), timeout=1)
        assert not supervisor.running
        assert projector.applied == []

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        queue = EventQueue()
        supervisor = ProjectorSupervisor(queue, RecordingProjector())
        await supervisor.stop()
        assert queue.closed

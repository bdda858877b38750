"""StateProjector: applies canonical lifecycle events to pull request forum threads.

Thread state is the last event applied; it is never stored here:

    Draft ⇄ ReviewNeeded → Approved → Merged
    any non-terminal → Closed;  Closed → Draft | ReviewNeeded on reopen

Tag edits replace the whole tag set with one tag, so repeating one is harmless.
Message posts are not deduplicated: a redelivered notification posts again.

Every failure (missing thread, Discord error, anything else) is logged with the
pull request number and dropped. apply() never raises, so one bad event can't
stall the queue.
"""

from __future__ import annotations

from collections.abc import Awaitable

import structlog

from prforum.discussion import render
from prforum.discussion.resolver import ThreadResolver
from prforum.discussion.surface import DiscussionSurface, PRState, ThreadHandle
from prforum.events.models import (
    Approved,
    Closed,
    Comment,
    Drafted,
    LifecycleEvent,
    Merged,
    Opened,
    ReadyForReview,
)
from prforum.infra.errors import ThreadNotFoundError

logger = structlog.get_logger()


class StateProjector:
    def __init__(self, surface: DiscussionSurface, resolver: ThreadResolver) -> None:
        self._surface = surface
        self._resolver = resolver

    async def apply(self, event: LifecycleEvent) -> None:
        """Apply one event. Logs and swallows every per-event failure."""
        pr_number = event.pr_number
        operation = type(event).__name__
        try:
            await self._apply(event)
        except ThreadNotFoundError as e:
            logger.error("thread_missing", pr=pr_number, operation=operation, error=str(e))
        except Exception:
            logger.exception("projection_failed", pr=pr_number, operation=operation)

    async def _apply(self, event: LifecycleEvent) -> None:
        if isinstance(event, Opened):
            await self._open(event)
            return

        thread = await self._thread(event.pr_number)

        if isinstance(event, ReadyForReview):
            await self._retag(thread, event.pr_number, PRState.review_needed)
            await self._post(thread, event.pr_number, render.ready_notice(event.pr_number))
        elif isinstance(event, Drafted):
            await self._retag(thread, event.pr_number, PRState.draft)
        elif isinstance(event, Approved):
            await self._retag(thread, event.pr_number, PRState.approved)
            await self._post(
                thread, event.pr_number, render.approved_notice(event.pr_number, event.reviewer),
            )
        elif isinstance(event, Merged):
            await self._retag(thread, event.pr_number, PRState.merged)
            await self._post(
                thread, event.pr_number, render.merged_notice(event.pr_number, event.pr.merged_by),
            )
        elif isinstance(event, Closed):
            await self._retag(thread, event.pr_number, PRState.closed)
            await self._post(thread, event.pr_number, render.closed_notice(event.pr_number))
        elif isinstance(event, Comment):
            text = render.quote_comment(event.body, event.author)
            for part in render.split_message(text):
                await self._post(thread, event.pr_number, part)

        logger.info(
            "pr_event_projected", pr=event.pr_number, kind=type(event).__name__, thread=thread.id,
        )

    async def _open(self, event: Opened) -> None:
        pr = event.pr
        existing = await self._resolver.resolve(pr.number)
        if existing is not None:
            # One thread per pull request number, ever
            logger.warning("thread_already_exists", pr=pr.number, thread=existing.id)
            return

        state = PRState.draft if pr.draft else PRState.review_needed
        thread = await self._surface.create_thread(
            render.thread_name(pr),
            pr.url or f"Pull request #{pr.number}",
            state,
        )
        logger.info("thread_created", pr=pr.number, thread=thread.id, state=str(state))

    async def _thread(self, pr_number: int) -> ThreadHandle:
        thread = await self._resolver.resolve(pr_number)
        if thread is None:
            raise ThreadNotFoundError(pr_number)
        return thread

    async def _retag(self, thread: ThreadHandle, pr_number: int, state: PRState) -> None:
        await self._guard(
            self._surface.edit_thread_tags(thread, state), pr_number, "edit_thread_tags",
        )

    async def _post(self, thread: ThreadHandle, pr_number: int, content: str) -> None:
        await self._guard(self._surface.send_message(thread, content), pr_number, "send_message")

    async def _guard(self, call: Awaitable[None], pr_number: int, operation: str) -> None:
        # Tag edits and message posts fail independently
        try:
            await call
        except Exception:
            logger.exception("thread_mutation_failed", pr=pr_number, operation=operation)

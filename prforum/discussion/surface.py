"""Discussion surface contract: pull request states, thread handles and the forum Protocol."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol


class PRState(StrEnum):
    """Forum tag applied to a pull request thread. Exactly one at a time."""

    draft = "draft"
    review_needed = "review_needed"
    approved = "approved"
    merged = "merged"
    closed = "closed"


@dataclass(frozen=True)
class ThreadHandle:
    """An active forum thread as listed by the chat platform."""

    id: int
    parent_id: int | None
    name: str


class DiscussionSurface(Protocol):
    """Capabilities the projector needs from the chat platform.

    Implemented by DiscordAdapter; tests use an in-memory fake.
    """

    @property
    def container_id(self) -> int:
        """Forum channel that owns every pull request thread."""
        ...

    async def list_active_threads(self) -> list[ThreadHandle]: ...

    async def create_thread(self, name: str, content: str, state: PRState) -> ThreadHandle: ...

    async def edit_thread_tags(self, thread: ThreadHandle, state: PRState) -> None: ...

    async def send_message(self, thread: ThreadHandle, content: str) -> None: ...

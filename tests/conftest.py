"""Shared pytest fixtures for prforum tests.

Provides an in-memory DiscussionSurface (FakeSurface) standing in for the
Discord forum, plus factories for GitHub webhook payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from prforum.discussion.surface import PRState, ThreadHandle

FORUM_ID = 100

REQUIRED_ENV = {
    "DISCORD_BOT_TOKEN": "discord-token",
    "DISCORD_GUILD_ID": "1",
    "DISCORD_FORUM_CHANNEL_ID": str(FORUM_ID),
    "DISCORD_MEMBER_ROLE_ID": "11",
    "DISCORD_MAINTAINER_ROLE_ID": "12",
    "FORUM_TAG_DRAFT": "21",
    "FORUM_TAG_REVIEW_NEEDED": "22",
    "FORUM_TAG_APPROVED": "23",
    "FORUM_TAG_MERGED": "24",
    "FORUM_TAG_CLOSED": "25",
    "GITHUB_TOKEN": "ghp_test",
    "GITHUB_REPO_OWNER": "octo",
    "GITHUB_REPO_NAME": "widgets",
    "WEBHOOK_SECRET": "s3cret",
}


@dataclass
class FakeThread:
    id: int
    parent_id: int | None
    name: str
    tags: list[PRState] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    def handle(self) -> ThreadHandle:
        return ThreadHandle(id=self.id, parent_id=self.parent_id, name=self.name)


class FakeSurface:
    """In-memory forum channel. Set `failing` to make operations raise."""

    def __init__(self, container_id: int = FORUM_ID) -> None:
        self.container_id = container_id
        self.threads: dict[int, FakeThread] = {}
        self.failing: set[str] = set()
        self.list_calls = 0
        self._next_id = 1000

    def add_thread(
        self, name: str, *, parent_id: int | None = None, state: PRState | None = None,
    ) -> FakeThread:
        self._next_id += 1
        thread = FakeThread(
            id=self._next_id,
            parent_id=self.container_id if parent_id is None else parent_id,
            name=name,
            tags=[state] if state else [],
        )
        self.threads[thread.id] = thread
        return thread

    def thread_for(self, pr_number: int) -> FakeThread | None:
        for thread in self.threads.values():
            if thread.name.startswith(f"#{pr_number} - "):
                return thread
        return None

    async def list_active_threads(self) -> list[ThreadHandle]:
        self.list_calls += 1
        if "list" in self.failing:
            raise RuntimeError("list failed")
        return [t.handle() for t in self.threads.values()]

    async def create_thread(self, name: str, content: str, state: PRState) -> ThreadHandle:
        if "create" in self.failing:
            raise RuntimeError("create failed")
        thread = self.add_thread(name, state=state)
        thread.messages.append(content)
        return thread.handle()

    async def edit_thread_tags(self, thread: ThreadHandle, state: PRState) -> None:
        if "tags" in self.failing:
            raise RuntimeError("edit failed")
        self.threads[thread.id].tags = [state]

    async def send_message(self, thread: ThreadHandle, content: str) -> None:
        if "send" in self.failing:
            raise RuntimeError("send failed")
        self.threads[thread.id].messages.append(content)


@pytest.fixture
def surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture
def settings_env(monkeypatch) -> dict[str, str]:
    """Set every required environment variable."""
    for key, value in REQUIRED_ENV.items():
        monkeypatch.setenv(key, value)
    return dict(REQUIRED_ENV)


# ---------------------------------------------------------------------------
# GitHub webhook payload factories
# ---------------------------------------------------------------------------


def _pull_request(
    number: int = 7,
    *,
    title: str = "Fix widget",
    author: str = "alice",
    draft: bool = False,
    merged: bool = False,
    merged_by: str | None = None,
) -> dict[str, Any]:
    return {
        "number": number,
        "title": title,
        "user": {"login": author},
        "draft": draft,
        "merged": merged,
        "merged_by": {"login": merged_by} if merged_by else None,
        "html_url": f"https://github.com/octo/widgets/pull/{number}",
        "state": "open",
    }


def _pr_event(action: str, **pr_kwargs: Any) -> dict[str, Any]:
    pr = _pull_request(**pr_kwargs)
    return {"action": action, "number": pr["number"], "pull_request": pr}


def _review_event(
    action: str = "submitted",
    *,
    state: str = "approved",
    association: str = "MEMBER",
    reviewer: str = "bob",
    number: int = 7,
) -> dict[str, Any]:
    return {
        "action": action,
        "review": {
            "state": state,
            "author_association": association,
            "user": {"login": reviewer},
            "body": None,
        },
        "pull_request": _pull_request(number),
    }


def _review_comment_event(
    action: str = "created", *, body: str = "nit: rename", author: str = "carol", number: int = 7,
) -> dict[str, Any]:
    return {
        "action": action,
        "comment": {"body": body, "user": {"login": author}},
        "pull_request": _pull_request(number),
    }


def _review_thread_event(
    comments: list[tuple[str, str]], *, action: str = "resolved", number: int = 7,
) -> dict[str, Any]:
    return {
        "action": action,
        "thread": {
            "node_id": "PRRT_1",
            "comments": [{"body": b, "user": {"login": a}} for b, a in comments],
        },
        "pull_request": _pull_request(number),
    }


def _issue_comment_event(
    action: str = "created",
    *,
    body: str = "LGTM",
    author: str = "dave",
    number: int = 7,
    is_pull_request: bool = True,
    pr_url: str | None = None,
) -> dict[str, Any]:
    issue: dict[str, Any] = {"number": number, "title": "Fix widget"}
    if is_pull_request:
        issue["pull_request"] = {
            "html_url": pr_url or f"https://github.com/octo/widgets/pull/{number}",
            "url": f"https://api.github.com/repos/octo/widgets/pulls/{number}",
        }
    return {"action": action, "issue": issue, "comment": {"body": body, "user": {"login": author}}}


@pytest.fixture
def pr_event():
    return _pr_event


@pytest.fixture
def review_event():
    return _review_event


@pytest.fixture
def review_comment_event():
    return _review_comment_event


@pytest.fixture
def review_thread_event():
    return _review_thread_event


@pytest.fixture
def issue_comment_event():
    return _issue_comment_event


class FakeDiscordAdapter(FakeSurface):
    """Stands in for DiscordAdapter in the assembled app; fires READY twice on start().

    Set `start_error` to make start() fail before READY, like a rejected login.
    """

    def __init__(self) -> None:
        super().__init__()
        self.start_error: Exception | None = None
        self.ready_hook = None
        self.ready_calls = 0
        self.stopped = False

    def set_ready_hook(self, hook) -> None:
        self.ready_hook = hook

    async def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        # Discord may deliver READY more than once (reconnects)
        for _ in range(2):
            self.ready_calls += 1
            await self.ready_hook()

    async def stop(self) -> None:
        self.stopped = True


@pytest.fixture
def fake_discord() -> FakeDiscordAdapter:
    return FakeDiscordAdapter()

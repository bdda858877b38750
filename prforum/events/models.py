"""Canonical pull request lifecycle events.

Provider-agnostic: the webhook normalizer produces these, the projector consumes them.
Every variant carries the pull request number so a thread can be resolved
without another GitHub round trip.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PullRequestSummary:
    """Immutable snapshot of a pull request taken at normalization time."""

    number: int
    title: str | None
    author: str | None
    draft: bool
    url: str | None
    merged_by: str | None = None  # set only once merged


@dataclass(frozen=True)
class Opened:
    pr: PullRequestSummary

    @property
    def pr_number(self) -> int:
        return self.pr.number


@dataclass(frozen=True)
class ReadyForReview:
    pr: PullRequestSummary

    @property
    def pr_number(self) -> int:
        return self.pr.number


@dataclass(frozen=True)
class Drafted:
    pr: PullRequestSummary

    @property
    def pr_number(self) -> int:
        return self.pr.number


@dataclass(frozen=True)
class Closed:
    pr: PullRequestSummary

    @property
    def pr_number(self) -> int:
        return self.pr.number


@dataclass(frozen=True)
class Merged:
    pr: PullRequestSummary

    @property
    def pr_number(self) -> int:
        return self.pr.number


@dataclass(frozen=True)
class Approved:
    pr: PullRequestSummary
    reviewer: str | None

    @property
    def pr_number(self) -> int:
        return self.pr.number


@dataclass(frozen=True)
class Comment:
    """A comment posted on the pull request (review, review thread or conversation)."""

    pr_number: int
    body: str
    author: str


LifecycleEvent = Opened | ReadyForReview | Drafted | Closed | Merged | Approved | Comment

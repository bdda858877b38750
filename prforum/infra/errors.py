"""Custom exception hierarchy for prforum.

All application-specific exceptions inherit from PRForumError,
which carries an error code used in log records.
"""

from __future__ import annotations


class PRForumError(Exception):
    """Base exception for all prforum errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code


class WebhookError(PRForumError):
    """Undecodable or malformed webhook deliveries."""

    def __init__(self, message: str, *, code: str = "WEBHOOK_ERROR") -> None:
        super().__init__(message, code=code)


class QueueClosedError(PRForumError):
    """Raised when submitting to, or receiving from, a closed event queue."""

    def __init__(self, message: str = "Event queue is closed") -> None:
        super().__init__(message, code="QUEUE_CLOSED")


class DiscussionError(PRForumError):
    """Errors while mutating the discussion surface (forum threads)."""

    def __init__(self, message: str, *, code: str = "DISCUSSION_ERROR") -> None:
        super().__init__(message, code=code)


class ThreadNotFoundError(DiscussionError):
    """No active thread exists for the pull request."""

    def __init__(self, pr_number: int) -> None:
        super().__init__(f"Missing forum post for PR #{pr_number}", code="THREAD_NOT_FOUND")
        self.pr_number = pr_number


class GitHubError(PRForumError):
    """Errors from GitHub API calls."""

    def __init__(
        self, message: str, *, code: str = "GITHUB_ERROR", status_code: int | None = None,
    ) -> None:
        super().__init__(message, code=code)
        self.status_code = status_code


class ChannelError(PRForumError):
    """Errors in the Discord channel adapter."""

    def __init__(self, message: str, *, code: str = "CHANNEL_ERROR") -> None:
        super().__init__(message, code=code)

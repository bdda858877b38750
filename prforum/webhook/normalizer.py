"""Maps decoded GitHub webhook payloads onto canonical lifecycle events.

normalize() returns None for every delivery that is not a recognized
transition. Ignoring is the expected, frequent outcome and never raises.
"""

from __future__ import annotations

from urllib.parse import urlparse

import structlog

from prforum.events.models import (
    Approved,
    Closed,
    Comment,
    Drafted,
    LifecycleEvent,
    Merged,
    Opened,
    PullRequestSummary,
    ReadyForReview,
)
from prforum.webhook.payloads import (
    IssueCommentEvent,
    PullRequestData,
    PullRequestEvent,
    PullRequestReviewCommentEvent,
    PullRequestReviewEvent,
    PullRequestReviewThreadEvent,
    WebhookPayload,
)

logger = structlog.get_logger()

# Reviewers without one of these associations (first-timers, NONE, MANNEQUIN, ...)
# cannot move a pull request to approved.
TRUSTED_ASSOCIATIONS: frozenset[str] = frozenset(
    {"COLLABORATOR", "CONTRIBUTOR", "MEMBER", "OWNER"}
)


def summarize_pull_request(pr: PullRequestData) -> PullRequestSummary:
    return PullRequestSummary(
        number=pr.number,
        title=pr.title,
        author=pr.user.login if pr.user else None,
        draft=bool(pr.draft),
        url=pr.html_url,
        merged_by=pr.merged_by.login if pr.merged_by else None,
    )


def pr_number_from_url(url: str) -> int | None:
    """Trailing numeric path segment of a pull request URL, e.g. .../pull/42 -> 42."""
    segments = [s for s in urlparse(url).path.split("/") if s]
    if not segments or not segments[-1].isdigit():
        return None
    return int(segments[-1])


def normalize(payload: WebhookPayload) -> LifecycleEvent | None:
    """Translate one decoded webhook payload into at most one canonical event."""
    if isinstance(payload, PullRequestEvent):
        return _normalize_pull_request(payload)
    if isinstance(payload, PullRequestReviewEvent):
        return _normalize_review(payload)
    if isinstance(payload, PullRequestReviewCommentEvent):
        return _normalize_review_comment(payload)
    if isinstance(payload, PullRequestReviewThreadEvent):
        return _normalize_review_thread(payload)
    if isinstance(payload, IssueCommentEvent):
        return _normalize_issue_comment(payload)
    logger.debug("webhook_payload_ignored", payload_type=type(payload).__name__)
    return None


def _normalize_pull_request(event: PullRequestEvent) -> LifecycleEvent | None:
    pr = summarize_pull_request(event.pull_request)
    action = event.action

    if action == "opened":
        result: LifecycleEvent = Opened(pr)
    elif action == "ready_for_review":
        result = ReadyForReview(pr)
    elif action == "closed":
        result = Merged(pr) if event.pull_request.merged else Closed(pr)
    elif action == "converted_to_draft":
        result = Drafted(pr)
    elif action == "reopened":
        result = Drafted(pr) if pr.draft else ReadyForReview(pr)
    else:
        logger.debug("pr_action_ignored", action=action, pr=pr.number)
        return None

    logger.info(
        "pr_event_normalized",
        action=action,
        kind=type(result).__name__,
        pr=pr.number,
        title=pr.title,
        author=pr.author,
    )
    return result


def _normalize_review(event: PullRequestReviewEvent) -> LifecycleEvent | None:
    pr_number = event.pull_request.number
    if event.action != "submitted":
        logger.debug("review_action_ignored", action=event.action, pr=pr_number)
        return None

    review = event.review
    approved = (review.state or "").lower() == "approved"
    trusted = (review.author_association or "NONE").upper() in TRUSTED_ASSOCIATIONS
    if not (approved and trusted):
        logger.debug(
            "review_ignored",
            pr=pr_number,
            state=review.state,
            author_association=review.author_association,
        )
        return None

    reviewer = review.user.login if review.user else None
    logger.info("pr_approved", pr=pr_number, reviewer=reviewer)
    return Approved(summarize_pull_request(event.pull_request), reviewer)


def _normalize_review_comment(event: PullRequestReviewCommentEvent) -> LifecycleEvent | None:
    pr_number = event.pull_request.number
    if event.action != "created":
        logger.debug("review_comment_action_ignored", action=event.action, pr=pr_number)
        return None
    return _comment(pr_number, event.comment.body, event.comment.user)


def _normalize_review_thread(event: PullRequestReviewThreadEvent) -> LifecycleEvent | None:
    pr_number = event.pull_request.number
    if not event.thread.comments:
        logger.error("review_thread_without_comments", pr=pr_number, action=event.action)
        return None
    last = event.thread.comments[-1]
    return _comment(pr_number, last.body, last.user)


def _normalize_issue_comment(event: IssueCommentEvent) -> LifecycleEvent | None:
    # GitHub reports pull request conversation comments as issue comments
    link = event.issue.pull_request
    if link is None:
        return None
    if event.action != "created":
        logger.debug("issue_comment_action_ignored", action=event.action, issue=event.issue.number)
        return None

    pr_number = pr_number_from_url(link.html_url)
    if pr_number is None:
        logger.error("invalid_pr_url", url=link.html_url)
        return None
    return _comment(pr_number, event.comment.body, event.comment.user)


def _comment(pr_number: int, body: str | None, user) -> Comment | None:
    if not body:
        logger.debug("empty_comment_ignored", pr=pr_number)
        return None
    author = user.login if user else "unknown"
    logger.info("pr_comment", pr=pr_number, author=author)
    return Comment(pr_number=pr_number, body=body, author=author)

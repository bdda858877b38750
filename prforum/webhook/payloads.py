"""GitHub webhook payload models, one per supported X-GitHub-Event category.

Only the fields the normalizer needs are declared; everything else in the
delivery is ignored.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, ValidationError

from prforum.infra.errors import WebhookError


class GitHubUser(BaseModel):
    login: str


class PullRequestData(BaseModel):
    number: int
    title: str | None = None
    user: GitHubUser | None = None
    draft: bool | None = None
    merged: bool | None = None
    merged_by: GitHubUser | None = None
    html_url: str | None = None


class PullRequestEvent(BaseModel):
    """X-GitHub-Event: pull_request"""

    action: str
    pull_request: PullRequestData


class ReviewData(BaseModel):
    state: str | None = None
    author_association: str | None = None
    user: GitHubUser | None = None


class PullRequestReviewEvent(BaseModel):
    """X-GitHub-Event: pull_request_review"""

    action: str
    review: ReviewData
    pull_request: PullRequestData


class CommentData(BaseModel):
    body: str | None = None
    user: GitHubUser | None = None


class PullRequestReviewCommentEvent(BaseModel):
    """X-GitHub-Event: pull_request_review_comment"""

    action: str
    comment: CommentData
    pull_request: PullRequestData


class ReviewThreadData(BaseModel):
    comments: list[CommentData] = Field(default_factory=list)


class PullRequestReviewThreadEvent(BaseModel):
    """X-GitHub-Event: pull_request_review_thread"""

    action: str
    thread: ReviewThreadData
    pull_request: PullRequestData


class IssuePullRequestLink(BaseModel):
    html_url: str


class IssueData(BaseModel):
    number: int
    # Present only when the issue is actually a pull request
    pull_request: IssuePullRequestLink | None = None


class IssueCommentEvent(BaseModel):
    """X-GitHub-Event: issue_comment"""

    action: str
    issue: IssueData
    comment: CommentData


WebhookPayload = (
    PullRequestEvent
    | PullRequestReviewEvent
    | PullRequestReviewCommentEvent
    | PullRequestReviewThreadEvent
    | IssueCommentEvent
)

WEBHOOK_EVENT_MODELS: dict[str, type[WebhookPayload]] = {
    "pull_request": PullRequestEvent,
    "pull_request_review": PullRequestReviewEvent,
    "pull_request_review_comment": PullRequestReviewCommentEvent,
    "pull_request_review_thread": PullRequestReviewThreadEvent,
    "issue_comment": IssueCommentEvent,
}


def parse_webhook_event(event_type: str, body: bytes | str) -> WebhookPayload | None:
    """Decode a delivery body according to its X-GitHub-Event header.

    Returns None for event categories that are not mirrored (ping, push, ...).
    Raises WebhookError(code="PAYLOAD_INVALID") on invalid JSON or schema mismatch.
    """
    model = WEBHOOK_EVENT_MODELS.get(event_type.strip().lower())
    if model is None:
        return None
    try:
        return model.model_validate_json(body)
    except ValidationError as e:
        raise WebhookError(
            f"Invalid {event_type} payload: {e.error_count()} validation error(s)",
            code="PAYLOAD_INVALID",
        ) from e

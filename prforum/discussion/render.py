"""Text rendering for forum threads: thread names, notices, quoted comments, splitting."""

from __future__ import annotations

from prforum.events.models import PullRequestSummary

# Discord limits
THREAD_NAME_MAX_LENGTH = 100
MESSAGE_MAX_LENGTH = 2000


def thread_name(pr: PullRequestSummary) -> str:
    """`#<number> - <title> by <author>`, truncated to the thread name limit."""
    name = f"#{pr.number} - {pr.title or 'Unnamed'} by {pr.author or 'Unknown'}"
    if len(name) <= THREAD_NAME_MAX_LENGTH:
        return name
    return name[: THREAD_NAME_MAX_LENGTH - 1] + "…"


def ready_notice(pr_number: int) -> str:
    return f"Pull request #{pr_number} **ready for review**!"


def approved_notice(pr_number: int, reviewer: str | None) -> str:
    return f"Pull request #{pr_number} was approved by **{reviewer or 'unknown'}**!"


def merged_notice(pr_number: int, merged_by: str | None) -> str:
    return f"Pull request #{pr_number} was merged by **{merged_by or 'unknown'}** :tada:!"


def closed_notice(pr_number: int) -> str:
    return f"Pull request #{pr_number} was closed!"


def quote_comment(body: str, author: str) -> str:
    quoted = "\n".join(f"> {line}" for line in body.splitlines())
    return f"{quoted}\n~ {author}"


def split_message(text: str, max_length: int = MESSAGE_MAX_LENGTH) -> list[str]:
    """Split text into chunks within Discord's message length limit.

    Split priority: line boundaries → hard cut.
    """
    if not text:
        return []
    if len(text) <= max_length:
        return [text]

    result: list[str] = []
    buf = ""
    for line in text.split("\n"):
        candidate = f"{buf}\n{line}" if buf else line
        if len(candidate) <= max_length:
            buf = candidate
            continue

        if buf:
            result.append(buf)
            buf = ""

        # Single line longer than the limit
        while len(line) > max_length:
            result.append(line[:max_length])
            line = line[max_length:]
        buf = line

    if buf:
        result.append(buf)

    return [c for c in result if c.strip()]

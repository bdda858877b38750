"""Locates the forum thread of a pull request by its "#<number> - ..." name.

Lists all active guild threads on every call (no cache), so each resolution
costs O(active threads). Fine at small pull request volumes; cache here first
if that ever changes.
"""

from __future__ import annotations

import re

import structlog

from prforum.discussion.surface import DiscussionSurface, ThreadHandle

logger = structlog.get_logger()


def thread_name_matches(name: str, pr_number: int) -> bool:
    """True if name starts with #<pr_number> not followed by another digit.

    "#7 - Fix" matches 7; "#70 - Fix" and "#17 - Fix" do not.
    """
    return re.match(rf"#{pr_number}(?!\d)", name) is not None


def pr_number_from_thread_name(name: str) -> int | None:
    match = re.match(r"#(\d+)", name)
    return int(match.group(1)) if match else None


class ThreadResolver:
    def __init__(self, surface: DiscussionSurface) -> None:
        self._surface = surface

    async def resolve(self, pr_number: int) -> ThreadHandle | None:
        """First active thread in the forum channel named for pr_number, or None.

        Platform errors propagate to the caller.
        """
        threads = await self._surface.list_active_threads()
        container_id = self._surface.container_id
        for thread in threads:
            if thread.parent_id != container_id:
                continue
            if not thread_name_matches(thread.name, pr_number):
                continue
            return thread

        logger.debug("thread_not_found", pr=pr_number, active_threads=len(threads))
        return None

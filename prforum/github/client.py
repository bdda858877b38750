"""Minimal GitHub REST client for the one write the bot performs: merging."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

import httpx
import structlog

from prforum.infra.errors import GitHubError

logger = structlog.get_logger()

GITHUB_API = "https://api.github.com"


class MergeMethod(StrEnum):
    merge = "merge"
    squash = "squash"
    rebase = "rebase"


class GitHubClient:
    """Repository-scoped GitHub API client authenticated with a personal access token."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        *,
        api_url: str = GITHUB_API,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owner = owner
        self._repo = repo
        self._http = http_client or httpx.AsyncClient(follow_redirects=True)
        self._base = api_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    @property
    def repo_full_name(self) -> str:
        return f"{self._owner}/{self._repo}"

    async def merge_pull_request(
        self,
        number: int,
        *,
        method: MergeMethod = MergeMethod.merge,
        title: str | None = None,
        message: str | None = None,
    ) -> dict[str, Any]:
        """Merge pull request `number`. Raises GitHubError if GitHub refuses."""
        body: dict[str, Any] = {"merge_method": str(method)}
        if title:
            body["commit_title"] = title
        if message:
            body["commit_message"] = message

        result = await self._request(
            "PUT", f"/repos/{self._owner}/{self._repo}/pulls/{number}/merge", json=body,
        )
        logger.info("pr_merged_via_api", pr=number, method=str(method), repo=self.repo_full_name)
        return result or {}

    async def close(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, endpoint: str, json: dict | None = None) -> Any:
        url = f"{self._base}{endpoint}"
        try:
            response = await self._http.request(method, url, headers=self._headers, json=json)
        except httpx.HTTPError as e:
            raise GitHubError(f"GitHub request failed: {e}", code="GITHUB_UNREACHABLE") from e

        status = response.status_code
        if status >= 400:
            raise GitHubError(_error_message(response), status_code=status)

        if status == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise GitHubError(
                f"Invalid JSON from GitHub for {endpoint}", status_code=status,
            ) from e


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    detail = data.get("message") if isinstance(data, dict) else None
    return f"{response.status_code} {detail or response.reason_phrase}"

"""GitHub data fetcher for repository trust analysis."""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime, timezone
from urllib.parse import quote

import httpx

from exttrust.analyzers.normalizer import days_since, parse_timestamp
from exttrust.models.schemas import RepoErrorKind, RepoFetchError, RepoRecord

logger = logging.getLogger(__name__)

_LAST_LINK = re.compile(r"<([^>]+)>;\s*rel=\"last\"", re.IGNORECASE)
_PAGE_PARAM = re.compile(r"[?&]page=(\d+)")


def total_from_link_header(link_header: str | None, per_page: int) -> int | None:
    """Estimate a collection total from a paginated ``Link`` header.

    With ``per_page=1`` the page number of ``rel="last"`` is the exact total.
    """
    if not link_header or per_page < 1:
        return None
    last = _LAST_LINK.search(link_header)
    if not last:
        return None
    page = _PAGE_PARAM.search(last.group(1))
    if not page:
        return None
    return int(page.group(1)) * per_page


class GitHubFetcher:
    """Fetches repository data from the GitHub API.

    A personal access token is optional; without one the unauthenticated
    rate limit (60 requests/hour) applies. Set GITHUB_TOKEN or pass token.
    """

    BASE_URL = "https://api.github.com"
    USER_AGENT = "exttrust/0.1"

    def __init__(
        self,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            token: GitHub personal access token. If not provided, uses GITHUB_TOKEN env var.
            client: Optional httpx client. If not provided, a new client is created per call.
        """
        self._token = token or os.environ.get("GITHUB_TOKEN") or None
        self._client = client

        # Rate limit tracking
        self.rate_limit_remaining: int | None = None
        self.rate_limit_reset: datetime | None = None

    def _headers(self) -> dict[str, str]:
        """Get headers for GitHub API requests."""
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self.USER_AGENT,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=30.0)

    def _update_rate_limits(self, response: httpx.Response) -> None:
        """Extract and store rate limit info from response headers."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset = response.headers.get("X-RateLimit-Reset")

        if remaining is not None and remaining.isdigit():
            self.rate_limit_remaining = int(remaining)
        if reset is not None and reset.isdigit():
            self.rate_limit_reset = datetime.fromtimestamp(int(reset), tz=timezone.utc)

    def _repo_path(self, owner: str, repo: str) -> str:
        return f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"

    async def repo_exists(self, owner: str, repo: str) -> bool:
        """Check that a repository resolves (HTTP 200).

        Returns False on 404, 403, any other status, or a transport error.
        """
        client = await self._get_client()
        try:
            response = await client.get(
                f"{self.BASE_URL}{self._repo_path(owner, repo)}",
                headers=self._headers(),
            )
            self._update_rate_limits(response)
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"GitHub existence check failed for {owner}/{repo}: {e}")
            return False
        finally:
            if self._client is None:
                await client.aclose()

    async def _count(self, client: httpx.AsyncClient, path: str, params: dict) -> int | None:
        """Count items of a list endpoint with a single ``per_page=1`` request."""
        response = await client.get(
            f"{self.BASE_URL}{path}",
            params={**params, "per_page": 1},
            headers=self._headers(),
        )
        self._update_rate_limits(response)
        if response.status_code != 200:
            return None
        total = total_from_link_header(response.headers.get("Link"), 1)
        if total is not None:
            return total
        data = response.json()
        return len(data) if isinstance(data, list) else None

    async def fetch_repo(self, owner: str, repo: str) -> RepoRecord | RepoFetchError:
        """Fetch repository data.

        Args:
            owner: Repository owner.
            repo: Repository name.

        Returns:
            RepoRecord on success, or a RepoFetchError describing the failure.
        """
        client = await self._get_client()
        path = self._repo_path(owner, repo)
        try:
            response = await client.get(f"{self.BASE_URL}{path}", headers=self._headers())
            self._update_rate_limits(response)

            if response.status_code == 404:
                return RepoFetchError(kind=RepoErrorKind.NOT_FOUND, message="Repository not found")
            if response.status_code == 403:
                remaining = response.headers.get("X-RateLimit-Remaining")
                suffix = f" ({remaining} remaining)" if remaining is not None else ""
                return RepoFetchError(
                    kind=RepoErrorKind.RATE_LIMITED,
                    message=f"GitHub API limit exceeded{suffix}",
                )
            if response.status_code != 200:
                return RepoFetchError(
                    kind=RepoErrorKind.OTHER,
                    message=f"GitHub API error: {response.status_code}",
                )

            data = response.json()
            if not isinstance(data, dict):
                return RepoFetchError(kind=RepoErrorKind.OTHER, message="Unexpected GitHub response")
            open_pulls = await self._count(client, f"{path}/pulls", {"state": "open"})
            contributors = await self._count(client, f"{path}/contributors", {})
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"GitHub fetch failed for {owner}/{repo}: {e}")
            return RepoFetchError(kind=RepoErrorKind.OTHER, message=f"GitHub request failed: {e}")
        finally:
            if self._client is None:
                await client.aclose()

        return self._to_record(owner, repo, data, open_pulls, contributors)

    def _to_record(
        self,
        owner: str,
        repo: str,
        data: dict,
        open_pulls: int | None,
        contributors: int | None,
    ) -> RepoRecord:
        """Build a RepoRecord from ``/repos/{owner}/{repo}`` JSON."""

        def count(key: str) -> int | None:
            value = data.get(key)
            return value if isinstance(value, int) and not isinstance(value, bool) else None

        return RepoRecord(
            owner=owner,
            repo=repo,
            url=data.get("html_url") or f"https://github.com/{owner}/{repo}",
            stars=count("stargazers_count"),
            forks=count("forks_count"),
            open_issues=count("open_issues_count"),
            open_pull_requests=open_pulls,
            default_branch=data.get("default_branch") or "main",
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
            pushed_at=parse_timestamp(data.get("pushed_at")),
            age_days=days_since(data.get("created_at")),
            days_since_push=days_since(data.get("pushed_at")),
            contributor_count=contributors,
            has_issues_enabled=data.get("has_issues") is True,
            has_wiki=data.get("has_wiki") is True,
            language=data.get("language"),
            description=data.get("description"),
        )

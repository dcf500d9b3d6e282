"""GitHub REST API client for pull request and commit retrieval."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import requests

from .config import Config
from .errors import DetailFetchError, MalformedDataError, UpstreamError
from .models import (
    Commit,
    PullRequest,
    PullRequestPage,
    RateLimitStatus,
    RepositoryConfig,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


class GitHubClient:
    """Small, typed client for the GitHub pull request APIs.

    Every method issues exactly one request and never retries. Failures are
    raised as ``UpstreamError`` (listing and quota endpoints) or
    ``DetailFetchError`` (per pull request commit lists).
    """

    def __init__(self, config: Config) -> None:
        """Initialize an authenticated GitHub API client.

        Args:
            config: Validated runtime configuration including the API token.
        """
        self._config = config
        self._timeout_seconds = config.timeout_seconds
        self._base_url = config.api_base_url.rstrip("/")

        self._session = requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"token {config.token}",
                "Accept": "application/vnd.github+json",
            }
        )

    def pull_requests_url(self, repository: RepositoryConfig) -> str:
        """Build the first page URL of a repository's closed pull requests.

        Results are sorted by last update, most recent first.
        """
        query = urlencode(
            {
                "state": "closed",
                "base": repository.base_branch,
                "sort": "updated",
                "direction": "desc",
                "per_page": self._config.page_size,
            }
        )
        return f"{self._base_url}/repos/{repository.owner}/{repository.name}/pulls?{query}"

    def _get(self, url: str, error_type: type) -> requests.Response:
        try:
            response = self._session.get(url, timeout=self._timeout_seconds)
        except requests.RequestException as exc:
            raise error_type(f"GitHub request failed: GET {url}") from exc

        if not response.ok:
            raise error_type(
                "GitHub API request failed: "
                f"GET {url} returned {response.status_code} - {response.reason}"
            )
        return response

    def _json(self, response: requests.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedDataError(f"GitHub API returned invalid JSON: GET {url}") from exc

    def _pull_request(self, item: Any) -> PullRequest:
        """Convert one listing item into a ``PullRequest``.

        Raises:
            MalformedDataError: If the item or its merge timestamp is malformed.
        """
        if not isinstance(item, dict):
            raise MalformedDataError(f"Pull request item is not an object: {item!r}")

        links = _as_dict(item.get("_links"))
        commits_url = _as_dict(links.get("commits")).get("href") or item.get("commits_url")
        return PullRequest(
            url=str(item.get("url") or item.get("html_url") or ""),
            merged_at=parse_timestamp(item.get("merged_at")),
            commits_url=commits_url if isinstance(commits_url, str) else None,
        )

    def get_pull_request_page(self, url: str) -> PullRequestPage:
        """Fetch one page of pull requests and its ``rel="next"`` link.

        Items that cannot be parsed are skipped with a warning.

        Raises:
            UpstreamError: If the request fails or returns a non-success status.
            MalformedDataError: If the body is not a JSON list.
        """
        response = self._get(url, UpstreamError)
        payload = self._json(response, url)
        if not isinstance(payload, list):
            raise MalformedDataError(f"GitHub API returned unexpected payload shape: GET {url}")

        pull_requests: List[PullRequest] = []
        for item in payload:
            try:
                pull_requests.append(self._pull_request(item))
            except MalformedDataError as exc:
                logger.warning(
                    "Skipping malformed pull request item",
                    extra={"url": url, "error": str(exc)},
                )

        next_url: Optional[str] = (response.links.get("next") or {}).get("url")
        return PullRequestPage(pull_requests=pull_requests, next_url=next_url)

    def list_commits(self, commits_url: str) -> List[Commit]:
        """List the first page of commits of a pull request.

        Commits without a committer date are left out.

        Raises:
            DetailFetchError: If the request fails or returns a non-success status.
            MalformedDataError: If the body is not a JSON list, an entry is not
                an object, or a committer date is not a valid timestamp.
        """
        response = self._get(commits_url, DetailFetchError)
        payload = self._json(response, commits_url)
        if not isinstance(payload, list):
            raise MalformedDataError(
                f"GitHub API returned unexpected payload shape: GET {commits_url}"
            )

        commits: List[Commit] = []
        for item in payload:
            if not isinstance(item, dict):
                raise MalformedDataError(
                    f"GitHub API returned a commit that is not an object: GET {commits_url}"
                )
            committer = _as_dict(_as_dict(item.get("commit")).get("committer"))
            committer_date = parse_timestamp(committer.get("date"))
            if committer_date is None:
                continue
            commits.append(Commit(committer_date=committer_date))

        return commits

    def fetch_rate_limit(self) -> RateLimitStatus:
        """Fetch the remaining core API quota.

        Raises:
            UpstreamError: If the request fails or returns a non-success status.
            MalformedDataError: If the payload lacks the remaining count or
                carries non-numeric values.
        """
        url = f"{self._base_url}/rate_limit"
        response = self._get(url, UpstreamError)
        payload = _as_dict(self._json(response, url))

        core = _as_dict(_as_dict(payload.get("resources")).get("core")) or _as_dict(
            payload.get("rate")
        )
        if "remaining" not in core:
            raise MalformedDataError(f"GitHub rate limit payload is missing 'remaining': GET {url}")

        try:
            remaining = int(core["remaining"])
            limit = int(core.get("limit", 0))
            reset_epoch = core.get("reset")
            reset = None
            if reset_epoch is not None:
                reset = datetime.fromtimestamp(int(reset_epoch), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError) as exc:
            raise MalformedDataError(
                f"GitHub rate limit payload has non-numeric values: GET {url}"
            ) from exc

        return RateLimitStatus(remaining=remaining, limit=limit, reset=reset)


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}

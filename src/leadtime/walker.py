"""Incremental traversal of a repository's closed pull request pages.

Business logic:
- Pages are requested sequentially, most recently updated pull requests first.
- Only merged pull requests newer than the repository checkpoint are kept.
- Commit lists of the kept pull requests are fetched concurrently per page.
- Walking stops when there is no ``next`` link, when a page has no pull
  request left after filtering (caught up with the checkpoint), or when the
  optional page cap is reached. A walk cut short by the page cap reports the
  unvisited ``next`` link so a later run can resume from it.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List, Optional

from .duration import raw_duration_seconds, remove_non_working_hours
from .errors import DetailFetchError, LeadTimeError, MalformedDataError, UpstreamError
from .github_client import GitHubClient
from .models import BranchLifeTime, PullRequest, RepositoryConfig, WalkResult

logger = logging.getLogger(__name__)


def select_unprocessed(
    pull_requests: List[PullRequest],
    stop_before: Optional[datetime],
) -> List[PullRequest]:
    """Keep merged pull requests merged strictly after ``stop_before``."""
    return [
        pr
        for pr in pull_requests
        if pr.merged_at is not None and (stop_before is None or pr.merged_at > stop_before)
    ]


class PagedCollectionWalker:
    """Follows ``rel="next"`` links and turns merged pull requests into branch life times."""

    def __init__(
        self,
        client: GitHubClient,
        max_workers: int = 8,
        max_pages: Optional[int] = None,
    ) -> None:
        self._client = client
        self._max_workers = max_workers
        self._max_pages = max_pages

    def walk(
        self,
        repository: RepositoryConfig,
        start_url: str,
        stop_before: Optional[datetime] = None,
    ) -> WalkResult:
        """Walk all unprocessed pages of a repository starting at ``start_url``.

        An ``UpstreamError`` on any page fetch aborts the repository: the
        result carries the error and no branch life times, so its checkpoint
        is left untouched.
        """
        results: List[BranchLifeTime] = []
        next_url: Optional[str] = start_url
        pages_fetched = 0

        while next_url is not None:
            try:
                page = self._client.get_pull_request_page(next_url)
            except UpstreamError as exc:
                self._log_quota_snapshot(repository)
                logger.error(
                    "Could not fetch any pull requests",
                    extra={"repository": repository.key, "url": next_url, "error": str(exc)},
                )
                return WalkResult(
                    repository=repository.key, pages_fetched=pages_fetched, error=exc
                )
            except MalformedDataError as exc:
                logger.error(
                    "Malformed pull request page, stopping pagination",
                    extra={"repository": repository.key, "url": next_url, "error": str(exc)},
                )
                break

            pages_fetched += 1
            unprocessed = select_unprocessed(page.pull_requests, stop_before)
            logger.debug(
                "Fetched pull request page",
                extra={
                    "repository": repository.key,
                    "page": pages_fetched,
                    "pull_requests": len(page.pull_requests),
                    "unprocessed": len(unprocessed),
                },
            )

            if not unprocessed:
                logger.info(
                    "Caught up with checkpoint",
                    extra={"repository": repository.key, "pages_fetched": pages_fetched},
                )
                break

            results.extend(self._resolve_page(repository, unprocessed))

            limit_reached = self._max_pages is not None and pages_fetched >= self._max_pages
            if limit_reached and page.next_url is not None:
                logger.warning(
                    "Page limit reached, stopping pagination",
                    extra={"repository": repository.key, "max_pages": self._max_pages},
                )
                return WalkResult(
                    repository=repository.key,
                    branch_life_times=results,
                    pages_fetched=pages_fetched,
                    resume_url=page.next_url,
                )

            next_url = page.next_url

        return WalkResult(
            repository=repository.key,
            branch_life_times=results,
            pages_fetched=pages_fetched,
        )

    def _resolve_page(
        self,
        repository: RepositoryConfig,
        pull_requests: List[PullRequest],
    ) -> List[BranchLifeTime]:
        """Fetch commit lists concurrently; any fetch failure drops the whole page."""
        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            futures = [
                executor.submit(self._branch_life_time, repository, pr) for pr in pull_requests
            ]
            try:
                outcomes = [future.result() for future in futures]
            except DetailFetchError as exc:
                logger.error(
                    "Could not fetch commits of pull requests, dropping page",
                    extra={
                        "repository": repository.key,
                        "pull_requests": len(pull_requests),
                        "error": str(exc),
                    },
                )
                return []

        return [outcome for outcome in outcomes if outcome is not None]

    def _branch_life_time(
        self,
        repository: RepositoryConfig,
        pr: PullRequest,
    ) -> Optional[BranchLifeTime]:
        """Compute one branch life time, or ``None`` for unusable upstream data."""
        try:
            if not pr.commits_url:
                raise MalformedDataError(f"Pull request has no commits link: {pr.url}")
            commits = self._client.list_commits(pr.commits_url)
            if not commits:
                raise MalformedDataError(f"Pull request has no commits: {pr.url}")
        except MalformedDataError as exc:
            logger.warning(
                "Skipping pull request with malformed commit data",
                extra={"repository": repository.key, "pull_request": pr.url, "error": str(exc)},
            )
            return None

        # The first listed commit is taken as the earliest one. GitHub pages
        # commit lists, so for long pull requests this is not guaranteed.
        first_commit = commits[0]
        raw_seconds = raw_duration_seconds(first_commit.committer_date, pr.merged_at)
        if raw_seconds < 0:
            logger.warning(
                "Skipping pull request merged before its first commit",
                extra={
                    "repository": repository.key,
                    "pull_request": pr.url,
                    "raw_seconds": raw_seconds,
                },
            )
            return None

        return BranchLifeTime(
            repository=repository.key,
            base_branch=repository.base_branch,
            merged_at=pr.merged_at,
            duration_seconds=remove_non_working_hours(raw_seconds),
        )

    def _log_quota_snapshot(self, repository: RepositoryConfig) -> None:
        try:
            status = self._client.fetch_rate_limit()
        except LeadTimeError as exc:
            logger.error(
                "Could not fetch rate limit",
                extra={"repository": repository.key, "error": str(exc)},
            )
            return
        logger.info(
            "Rate limit after failed request",
            extra={
                "repository": repository.key,
                "remaining": status.remaining,
                "limit": status.limit,
            },
        )

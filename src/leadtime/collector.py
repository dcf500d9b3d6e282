"""Per-repository orchestration of branch life time collection."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import List, Mapping, Optional, Sequence

from .checkpoint import CheckpointStore
from .config import Config
from .errors import MalformedDataError, UpstreamError
from .github_client import GitHubClient
from .models import (
    BranchLifeTime,
    FetchCheckpoint,
    RateLimitStatus,
    RepositoryConfig,
    WalkResult,
)
from .walker import PagedCollectionWalker

logger = logging.getLogger(__name__)

LOW_QUOTA_RATIO = 0.1


def log_rate_limit(status: RateLimitStatus, repository: str) -> None:
    """Log a quota snapshot, warning when less than 10% remains. Never blocks."""
    minutes_to_reset = None
    if status.reset is not None:
        minutes_to_reset = (status.reset - datetime.now(timezone.utc)).total_seconds() / 60

    logger.info(
        "GitHub API rate limit status",
        extra={
            "repository": repository,
            "remaining": status.remaining,
            "limit": status.limit,
            "minutes_to_reset": minutes_to_reset,
        },
    )
    if status.remaining < status.limit * LOW_QUOTA_RATIO:
        logger.warning(
            "GitHub API rate limit running low",
            extra={"repository": repository, "remaining": status.remaining},
        )


def next_checkpoint(
    result: WalkResult,
    prior: Optional[FetchCheckpoint],
) -> Optional[FetchCheckpoint]:
    """Derive the checkpoint a walk leaves behind, or ``None`` to keep ``prior``.

    The high-water mark is the merge time of the first result, which is the
    most recently updated pull request of the first page. Ties on the update
    time upstream can make this skip pull requests.

    A walk stopped by the page cap stores the unvisited ``next`` link and
    holds its high-water mark back as pending, keeping ``doneUntil`` where it
    was. Walks continuing from such a link promote the pending mark once they
    reach the end, so every merged pull request is emitted exactly once.
    """
    if not result.ok:
        return None

    resuming = prior is not None and prior.resume_url is not None
    high_water = prior.pending_done_until if resuming else None
    if high_water is None and result.branch_life_times:
        high_water = result.branch_life_times[0].merged_at
    done_until = prior.done_until if prior is not None else None

    if result.truncated:
        return FetchCheckpoint(
            repository=result.repository,
            done_until=done_until,
            resume_url=result.resume_url,
            pending_done_until=high_water,
        )
    if high_water is not None:
        return FetchCheckpoint(repository=result.repository, done_until=high_water)
    if resuming:
        return FetchCheckpoint(repository=result.repository, done_until=done_until)
    return None


def fresh_checkpoints(
    results: Sequence[WalkResult],
    prior: Mapping[str, FetchCheckpoint],
) -> List[FetchCheckpoint]:
    """Derive new checkpoints from the walks of one run."""
    checkpoints: List[FetchCheckpoint] = []
    for result in results:
        checkpoint = next_checkpoint(result, prior.get(result.repository))
        if checkpoint is not None:
            checkpoints.append(checkpoint)
    return checkpoints


class BranchLifeTimeCollector:
    """Collects branch life times for all tracked repositories and keeps checkpoints."""

    def __init__(
        self,
        config: Config,
        client: GitHubClient,
        checkpoint_store: CheckpointStore,
        walker: Optional[PagedCollectionWalker] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._checkpoint_store = checkpoint_store
        self._walker = walker or PagedCollectionWalker(
            client,
            max_workers=config.max_workers,
            max_pages=config.max_pages,
        )

    def collect_all(
        self,
        repositories: Optional[Sequence[RepositoryConfig]] = None,
    ) -> List[BranchLifeTime]:
        """Collect new branch life times of every repository and persist checkpoints.

        Repositories are processed concurrently against one checkpoint snapshot.
        The checkpoint file is written once, after all repositories finished.

        Raises:
            PersistenceError: If the updated checkpoint file cannot be written.
        """
        repositories = list(repositories if repositories is not None else self._config.repositories)
        checkpoints = self._checkpoint_store.load()

        logger.info("Start fetching branch life times", extra={"repositories": len(repositories)})
        results: List[WalkResult] = []
        if repositories:
            with ThreadPoolExecutor(max_workers=len(repositories)) as executor:
                results = list(
                    executor.map(
                        lambda repository: self._collect_repository(
                            repository, checkpoints.get(repository.key)
                        ),
                        repositories,
                    )
                )

        self._checkpoint_store.save(fresh_checkpoints(results, checkpoints), checkpoints)

        branch_life_times = [item for result in results for item in result.branch_life_times]
        failed = [result.repository for result in results if not result.ok]
        truncated = [result.repository for result in results if result.truncated]
        logger.info(
            "Finished fetching branch life times",
            extra={
                "branch_life_times": len(branch_life_times),
                "failed_repositories": failed,
                "truncated_repositories": truncated,
            },
        )
        return branch_life_times

    def _collect_repository(
        self,
        repository: RepositoryConfig,
        checkpoint: Optional[FetchCheckpoint],
    ) -> WalkResult:
        try:
            log_rate_limit(self._client.fetch_rate_limit(), repository.key)
        except UpstreamError as exc:
            logger.error(
                "Could not fetch rate limit, skipping repository",
                extra={"repository": repository.key, "error": str(exc)},
            )
            return WalkResult(repository=repository.key, error=exc)
        except MalformedDataError as exc:
            logger.warning(
                "Ignoring malformed rate limit response",
                extra={"repository": repository.key, "error": str(exc)},
            )

        start_url = self._client.pull_requests_url(repository)
        stop_before = None
        if checkpoint is not None:
            stop_before = checkpoint.done_until
            if checkpoint.resume_url is not None:
                logger.info(
                    "Resuming pagination cut short by the page limit",
                    extra={"repository": repository.key, "url": checkpoint.resume_url},
                )
                start_url = checkpoint.resume_url

        return self._walker.walk(repository, start_url, stop_before=stop_before)

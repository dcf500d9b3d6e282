"""Domain models for branch life time collection.

These dataclasses intentionally model only the subset of GitHub payload fields
that are required to compute branch life times and checkpoints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

from .errors import ConfigurationError, MalformedDataError, UpstreamError


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse GitHub ISO8601 timestamps into timezone-aware UTC datetimes.

    Raises:
        MalformedDataError: If ``value`` is not an ISO8601 string.
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise MalformedDataError(f"Expected an ISO8601 timestamp, got {value!r}")

    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise MalformedDataError(f"Invalid ISO8601 timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as UTC ISO8601 with a ``Z`` suffix."""
    utc_value = value.astimezone(timezone.utc)
    return utc_value.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class RepositoryConfig:
    """A tracked repository and the base branch its pull requests target."""

    owner: str
    name: str
    base_branch: str

    @property
    def key(self) -> str:
        """Identity key in ``owner/name`` form."""
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> "RepositoryConfig":
        """Build a repository from ``owner/name@branch`` notation.

        Raises:
            ConfigurationError: If the value is not in the expected form.
        """
        slug, _, base_branch = value.strip().partition("@")
        owner, _, name = slug.partition("/")
        if not owner or not name or "/" in name or not base_branch:
            raise ConfigurationError(
                f"Invalid repository '{value}': expected 'owner/name@branch'."
            )
        return cls(owner=owner, name=name, base_branch=base_branch)


@dataclass(slots=True)
class PullRequest:
    """Represents the minimal pull request data required for branch life times."""

    url: str
    merged_at: Optional[datetime]
    commits_url: Optional[str]


@dataclass(slots=True)
class PullRequestPage:
    """One page of the closed pull request listing and its ``next`` link."""

    pull_requests: List[PullRequest]
    next_url: Optional[str]


@dataclass(slots=True)
class Commit:
    """Represents the committer timestamp of a commit."""

    committer_date: datetime


@dataclass(slots=True)
class RateLimitStatus:
    """Remaining core API quota as reported by ``/rate_limit``."""

    remaining: int
    limit: int
    reset: Optional[datetime]


@dataclass(slots=True)
class BranchLifeTime:
    """One merged pull request's business-hours-adjusted branch life time."""

    repository: str
    base_branch: str
    merged_at: datetime
    duration_seconds: int


@dataclass(frozen=True)
class FetchCheckpoint:
    """Latest merge timestamp already processed for a repository.

    ``resume_url`` is set while a walk cut short by the page cap still has
    older pages to visit. ``pending_done_until`` then holds the high-water
    mark that replaces ``done_until`` once those pages have been walked.
    """

    repository: str
    done_until: Optional[datetime]
    resume_url: Optional[str] = None
    pending_done_until: Optional[datetime] = None


@dataclass(slots=True)
class MetricPoint:
    """A single Graphite plaintext protocol point."""

    stat: str
    value: int
    timestamp: int


@dataclass(slots=True)
class WalkResult:
    """Outcome of walking one repository's pull request pages.

    ``error`` is set when the walk was aborted by an upstream failure; in that
    case ``branch_life_times`` is always empty. ``resume_url`` is the ``next``
    link left unvisited when the page cap stopped the walk.
    """

    repository: str
    branch_life_times: List[BranchLifeTime] = field(default_factory=list)
    pages_fetched: int = 0
    resume_url: Optional[str] = None
    error: Optional[UpstreamError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def truncated(self) -> bool:
        return self.resume_url is not None

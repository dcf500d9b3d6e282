"""Configuration parsing and validation for the branch life time collector."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .errors import AuthenticationError, ConfigurationError
from .models import RepositoryConfig

DEFAULT_REPOSITORIES: Tuple[RepositoryConfig, ...] = (
    RepositoryConfig(owner="arrow-kt", name="arrow", base_branch="master"),
    RepositoryConfig(owner="JasonEtco", name="create-an-issue", base_branch="master"),
)

GITHUB_API_URL = "https://api.github.com"
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the collector."""

    token: str
    repositories: Tuple[RepositoryConfig, ...]
    checkpoint_path: str
    graphite_host: str = "127.0.0.1"
    graphite_port: int = 2003
    api_base_url: str = GITHUB_API_URL
    page_size: int = MAX_PAGE_SIZE
    max_pages: Optional[int] = None
    max_workers: int = 8
    timeout_seconds: int = 30


def load_config(
    checkpoint_path: str,
    graphite_host: str = "127.0.0.1",
    graphite_port: int = 2003,
    page_size: int = MAX_PAGE_SIZE,
    max_pages: Optional[int] = None,
    repositories: Sequence[RepositoryConfig] = DEFAULT_REPOSITORIES,
) -> Config:
    """Build and validate application configuration.

    Args:
        checkpoint_path: Location of the JSON checkpoint file.
        graphite_host: Host of the Graphite plaintext listener.
        graphite_port: Port of the Graphite plaintext listener.
        page_size: Pull requests requested per page (GitHub caps this at 100).
        max_pages: Optional cap on pages walked per repository.
        repositories: Repositories to track.

    Returns:
        A validated ``Config`` instance.

    Raises:
        ConfigurationError: If any value is out of range or repositories are
            missing or duplicated.
        AuthenticationError: If ``GITHUB_API_TOKEN`` is not configured.
    """
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ConfigurationError(
            f"Invalid value for 'page_size': expected an integer between 1 and {MAX_PAGE_SIZE}."
        )
    if max_pages is not None and max_pages <= 0:
        raise ConfigurationError("Invalid value for 'max_pages': expected an integer greater than 0.")
    if not 1 <= graphite_port <= 65535:
        raise ConfigurationError("Invalid value for 'graphite_port': expected a TCP port number.")
    if not checkpoint_path:
        raise ConfigurationError("A checkpoint file path is required.")

    repositories = tuple(repositories)
    if not repositories:
        raise ConfigurationError("No repositories configured.")
    keys = [repository.key for repository in repositories]
    duplicates = sorted({key for key in keys if keys.count(key) > 1})
    if duplicates:
        raise ConfigurationError(f"Duplicate repositories configured: {', '.join(duplicates)}")

    token: str = os.getenv("GITHUB_API_TOKEN", "").strip()
    if not token:
        raise AuthenticationError(
            "Missing required GitHub API token. "
            "Set the 'GITHUB_API_TOKEN' environment variable before running the collector."
        )

    return Config(
        token=token,
        repositories=repositories,
        checkpoint_path=checkpoint_path,
        graphite_host=graphite_host,
        graphite_port=graphite_port,
        page_size=page_size,
        max_pages=max_pages,
    )

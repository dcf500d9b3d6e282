"""Command-line argument parsing for the branch life time collector."""

from __future__ import annotations

import argparse

DEFAULT_CHECKPOINT_FILE = "branch_lifetime_checkpoint.json"


def _positive_int(value: str) -> int:
    """Parse and validate a positive integer CLI value.

    Args:
        value: Raw command-line argument value.

    Returns:
        The validated positive integer.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive integer.
    """
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc

    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")

    return parsed


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for a collection run.

    Returns:
        Parsed CLI arguments containing the checkpoint location, Graphite
        endpoint and pagination limits.
    """
    parser = argparse.ArgumentParser(
        prog="branch-lifetime-metrics",
        description=(
            "Measure how long merged GitHub pull requests stayed open and send "
            "the business-hours-adjusted durations to Graphite."
        ),
    )

    parser.add_argument(
        "--checkpoint-file",
        default=DEFAULT_CHECKPOINT_FILE,
        help=f"JSON file tracking already processed merges (default: {DEFAULT_CHECKPOINT_FILE}).",
    )
    parser.add_argument(
        "--graphite-host",
        default="127.0.0.1",
        help="Graphite plaintext listener host (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--graphite-port",
        type=_positive_int,
        default=2003,
        help="Graphite plaintext listener port (default: 2003).",
    )
    parser.add_argument(
        "--page-size",
        type=_positive_int,
        default=100,
        help="Pull requests requested per page, at most 100 (default: 100).",
    )
    parser.add_argument(
        "--max-pages",
        type=_positive_int,
        default=None,
        help="Maximum pages walked per repository; omit to walk until caught up.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print metric points instead of sending them to Graphite.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser.parse_args()

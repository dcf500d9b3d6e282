"""Entry point wiring configuration, collection and metric delivery."""

from __future__ import annotations

import logging
import sys

from .checkpoint import CheckpointStore
from .cli import parse_args
from .collector import BranchLifeTimeCollector
from .config import load_config
from .errors import (
    AuthenticationError,
    ConfigurationError,
    MetricsSinkError,
    PersistenceError,
)
from .github_client import GitHubClient
from .metrics import GraphiteSink, build_metric_points, format_line

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_UNEXPECTED_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_AUTHENTICATION_ERROR = 3
EXIT_PERSISTENCE_ERROR = 5
EXIT_METRICS_SINK_ERROR = 6


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def orchestrate_metrics_run() -> int:
    """Run one collection pass and map failures to process exit codes.

    Returns:
        ``0`` on success, otherwise a non-zero exit code identifying the
        failure category.
    """
    try:
        args = parse_args()
        configure_logging(args.verbose)

        config = load_config(
            checkpoint_path=args.checkpoint_file,
            graphite_host=args.graphite_host,
            graphite_port=args.graphite_port,
            page_size=args.page_size,
            max_pages=args.max_pages,
        )
        client = GitHubClient(config=config)
        collector = BranchLifeTimeCollector(
            config=config,
            client=client,
            checkpoint_store=CheckpointStore(config.checkpoint_path),
        )

        branch_life_times = collector.collect_all()
        points = build_metric_points(branch_life_times)

        if args.dry_run:
            for point in points:
                sys.stdout.write(format_line(point))
        else:
            sink = GraphiteSink(host=config.graphite_host, port=config.graphite_port)
            sink.send(points)

        print(f"Collected {len(points)} branch life time(s) across {len(config.repositories)} repositories.")
        return EXIT_SUCCESS
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIGURATION_ERROR
    except AuthenticationError as exc:
        logger.error("Authentication error: %s", exc)
        return EXIT_AUTHENTICATION_ERROR
    except PersistenceError as exc:
        logger.error("Checkpoint error: %s", exc)
        return EXIT_PERSISTENCE_ERROR
    except MetricsSinkError as exc:
        logger.error("Metrics sink error: %s", exc)
        return EXIT_METRICS_SINK_ERROR
    except Exception:
        logger.exception("Unexpected error during branch life time collection")
        return EXIT_UNEXPECTED_ERROR


def main() -> None:
    raise SystemExit(orchestrate_metrics_run())


if __name__ == "__main__":
    main()

"""Graphite metric points for branch life times.

This module provides utilities for:
- Mapping branch life times to Graphite points (one point per branch life time).
- Rendering points in the plaintext protocol (``<stat> <value> <timestamp>``).
- Sending points to a Graphite plaintext listener over TCP.
"""

from __future__ import annotations

import logging
import math
import socket
from typing import List, Sequence

from .errors import MetricsSinkError
from .models import BranchLifeTime, MetricPoint

logger = logging.getLogger(__name__)

METRIC_PREFIX = "leadtime.branchlifetime."


def metric_name(repository: str) -> str:
    """Build the Graphite stat name for an ``owner/name`` repository."""
    return METRIC_PREFIX + repository.replace("/", "-")


def build_metric_points(branch_life_times: Sequence[BranchLifeTime]) -> List[MetricPoint]:
    """Map branch life times to metric points, preserving order."""
    return [
        MetricPoint(
            stat=metric_name(item.repository),
            value=item.duration_seconds,
            timestamp=math.floor(item.merged_at.timestamp()),
        )
        for item in branch_life_times
    ]


def format_line(point: MetricPoint) -> str:
    """Render a point as a plaintext protocol line including the newline."""
    return f"{point.stat} {point.value} {point.timestamp}\n"


class GraphiteSink:
    """Writes metric points to a Graphite plaintext listener."""

    def __init__(self, host: str = "127.0.0.1", port: int = 2003, timeout_seconds: int = 30) -> None:
        self._host = host
        self._port = port
        self._timeout_seconds = timeout_seconds

    def send(self, points: Sequence[MetricPoint]) -> int:
        """Send all points over one connection.

        Returns:
            Number of points written.

        Raises:
            MetricsSinkError: If the connection or a write fails.
        """
        if not points:
            logger.info("No metric points to send")
            return 0

        logger.info(
            "Start sending points to graphite",
            extra={"host": self._host, "port": self._port, "points": len(points)},
        )
        try:
            with socket.create_connection(
                (self._host, self._port), timeout=self._timeout_seconds
            ) as connection:
                for point in points:
                    line = format_line(point)
                    logger.debug(line.rstrip("\n"))
                    connection.sendall(line.encode("utf-8"))
        except OSError as exc:
            raise MetricsSinkError(
                f"Could not send metric points to {self._host}:{self._port}"
            ) from exc

        logger.info("Finished sending points to graphite", extra={"points": len(points)})
        return len(points)

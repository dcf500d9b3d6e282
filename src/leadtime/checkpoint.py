"""Persistence of per-repository fetch checkpoints.

The checkpoint file is a JSON list of ``{"repository", "doneUntil"}`` records.
A repository whose last walk was cut short by the page cap additionally
carries ``resumeUrl`` and ``pendingDoneUntil``; ``doneUntil`` is ``null`` in
that case until the repository has been walked once to the end.

The file is read in full once at the start of a run and overwritten in full
once at the end.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import MalformedDataError, PersistenceError
from .models import FetchCheckpoint, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)


def merge_checkpoints(
    fresh: Iterable[FetchCheckpoint],
    prior: Mapping[str, FetchCheckpoint],
) -> List[FetchCheckpoint]:
    """Merge fresh checkpoints over prior ones, one entry per repository.

    Entries are concatenated fresh-then-prior and the first occurrence of each
    repository wins.
    """
    merged: Dict[str, FetchCheckpoint] = {}
    for checkpoint in list(fresh) + list(prior.values()):
        merged.setdefault(checkpoint.repository, checkpoint)
    return list(merged.values())


def _parse_record(record: Any) -> Optional[FetchCheckpoint]:
    if not isinstance(record, dict) or not record.get("repository"):
        return None

    resume_url = record.get("resumeUrl")
    if resume_url is not None and not isinstance(resume_url, str):
        return None
    try:
        done_until = parse_timestamp(record.get("doneUntil"))
        pending_done_until = parse_timestamp(record.get("pendingDoneUntil"))
    except MalformedDataError:
        return None
    if done_until is None and resume_url is None:
        return None

    return FetchCheckpoint(
        repository=str(record["repository"]),
        done_until=done_until,
        resume_url=resume_url,
        pending_done_until=pending_done_until if resume_url is not None else None,
    )


def _to_record(checkpoint: FetchCheckpoint) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "repository": checkpoint.repository,
        "doneUntil": format_timestamp(checkpoint.done_until) if checkpoint.done_until else None,
    }
    if checkpoint.resume_url is not None:
        record["resumeUrl"] = checkpoint.resume_url
        record["pendingDoneUntil"] = (
            format_timestamp(checkpoint.pending_done_until)
            if checkpoint.pending_done_until
            else None
        )
    return record


class CheckpointStore:
    """Sole reader and writer of the checkpoint file."""

    def __init__(self, path: str) -> None:
        self._path = path

    def load(self) -> Dict[str, FetchCheckpoint]:
        """Read all checkpoints keyed by repository.

        A missing or unparseable file yields an empty mapping so the next run
        scans every repository from the top. Malformed records are skipped and
        duplicate repositories keep their first entry.
        """
        try:
            with open(self._path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except FileNotFoundError:
            logger.info("No checkpoint file found, starting fresh", extra={"path": self._path})
            return {}
        except (OSError, ValueError) as exc:
            logger.warning(
                "Could not read checkpoint file, starting fresh",
                extra={"path": self._path, "error": str(exc)},
            )
            return {}

        if not isinstance(payload, list):
            logger.warning("Ignoring checkpoint file with unexpected shape", extra={"path": self._path})
            return {}

        checkpoints: Dict[str, FetchCheckpoint] = {}
        for record in payload:
            checkpoint = _parse_record(record)
            if checkpoint is None:
                logger.warning("Skipping malformed checkpoint record", extra={"record": record})
                continue
            checkpoints.setdefault(checkpoint.repository, checkpoint)

        return checkpoints

    def save(
        self,
        fresh: Iterable[FetchCheckpoint],
        prior: Mapping[str, FetchCheckpoint],
    ) -> List[FetchCheckpoint]:
        """Atomically overwrite the file with ``fresh`` merged over ``prior``.

        Checkpoints with neither a ``doneUntil`` nor a resume link are dropped.

        Returns:
            The merged checkpoints that were written.

        Raises:
            PersistenceError: If the file cannot be written.
        """
        merged = [
            checkpoint
            for checkpoint in merge_checkpoints(fresh, prior)
            if checkpoint.done_until is not None or checkpoint.resume_url is not None
        ]
        records = [_to_record(checkpoint) for checkpoint in merged]

        directory = os.path.dirname(os.path.abspath(self._path))
        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=directory, suffix=".tmp", delete=False
            ) as handle:
                temp_path = handle.name
                json.dump(records, handle, indent=2)
            os.replace(temp_path, self._path)
        except OSError as exc:
            if temp_path is not None and os.path.exists(temp_path):
                os.unlink(temp_path)
            raise PersistenceError(f"Could not write checkpoint file '{self._path}'") from exc

        logger.info(
            "Checkpoint file written",
            extra={"path": self._path, "repositories": len(records)},
        )
        return merged

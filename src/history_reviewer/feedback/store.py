"""Append-only JSON Lines store for ratings and the finding catalog."""

import json
import logging
import os
import threading
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from history_reviewer.errors import FeedbackStoreError
from history_reviewer.models.feedback import FeedbackEntry, Rating
from history_reviewer.models.findings import Finding

logger = logging.getLogger(__name__)

FEEDBACK_FILE = "feedback.jsonl"
CATALOG_FILE = "findings.jsonl"

_locks: dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    """One lock per resolved file path, shared by every store in the process."""
    key = str(path.resolve())
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.Lock()
        return lock


def _append_records(path: Path, records: Iterable[dict[str, Any]]) -> None:
    payload = "".join(json.dumps(r, sort_keys=True) + "\n" for r in records)
    if not payload:
        return
    data = payload.encode("utf-8")
    with _lock_for(path):
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o644)
            try:
                written = os.write(fd, data)
            finally:
                os.close(fd)
        except OSError as e:
            raise FeedbackStoreError(f"Cannot write {path}: {e}") from e
    if written != len(data):
        raise FeedbackStoreError(f"Short write to {path}: {written} of {len(data)} bytes")


def _read_records(path: Path) -> list[dict[str, Any]]:
    """Complete lines only; a trailing partial line is an append in progress."""
    if not path.exists():
        return []
    try:
        data = path.read_bytes()
    except OSError as e:
        raise FeedbackStoreError(f"Cannot read {path}: {e}") from e

    lines = data.split(b"\n")
    if not data.endswith(b"\n"):
        lines = lines[:-1]

    records = []
    for number, raw_line in enumerate(lines, 1):
        try:
            line = raw_line.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning(f"Skipping undecodable line {number} in {path}: {e}")
            continue
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping corrupt line {number} in {path}: {e}")
            continue
        if isinstance(record, dict):
            records.append(record)
    return records


class FeedbackStore:
    """Ratings and the catalog of reported findings under one directory."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    @property
    def feedback_path(self) -> Path:
        return self.directory / FEEDBACK_FILE

    @property
    def catalog_path(self) -> Path:
        return self.directory / CATALOG_FILE

    def append(self, entry: FeedbackEntry) -> None:
        """Append one rating.

        Raises:
            FeedbackStoreError: If the write fails
        """
        _append_records(self.feedback_path, [entry.to_dict()])
        logger.debug(f"Recorded {entry.rating.value} for {entry.finding_id}")

    def entries(self) -> list[FeedbackEntry]:
        """All readable ratings, oldest first."""
        entries = []
        for record in _read_records(self.feedback_path):
            try:
                entries.append(FeedbackEntry.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed feedback record: {e}")
        return entries

    def register_findings(self, findings: Sequence[Finding], review_id: str | None = None) -> None:
        """Remember reported findings so a later rating can be resolved."""
        _append_records(
            self.catalog_path,
            (
                {
                    "id": f.id,
                    "file_path": f.file_path,
                    "line": f.line,
                    "severity": f.severity.value,
                    "message": f.message,
                    "pattern": f.pattern,
                    "review_id": review_id,
                }
                for f in findings
            ),
        )

    def resolve(self, finding_id: str) -> dict[str, Any] | None:
        """Latest catalog record for ``finding_id``, or None if never reported."""
        match = None
        for record in _read_records(self.catalog_path):
            if record.get("id") == finding_id:
                match = record
        return match

    def record(self, finding_id: str, rating: Rating | str) -> FeedbackEntry:
        """Rate a finding by id, attaching its message pattern when known.

        Raises:
            ValueError: If ``rating`` is not a known rating
            FeedbackStoreError: If the write fails
        """
        rating = Rating.parse(rating)
        catalog_record = self.resolve(finding_id)
        pattern = catalog_record.get("pattern") if catalog_record else None
        if catalog_record is None:
            logger.warning(f"Finding {finding_id} is not in the catalog; rating stored without a pattern")
        entry = FeedbackEntry.create(finding_id, rating, pattern=pattern)
        self.append(entry)
        return entry

    def stats(self) -> dict[str, int]:
        """Rating counts."""
        counts = {rating.value: 0 for rating in Rating}
        for entry in self.entries():
            counts[entry.rating.value] += 1
        counts["total"] = sum(counts.values())
        return counts

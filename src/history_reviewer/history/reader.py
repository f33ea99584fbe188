"""Commit log access.

The engine only needs an ordered stream of :class:`CommitRecord`; any
history-access layer can supply it through :class:`CommitLogReader`.
:class:`GitLogReader` is the default adapter over ``git log --numstat``.
"""

import logging
import re
import subprocess
from pathlib import Path
from typing import Iterable, Protocol

from history_reviewer.errors import HistoryUnavailable
from history_reviewer.models.history import CommitRecord, FileChange

logger = logging.getLogger(__name__)

COMMIT_MARKER = "__commit__"
_BRACE_RENAME = re.compile(r"\{([^{}]*) => ([^{}]*)\}")


class CommitLogReader(Protocol):
    """Supplies ordered commit records for a repository and time window."""

    def read(self, repo_path: Path, since_days: int) -> list[CommitRecord]: ...


def resolve_rename(path: str) -> str:
    """Map numstat rename notation to the destination path.

    ``src/{old => new}/mod.py`` becomes ``src/new/mod.py`` and
    ``old.py => new.py`` becomes ``new.py``.
    """
    if "=>" not in path:
        return path
    if "{" in path:
        resolved = _BRACE_RENAME.sub(lambda m: m.group(2), path)
        return resolved.replace("//", "/")
    return path.split("=>", 1)[1].strip()


def parse_git_log(text: str, max_files_per_commit: int = 25) -> list[CommitRecord]:
    """Parse ``git log --numstat`` output produced with :data:`COMMIT_MARKER` headers.

    Commits touching more than ``max_files_per_commit`` files are skipped;
    they are usually bulk reformatting or vendoring and drown the coupling
    signal.
    """
    commits: list[CommitRecord] = []
    header: list[str] | None = None
    changes: list[FileChange] = []

    def flush() -> None:
        if header is None:
            return
        if max_files_per_commit and len(changes) > max_files_per_commit:
            logger.debug(f"Skipping commit {header[0][:8]}: {len(changes)} files")
            return
        try:
            timestamp = int(header[2])
        except ValueError:
            timestamp = 0
        commits.append(
            CommitRecord(hash=header[0], author=header[1], timestamp=timestamp, files=tuple(changes))
        )

    for raw in text.splitlines():
        line = raw.rstrip("\n")
        if not line.strip():
            continue
        if line.startswith(COMMIT_MARKER):
            flush()
            header = line[len(COMMIT_MARKER):].split("\x1f")
            while len(header) < 3:
                header.append("")
            changes = []
            continue
        parts = line.split("\t")
        if len(parts) < 3 or header is None:
            continue
        added = int(parts[0]) if parts[0].isdigit() else 0
        deleted = int(parts[1]) if parts[1].isdigit() else 0
        changes.append(FileChange(path=resolve_rename(parts[2]), lines_added=added, lines_deleted=deleted))

    flush()
    return commits


class GitLogReader:
    """Reads commit history by shelling out to ``git``."""

    def __init__(self, max_files_per_commit: int = 25, timeout_seconds: int = 60) -> None:
        self.max_files_per_commit = max_files_per_commit
        self.timeout_seconds = timeout_seconds

    def read(self, repo_path: Path, since_days: int) -> list[CommitRecord]:
        """Return commits from the last ``since_days`` days, oldest first.

        Raises:
            HistoryUnavailable: If git is missing, times out or the path is not a repository
        """
        cmd = [
            "git",
            "log",
            "--no-merges",
            "--numstat",
            "--reverse",
            f"--since={since_days}.days",
            f"--format={COMMIT_MARKER}%H%x1f%ae%x1f%at",
        ]
        try:
            result = subprocess.run(  # nosec B607 - git is intentionally called via PATH
                cmd,
                cwd=repo_path,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired as e:
            raise HistoryUnavailable(f"git log timed out after {self.timeout_seconds}s") from e
        except (FileNotFoundError, NotADirectoryError) as e:
            raise HistoryUnavailable(f"git log could not run in {repo_path}: {e}") from e

        if result.returncode != 0:
            raise HistoryUnavailable(f"git log failed: {result.stderr.strip()[:200]}")

        commits = parse_git_log(result.stdout, self.max_files_per_commit)
        logger.debug(f"Read {len(commits)} commits from {repo_path}")
        return commits


def snapshot_line_counts(repo_path: Path, paths: Iterable[str]) -> dict[str, int]:
    """Current line count of each path that still exists under ``repo_path``."""
    counts: dict[str, int] = {}
    for path in paths:
        full_path = repo_path / path
        if not full_path.is_file():
            continue
        try:
            with open(full_path, "rb") as f:
                data = f.read()
        except OSError as e:
            logger.debug(f"Cannot read {full_path}: {e}")
            continue
        counts[path] = len(data.splitlines())
    return counts

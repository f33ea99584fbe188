"""Review request models."""

import posixpath
import re
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path

from history_reviewer.errors import InvalidDiffError

_FILE_HEADER = re.compile(r"^\+\+\+ (?:b/)?(?P<path>\S+)", re.MULTILINE)
_GIT_HEADER = re.compile(r"^diff --git a/(?P<old>\S+) b/(?P<new>\S+)", re.MULTILINE)
_HUNK_HEADER = re.compile(r"^@@ -\d+(?:,\d+)? \+\d+(?:,\d+)? @@", re.MULTILINE)
_OLD_HEADER = re.compile(r"^--- (?:a/)?(?P<path>\S+)", re.MULTILINE)

CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class DiffHunk:
    """A parsed hunk as supplied by the diff-parsing layer."""

    file_path: str
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    content: str = ""


@dataclass
class ReviewRequest:
    """Everything the generator needs besides history."""

    diff: str
    repo_path: Path | None = None
    hunks: list[DiffHunk] = field(default_factory=list)
    structural_summary: str | None = None
    search_hits: str | None = None
    custom_instructions: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.diff.strip()

    @property
    def changed_files(self) -> list[str]:
        """Paths touched by the diff, in order of appearance."""
        paths: list[str] = [h.file_path for h in self.hunks]
        paths.extend(m.group("path") for m in _FILE_HEADER.finditer(self.diff))
        paths.extend(m.group("new") for m in _GIT_HEADER.finditer(self.diff))
        return [p for p in dict.fromkeys(paths) if p != "/dev/null"]

    def validate(self) -> None:
        """Reject input that is not a unified diff.

        An empty diff is valid (it simply produces no findings).

        Raises:
            InvalidDiffError: If the diff has content but no file or hunk headers
        """
        if not isinstance(self.diff, str):
            raise InvalidDiffError(f"diff must be text, got {type(self.diff).__name__}")
        if self.is_empty:
            return
        if not self.hunks and not _HUNK_HEADER.search(self.diff):
            raise InvalidDiffError("diff contains no hunk headers (@@ -a,b +c,d @@)")
        if not self.changed_files:
            raise InvalidDiffError("diff names no files (missing +++ or diff --git headers)")

    def to_prompt_context(self) -> str:
        """Format the opaque collaborator blobs for inclusion in prompts."""
        parts = []
        if self.structural_summary:
            parts.append(
                "## Codebase Structure\n```\n" + self.structural_summary.rstrip() + "\n```\n"
            )
        if self.search_hits:
            parts.append(
                "## Related Code\nRelated code from the codebase that may be relevant:\n\n"
                + self.search_hits.rstrip()
                + "\n"
            )
        if self.custom_instructions:
            parts.append("## Project Instructions\n" + self.custom_instructions.rstrip() + "\n")
        return "\n".join(parts)

    @property
    def file_diffs(self) -> list["FileDiff"]:
        return split_file_diffs(self.diff)

    def narrowed(self, file_diffs: Sequence["FileDiff"]) -> "ReviewRequest":
        """Same request restricted to ``file_diffs``."""
        paths = {fd.path for fd in file_diffs}
        return replace(
            self,
            diff="".join(fd.text for fd in file_diffs),
            hunks=[h for h in self.hunks if h.file_path in paths],
        )


@dataclass(frozen=True)
class FileDiff:
    """The slice of a unified diff that touches one file."""

    path: str
    text: str

    @property
    def tokens(self) -> int:
        return estimate_tokens(self.text)


def estimate_tokens(text: str) -> int:
    """Rough token count: four characters per token."""
    return len(text) // CHARS_PER_TOKEN


def _section_path(text: str) -> str | None:
    match = _FILE_HEADER.search(text)
    if match and match.group("path") != "/dev/null":
        return match.group("path")
    match = _GIT_HEADER.search(text)
    if match:
        return match.group("new")
    match = _OLD_HEADER.search(text)
    if match and match.group("path") != "/dev/null":
        return match.group("path")
    return None


def split_file_diffs(diff: str) -> list[FileDiff]:
    """Cut a multi-file diff into per-file sections, in order.

    A section starts at a ``diff --git`` line, or at a ``---``/``+++`` pair
    that is not the header pair of the current git section. Text before
    the first file (a commit message, say) stays with that file.
    """
    lines = diff.splitlines(keepends=True)
    sections: list[list[str]] = []
    current: list[str] = []
    for i, line in enumerate(lines):
        starts_file = line.startswith("diff --git ")
        if (
            not starts_file
            and line.startswith("--- ")
            and i + 1 < len(lines)
            and lines[i + 1].startswith("+++ ")
        ):
            starts_file = any(seen.startswith(("+++ ", "@@")) for seen in current)
        if starts_file and current:
            sections.append(current)
            current = []
        current.append(line)
    if current:
        sections.append(current)

    file_diffs: list[FileDiff] = []
    pending = ""
    for section in sections:
        text = pending + "".join(section)
        path = _section_path(text)
        if path is None:
            pending = text
            continue
        pending = ""
        file_diffs.append(FileDiff(path=path, text=text))
    if pending and file_diffs:
        last = file_diffs[-1]
        file_diffs[-1] = FileDiff(path=last.path, text=last.text + pending)
    return file_diffs


def group_file_diffs(file_diffs: Sequence[FileDiff], max_tokens: int) -> list[list[FileDiff]]:
    """Group file diffs by parent directory, splitting groups over ``max_tokens``.

    Files sharing a directory are reviewed together so cross-file issues
    stay visible. Directories keep the order of their first file.
    """
    by_directory: dict[str, list[FileDiff]] = {}
    for fd in file_diffs:
        by_directory.setdefault(posixpath.dirname(fd.path), []).append(fd)

    groups: list[list[FileDiff]] = []
    for files in by_directory.values():
        current: list[FileDiff] = []
        current_tokens = 0
        for fd in files:
            if current and current_tokens + fd.tokens > max_tokens:
                groups.append(current)
                current = []
                current_tokens = 0
            current.append(fd)
            current_tokens += fd.tokens
        if current:
            groups.append(current)
    return groups

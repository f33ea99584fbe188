"""Commit history models and the analyzers' result types."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class FileChange:
    """One file touched by a commit."""

    path: str
    lines_added: int = 0
    lines_deleted: int = 0

    @property
    def churn(self) -> int:
        return self.lines_added + self.lines_deleted


@dataclass(frozen=True)
class CommitRecord:
    """A single commit as supplied by the history-access layer."""

    hash: str
    author: str
    timestamp: int
    files: tuple[FileChange, ...] = ()

    def __post_init__(self) -> None:
        # Accept any iterable of changes but store an immutable tuple
        if not isinstance(self.files, tuple):
            object.__setattr__(self, "files", tuple(self.files))

    @property
    def paths(self) -> list[str]:
        """Distinct paths touched by this commit, in first-seen order."""
        return list(dict.fromkeys(f.path for f in self.files))


@dataclass
class FileChurn:
    """Hotspot metrics for a file that still exists on disk."""

    path: str
    revisions: int
    churn: int
    current_loc: int | None
    relative_churn: float = 0.0
    score: float = 0.0
    authors: int = 0
    last_modified: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "revisions": self.revisions,
            "churn": self.churn,
            "current_loc": self.current_loc,
            "relative_churn": round(self.relative_churn, 4),
            "score": round(self.score, 4),
            "authors": self.authors,
            "last_modified": self.last_modified,
        }


@dataclass(frozen=True)
class CouplingPair:
    """Two files that change together. ``file_a`` always sorts before ``file_b``."""

    file_a: str
    file_b: str
    co_changes: int
    changes_a: int
    changes_b: int

    @property
    def key(self) -> tuple[str, str]:
        return (self.file_a, self.file_b)

    @property
    def ratio(self) -> float:
        """Co-changes over the smaller of the two change counts, in [0, 1]."""
        denominator = min(self.changes_a, self.changes_b)
        if denominator <= 0:
            return 0.0
        return min(1.0, self.co_changes / denominator)

    def partner_of(self, path: str) -> str | None:
        if path == self.file_a:
            return self.file_b
        if path == self.file_b:
            return self.file_a
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_a": self.file_a,
            "file_b": self.file_b,
            "co_changes": self.co_changes,
            "changes_a": self.changes_a,
            "changes_b": self.changes_b,
            "ratio": round(self.ratio, 4),
        }


SILO_THRESHOLD = 0.80
SIGNIFICANT_SHARE = 0.10


@dataclass
class OwnershipProfile:
    """Per-file author shares."""

    path: str
    changes: dict[str, int] = field(default_factory=dict)

    @property
    def total_changes(self) -> int:
        return sum(self.changes.values())

    @property
    def shares(self) -> dict[str, float]:
        total = self.total_changes
        if total == 0:
            return {}
        return {author: count / total for author, count in self.changes.items()}

    @property
    def dominant_author(self) -> str | None:
        if not self.changes:
            return None
        # Highest count wins; name breaks ties so the choice is stable
        return min(self.changes.items(), key=lambda item: (-item[1], item[0]))[0]

    @property
    def dominant_ratio(self) -> float:
        author = self.dominant_author
        if author is None:
            return 0.0
        return self.changes[author] / self.total_changes

    @property
    def is_knowledge_silo(self) -> bool:
        return self.dominant_ratio > SILO_THRESHOLD

    @property
    def significant_authors(self) -> list[str]:
        return sorted(a for a, share in self.shares.items() if share > SIGNIFICANT_SHARE)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "total_changes": self.total_changes,
            "dominant_author": self.dominant_author,
            "dominant_ratio": round(self.dominant_ratio, 4),
            "is_knowledge_silo": self.is_knowledge_silo,
        }


@dataclass(frozen=True)
class BusFactorResult:
    """Outcome of the iterative top-contributor removal."""

    bus_factor: int
    removed_authors: tuple[str, ...] = ()
    orphaned_per_iteration: tuple[int, ...] = ()
    tracked_files: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "bus_factor": self.bus_factor,
            "removed_authors": list(self.removed_authors),
            "orphaned_per_iteration": list(self.orphaned_per_iteration),
            "tracked_files": self.tracked_files,
        }


@dataclass
class OwnershipSummary:
    """Ownership analysis across every file in the window."""

    profiles: list[OwnershipProfile]
    bus_factor: BusFactorResult

    @property
    def total_files(self) -> int:
        return len(self.profiles)

    @property
    def silos(self) -> list[OwnershipProfile]:
        return [p for p in self.profiles if p.is_knowledge_silo]

    @property
    def single_author_files(self) -> int:
        return sum(1 for p in self.profiles if len(p.changes) == 1)

    def profile_for(self, path: str) -> OwnershipProfile | None:
        for profile in self.profiles:
            if profile.path == path:
                return profile
        return None

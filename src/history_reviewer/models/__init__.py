"""Data models for the history-aware reviewer."""

from history_reviewer.models.context import DiffHunk, FileDiff, ReviewRequest
from history_reviewer.models.feedback import FeedbackEntry, Rating
from history_reviewer.models.findings import Finding, Severity, message_pattern
from history_reviewer.models.history import (
    BusFactorResult,
    CommitRecord,
    CouplingPair,
    FileChange,
    FileChurn,
    OwnershipProfile,
    OwnershipSummary,
)
from history_reviewer.models.review import (
    FilteredFinding,
    ReviewResult,
    ReviewStats,
    has_blocking_finding,
    meets_threshold,
)

__all__ = [
    "BusFactorResult",
    "CommitRecord",
    "CouplingPair",
    "DiffHunk",
    "FeedbackEntry",
    "FileChange",
    "FileChurn",
    "FileDiff",
    "FilteredFinding",
    "Finding",
    "OwnershipProfile",
    "OwnershipSummary",
    "Rating",
    "ReviewRequest",
    "ReviewResult",
    "ReviewStats",
    "Severity",
    "has_blocking_finding",
    "meets_threshold",
    "message_pattern",
]

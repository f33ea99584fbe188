"""Finding models for code review results."""

import hashlib
import re
from dataclasses import dataclass, field
from enum import Enum


class Severity(Enum):
    """Severity levels for findings, most severe first.

    - BUG: will produce incorrect behavior in a concrete scenario.
    - WARNING: could produce incorrect behavior under specific conditions.
    - SUGGESTION: improvement that doesn't affect correctness.
    - INFO: observation only.
    """

    BUG = "bug"
    WARNING = "warning"
    SUGGESTION = "suggestion"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Ordinal rank: 0 is the most severe."""
        return _RANKS[self]

    def meets_threshold(self, threshold: "Severity") -> bool:
        """True when this severity is at least as severe as ``threshold``."""
        return self.rank <= threshold.rank

    @classmethod
    def parse(cls, value: "str | Severity") -> "Severity":
        if isinstance(value, Severity):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown severity {value!r}; expected one of "
                f"{', '.join(s.value for s in cls)}"
            ) from None


_RANKS = {Severity.BUG: 0, Severity.WARNING: 1, Severity.SUGGESTION: 2, Severity.INFO: 3}

_CODE_SPAN = re.compile(r"`[^`]*`")
_QUOTED = re.compile(r"(\"[^\"]*\"|'[^']*')")
_NUMBER = re.compile(r"\b\d+(\.\d+)?\b")
_PATHLIKE = re.compile(r"\b[\w.-]+(/[\w.-]+)+\b")
_NON_WORD = re.compile(r"[^\w<>\s]")
_PATTERN_TOKENS = 12


def normalize_message(message: str) -> str:
    """Lowercase and collapse whitespace."""
    return " ".join(message.lower().split())


def message_pattern(message: str) -> str:
    """Reduce a message to a pattern shared by findings that say the same thing.

    Identifiers, literals, numbers and paths are replaced by placeholders so
    "`user_id` may be None" and "`order_id` may be None" share a pattern.
    """
    text = message.lower()
    text = _CODE_SPAN.sub(" <code> ", text)
    text = _QUOTED.sub(" <str> ", text)
    text = _PATHLIKE.sub(" <path> ", text)
    text = _NUMBER.sub(" <n> ", text)
    text = _NON_WORD.sub(" ", text)
    return " ".join(text.split()[:_PATTERN_TOKENS])


def compute_finding_id(file_path: str, line: int | None, message: str) -> str:
    """Stable identifier derived from file, line and a hash of the message."""
    message_hash = hashlib.sha256(normalize_message(message).encode()).hexdigest()
    anchor = f"{file_path}:{line or 0}:{message_hash}"
    return hashlib.sha256(anchor.encode()).hexdigest()[:16]


@dataclass
class Finding:
    """A single review finding."""

    file_path: str
    line: int | None
    severity: Severity
    message: str
    confidence: float = 0.8  # 0.0 - 1.0
    suggestion: str | None = None
    patch: str | None = None
    provenance: list[str] = field(default_factory=lambda: ["generate"])

    def __post_init__(self) -> None:
        """Validate finding data."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be between 0.0 and 1.0, got {self.confidence}")
        if self.line is not None and self.line < 1:
            raise ValueError(f"line must be >= 1, got {self.line}")
        if not self.file_path:
            raise ValueError("file_path must not be empty")

    @property
    def id(self) -> str:
        return compute_finding_id(self.file_path, self.line, self.message)

    @property
    def pattern(self) -> str:
        return message_pattern(self.message)

    @property
    def sort_key(self) -> tuple[int, str, int, str]:
        return (self.severity.rank, self.file_path, self.line or 0, self.message)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "file_path": self.file_path,
            "line": self.line,
            "severity": self.severity.value,
            "message": self.message,
            "confidence": self.confidence,
            "suggestion": self.suggestion,
            "patch": self.patch,
            "provenance": list(self.provenance),
        }

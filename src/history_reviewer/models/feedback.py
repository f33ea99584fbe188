"""Feedback models."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Rating(Enum):
    """Human verdict on a finding."""

    USEFUL = "useful"
    NOISE = "noise"
    SKIP = "skip"

    @classmethod
    def parse(cls, value: "str | Rating") -> "Rating":
        if isinstance(value, Rating):
            return value
        aliases = {"positive": "useful", "negative": "noise", "not useful": "noise"}
        normalized = str(value).strip().lower()
        try:
            return cls(aliases.get(normalized, normalized))
        except ValueError:
            raise ValueError(
                f"Unknown rating {value!r}; expected useful, noise or skip"
            ) from None


@dataclass(frozen=True)
class FeedbackEntry:
    """One rating. Never mutated after it is written."""

    finding_id: str
    rating: Rating
    timestamp: datetime
    pattern: str | None = None

    @classmethod
    def create(cls, finding_id: str, rating: Rating | str, pattern: str | None = None) -> "FeedbackEntry":
        return cls(
            finding_id=finding_id,
            rating=Rating.parse(rating),
            timestamp=datetime.now(timezone.utc),
            pattern=pattern,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "finding_id": self.finding_id,
            "rating": self.rating.value,
            "timestamp": self.timestamp.isoformat(),
            "pattern": self.pattern,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "FeedbackEntry":
        pattern = raw.get("pattern")
        if pattern is not None and not isinstance(pattern, str):
            raise TypeError(f"pattern must be a string, got {type(pattern).__name__}")
        return cls(
            finding_id=str(raw["finding_id"]),
            rating=Rating.parse(raw["rating"]),
            timestamp=datetime.fromisoformat(raw["timestamp"]),
            pattern=pattern,
        )

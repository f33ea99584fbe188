"""Turn accumulated ratings into per-pattern review bias."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from history_reviewer.models.feedback import FeedbackEntry, Rating
from history_reviewer.models.findings import Finding

logger = logging.getLogger(__name__)

MAX_THRESHOLD = 10
MAX_NOISY_EXAMPLES = 5


@dataclass
class PatternStats:
    """Rating counts for one message pattern."""

    pattern: str
    useful: int = 0
    noise: int = 0
    skipped: int = 0

    @property
    def samples(self) -> int:
        return self.useful + self.noise

    @property
    def noise_ratio(self) -> float:
        if self.samples == 0:
            return 0.0
        return self.noise / self.samples


@dataclass
class FeedbackBias:
    """Adjustments applied to one run. Never lowers a threshold."""

    base_threshold: int = 7
    thresholds: dict[str, int] = field(default_factory=dict)
    suppressed: frozenset[str] = frozenset()
    noisy_examples: list[str] = field(default_factory=list)

    def threshold_for(self, finding: Finding) -> int:
        return self.thresholds.get(finding.pattern, self.base_threshold)

    def is_suppressed(self, finding: Finding) -> bool:
        return finding.pattern in self.suppressed


class FeedbackAdapter:
    """Computes :class:`FeedbackBias` from feedback entries.

    A pattern needs ``min_samples`` useful-or-noise ratings before it has any
    effect. At ``raise_ratio`` noise its reflection threshold goes up by
    ``threshold_bump``; above ``suppress_ceiling`` it is suppressed outright.
    """

    def __init__(
        self,
        min_samples: int = 3,
        raise_ratio: float = 0.5,
        threshold_bump: int = 2,
        suppress_ceiling: float = 0.8,
    ) -> None:
        self.min_samples = min_samples
        self.raise_ratio = raise_ratio
        self.threshold_bump = threshold_bump
        self.suppress_ceiling = suppress_ceiling

    @classmethod
    def from_settings(cls, settings) -> "FeedbackAdapter":
        return cls(
            min_samples=settings.min_samples,
            raise_ratio=settings.raise_ratio,
            threshold_bump=settings.threshold_bump,
            suppress_ceiling=settings.suppress_ceiling,
        )

    def pattern_stats(self, entries: Sequence[FeedbackEntry]) -> dict[str, PatternStats]:
        stats: dict[str, PatternStats] = {}
        for entry in entries:
            if not entry.pattern:
                continue
            s = stats.setdefault(entry.pattern, PatternStats(pattern=entry.pattern))
            if entry.rating == Rating.USEFUL:
                s.useful += 1
            elif entry.rating == Rating.NOISE:
                s.noise += 1
            else:
                s.skipped += 1
        return stats

    def compute(self, entries: Sequence[FeedbackEntry], base_threshold: int = 7) -> FeedbackBias:
        """Build the bias for a run whose default threshold is ``base_threshold``."""
        thresholds: dict[str, int] = {}
        suppressed: set[str] = set()
        noisy: list[PatternStats] = []

        for pattern, s in self.pattern_stats(entries).items():
            if s.samples < self.min_samples:
                continue
            ratio = s.noise_ratio
            if ratio > self.suppress_ceiling:
                suppressed.add(pattern)
            if ratio >= self.raise_ratio:
                thresholds[pattern] = min(MAX_THRESHOLD, base_threshold + self.threshold_bump)
                noisy.append(s)

        noisy.sort(key=lambda s: (-s.noise_ratio, -s.noise, s.pattern))
        if thresholds or suppressed:
            logger.info(
                f"Feedback bias: {len(thresholds)} raised thresholds, {len(suppressed)} suppressed patterns"
            )
        return FeedbackBias(
            base_threshold=base_threshold,
            thresholds=thresholds,
            suppressed=frozenset(suppressed),
            noisy_examples=[s.pattern for s in noisy[:MAX_NOISY_EXAMPLES]],
        )

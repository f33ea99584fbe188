"""Review result models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from history_reviewer.models.findings import Finding, Severity


@dataclass
class ReviewStats:
    """Per-stage counters for one run."""

    generated: int = 0
    reflected_out: int = 0
    deduplicated: int = 0
    suppressed: int = 0
    filtered: int = 0
    final: int = 0

    # Provider telemetry
    retries: int = 0
    provider_calls: int = 0
    generation_failures: int = 0
    model_used: str = ""

    # Fail-open bookkeeping
    reflection_ambiguous: bool = False
    history_available: bool = False
    warnings: list[str] = field(default_factory=list)

    # States visited, in order
    states: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated": self.generated,
            "reflected_out": self.reflected_out,
            "deduplicated": self.deduplicated,
            "suppressed": self.suppressed,
            "filtered": self.filtered,
            "final": self.final,
            "retries": self.retries,
            "provider_calls": self.provider_calls,
            "generation_failures": self.generation_failures,
            "model_used": self.model_used,
            "reflection_ambiguous": self.reflection_ambiguous,
            "history_available": self.history_available,
            "warnings": list(self.warnings),
            "states": list(self.states),
        }


@dataclass(frozen=True)
class FilteredFinding:
    """A finding left out of the result, and why."""

    finding: Finding
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"reason": self.reason, **self.finding.to_dict()}


@dataclass
class ReviewResult:
    """Final output of a review run."""

    id: str
    created_at: datetime
    findings: list[Finding]
    summary: str
    stats: ReviewStats
    fail_on: Severity = Severity.WARNING
    filtered: list[FilteredFinding] = field(default_factory=list)

    @property
    def findings_by_severity(self) -> dict[Severity, int]:
        """Count findings by severity level."""
        counts: dict[Severity, int] = dict.fromkeys(Severity, 0)
        for finding in self.findings:
            counts[finding.severity] += 1
        return counts

    @property
    def threshold_met(self) -> bool:
        """Whether any finding meets the configured fail threshold."""
        return meets_threshold(self, self.fail_on)

    @property
    def has_blocking_finding(self) -> bool:
        return has_blocking_finding(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "summary": self.summary,
            "fail_on": self.fail_on.value,
            "threshold_met": self.threshold_met,
            "has_blocking_finding": self.has_blocking_finding,
            "findings": [f.to_dict() for f in self.findings],
            "filtered": [f.to_dict() for f in self.filtered],
            "stats": self.stats.to_dict(),
        }


def meets_threshold(result: ReviewResult, threshold: Severity | str) -> bool:
    """True when at least one surviving finding is as severe as ``threshold``."""
    threshold = Severity.parse(threshold)
    return any(f.severity.meets_threshold(threshold) for f in result.findings)


def has_blocking_finding(result: ReviewResult) -> bool:
    """True when the result contains any bug-level finding."""
    return any(f.severity == Severity.BUG for f in result.findings)

"""Finding deduplication, severity ordering and summary."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from difflib import SequenceMatcher

from history_reviewer.models.findings import Finding, Severity, normalize_message
from history_reviewer.models.review import FilteredFinding

logger = logging.getLogger(__name__)


@dataclass
class AggregatorConfig:
    """Configuration for the aggregator."""

    similarity_threshold: float = 0.85
    line_tolerance: int = 5
    min_confidence: float = 0.0
    max_findings: int | None = None


class FindingAggregator:
    """Merges overlapping findings and orders the survivors."""

    def __init__(self, config: AggregatorConfig | None = None) -> None:
        """Initialize the aggregator.

        Args:
            config: Optional configuration
        """
        self.config = config or AggregatorConfig()

    def deduplicate(self, findings: Sequence[Finding]) -> tuple[list[Finding], int]:
        """Merge findings about the same region that say the same thing.

        Algorithm:
        1. Walk findings in severity/path/line order
        2. Each unclaimed finding seeds a cluster and claims every later
           unclaimed finding similar to the seed
        3. The seed's location and message represent the cluster; severity
           comes from the most confident member

        Seeds are pairwise dissimilar, so running this on its own output
        merges nothing.

        Args:
            findings: Findings to merge

        Returns:
            (sorted merged findings, number of findings merged away)
        """
        ordered = sorted(findings, key=lambda f: f.sort_key)
        clusters: list[list[Finding]] = []
        used: set[int] = set()

        for i, seed in enumerate(ordered):
            if i in used:
                continue
            cluster = [seed]
            used.add(i)
            for j in range(i + 1, len(ordered)):
                if j in used:
                    continue
                if self._are_similar(seed, ordered[j]):
                    cluster.append(ordered[j])
                    used.add(j)
            clusters.append(cluster)

        merged = [self._merge_cluster(cluster) for cluster in clusters]
        removed = len(ordered) - len(merged)
        if removed:
            logger.info(f"Deduplicated {removed} findings")
        return self.sort(merged), removed

    def sort(self, findings: Sequence[Finding]) -> list[Finding]:
        """Severity rank, then path, then line (then message for stability)."""
        return sorted(findings, key=lambda f: f.sort_key)

    def filter_confidence(
        self, findings: Sequence[Finding]
    ) -> tuple[list[Finding], list[FilteredFinding]]:
        """Drop findings whose confidence is below ``min_confidence``."""
        kept: list[Finding] = []
        filtered: list[FilteredFinding] = []
        for finding in findings:
            if finding.confidence < self.config.min_confidence:
                filtered.append(FilteredFinding(finding, "below confidence threshold"))
            else:
                kept.append(finding)
        if filtered:
            logger.info(f"Filtered {len(filtered)} findings below confidence {self.config.min_confidence}")
        return kept, filtered

    def truncate(self, findings: Sequence[Finding]) -> tuple[list[Finding], list[FilteredFinding]]:
        """Keep the first ``max_findings`` of the sorted findings."""
        ordered = self.sort(findings)
        limit = self.config.max_findings
        if limit is None or len(ordered) <= limit:
            return ordered, []
        filtered = [FilteredFinding(f, "exceeded max finding limit") for f in ordered[limit:]]
        logger.info(f"Dropped {len(filtered)} findings over the limit of {limit}")
        return ordered[:limit], filtered

    def _are_similar(self, f1: Finding, f2: Finding) -> bool:
        """Check if two findings are similar enough to merge."""
        # Must be same file
        if f1.file_path != f2.file_path:
            return False

        if not self._lines_close(f1, f2):
            return False

        if f1.id == f2.id:
            return True

        return self._text_similarity(f1.message, f2.message) >= self.config.similarity_threshold

    def _lines_close(self, f1: Finding, f2: Finding) -> bool:
        if f1.line is None or f2.line is None:
            return f1.line is None and f2.line is None
        return abs(f1.line - f2.line) <= self.config.line_tolerance

    def _text_similarity(self, text1: str, text2: str) -> float:
        """Symmetric SequenceMatcher ratio over normalized messages."""
        a, b = normalize_message(text1), normalize_message(text2)
        return max(SequenceMatcher(None, a, b).ratio(), SequenceMatcher(None, b, a).ratio())

    def _merge_cluster(self, cluster: list[Finding]) -> Finding:
        """Merge a cluster of similar findings into its seed."""
        seed = cluster[0]
        if len(cluster) == 1:
            return seed

        # Most confident member decides severity; more severe wins ties
        best = min(cluster, key=lambda f: (-f.confidence, f.severity.rank))

        provenance: list[str] = []
        for finding in cluster:
            for step in finding.provenance:
                if step not in provenance:
                    provenance.append(step)
        if "dedup" not in provenance:
            provenance.append("dedup")

        return replace(
            seed,
            severity=best.severity,
            confidence=best.confidence,
            suggestion=seed.suggestion or next((f.suggestion for f in cluster if f.suggestion), None),
            patch=seed.patch or next((f.patch for f in cluster if f.patch), None),
            provenance=provenance,
        )

    def generate_summary(self, findings: Sequence[Finding], suppressed: int = 0) -> str:
        """Generate a summary of the review."""
        if not findings:
            summary = "No issues found."
        else:
            by_severity: dict[Severity, int] = {}
            for f in findings:
                by_severity[f.severity] = by_severity.get(f.severity, 0) + 1

            labels = {
                Severity.BUG: "bug",
                Severity.WARNING: "warning",
                Severity.SUGGESTION: "suggestion",
                Severity.INFO: "info",
            }
            parts = []
            for severity in Severity:
                count = by_severity.get(severity, 0)
                if count:
                    parts.append(f"{count} {labels[severity]}{'s' if count != 1 else ''}")

            files = len({f.file_path for f in findings})
            summary = f"Found {', '.join(parts)} across {files} file{'s' if files != 1 else ''}."

        if suppressed:
            summary += f" {suppressed} suppressed by feedback."
        return summary

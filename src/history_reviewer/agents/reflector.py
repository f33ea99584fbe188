"""Self-reflection: one extra provider call that scores every finding."""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace

from history_reviewer.agents.base import ProviderAgent
from history_reviewer.errors import ProviderError, ProviderRejected, ReflectionAmbiguous
from history_reviewer.models.findings import Finding
from history_reviewer.prompts import (
    REFLECTION_SYSTEM_PROMPT,
    Evaluation,
    build_reflection_prompt,
    parse_reflection_response,
)
from history_reviewer.providers.base import Prompt, ProviderClient
from history_reviewer.providers.retry import RetryTelemetry

logger = logging.getLogger(__name__)


@dataclass
class ReflectionOutcome:
    kept: list[Finding]
    dropped: int = 0
    ambiguous: bool = False
    warnings: list[str] = field(default_factory=list)


def apply_evaluations(
    findings: Sequence[Finding],
    evaluations: dict[int, Evaluation],
    threshold_for: Callable[[Finding], int],
) -> tuple[list[Finding], int]:
    """Drop findings scored below their threshold; keep unscored ones.

    Returns:
        (kept findings, number dropped)
    """
    kept = []
    dropped = 0
    for i, finding in enumerate(findings):
        evaluation = evaluations.get(i)
        if evaluation is None:
            kept.append(finding)
            continue
        if evaluation.score < threshold_for(finding):
            dropped += 1
            continue
        if evaluation.severity is not None and evaluation.severity != finding.severity:
            finding = replace(
                finding,
                severity=evaluation.severity,
                provenance=[*finding.provenance, "reflect"],
            )
        kept.append(finding)
    return kept, dropped


class SelfReflectionFilter(ProviderAgent):
    """Fails open on ambiguity, closed on explicit low scores."""

    AGENT_TYPE = "reflect"

    def __init__(self, client: ProviderClient, threshold: int = 7) -> None:
        super().__init__(client)
        self.threshold = threshold

    def _default_threshold(self, finding: Finding) -> int:
        return self.threshold

    async def reflect(
        self,
        findings: Sequence[Finding],
        diff: str,
        telemetry: RetryTelemetry,
        threshold_for: Callable[[Finding], int] | None = None,
    ) -> ReflectionOutcome:
        """Score ``findings`` in one call and prune the low scorers.

        Args:
            findings: Raw findings from generation
            diff: Diff under review
            telemetry: Per-run provider counters
            threshold_for: Per-finding threshold (defaults to ``self.threshold``)

        Returns:
            Surviving findings and bookkeeping

        Raises:
            ProviderRejected: Auth, quota or malformed request; not failed open
        """
        findings = list(findings)
        if not findings:
            return ReflectionOutcome(kept=[])

        if threshold_for is None:
            threshold_for = self._default_threshold

        prompt = Prompt(system=REFLECTION_SYSTEM_PROMPT, user=build_reflection_prompt(findings, diff))
        try:
            content = await self._complete(prompt, telemetry)
        except ProviderRejected:
            raise
        except ProviderError as e:
            message = f"Self-reflection failed ({e}), keeping all findings"
            logger.warning(message)
            return ReflectionOutcome(kept=findings, ambiguous=True, warnings=[message])

        try:
            evaluations, ambiguous = parse_reflection_response(content, len(findings))
        except ReflectionAmbiguous as e:
            message = f"Self-reflection response ambiguous ({e}), keeping all findings"
            logger.warning(message)
            return ReflectionOutcome(kept=findings, ambiguous=True, warnings=[message])

        kept, dropped = apply_evaluations(findings, evaluations, threshold_for)
        warnings = []
        if ambiguous:
            unscored = len(findings) - len(evaluations)
            message = f"Self-reflection left {unscored} findings unscored; kept them"
            logger.warning(message)
            warnings.append(message)

        logger.info(f"Self-reflection: {dropped} filtered out, {len(kept)} kept")
        return ReflectionOutcome(kept=kept, dropped=dropped, ambiguous=ambiguous, warnings=warnings)

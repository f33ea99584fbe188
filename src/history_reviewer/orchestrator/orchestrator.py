"""Pipeline orchestrator: one deterministic review run."""

import asyncio
import logging
import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path

from history_reviewer.agents.generator import FindingGenerator
from history_reviewer.agents.reflector import SelfReflectionFilter
from history_reviewer.config import Config
from history_reviewer.errors import (
    DeadlineExceeded,
    FeedbackStoreError,
    GenerationFailed,
    HistoryUnavailable,
    ProviderError,
    ProviderRejected,
)
from history_reviewer.feedback.adapter import FeedbackAdapter, FeedbackBias
from history_reviewer.feedback.store import FeedbackStore
from history_reviewer.history.builder import (
    HistoryAnalysis,
    HistoryContext,
    HistoryContextBuilder,
    analyze_history,
)
from history_reviewer.history.reader import CommitLogReader, GitLogReader, snapshot_line_counts
from history_reviewer.models.context import (
    CHARS_PER_TOKEN,
    ReviewRequest,
    estimate_tokens,
    group_file_diffs,
)
from history_reviewer.models.findings import Finding
from history_reviewer.models.review import FilteredFinding, ReviewResult, ReviewStats
from history_reviewer.orchestrator.aggregator import AggregatorConfig, FindingAggregator
from history_reviewer.providers.base import ProviderClient
from history_reviewer.providers.retry import RetryTelemetry

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    """Run states, in the only order they may be visited."""

    GATHER_HISTORY = "gather_history"
    BUILD_CONTEXT = "build_context"
    GENERATE = "generate"
    SELF_REFLECT = "self_reflect"
    DEDUP_SORT = "dedup_sort"
    APPLY_FEEDBACK_BIAS = "apply_feedback_bias"
    FINALIZE = "finalize"


_ORDER = list(PipelineState)


class ReviewOrchestrator:
    """Sequences history, generation, reflection, dedup and feedback bias.

    One instance per run; nothing is shared between runs except the
    append-only feedback store.
    """

    def __init__(
        self,
        client: ProviderClient,
        config: Config | None = None,
        reader: CommitLogReader | None = None,
        feedback_store: FeedbackStore | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: Provider client for generation and reflection
            config: Application configuration
            reader: Commit log source (defaults to ``git log``)
            feedback_store: Feedback store (None disables feedback)
        """
        self.client = client
        self.config = config or Config()
        self.reader = reader or GitLogReader(
            max_files_per_commit=self.config.history.max_files_per_commit
        )
        self.feedback_store = feedback_store
        self.generator = FindingGenerator(
            client,
            max_findings=self.config.review.max_findings,
            max_diff_chars=self.config.review.max_diff_tokens * CHARS_PER_TOKEN,
        )
        self.reflector = SelfReflectionFilter(client, threshold=self.config.review.reflection_threshold)
        self.aggregator = FindingAggregator(
            AggregatorConfig(
                similarity_threshold=self.config.review.similarity_threshold,
                line_tolerance=self.config.review.line_tolerance,
                min_confidence=self.config.review.min_confidence,
                max_findings=self.config.review.max_findings,
            )
        )
        self.builder = HistoryContextBuilder(
            top_hotspots=self.config.history.top_hotspots,
            top_couplings=self.config.history.top_couplings,
        )
        self.state: PipelineState | None = None
        self.stats = ReviewStats()
        self.history_context: HistoryContext | None = None
        self.filtered: list[FilteredFinding] = []

    def _enter(self, state: PipelineState) -> None:
        """Advance to ``state``. Skipping or re-entering a state is a bug."""
        expected = _ORDER[0] if self.state is None else _ORDER[_ORDER.index(self.state) + 1]
        if state is not expected:
            raise RuntimeError(f"Illegal transition {self.state} -> {state}")
        self.state = state
        self.stats.states.append(state.value)
        logger.debug(f"Pipeline state: {state.value}")

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.stats.warnings.append(message)

    async def run(self, request: ReviewRequest) -> ReviewResult:
        """Execute one review run under the configured deadline.

        Args:
            request: Diff plus opaque collaborator context

        Returns:
            ReviewResult (zero findings is a valid outcome)

        Raises:
            InvalidDiffError: Malformed diff, before any stage runs
            GenerationFailed: Generation could not complete
            ProviderRejected: Auth, quota or malformed request at any provider call
            DeadlineExceeded: The run deadline elapsed
        """
        if self.state is not None:
            raise RuntimeError("ReviewOrchestrator instances run once")

        request.validate()

        deadline = self.config.review.deadline_seconds
        try:
            return await asyncio.wait_for(self._run(request), timeout=deadline)
        except asyncio.TimeoutError:
            message = f"Review exceeded its {deadline:g}s deadline in state {self.state.value if self.state else 'start'}"
            logger.error(message)
            raise DeadlineExceeded(message) from None

    async def _run(self, request: ReviewRequest) -> ReviewResult:
        telemetry = RetryTelemetry()
        self.stats.model_used = self.client.model

        self._enter(PipelineState.GATHER_HISTORY)
        analysis = await self._gather_history(request)

        self._enter(PipelineState.BUILD_CONTEXT)
        self.history_context = (
            self.builder.build(analysis, request.changed_files) if analysis else HistoryContext()
        )
        bias = await self._load_bias()

        self._enter(PipelineState.GENERATE)
        generated = await self._generate(request, telemetry, bias)

        self._enter(PipelineState.SELF_REFLECT)
        reflected = await self._self_reflect(request, generated, telemetry, bias)

        self._enter(PipelineState.DEDUP_SORT)
        deduped, removed = self.aggregator.deduplicate(reflected)
        self.stats.deduplicated = removed
        deduped, low_confidence = self.aggregator.filter_confidence(deduped)
        self.filtered.extend(low_confidence)

        self._enter(PipelineState.APPLY_FEEDBACK_BIAS)
        final = self._apply_bias(deduped, bias)

        self._enter(PipelineState.FINALIZE)
        return await self._finalize(final, telemetry)

    async def _gather_history(self, request: ReviewRequest) -> HistoryAnalysis | None:
        settings = self.config.history
        if not settings.enabled or request.repo_path is None:
            return None

        repo_path = Path(request.repo_path)
        commits = None
        for attempt in (1, 2):
            try:
                commits = await asyncio.to_thread(self.reader.read, repo_path, settings.since_days)
                break
            except HistoryUnavailable as e:
                if attempt == 1:
                    logger.info(f"History unavailable ({e}); retrying once")
                    continue
                self._warn(f"History unavailable ({e}); reviewing without history context")
                return None

        paths = sorted({path for commit in commits for path in commit.paths})
        line_counts = await asyncio.to_thread(snapshot_line_counts, repo_path, paths)
        analysis = await analyze_history(
            commits,
            line_counts,
            min_coupling_ratio=settings.min_coupling_ratio,
            min_co_changes=settings.min_co_changes,
        )
        self.stats.history_available = True
        logger.info(
            f"History: {len(commits)} commits, {len(analysis.hotspots)} hotspots, "
            f"{len(analysis.couplings)} coupled pairs"
        )
        return analysis

    async def _load_bias(self) -> FeedbackBias:
        base = self.config.review.reflection_threshold
        if self.feedback_store is None or not self.config.feedback.enabled:
            return FeedbackBias(base_threshold=base)
        try:
            entries = await asyncio.to_thread(self.feedback_store.entries)
        except FeedbackStoreError as e:
            self._warn(f"Feedback unavailable ({e}); using default thresholds")
            return FeedbackBias(base_threshold=base)
        return FeedbackAdapter.from_settings(self.config.feedback).compute(entries, base)

    def _diff_groups(self, request: ReviewRequest) -> list[ReviewRequest]:
        """Split an oversized diff into per-directory requests."""
        max_tokens = self.config.review.max_diff_tokens
        if estimate_tokens(request.diff) <= max_tokens:
            return [request]
        file_diffs = request.file_diffs
        if len(file_diffs) <= 1:
            return [request]
        groups = group_file_diffs(file_diffs, max_tokens)
        logger.info(
            f"Diff of ~{estimate_tokens(request.diff)} tokens split into {len(groups)} groups "
            f"across {len(file_diffs)} files"
        )
        return [request.narrowed(group) for group in groups]

    async def _generate(
        self, request: ReviewRequest, telemetry: RetryTelemetry, bias: FeedbackBias
    ) -> list[Finding]:
        if request.is_empty:
            logger.info("Empty diff; nothing to review")
            return []

        history_text = self.history_context.render() if self.history_context else ""
        findings: list[Finding] = []
        for group in self._diff_groups(request):
            try:
                output = await self.generator.generate(
                    group,
                    telemetry,
                    history_text=history_text,
                    noisy_examples=bias.noisy_examples,
                )
            except ProviderRejected:
                self._sync_telemetry(telemetry)
                raise
            except ProviderError as e:
                self._sync_telemetry(telemetry)
                self.stats.generation_failures = 1
                logger.error(f"Generation failed: {e}")
                raise GenerationFailed(f"Generation failed: {e}", self.stats, self.state) from e

            self.stats.warnings.extend(output.warnings)
            findings.extend(output.findings)

        self.stats.generated = len(findings)
        return findings

    async def _self_reflect(
        self,
        request: ReviewRequest,
        findings: list[Finding],
        telemetry: RetryTelemetry,
        bias: FeedbackBias,
    ) -> list[Finding]:
        if not self.config.review.self_reflection or not findings:
            return findings

        try:
            outcome = await self.reflector.reflect(
                findings, request.diff, telemetry, threshold_for=bias.threshold_for
            )
        except ProviderRejected:
            self._sync_telemetry(telemetry)
            raise
        self.stats.reflected_out = outcome.dropped
        self.stats.reflection_ambiguous = outcome.ambiguous
        self.stats.warnings.extend(outcome.warnings)
        return outcome.kept

    def _apply_bias(self, findings: list[Finding], bias: FeedbackBias) -> list[Finding]:
        kept: list[Finding] = []
        for finding in findings:
            if bias.is_suppressed(finding):
                self.filtered.append(FilteredFinding(finding, "suppressed by feedback"))
            else:
                kept.append(finding)
        self.stats.suppressed = len(findings) - len(kept)
        if self.stats.suppressed:
            logger.info(f"Suppressed {self.stats.suppressed} findings matching noisy patterns")
        return kept

    async def _finalize(self, findings: list[Finding], telemetry: RetryTelemetry) -> ReviewResult:
        self._sync_telemetry(telemetry)
        findings, over_limit = self.aggregator.truncate(findings)
        self.filtered.extend(over_limit)
        self.stats.filtered = len(self.filtered)
        self.stats.final = len(findings)

        result = ReviewResult(
            id=f"review-{uuid.uuid4().hex[:8]}",
            created_at=datetime.now(),
            findings=findings,
            summary=self.aggregator.generate_summary(findings, self.stats.suppressed),
            stats=self.stats,
            fail_on=self.config.review.fail_on,
            filtered=self.filtered,
        )

        if self.feedback_store is not None and self.config.feedback.enabled and findings:
            try:
                await asyncio.to_thread(self.feedback_store.register_findings, findings, result.id)
            except FeedbackStoreError as e:
                self._warn(f"Could not record findings for feedback ({e})")

        logger.info(f"Review complete: {result.summary}")
        return result

    def _sync_telemetry(self, telemetry: RetryTelemetry) -> None:
        self.stats.retries = telemetry.retries
        self.stats.provider_calls = telemetry.provider_calls

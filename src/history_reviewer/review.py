"""Public review operations.

``review`` runs one pipeline pass over a diff; ``record_feedback`` rates a
finding from an earlier run; ``meets_threshold`` and ``has_blocking_finding``
give CI-gating callers their verdicts.
"""

import logging
from dataclasses import dataclass, replace
from pathlib import Path

from history_reviewer.config import Config, load_config
from history_reviewer.feedback.store import FeedbackStore
from history_reviewer.history.reader import CommitLogReader
from history_reviewer.models.context import DiffHunk, ReviewRequest
from history_reviewer.models.feedback import FeedbackEntry, Rating
from history_reviewer.models.findings import Severity
from history_reviewer.models.review import ReviewResult, has_blocking_finding, meets_threshold
from history_reviewer.orchestrator.orchestrator import ReviewOrchestrator
from history_reviewer.providers import create_client
from history_reviewer.providers.base import ProviderClient

logger = logging.getLogger(__name__)

__all__ = ["ReviewOptions", "feedback_store_for", "has_blocking_finding", "meets_threshold", "record_feedback", "review"]


@dataclass
class ReviewOptions:
    """Per-call overrides of the configured review settings."""

    fail_on: Severity | str | None = None
    self_reflection: bool | None = None
    reflection_threshold: int | None = None
    min_confidence: float | None = None
    max_findings: int | None = None
    top_hotspots: int | None = None
    top_couplings: int | None = None
    hunks: list[DiffHunk] | None = None
    structural_summary: str | None = None
    search_hits: str | None = None
    custom_instructions: str | None = None

    def apply(self, config: Config) -> Config:
        """Return a copy of ``config`` with these overrides applied."""
        review_settings = config.review
        if self.fail_on is not None:
            review_settings = replace(review_settings, fail_on=Severity.parse(self.fail_on))
        if self.self_reflection is not None:
            review_settings = replace(review_settings, self_reflection=self.self_reflection)
        if self.reflection_threshold is not None:
            review_settings = replace(review_settings, reflection_threshold=self.reflection_threshold)
        if self.min_confidence is not None:
            review_settings = replace(review_settings, min_confidence=self.min_confidence)
        if self.max_findings is not None:
            review_settings = replace(review_settings, max_findings=self.max_findings)

        history_settings = config.history
        if self.top_hotspots is not None:
            history_settings = replace(history_settings, top_hotspots=self.top_hotspots)
        if self.top_couplings is not None:
            history_settings = replace(history_settings, top_couplings=self.top_couplings)

        return replace(config, review=review_settings, history=history_settings)


def feedback_store_for(repo_path: Path | str | None, config: Config) -> FeedbackStore:
    """Feedback store location; relative directories live under the repo."""
    directory = Path(config.feedback.directory)
    if not directory.is_absolute():
        directory = Path(repo_path or ".") / directory
    return FeedbackStore(directory)


async def review(
    diff: str,
    repo_path: Path | str | None = None,
    options: ReviewOptions | None = None,
    *,
    config: Config | None = None,
    client: ProviderClient | None = None,
    reader: CommitLogReader | None = None,
    feedback_store: FeedbackStore | None = None,
) -> ReviewResult:
    """Review ``diff`` against the history of ``repo_path``.

    Args:
        diff: Unified diff text (empty is valid and yields no findings)
        repo_path: Repository root for history analysis (None skips history)
        options: Per-call overrides and opaque collaborator context
        config: Configuration (default: loaded from history-reviewer.yaml)
        client: Provider client (default: built from ``config.provider``)
        reader: Commit log source (default: ``git log``)
        feedback_store: Feedback store (default: under ``repo_path``)

    Returns:
        ReviewResult with ordered findings, summary and statistics

    Raises:
        ConfigurationError: Missing credential or bad provider/model pairing
        InvalidDiffError: The diff is not a unified diff
        GenerationFailed: Generation exhausted its retries
        ProviderRejected: The provider refused the generation request
        DeadlineExceeded: The run deadline elapsed
    """
    options = options or ReviewOptions()
    config = options.apply(config or load_config())

    request = ReviewRequest(
        diff=diff,
        repo_path=Path(repo_path) if repo_path is not None else None,
        hunks=list(options.hunks or []),
        structural_summary=options.structural_summary,
        search_hits=options.search_hits,
        custom_instructions=options.custom_instructions,
    )
    # Boundary checks run before any stage or provider setup
    request.validate()

    if feedback_store is None and config.feedback.enabled:
        feedback_store = feedback_store_for(repo_path, config)

    owns_client = client is None
    if client is None:
        client = create_client(config)

    try:
        orchestrator = ReviewOrchestrator(
            client,
            config=config,
            reader=reader,
            feedback_store=feedback_store,
        )
        return await orchestrator.run(request)
    finally:
        if owns_client:
            await client.close()


def record_feedback(
    finding_id: str,
    rating: Rating | str,
    repo_path: Path | str | None = None,
    *,
    config: Config | None = None,
    store: FeedbackStore | None = None,
) -> FeedbackEntry:
    """Record a human rating for a finding from an earlier run.

    Raises:
        ValueError: Unknown rating
        FeedbackStoreError: The rating could not be written
    """
    if store is None:
        store = feedback_store_for(repo_path, config or load_config())
    entry = store.record(finding_id, rating)
    logger.info(f"Recorded {entry.rating.value} feedback for {finding_id}")
    return entry

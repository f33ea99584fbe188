"""Error taxonomy for the review engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from history_reviewer.models.review import ReviewStats


class ReviewerError(Exception):
    """Base class for every error raised by the engine."""


class ConfigurationError(ReviewerError):
    """Missing credential or invalid provider/model pairing. Always fatal."""

    def __init__(self, message: str, setting: str | None = None) -> None:
        super().__init__(message)
        self.setting = setting


class InvalidDiffError(ReviewerError):
    """The diff handed to the engine is not a unified diff."""


class HistoryUnavailable(ReviewerError):
    """The repository log could not be read."""


class ProviderError(ReviewerError):
    """A provider call failed. ``message`` is always sanitized."""

    retryable: bool = False

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderThrottled(ProviderError):
    """Rate-limit or overload signal; retried per the retry policy."""

    retryable = True

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, status_code)
        self.retry_after = retry_after


class ProviderRejected(ProviderError):
    """Auth failure, malformed request or permanent quota exhaustion."""


class GenerationFailed(ReviewerError):
    """The generation stage exhausted its retries; no findings are produced."""

    def __init__(self, message: str, stats: ReviewStats, state: Any = None) -> None:
        super().__init__(message)
        self.stats = stats
        self.state = state


class ReflectionAmbiguous(ReviewerError):
    """The self-reflection response could not be mapped back to findings."""


class FeedbackStoreError(ReviewerError):
    """Reading or writing the feedback log failed."""


class DeadlineExceeded(ReviewerError):
    """The overall run deadline elapsed before the run finished."""

"""Retry state machine for throttled provider calls.

The policy is pure data; :class:`RetryRun` walks the states
``ATTEMPTING -> BACKOFF -> ATTEMPTING ... -> SUCCEEDED | FAILED`` and takes
its sleep function as a parameter so tests can drive it without waiting.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

from history_reviewer.errors import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


class RetryState(Enum):
    ATTEMPTING = "attempting"
    BACKOFF = "backoff"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff parameters."""

    base_delay_seconds: float = 5.0
    max_delay_seconds: float = 60.0
    max_retries: int = 5
    multiplier: float = 2.0

    def delay_for(self, retry_number: int, retry_after: float | None = None) -> float:
        """Delay before retry ``retry_number`` (1-based).

        ``base * multiplier ** (n - 1)`` capped at the maximum, but never
        shorter than a server-supplied ``retry_after``.
        """
        delay = self.base_delay_seconds * (self.multiplier ** max(0, retry_number - 1))
        delay = min(delay, self.max_delay_seconds)
        if retry_after is not None and retry_after > delay:
            delay = retry_after
        return delay

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            base_delay_seconds=settings.base_delay_seconds,
            max_delay_seconds=settings.max_delay_seconds,
            max_retries=settings.max_retries,
            multiplier=settings.multiplier,
        )


@dataclass
class RetryTelemetry:
    """Counters for one review run; passed into every provider call."""

    retries: int = 0
    provider_calls: int = 0
    delays: list[float] = field(default_factory=list)


class RetryRun:
    """One retried operation. Not reusable."""

    def __init__(
        self,
        policy: RetryPolicy,
        telemetry: RetryTelemetry | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.policy = policy
        self.telemetry = telemetry if telemetry is not None else RetryTelemetry()
        self.sleep = sleep
        self.state = RetryState.ATTEMPTING
        self.history: list[RetryState] = [RetryState.ATTEMPTING]
        self.retries = 0

    def _transition(self, state: RetryState) -> None:
        self.state = state
        self.history.append(state)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` until it succeeds or the policy gives up.

        Only :class:`ProviderError` subclasses marked ``retryable`` are retried.
        Cancellation propagates immediately and is never retried.

        Raises:
            ProviderError: The last error once retries are exhausted, or the
                first non-retryable one
        """
        while True:
            try:
                self.telemetry.provider_calls += 1
                result = await operation()
            except ProviderError as e:
                if not e.retryable or self.retries >= self.policy.max_retries:
                    self._transition(RetryState.FAILED)
                    raise

                self.retries += 1
                self.telemetry.retries += 1
                delay = self.policy.delay_for(self.retries, getattr(e, "retry_after", None))
                self.telemetry.delays.append(delay)
                self._transition(RetryState.BACKOFF)
                logger.warning(
                    f"Provider throttled ({e}); retry {self.retries}/{self.policy.max_retries} "
                    f"in {delay:.1f}s"
                )
                await self.sleep(delay)
                self._transition(RetryState.ATTEMPTING)
                continue

            self._transition(RetryState.SUCCEEDED)
            return result


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    telemetry: RetryTelemetry | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> T:
    """Convenience wrapper around :class:`RetryRun`."""
    return await RetryRun(policy, telemetry, sleep).execute(operation)

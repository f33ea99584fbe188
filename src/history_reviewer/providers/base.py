"""Provider client abstraction and HTTP error classification."""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from history_reviewer.config import ProviderConfig
from history_reviewer.errors import ProviderError, ProviderRejected, ProviderThrottled
from history_reviewer.providers.retry import RetryPolicy, RetryRun, RetryTelemetry, SleepFn
from history_reviewer.providers.sanitize import sanitize_error

logger = logging.getLogger(__name__)

THROTTLE_STATUSES = {429, 503, 529}
REJECT_STATUSES = {400, 401, 403, 404, 422}
THROTTLE_MARKERS = ("resource_exhausted", "overloaded", "rate limit", "rate_limit")
QUOTA_MARKERS = ("insufficient_quota", "billing", "exceeded your current quota")


@dataclass(frozen=True)
class Prompt:
    """A system/user prompt pair."""

    system: str
    user: str
    json_mode: bool = True


def _parse_retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def classify_http_error(response: httpx.Response, secrets: tuple[str, ...] = ()) -> ProviderError:
    """Map a failed HTTP response to the error taxonomy.

    Throttling (429/503/529 or an overload/exhausted body) is retryable,
    except permanent quota exhaustion which is rejected outright.
    """
    status = response.status_code
    body = sanitize_error(response.text, secrets)
    lowered = body.lower()
    message = f"HTTP {status}: {body}"

    if any(marker in lowered for marker in QUOTA_MARKERS):
        return ProviderRejected(message, status_code=status)

    if status in THROTTLE_STATUSES or any(marker in lowered for marker in THROTTLE_MARKERS):
        return ProviderThrottled(message, status_code=status, retry_after=_parse_retry_after(response))

    if status in REJECT_STATUSES:
        return ProviderRejected(message, status_code=status)

    return ProviderError(message, status_code=status)


class Provider(ABC):
    """One LLM vendor's wire protocol over a shared httpx client."""

    name: str = "base"

    def __init__(self, config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Initialize the provider.

        Args:
            config: Provider configuration
            transport: Optional transport override (tests use httpx.MockTransport)
        """
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"Content-Type": "application/json", **self._auth_headers()},
            timeout=config.timeout_seconds,
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def secrets(self) -> tuple[str, ...]:
        return (self.config.api_key,) if self.config.api_key else ()

    def _auth_headers(self) -> dict[str, str]:
        return {}

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "Provider":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _post(self, path: str, body: dict[str, Any], params: dict[str, str] | None = None) -> dict[str, Any]:
        """POST JSON and return the decoded body, raising classified errors."""
        try:
            response = await self._client.post(path, json=body, params=params)
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"{self.name} request timed out: {sanitize_error(str(e), self.secrets)}"
            ) from None
        except httpx.HTTPError as e:
            raise ProviderError(
                f"{self.name} request failed: {sanitize_error(str(e), self.secrets)}"
            ) from None

        if response.is_error:
            raise classify_http_error(response, self.secrets)

        try:
            return response.json()
        except json.JSONDecodeError:
            raise ProviderError(
                f"{self.name} returned a non-JSON body: {sanitize_error(response.text, self.secrets)}",
                status_code=response.status_code,
            ) from None

    @abstractmethod
    async def complete(self, prompt: Prompt) -> str:
        """Send one prompt and return the text of the reply."""


class ProviderClient:
    """A provider bound to its retry policy. The engine only talks to this."""

    def __init__(
        self,
        provider: Provider,
        policy: RetryPolicy | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    @property
    def model(self) -> str:
        return self.provider.model

    async def complete(self, prompt: Prompt, telemetry: RetryTelemetry | None = None) -> str:
        """Complete ``prompt`` with throttling retries.

        Args:
            prompt: Prompt to send
            telemetry: Per-run counters updated with calls and retries

        Returns:
            Raw reply text

        Raises:
            ProviderError: Non-retryable failure or retries exhausted
        """
        run = RetryRun(self.policy, telemetry, self._sleep)
        return await run.execute(lambda: self.provider.complete(prompt))

    async def close(self) -> None:
        await self.provider.close()

    async def __aenter__(self) -> "ProviderClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

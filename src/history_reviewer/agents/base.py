"""Base class for pipeline stages that talk to the provider."""

import logging
import time

from history_reviewer.providers.base import Prompt, ProviderClient
from history_reviewer.providers.retry import RetryTelemetry

logger = logging.getLogger(__name__)


class ProviderAgent:
    """Shared plumbing for stages that make one provider call."""

    # Subclasses should override this
    AGENT_TYPE: str = "base"

    def __init__(self, client: ProviderClient) -> None:
        """Initialize the agent.

        Args:
            client: Provider client with its retry policy bound
        """
        self.client = client

    async def _complete(self, prompt: Prompt, telemetry: RetryTelemetry) -> str:
        """Run the call, logging elapsed time. Provider errors propagate."""
        start_time = time.monotonic()
        content = await self.client.complete(prompt, telemetry)
        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        logger.debug(f"{self.AGENT_TYPE} call to {self.client.model} took {elapsed_ms}ms")
        return content

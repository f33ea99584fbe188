"""Anthropic Messages API."""

import logging

from history_reviewer.errors import ProviderError
from history_reviewer.providers.base import Prompt, Provider

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(Provider):
    """Talks to ``{base_url}/v1/messages``."""

    name = "anthropic"

    def _auth_headers(self) -> dict[str, str]:
        return {"x-api-key": self.config.api_key, "anthropic-version": ANTHROPIC_VERSION}

    async def complete(self, prompt: Prompt) -> str:
        system = prompt.system
        if prompt.json_mode:
            system += "\n\nRespond with a single JSON object only."
        body = {
            "model": self.config.model,
            "system": system,
            "messages": [{"role": "user", "content": prompt.user}],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

        logger.debug(f"{self.name} request model={self.config.model}")
        data = await self._post("/v1/messages", body)

        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise ProviderError(f"{self.name} returned an unexpected response structure")

        # Extended-thinking blocks precede the answer and are not part of it
        texts = [
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        return "".join(texts)

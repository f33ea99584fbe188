"""OpenAI-compatible chat completions (OpenAI, Ollama, vLLM, LiteLLM)."""

import logging
from typing import Any

from history_reviewer.errors import ProviderError
from history_reviewer.providers.base import Prompt, Provider

logger = logging.getLogger(__name__)


class OpenAIProvider(Provider):
    """Talks to ``{base_url}/v1/chat/completions``."""

    name = "openai"

    def _auth_headers(self) -> dict[str, str]:
        if self.config.api_key:
            return {"Authorization": f"Bearer {self.config.api_key}"}
        return {}

    async def complete(self, prompt: Prompt) -> str:
        body: dict[str, Any] = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if prompt.json_mode:
            body["response_format"] = {"type": "json_object"}

        logger.debug(f"{self.name} request model={self.config.model}")
        data = await self._post("/v1/chat/completions", body)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(f"{self.name} returned an unexpected response structure") from None
        return content or ""


class OllamaProvider(OpenAIProvider):
    """Local Ollama through its OpenAI-compatible endpoint; no credential."""

    name = "ollama"

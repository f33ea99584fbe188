"""Google Gemini generateContent API."""

import logging

from history_reviewer.errors import ProviderError
from history_reviewer.providers.base import Prompt, Provider

logger = logging.getLogger(__name__)


class GeminiProvider(Provider):
    """Talks to ``{base_url}/v1beta/models/{model}:generateContent``."""

    name = "gemini"

    def _auth_headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self.config.api_key}

    async def complete(self, prompt: Prompt) -> str:
        generation_config: dict = {
            "temperature": self.config.temperature,
            "maxOutputTokens": self.config.max_tokens,
        }
        if prompt.json_mode:
            generation_config["responseMimeType"] = "application/json"

        body = {
            "systemInstruction": {"parts": [{"text": prompt.system}]},
            "contents": [{"role": "user", "parts": [{"text": prompt.user}]}],
            "generationConfig": generation_config,
        }

        logger.debug(f"{self.name} request model={self.config.model}")
        data = await self._post(f"/v1beta/models/{self.config.model}:generateContent", body)

        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(f"{self.name} returned an unexpected response structure") from None
        return "".join(p.get("text", "") for p in parts if isinstance(p, dict) and not p.get("thought"))

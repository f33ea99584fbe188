"""LLM provider adapters."""

import httpx

from history_reviewer.config import Config, ProviderConfig
from history_reviewer.errors import ConfigurationError
from history_reviewer.providers.anthropic import AnthropicProvider
from history_reviewer.providers.base import Prompt, Provider, ProviderClient, classify_http_error
from history_reviewer.providers.gemini import GeminiProvider
from history_reviewer.providers.openai import OllamaProvider, OpenAIProvider
from history_reviewer.providers.retry import RetryPolicy, RetryRun, RetryState, RetryTelemetry
from history_reviewer.providers.sanitize import sanitize_error

PROVIDERS: dict[str, type[Provider]] = {
    "openai": OpenAIProvider,
    "ollama": OllamaProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
}


def create_provider(config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None) -> Provider:
    """Build the adapter for ``config.kind`` after validating the config.

    Raises:
        ConfigurationError: Unknown provider, missing key or bad model pairing
    """
    config.validate()
    provider_cls = PROVIDERS.get(config.kind)
    if provider_cls is None:
        raise ConfigurationError(f"Unknown provider '{config.kind}'", setting="provider.kind")
    return provider_cls(config, transport=transport)


def create_client(config: Config, transport: httpx.AsyncBaseTransport | None = None) -> ProviderClient:
    """Provider plus the configured retry policy."""
    return ProviderClient(
        create_provider(config.provider, transport=transport),
        RetryPolicy.from_settings(config.retry),
    )


__all__ = [
    "AnthropicProvider",
    "GeminiProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "Prompt",
    "Provider",
    "ProviderClient",
    "RetryPolicy",
    "RetryRun",
    "RetryState",
    "RetryTelemetry",
    "classify_http_error",
    "create_client",
    "create_provider",
    "sanitize_error",
]

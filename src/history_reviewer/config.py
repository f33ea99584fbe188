"""Configuration loading and validation for History Reviewer."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from history_reviewer.errors import ConfigurationError
from history_reviewer.models.findings import Severity

PROVIDER_KINDS = ("openai", "anthropic", "gemini", "ollama")

DEFAULT_MODELS = {
    "openai": "gpt-4o",
    "anthropic": "claude-sonnet-4-20250514",
    "gemini": "gemini-2.0-flash",
    "ollama": "llama3.1",
}

DEFAULT_BASE_URLS = {
    "openai": "https://api.openai.com",
    "anthropic": "https://api.anthropic.com",
    "gemini": "https://generativelanguage.googleapis.com",
    "ollama": "http://localhost:11434",
}

API_KEY_ENV_VARS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


@dataclass
class ProviderConfig:
    """LLM provider configuration."""

    kind: str = "openai"
    model: str = ""
    api_key: str = field(default="", repr=False)
    base_url: str = ""
    timeout_seconds: int = 120
    dimensions: int | None = None
    temperature: float = 0.1
    max_tokens: int = 4096

    def __post_init__(self) -> None:
        self.kind = (self.kind or "openai").lower()
        if not self.model:
            self.model = DEFAULT_MODELS.get(self.kind, "")
        if not self.base_url:
            self.base_url = DEFAULT_BASE_URLS.get(self.kind, "")

    @property
    def api_key_env_var(self) -> str | None:
        return API_KEY_ENV_VARS.get(self.kind)

    @property
    def requires_api_key(self) -> bool:
        return self.kind != "ollama"

    def validate(self) -> None:
        """Check the credential and provider/model pairing.

        Raises:
            ConfigurationError: On a missing key or a model that does not
                belong to the configured provider
        """
        if self.kind not in PROVIDER_KINDS:
            raise ConfigurationError(
                f"Unknown provider '{self.kind}' (expected one of {', '.join(PROVIDER_KINDS)})",
                setting="provider.kind",
            )

        if self.requires_api_key and not self.api_key:
            raise ConfigurationError(
                f"Missing provider.api_key (set {self.api_key_env_var} or provider.api_key)",
                setting="provider.api_key",
            )

        model = self.model.lower()
        family = None
        if model.startswith("claude"):
            family = "anthropic"
        elif model.startswith("gemini"):
            family = "gemini"
        elif model.startswith(("gpt", "o1", "o3", "o4")):
            family = "openai"

        mismatch = (
            (family == "anthropic" and self.kind != "anthropic")
            or (family == "gemini" and self.kind != "gemini")
            or (self.kind in ("anthropic", "gemini") and family is not None and family != self.kind)
        )
        if mismatch:
            raise ConfigurationError(
                f"Model '{self.model}' cannot be used with provider '{self.kind}'",
                setting="provider.model",
            )

        if self.dimensions is not None and self.kind not in ("openai", "gemini"):
            raise ConfigurationError(
                f"provider.dimensions is not supported by '{self.kind}'",
                setting="provider.dimensions",
            )


@dataclass
class RetrySettings:
    """Backoff settings for throttled provider calls."""

    base_delay_seconds: float = 5.0
    max_delay_seconds: float = 60.0
    max_retries: int = 5
    multiplier: float = 2.0


@dataclass
class ReviewSettings:
    """Review pipeline configuration."""

    self_reflection: bool = True
    reflection_threshold: int = 7
    fail_on: Severity = Severity.WARNING
    similarity_threshold: float = 0.85
    line_tolerance: int = 5
    deadline_seconds: float = 600.0
    max_findings: int = 10
    min_confidence: float = 0.0
    max_diff_tokens: int = 12500


@dataclass
class HistorySettings:
    """Repository history analysis configuration."""

    enabled: bool = True
    since_days: int = 180
    max_files_per_commit: int = 25
    top_hotspots: int = 10
    top_couplings: int = 10
    min_coupling_ratio: float = 0.3
    min_co_changes: int = 3


@dataclass
class FeedbackSettings:
    """Feedback learning configuration."""

    enabled: bool = True
    directory: str = ".history-reviewer"
    min_samples: int = 3
    raise_ratio: float = 0.5
    threshold_bump: int = 2
    suppress_ceiling: float = 0.8


@dataclass
class Config:
    """Complete application configuration."""

    provider: ProviderConfig = field(default_factory=ProviderConfig)
    retry: RetrySettings = field(default_factory=RetrySettings)
    review: ReviewSettings = field(default_factory=ReviewSettings)
    history: HistorySettings = field(default_factory=HistorySettings)
    feedback: FeedbackSettings = field(default_factory=FeedbackSettings)

    def to_dict(self) -> dict[str, Any]:
        """Serializable view with the API key masked."""
        return {
            "provider": {
                "kind": self.provider.kind,
                "model": self.provider.model,
                "api_key": "***" if self.provider.api_key else "",
                "base_url": self.provider.base_url,
                "timeout_seconds": self.provider.timeout_seconds,
                "dimensions": self.provider.dimensions,
                "temperature": self.provider.temperature,
                "max_tokens": self.provider.max_tokens,
            },
            "retry": vars(self.retry).copy(),
            "review": {**vars(self.review), "fail_on": self.review.fail_on.value},
            "history": vars(self.history).copy(),
            "feedback": vars(self.feedback).copy(),
        }


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Path to config file (default: history-reviewer.yaml)

    Returns:
        Loaded configuration
    """
    if config_path is None:
        config_path = Path("history-reviewer.yaml")
        if not config_path.exists():
            config_path = Path("history-reviewer.example.yaml")

    raw_config: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw_config = yaml.safe_load(f) or {}

    raw_config = _expand_env_vars(raw_config)

    return _parse_config(raw_config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in config."""
    if isinstance(obj, str):
        if obj.startswith("${") and obj.endswith("}"):
            env_var = obj[2:-1]
            return os.environ.get(env_var, "")
        return obj
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


def _parse_config(raw: dict[str, Any]) -> Config:
    """Parse raw config dict into Config object."""
    # Provider
    provider_raw = raw.get("provider", {}) or {}
    kind = str(provider_raw.get("kind", "openai")).lower()
    env_var = API_KEY_ENV_VARS.get(kind)
    provider = ProviderConfig(
        kind=kind,
        model=provider_raw.get("model", ""),
        api_key=provider_raw.get("api_key") or (os.environ.get(env_var, "") if env_var else ""),
        base_url=provider_raw.get("base_url", ""),
        timeout_seconds=provider_raw.get("timeout_seconds", 120),
        dimensions=provider_raw.get("dimensions"),
        temperature=provider_raw.get("temperature", 0.1),
        max_tokens=provider_raw.get("max_tokens", 4096),
    )

    # Retry
    retry_raw = raw.get("retry", {}) or {}
    retry = RetrySettings(
        base_delay_seconds=float(retry_raw.get("base_delay_seconds", 5.0)),
        max_delay_seconds=float(retry_raw.get("max_delay_seconds", 60.0)),
        max_retries=retry_raw.get("max_retries", 5),
        multiplier=float(retry_raw.get("multiplier", 2.0)),
    )

    # Review
    review_raw = raw.get("review", {}) or {}
    try:
        fail_on = Severity.parse(review_raw.get("fail_on", "warning"))
    except ValueError as e:
        raise ConfigurationError(str(e), setting="review.fail_on") from e
    review = ReviewSettings(
        self_reflection=review_raw.get("self_reflection", True),
        reflection_threshold=review_raw.get("reflection_threshold", 7),
        fail_on=fail_on,
        similarity_threshold=review_raw.get("similarity_threshold", 0.85),
        line_tolerance=review_raw.get("line_tolerance", 5),
        deadline_seconds=float(review_raw.get("deadline_seconds", 600)),
        max_findings=review_raw.get("max_findings", 10),
        min_confidence=float(review_raw.get("min_confidence", 0.0)),
        max_diff_tokens=review_raw.get("max_diff_tokens", 12500),
    )

    # History
    history_raw = raw.get("history", {}) or {}
    history = HistorySettings(
        enabled=history_raw.get("enabled", True),
        since_days=history_raw.get("since_days", 180),
        max_files_per_commit=history_raw.get("max_files_per_commit", 25),
        top_hotspots=history_raw.get("top_hotspots", 10),
        top_couplings=history_raw.get("top_couplings", 10),
        min_coupling_ratio=history_raw.get("min_coupling_ratio", 0.3),
        min_co_changes=history_raw.get("min_co_changes", 3),
    )

    # Feedback
    feedback_raw = raw.get("feedback", {}) or {}
    feedback = FeedbackSettings(
        enabled=feedback_raw.get("enabled", True),
        directory=feedback_raw.get("directory", ".history-reviewer"),
        min_samples=feedback_raw.get("min_samples", 3),
        raise_ratio=feedback_raw.get("raise_ratio", 0.5),
        threshold_bump=feedback_raw.get("threshold_bump", 2),
        suppress_ceiling=feedback_raw.get("suppress_ceiling", 0.8),
    )

    return Config(
        provider=provider,
        retry=retry,
        review=review,
        history=history,
        feedback=feedback,
    )


def validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of errors.

    Args:
        config: Configuration to validate

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    try:
        config.provider.validate()
    except ConfigurationError as e:
        errors.append(str(e))

    if not 1 <= config.review.reflection_threshold <= 10:
        errors.append(
            f"review.reflection_threshold must be between 1 and 10, "
            f"got {config.review.reflection_threshold}"
        )

    if not 0.0 < config.review.similarity_threshold <= 1.0:
        errors.append(
            f"review.similarity_threshold must be in (0, 1], got {config.review.similarity_threshold}"
        )

    if config.review.deadline_seconds <= 0:
        errors.append("review.deadline_seconds must be positive")

    if config.review.max_findings < 1:
        errors.append(f"review.max_findings must be >= 1, got {config.review.max_findings}")

    if not 0.0 <= config.review.min_confidence <= 1.0:
        errors.append(f"review.min_confidence must be in [0, 1], got {config.review.min_confidence}")

    if config.review.max_diff_tokens <= 0:
        errors.append(f"review.max_diff_tokens must be positive, got {config.review.max_diff_tokens}")

    if config.retry.max_retries < 0:
        errors.append(f"retry.max_retries must be >= 0, got {config.retry.max_retries}")

    if config.retry.base_delay_seconds > config.retry.max_delay_seconds:
        errors.append(
            f"retry.base_delay_seconds ({config.retry.base_delay_seconds}) "
            f"exceeds retry.max_delay_seconds ({config.retry.max_delay_seconds})"
        )

    if config.history.since_days <= 0:
        errors.append(f"history.since_days must be positive, got {config.history.since_days}")

    if not 0.0 <= config.history.min_coupling_ratio <= 1.0:
        errors.append(
            f"history.min_coupling_ratio must be in [0, 1], got {config.history.min_coupling_ratio}"
        )

    if not 0.0 <= config.feedback.raise_ratio <= config.feedback.suppress_ceiling <= 1.0:
        errors.append(
            "feedback ratios must satisfy 0 <= raise_ratio <= suppress_ceiling <= 1"
        )

    return errors

"""Tests for configuration loading and validation."""

import pytest


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_when_file_missing(self, tmp_path, monkeypatch):
        from history_reviewer.config import load_config
        from history_reviewer.models.findings import Severity

        monkeypatch.chdir(tmp_path)
        config = load_config()

        assert config.provider.kind == "openai"
        assert config.provider.model == "gpt-4o"
        assert config.review.fail_on is Severity.WARNING
        assert config.retry.max_retries == 5
        assert config.review.deadline_seconds == 600.0

    def test_env_var_expansion(self, tmp_path, monkeypatch):
        from history_reviewer.config import load_config

        monkeypatch.setenv("MY_ANTHROPIC_KEY", "sk-ant-from-env")
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "provider:\n"
            "  kind: anthropic\n"
            "  api_key: ${MY_ANTHROPIC_KEY}\n"
            "review:\n"
            "  fail_on: bug\n"
            "history:\n"
            "  since_days: 30\n"
        )

        config = load_config(config_file)

        assert config.provider.api_key == "sk-ant-from-env"
        assert config.provider.model == "claude-sonnet-4-20250514"
        assert config.provider.base_url == "https://api.anthropic.com"
        assert config.review.fail_on.value == "bug"
        assert config.history.since_days == 30

    def test_key_falls_back_to_provider_env_var(self, tmp_path, monkeypatch):
        from history_reviewer.config import load_config

        monkeypatch.setenv("GEMINI_API_KEY", "AIza-from-env")
        config_file = tmp_path / "config.yaml"
        config_file.write_text("provider:\n  kind: gemini\n")

        assert load_config(config_file).provider.api_key == "AIza-from-env"

    def test_invalid_fail_on(self, tmp_path):
        from history_reviewer.config import load_config
        from history_reviewer.errors import ConfigurationError

        config_file = tmp_path / "config.yaml"
        config_file.write_text("review:\n  fail_on: critical\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(config_file)
        assert exc_info.value.setting == "review.fail_on"


class TestValidateConfig:
    """Tests for validate_config and ProviderConfig.validate."""

    def test_valid_config(self):
        from history_reviewer.config import Config, ProviderConfig, validate_config

        config = Config(provider=ProviderConfig(kind="openai", api_key="sk-test"))

        assert validate_config(config) == []

    def test_ollama_needs_no_key(self):
        from history_reviewer.config import ProviderConfig

        ProviderConfig(kind="ollama").validate()

    def test_model_provider_mismatch(self):
        from history_reviewer.config import ProviderConfig
        from history_reviewer.errors import ConfigurationError

        with pytest.raises(ConfigurationError, match="cannot be used"):
            ProviderConfig(kind="anthropic", api_key="k", model="gpt-4o").validate()

    def test_dimensions_unsupported(self):
        from history_reviewer.config import ProviderConfig
        from history_reviewer.errors import ConfigurationError

        with pytest.raises(ConfigurationError) as exc_info:
            ProviderConfig(kind="anthropic", api_key="k", dimensions=256).validate()
        assert exc_info.value.setting == "provider.dimensions"

    def test_collects_range_errors(self):
        from history_reviewer.config import (
            Config,
            FeedbackSettings,
            ProviderConfig,
            RetrySettings,
            ReviewSettings,
            validate_config,
        )

        config = Config(
            provider=ProviderConfig(kind="openai", api_key="sk-test"),
            retry=RetrySettings(base_delay_seconds=90.0, max_delay_seconds=60.0),
            review=ReviewSettings(reflection_threshold=11),
            feedback=FeedbackSettings(raise_ratio=0.9, suppress_ceiling=0.8),
        )

        errors = validate_config(config)

        assert len(errors) == 3
        assert any("reflection_threshold" in e for e in errors)
        assert any("base_delay_seconds" in e for e in errors)

    def test_to_dict_masks_key(self):
        from history_reviewer.config import Config, ProviderConfig

        data = Config(provider=ProviderConfig(api_key="sk-secret")).to_dict()

        assert data["provider"]["api_key"] == "***"
        assert data["review"]["fail_on"] == "warning"
        assert "sk-secret" not in repr(Config(provider=ProviderConfig(api_key="sk-secret")))

    def test_review_limits(self):
        from history_reviewer.config import Config, ProviderConfig, ReviewSettings, validate_config

        config = Config(
            provider=ProviderConfig(kind="openai", api_key="sk-test"),
            review=ReviewSettings(min_confidence=1.5, max_findings=0, max_diff_tokens=0),
        )

        errors = validate_config(config)

        assert len(errors) == 3
        assert any("min_confidence" in e for e in errors)
        assert any("max_findings" in e for e in errors)
        assert any("max_diff_tokens" in e for e in errors)

    def test_review_limits_load_from_yaml(self, tmp_path):
        from history_reviewer.config import load_config

        config_file = tmp_path / "config.yaml"
        config_file.write_text("review:\n  min_confidence: 0.9\n  max_diff_tokens: 4000\n")

        config = load_config(config_file)

        assert config.review.min_confidence == 0.9
        assert config.review.max_diff_tokens == 4000
        assert config.review.max_findings == 10

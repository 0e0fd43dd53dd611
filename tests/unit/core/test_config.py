"""Tests for the configuration system."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from lexguard.core.config import LLMConfig, Settings


@pytest.mark.unit
class TestLLMConfig:
    """Test LLMConfig model validation."""

    def test_valid_llm_config(self):
        config = LLMConfig(
            provider="openrouter",
            model="openai/gpt-5-mini",
            temperature=0.3,
            max_tokens=4000,
            timeout=30,
        )

        assert config.model == "openai/gpt-5-mini"
        assert config.timeout == 30

    @pytest.mark.parametrize(
        "field,value",
        [("temperature", -0.1), ("temperature", 2.1), ("max_tokens", 50), ("timeout", 1)],
    )
    def test_out_of_range_values_rejected(self, field, value):
        params = {
            "provider": "openrouter",
            "model": "test",
            "temperature": 0.3,
            "max_tokens": 1000,
            "timeout": 30,
        }
        params[field] = value

        with pytest.raises(ValidationError) as exc_info:
            LLMConfig(**params)

        assert field in str(exc_info.value)

    def test_config_is_frozen(self):
        config = LLMConfig(
            provider="openrouter", model="m", temperature=0.3, max_tokens=1000, timeout=30
        )
        with pytest.raises(ValidationError):
            config.model = "other"  # type: ignore[misc]


@pytest.mark.unit
class TestSettings:
    """Test defaults and derived LLM configs."""

    def test_pipeline_defaults(self, monkeypatch):
        for key in ("GENERATION_MAX_RETRIES", "MAX_CONTEXT_CHARS", "CIRCUIT_BREAKER_THRESHOLD"):
            monkeypatch.delenv(key, raising=False)
        settings = Settings(_env_file=None)

        assert settings.GENERATION_MAX_RETRIES == 2
        assert settings.CIRCUIT_BREAKER_THRESHOLD == 5
        assert settings.CIRCUIT_BREAKER_TIMEOUT == 60.0
        assert settings.MAX_CONTEXT_CHARS == 32_000
        assert settings.MAX_BATCH_SIZE == 30
        assert settings.TECHNICAL_TOPIC_NUMBERS == list(range(17, 29))

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("GENERATION_LLM_MODEL", "anthropic/claude-haiku")
        monkeypatch.setenv("GENERATION_LLM_TEMPERATURE", "0.1")
        settings = Settings(_env_file=None)

        config = settings.generation_llm_config
        assert config.model == "anthropic/claude-haiku"
        assert config.temperature == 0.1
        assert config.provider == "openrouter"

    def test_correction_config_uses_correction_keys(self, monkeypatch):
        monkeypatch.delenv("CORRECTION_LLM_TEMPERATURE", raising=False)
        settings = Settings(_env_file=None)

        assert settings.correction_llm_config.temperature == 0.4
        assert settings.correction_llm_config.max_tokens == settings.CORRECTION_LLM_MAX_TOKENS

"""
Unit tests for environment-driven settings
"""

import pytest

from carrier_screening.core.config import DEFAULT_EXTRACTION_MODEL, Settings, get_settings

ENV_VARS = (
    "ANTHROPIC_API_KEY",
    "EXTRACTION_MODEL",
    "AI_TIMEOUT_SECONDS",
    "AI_MAX_TOKENS",
    "ENABLE_AI_EXTRACTION",
    "LOG_LEVEL",
    "CORS_ORIGINS",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = get_settings()

    assert settings.anthropic_api_key is None
    assert settings.extraction_model == DEFAULT_EXTRACTION_MODEL
    assert settings.ai_timeout_seconds == 5.0
    assert settings.ai_max_tokens == 2000
    assert settings.enable_ai_extraction is True
    assert settings.log_level == "INFO"
    assert settings.ai_available is False


def test_values_from_environment(clean_env):
    clean_env.setenv("ANTHROPIC_API_KEY", "sk-test")
    clean_env.setenv("EXTRACTION_MODEL", "claude-test-model")
    clean_env.setenv("AI_TIMEOUT_SECONDS", "2.5")
    clean_env.setenv("ENABLE_AI_EXTRACTION", "false")
    clean_env.setenv("LOG_LEVEL", "debug")
    clean_env.setenv("CORS_ORIGINS", "http://a.example, http://b.example,")

    settings = get_settings()

    assert settings.anthropic_api_key == "sk-test"
    assert settings.extraction_model == "claude-test-model"
    assert settings.ai_timeout_seconds == 2.5
    assert settings.enable_ai_extraction is False
    assert settings.log_level == "DEBUG"
    assert settings.cors_origins == ["http://a.example", "http://b.example"]
    assert settings.ai_available is False


@pytest.mark.parametrize("name, raw, attribute, default", [
    ("AI_TIMEOUT_SECONDS", "soon", "ai_timeout_seconds", 5.0),
    ("AI_TIMEOUT_SECONDS", "-1", "ai_timeout_seconds", 5.0),
    ("AI_MAX_TOKENS", "lots", "ai_max_tokens", 2000),
    ("AI_MAX_TOKENS", "0", "ai_max_tokens", 2000),
])
def test_malformed_numbers_fall_back_to_defaults(clean_env, name, raw, attribute, default):
    clean_env.setenv(name, raw)

    assert getattr(get_settings(), attribute) == default


def test_ai_available_requires_key_and_flag():
    assert Settings(anthropic_api_key="k").ai_available is True
    assert Settings(anthropic_api_key="k", enable_ai_extraction=False).ai_available is False
    assert Settings().ai_available is False

"""
Tests for environment-driven configuration.
"""

import pytest

from zaruka.utils import config as config_module
from zaruka.utils.config import get_config, load_config, parse_fallbacks, reset_config

ENV_VARS = [
    "ZARUKA_PROVIDER", "ZARUKA_MODEL", "ZARUKA_API_KEY", "ZARUKA_AUTH_TOKEN",
    "ZARUKA_BASE_URL", "ZARUKA_FALLBACKS", "ZARUKA_MAX_ROUNDS",
    "ZARUKA_CONTEXT_TOKENS", "ZARUKA_RESPONSE_RESERVE", "ZARUKA_HISTORY_CHAR_CAP",
    "ZARUKA_WORKING_TTL_HOURS", "LOG_LEVEL", "OPENAI_API_KEY", "GROQ_API_KEY",
    "OPENAI_COMPATIBLE_API_KEY", "OPENAI_COMPATIBLE_BASE_URL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's local .env out of the tests
    monkeypatch.setattr(config_module, "load_dotenv", lambda: None)
    reset_config()
    yield
    reset_config()


def test_defaults(monkeypatch):
    monkeypatch.setenv("ZARUKA_PROVIDER", "anthropic")
    monkeypatch.setenv("ZARUKA_MODEL", "claude-sonnet-4-5")
    monkeypatch.setenv("ZARUKA_API_KEY", "sk-ant-test")

    config = load_config()

    assert config.ai.primary.label == "anthropic/claude-sonnet-4-5"
    assert config.ai.primary.api_key == "sk-ant-test"
    assert config.ai.fallbacks == ()
    assert config.agent.max_rounds == 10
    assert config.agent.context_tokens == 180_000
    assert config.agent.response_reserve == 8_000
    assert config.agent.history_char_cap == 1_000
    assert config.agent.working_ttl_hours == 24
    assert config.log_level == "info"


def test_overrides_and_fallbacks(monkeypatch):
    monkeypatch.setenv("ZARUKA_PROVIDER", "anthropic")
    monkeypatch.setenv("ZARUKA_MODEL", "claude-sonnet-4-5")
    monkeypatch.setenv("ZARUKA_FALLBACKS", "openai:gpt-4o, groq:llama-3.3-70b-versatile")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
    monkeypatch.setenv("GROQ_API_KEY", "gsk-groq")
    monkeypatch.setenv("ZARUKA_MAX_ROUNDS", "4")
    monkeypatch.setenv("ZARUKA_CONTEXT_TOKENS", "not-a-number")

    config = load_config()

    assert [c.label for c in config.ai.chain] == [
        "anthropic/claude-sonnet-4-5",
        "openai/gpt-4o",
        "groq/llama-3.3-70b-versatile",
    ]
    assert config.ai.fallbacks[0].api_key == "sk-openai"
    assert config.ai.fallbacks[1].api_key == "gsk-groq"
    assert config.agent.max_rounds == 4
    assert config.agent.context_tokens == 180_000


def test_missing_primary_raises():
    with pytest.raises(ValueError, match="ZARUKA_PROVIDER"):
        load_config()


def test_self_hosted_fallback_reads_prefixed_env(monkeypatch):
    monkeypatch.setenv("OPENAI_COMPATIBLE_BASE_URL", "http://localhost:11434/v1")

    fallbacks = parse_fallbacks("openai-compatible:qwen2.5")

    assert fallbacks[0].base_url == "http://localhost:11434/v1"
    assert fallbacks[0].api_key is None


@pytest.mark.parametrize("value", ["gpt-4o", "openai:", ":gpt-4o"])
def test_invalid_fallback_entry(value):
    with pytest.raises(ValueError, match="provider:model"):
        parse_fallbacks(value)


def test_get_config_is_cached_until_reset(monkeypatch):
    monkeypatch.setenv("ZARUKA_PROVIDER", "openai")
    monkeypatch.setenv("ZARUKA_MODEL", "gpt-4o")

    first = get_config()
    monkeypatch.setenv("ZARUKA_MODEL", "gpt-4o-mini")

    assert get_config() is first
    reset_config()
    assert get_config().ai.primary.model_id == "gpt-4o-mini"

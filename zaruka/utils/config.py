"""
Configuration Management
========================

All environment-driven settings of the agent core live here. Values are
read once, validated, and exposed as frozen dataclasses so the rest of the
package never calls os.getenv() directly.

Provider chain:
    ZARUKA_PROVIDER / ZARUKA_MODEL select the primary model.
    ZARUKA_FALLBACKS lists ordered fallbacks as "provider:model" pairs:

        ZARUKA_FALLBACKS=openai:gpt-4o,groq:llama-3.3-70b-versatile

    Credentials for a fallback come from <PROVIDER>_API_KEY and an optional
    <PROVIDER>_BASE_URL (e.g. OPENAI_API_KEY, GROQ_API_KEY).

Usage:
    from zaruka.utils.config import get_config

    config = get_config()
    print(config.ai.primary.label)
    print(config.agent.max_rounds)
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from zaruka.providers import ProviderConfig


def _required(name: str) -> str:
    """
    Get a required environment variable.

    Raises:
        ValueError: If the variable is not set
    """
    value = os.getenv(name)
    if not value:
        raise ValueError(
            f"Missing required environment variable: {name}\n"
            f"Please ensure {name} is set in your .env file."
        )
    return value


def _optional(name: str, default: str | None) -> str | None:
    """Get an optional environment variable with a default."""
    return os.getenv(name) or default


def _optional_int(name: str, default: int) -> int:
    """
    Get an optional integer environment variable.

    Invalid values fall back to the default with a warning.
    """
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        print(f"Warning: {name} is not a valid integer, using default: {default}")
        return default


def _env_prefix(provider_id: str) -> str:
    """"openai-compatible" -> "OPENAI_COMPATIBLE"."""
    return provider_id.upper().replace("-", "_")


def parse_fallbacks(value: str | None) -> list[ProviderConfig]:
    """
    Parse a ZARUKA_FALLBACKS value into provider configs.

    Args:
        value: Comma-separated "provider:model" pairs

    Returns:
        Ordered list of fallback configs (empty when unset)

    Raises:
        ValueError: If an entry is not of the form provider:model
    """
    if not value:
        return []

    fallbacks = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        provider_id, sep, model_id = entry.partition(":")
        if not sep or not provider_id or not model_id:
            raise ValueError(
                f"Invalid ZARUKA_FALLBACKS entry: {entry!r} (expected provider:model)"
            )
        prefix = _env_prefix(provider_id)
        fallbacks.append(ProviderConfig(
            provider_id=provider_id,
            model_id=model_id,
            api_key=os.getenv(f"{prefix}_API_KEY"),
            base_url=os.getenv(f"{prefix}_BASE_URL"),
        ))
    return fallbacks


# ==============================================================================
# Configuration Dataclasses
# ==============================================================================

@dataclass(frozen=True)
class AIConfig:
    """Model providers: the primary and its ordered fallbacks."""
    primary: ProviderConfig
    fallbacks: tuple[ProviderConfig, ...] = field(default_factory=tuple)

    @property
    def chain(self) -> list[ProviderConfig]:
        """Primary first, then fallbacks in order."""
        return [self.primary, *self.fallbacks]


@dataclass(frozen=True)
class AgentConfig:
    """Limits of the orchestration core."""
    max_rounds: int             # Tool-calling rounds per attempt
    context_tokens: int         # Context ceiling for one request
    response_reserve: int       # Tokens kept free for the reply
    history_char_cap: int       # Per-turn truncation of history text
    working_ttl_hours: int      # Lifetime of cached "working" phrases


@dataclass(frozen=True)
class AppConfig:
    """
    Root configuration object.

        config = get_config()
        config.ai.primary.model_id
        config.agent.context_tokens
    """
    ai: AIConfig
    agent: AgentConfig
    log_level: str


def load_config() -> AppConfig:
    """
    Load and validate configuration from the environment and .env.

    Raises:
        ValueError: If required configuration is missing or malformed
    """
    load_dotenv()

    primary = ProviderConfig(
        provider_id=_required("ZARUKA_PROVIDER"),
        model_id=_required("ZARUKA_MODEL"),
        api_key=_optional("ZARUKA_API_KEY", None),
        auth_token=_optional("ZARUKA_AUTH_TOKEN", None),
        base_url=_optional("ZARUKA_BASE_URL", None),
    )

    return AppConfig(
        ai=AIConfig(
            primary=primary,
            fallbacks=tuple(parse_fallbacks(os.getenv("ZARUKA_FALLBACKS"))),
        ),
        agent=AgentConfig(
            max_rounds=_optional_int("ZARUKA_MAX_ROUNDS", 10),
            context_tokens=_optional_int("ZARUKA_CONTEXT_TOKENS", 180_000),
            response_reserve=_optional_int("ZARUKA_RESPONSE_RESERVE", 8_000),
            history_char_cap=_optional_int("ZARUKA_HISTORY_CHAR_CAP", 1_000),
            working_ttl_hours=_optional_int("ZARUKA_WORKING_TTL_HOURS", 24),
        ),
        log_level=_optional("LOG_LEVEL", "info"),
    )


_config_instance: AppConfig | None = None


def get_config() -> AppConfig:
    """Get the configuration, loading it on first access."""
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def reset_config() -> None:
    """Forget the cached configuration so the next get_config() reloads it."""
    global _config_instance
    _config_instance = None

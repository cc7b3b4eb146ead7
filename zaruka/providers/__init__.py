"""
Model Providers
===============

Resolves a ProviderConfig to a ModelHandle. Dispatch on the provider id
happens exactly once, here; the orchestration code only sees the handle.

    handle = create_model_handle(ProviderConfig("groq", "llama-3.3-70b-versatile", api_key=...))

Supported providers:
- anthropic: Anthropic Messages API
- openai, google, deepseek, groq, xai, qwen: OpenAI-protocol endpoints
- openai-compatible: any self-hosted OpenAI-protocol server (needs base_url)
"""

from zaruka.providers.base import (
    PROVIDER_BASE_URLS,
    ModelHandle,
    ModelTurn,
    ProviderConfig,
    StreamChunk,
    ToolCall,
    Usage,
)
from zaruka.providers.anthropic import AnthropicHandle
from zaruka.providers.openai import OpenAIHandle

# Human-readable labels for each provider
PROVIDER_LABELS: dict[str, str] = {
    "anthropic": "Anthropic (Claude)",
    "openai": "OpenAI (GPT)",
    "google": "Google (Gemini)",
    "deepseek": "DeepSeek",
    "groq": "Groq",
    "xai": "xAI (Grok)",
    "qwen": "Qwen",
    "openai-compatible": "Self-hosted (Ollama, etc.)",
}

OPENAI_PROTOCOL_PROVIDERS = frozenset(PROVIDER_LABELS) - {"anthropic"}


def create_model_handle(config: ProviderConfig) -> ModelHandle:
    """
    Build the handle for a provider config.

    Raises:
        ValueError: If the provider is unknown
    """
    if config.provider_id == "anthropic":
        return AnthropicHandle(config)
    if config.provider_id in OPENAI_PROTOCOL_PROVIDERS:
        return OpenAIHandle(config)
    raise ValueError(f"Unknown AI provider: {config.provider_id}")


__all__ = [
    "PROVIDER_BASE_URLS",
    "PROVIDER_LABELS",
    "AnthropicHandle",
    "ModelHandle",
    "ModelTurn",
    "OpenAIHandle",
    "ProviderConfig",
    "StreamChunk",
    "ToolCall",
    "Usage",
    "create_model_handle",
]

"""
Usage Accounting
================

One UsageEvent is emitted per successful request, keyed by the model that
actually served it (a fallback when the primary failed over). The caller's
usage ledger persists it; cost is derived from a per-1M-token price table.
"""

from dataclasses import dataclass
from typing import Callable

from zaruka.providers.base import Usage

# USD per 1M tokens
PRICING: dict[str, tuple[float, float]] = {
    # Anthropic
    "claude-opus-4-6": (15.00, 75.00),
    "claude-sonnet-4-5": (3.00, 15.00),
    "claude-haiku-4-5": (0.80, 4.00),
    # OpenAI
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (2.50, 10.00),
    "gpt-4-turbo": (10.00, 30.00),
    "gpt-3.5-turbo": (0.50, 1.50),
    "gpt-4": (30.00, 60.00),
    "o1-mini": (3.00, 12.00),
    "o1": (15.00, 60.00),
    "o3-mini": (1.10, 4.40),
    # Free / self-hosted
    "llama": (0.0, 0.0),
    "mistral": (0.0, 0.0),
    "mixtral": (0.0, 0.0),
    "qwen": (0.0, 0.0),
    "deepseek": (0.0, 0.0),
    "phi": (0.0, 0.0),
    "gemma": (0.0, 0.0),
}


def calculate_cost(model_id: str, input_tokens: int, output_tokens: int) -> float:
    """
    Price a request in USD.

    Exact model match first, then the first table key the model id starts
    with (so "gpt-4o-2024-05-13" is priced as "gpt-4o"). Unknown models are
    assumed self-hosted and cost nothing.
    """
    pricing = PRICING.get(model_id)

    if pricing is None:
        lower = model_id.lower()
        for key, value in PRICING.items():
            if lower.startswith(key.lower()):
                pricing = value
                break

    if pricing is None:
        return 0.0

    input_price, output_price = pricing
    return (input_tokens * input_price + output_tokens * output_price) / 1_000_000


@dataclass(frozen=True)
class UsageEvent:
    """Token usage of one successful request."""
    model_id: str
    input_tokens: int
    output_tokens: int

    @classmethod
    def from_usage(cls, model_id: str, usage: Usage) -> "UsageEvent":
        return cls(model_id=model_id, input_tokens=usage.input_tokens, output_tokens=usage.output_tokens)

    @property
    def cost_usd(self) -> float:
        return calculate_cost(self.model_id, self.input_tokens, self.output_tokens)


UsageCallback = Callable[[UsageEvent], None]

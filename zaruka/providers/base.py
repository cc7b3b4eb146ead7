"""
Model Handle Interface
======================

Every provider is reached through a ModelHandle. The handle is chosen once,
when a ProviderConfig is resolved, and the orchestration code only ever
talks to this interface:

    turn = await handle.generate(system_prompt, messages, tools)

    async for chunk in handle.stream(system_prompt, messages, tools):
        if chunk.text:
            print(chunk.text, end="")
        if chunk.turn:
            final = chunk.turn

One call is one round: the model answers with text and/or tool calls. The
round loop that executes tools and calls the model again lives in the
StepExecutor, not here.

Messages use the OpenAI chat format throughout the package; handles for
other APIs convert on the way out.
"""

import base64
import binascii
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from zaruka.utils.logger import Logger

logger = Logger("Providers")


# Known base URLs for providers speaking the OpenAI protocol
PROVIDER_BASE_URLS: dict[str, str] = {
    "deepseek": "https://api.deepseek.com",
    "groq": "https://api.groq.com/openai/v1",
    "xai": "https://api.x.ai/v1",
    "google": "https://generativelanguage.googleapis.com/v1beta/openai/",
    "qwen": "https://dashscope-intl.aliyuncs.com/compatible-mode/v1",
}


@dataclass(frozen=True)
class ProviderConfig:
    """
    One invocable model.

    Attributes:
        provider_id: "anthropic", "openai", "deepseek", "openai-compatible", ...
        model_id: Model name as the provider knows it
        api_key: API key credential
        auth_token: Bearer token credential (OAuth subscriptions)
        base_url: Endpoint override
    """
    provider_id: str
    model_id: str
    api_key: str | None = field(default=None, repr=False)
    auth_token: str | None = field(default=None, repr=False)
    base_url: str | None = None

    @property
    def label(self) -> str:
        """Short identifier used in logs, e.g. "openai/gpt-4o"."""
        return f"{self.provider_id}/{self.model_id}"


@dataclass
class Usage:
    """Token counts reported by a provider."""
    input_tokens: int = 0
    output_tokens: int = 0

    def add(self, other: "Usage") -> None:
        """Accumulate another round's usage into this one."""
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class ToolCall:
    """
    A tool call requested by the model.

    Attributes:
        id: The tool call ID (for matching results)
        name: The tool name
        arguments: Parsed arguments dict
    """
    id: str
    name: str
    arguments: dict[str, Any]

    def to_openai(self) -> dict:
        """Format for an assistant message's tool_calls list."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": json.dumps(self.arguments)
            }
        }


@dataclass
class ModelTurn:
    """
    The model's output for one round.

    Attributes:
        text: Prose produced in this round (may be empty)
        tool_calls: Tools the model wants executed before it continues
        usage: Tokens consumed by this round
    """
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)


@dataclass
class StreamChunk:
    """
    One item of a streamed round.

    Text chunks carry a delta; the last chunk carries the complete turn.
    """
    text: str = ""
    turn: ModelTurn | None = None

    @property
    def is_final(self) -> bool:
        return self.turn is not None


def parse_arguments(raw: str | dict | None) -> dict[str, Any]:
    """
    Parse tool call arguments produced by the model.

    Malformed JSON is logged and replaced with an empty dict so the tool
    still runs and can report the missing parameters itself.
    """
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse tool arguments: {e}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def to_data_url(media_type: str, data: bytes) -> str:
    """Encode bytes as a base64 data URL."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


def split_data_url(url: str) -> tuple[str, str] | None:
    """
    Split a base64 data URL into (media_type, base64 payload).

    Returns None for anything that is not a base64 data URL.
    """
    if not url.startswith("data:"):
        return None
    header, sep, payload = url[5:].partition(",")
    if not sep or not header.endswith(";base64"):
        return None
    return header[: -len(";base64")], payload


def decode_data_url(url: str) -> tuple[str, bytes] | None:
    """Like split_data_url, but decodes the payload to bytes."""
    parts = split_data_url(url)
    if parts is None:
        return None
    media_type, payload = parts
    try:
        return media_type, base64.b64decode(payload)
    except (binascii.Error, ValueError):
        return None


class ModelHandle(ABC):
    """
    A bound, invocable model.

    Subclasses wrap one provider SDK. Errors raised by the SDK must
    propagate unchanged: the failover logic classifies them by their
    original type and message.
    """

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    def provider_id(self) -> str:
        return self.config.provider_id

    @property
    def model_id(self) -> str:
        return self.config.model_id

    @property
    def label(self) -> str:
        return self.config.label

    @abstractmethod
    async def generate(
        self,
        system_prompt: str,
        messages: list[dict],
        tools: list[dict]
    ) -> ModelTurn:
        """
        Run one round and return the complete turn.

        Args:
            system_prompt: System instructions
            messages: Conversation in OpenAI chat format (no system message)
            tools: Tool definitions in OpenAI function format
        """

    @abstractmethod
    def stream(
        self,
        system_prompt: str,
        messages: list[dict],
        tools: list[dict]
    ) -> AsyncIterator[StreamChunk]:
        """
        Run one round, yielding text deltas in arrival order and finally a
        chunk carrying the complete turn.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.label})"

"""
Anthropic Handle
================

Talks to the Anthropic Messages API. The rest of the package speaks the
OpenAI chat format, so this handle converts on the way out:

    OpenAI format                         Anthropic format
    ─────────────                         ────────────────
    system message                        system= parameter
    image_url part (data URL)             image block, base64 source
    file part (PDF / text)                document block
    assistant.tool_calls                  tool_use blocks
    role="tool" messages                  user message of tool_result blocks
    {"type": "function", ...} tools       {"name", "description", "input_schema"}

Authentication is either an API key or a bearer token from an OAuth
subscription.
"""

import base64
from typing import AsyncIterator

from anthropic import AsyncAnthropic

from zaruka.providers.base import (
    ModelHandle,
    ModelTurn,
    ProviderConfig,
    StreamChunk,
    ToolCall,
    Usage,
    parse_arguments,
    split_data_url,
)


def _convert_part(part: dict) -> dict:
    """Convert one OpenAI content part to an Anthropic content block."""
    kind = part.get("type")

    if kind == "image_url":
        url = part["image_url"]["url"]
        parts = split_data_url(url)
        if parts is None:
            return {"type": "image", "source": {"type": "url", "url": url}}
        media_type, data = parts
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": media_type, "data": data}
        }

    if kind == "file":
        file = part["file"]
        filename = file.get("filename") or "file"
        parts = split_data_url(file.get("file_data", ""))
        if parts is not None:
            media_type, data = parts
            if media_type == "application/pdf":
                return {
                    "type": "document",
                    "source": {"type": "base64", "media_type": media_type, "data": data},
                    "title": filename
                }
            if media_type.startswith("text/"):
                text = base64.b64decode(data).decode("utf-8", errors="replace")
                return {
                    "type": "document",
                    "source": {"type": "text", "media_type": "text/plain", "data": text},
                    "title": filename
                }
            return {"type": "text", "text": f"[Attached file {filename} ({media_type}) is not readable here]"}
        return {"type": "text", "text": f"[Attached file {filename}]"}

    return part


def _is_tool_results(message: dict) -> bool:
    content = message.get("content")
    return (
        message["role"] == "user"
        and isinstance(content, list)
        and bool(content)
        and all(block.get("type") == "tool_result" for block in content)
    )


def to_anthropic_messages(messages: list[dict]) -> list[dict]:
    """
    Convert an OpenAI-format conversation to Anthropic messages.

    Consecutive tool results are merged into one user message, as the
    Messages API requires.
    """
    converted: list[dict] = []

    for message in messages:
        role = message["role"]

        if role == "system":
            continue

        if role == "tool":
            block = {
                "type": "tool_result",
                "tool_use_id": message["tool_call_id"],
                "content": message.get("content") or ""
            }
            if converted and _is_tool_results(converted[-1]):
                converted[-1]["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
            continue

        if role == "assistant":
            tool_calls = message.get("tool_calls") or []
            if not tool_calls:
                converted.append({"role": "assistant", "content": message.get("content") or ""})
                continue
            blocks = []
            if message.get("content"):
                blocks.append({"type": "text", "text": message["content"]})
            for call in tool_calls:
                blocks.append({
                    "type": "tool_use",
                    "id": call["id"],
                    "name": call["function"]["name"],
                    "input": parse_arguments(call["function"].get("arguments"))
                })
            converted.append({"role": "assistant", "content": blocks})
            continue

        content = message.get("content")
        if isinstance(content, list):
            content = [_convert_part(part) for part in content]
        converted.append({"role": "user", "content": content})

    return converted


def to_anthropic_tools(tools: list[dict]) -> list[dict]:
    """Convert OpenAI function definitions to Anthropic tool definitions."""
    return [
        {
            "name": tool["function"]["name"],
            "description": tool["function"].get("description", ""),
            "input_schema": tool["function"].get("parameters") or {"type": "object", "properties": {}}
        }
        for tool in tools
    ]


class AnthropicHandle(ModelHandle):
    """
    Claude models through the Messages API.

    Example:
        handle = AnthropicHandle(ProviderConfig("anthropic", "claude-sonnet-4-5", api_key="sk-ant-..."))
        turn = await handle.generate("You are helpful.", messages, tools)
    """

    DEFAULT_MAX_TOKENS = 8192

    def __init__(
        self,
        config: ProviderConfig,
        client: AsyncAnthropic | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS
    ):
        """
        Args:
            config: Provider configuration
            client: Pre-built client (tests inject a mock here)
            max_tokens: Output cap for one round
        """
        super().__init__(config)
        self.max_tokens = max_tokens

        if client is None:
            kwargs = {}
            if config.api_key:
                kwargs["api_key"] = config.api_key
            if config.auth_token:
                kwargs["auth_token"] = config.auth_token
            if config.base_url:
                kwargs["base_url"] = config.base_url
            client = AsyncAnthropic(**kwargs)
        self.client = client

    def _request(self, system_prompt: str, messages: list[dict], tools: list[dict]) -> dict:
        request = {
            "model": self.model_id,
            "max_tokens": self.max_tokens,
            "messages": to_anthropic_messages(messages),
        }
        if system_prompt:
            request["system"] = system_prompt
        if tools:
            request["tools"] = to_anthropic_tools(tools)
        return request

    @staticmethod
    def _to_turn(response) -> ModelTurn:
        text = ""
        tool_calls = []
        for block in response.content:
            if block.type == "text":
                text += block.text
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(id=block.id, name=block.name, arguments=dict(block.input or {})))

        return ModelTurn(
            text=text,
            tool_calls=tool_calls,
            usage=Usage(
                input_tokens=response.usage.input_tokens or 0,
                output_tokens=response.usage.output_tokens or 0,
            ),
        )

    async def generate(
        self,
        system_prompt: str,
        messages: list[dict],
        tools: list[dict]
    ) -> ModelTurn:
        response = await self.client.messages.create(**self._request(system_prompt, messages, tools))
        return self._to_turn(response)

    async def stream(
        self,
        system_prompt: str,
        messages: list[dict],
        tools: list[dict]
    ) -> AsyncIterator[StreamChunk]:
        async with self.client.messages.stream(**self._request(system_prompt, messages, tools)) as stream:
            async for text in stream.text_stream:
                if text:
                    yield StreamChunk(text=text)
            final = await stream.get_final_message()

        yield StreamChunk(turn=self._to_turn(final))

"""
OpenAI Handle
=============

Talks to OpenAI and to every provider that speaks the same chat
completions protocol (DeepSeek, Groq, xAI, Gemini's compatibility
endpoint, Qwen, Ollama and other self-hosted servers).
"""

from typing import AsyncIterator

from openai import AsyncOpenAI

from zaruka.providers.base import (
    PROVIDER_BASE_URLS,
    ModelHandle,
    ModelTurn,
    ProviderConfig,
    StreamChunk,
    ToolCall,
    Usage,
    parse_arguments,
)
from zaruka.utils.logger import Logger

logger = Logger("OpenAI")


def resolve_base_url(config: ProviderConfig) -> str | None:
    """
    Pick the endpoint for a config.

    Raises:
        ValueError: For a self-hosted provider without a base URL
    """
    if config.base_url:
        return config.base_url
    if config.provider_id == "openai-compatible":
        raise ValueError("openai-compatible provider requires a base_url")
    return PROVIDER_BASE_URLS.get(config.provider_id)


class OpenAIHandle(ModelHandle):
    """
    Chat completions with function calling.

    Example:
        handle = OpenAIHandle(ProviderConfig("openai", "gpt-4o", api_key="sk-..."))
        turn = await handle.generate("You are helpful.", messages, tools)
    """

    def __init__(self, config: ProviderConfig, client: AsyncOpenAI | None = None):
        """
        Args:
            config: Provider configuration
            client: Pre-built client (tests inject a mock here)
        """
        super().__init__(config)
        self.client = client or AsyncOpenAI(
            # Self-hosted servers usually ignore the key but the SDK needs one
            api_key=config.api_key or "no-key",
            base_url=resolve_base_url(config),
        )

    def _request(self, system_prompt: str, messages: list[dict], tools: list[dict]) -> dict:
        request = {
            "model": self.model_id,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
        }
        if tools:
            request["tools"] = tools
            request["tool_choice"] = "auto"
        return request

    async def generate(
        self,
        system_prompt: str,
        messages: list[dict],
        tools: list[dict]
    ) -> ModelTurn:
        response = await self.client.chat.completions.create(
            **self._request(system_prompt, messages, tools)
        )

        message = response.choices[0].message
        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=parse_arguments(tc.function.arguments)
            )
            for tc in message.tool_calls or []
        ]

        usage = Usage()
        if response.usage:
            usage = Usage(
                input_tokens=response.usage.prompt_tokens or 0,
                output_tokens=response.usage.completion_tokens or 0,
            )

        return ModelTurn(text=message.content or "", tool_calls=tool_calls, usage=usage)

    async def stream(
        self,
        system_prompt: str,
        messages: list[dict],
        tools: list[dict]
    ) -> AsyncIterator[StreamChunk]:
        stream = await self.client.chat.completions.create(
            **self._request(system_prompt, messages, tools),
            stream=True,
            stream_options={"include_usage": True},
        )

        text_parts: list[str] = []
        # Tool calls arrive in fragments keyed by their index
        partial_calls: dict[int, dict[str, str]] = {}
        usage = Usage()

        async for chunk in stream:
            if chunk.usage:
                usage = Usage(
                    input_tokens=chunk.usage.prompt_tokens or 0,
                    output_tokens=chunk.usage.completion_tokens or 0,
                )
            if not chunk.choices:
                continue

            delta = chunk.choices[0].delta
            if delta.content:
                text_parts.append(delta.content)
                yield StreamChunk(text=delta.content)

            for fragment in delta.tool_calls or []:
                slot = partial_calls.setdefault(
                    fragment.index, {"id": "", "name": "", "arguments": ""}
                )
                if fragment.id:
                    slot["id"] = fragment.id
                if fragment.function:
                    if fragment.function.name:
                        slot["name"] = fragment.function.name
                    if fragment.function.arguments:
                        slot["arguments"] += fragment.function.arguments

        tool_calls = [
            ToolCall(id=slot["id"], name=slot["name"], arguments=parse_arguments(slot["arguments"]))
            for _, slot in sorted(partial_calls.items())
        ]
        logger.debug(
            f"{self.label} streamed {len(text_parts)} deltas, {len(tool_calls)} tool calls"
        )
        yield StreamChunk(turn=ModelTurn(text="".join(text_parts), tool_calls=tool_calls, usage=usage))

"""
Tests for the Assistant facade: budgeting, retry, failover and usage.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from helpers import ScriptedHandle, answer, call_tool
from zaruka.agent.context import ConversationTurn
from zaruka.agent.core import Assistant
from zaruka.agent.errors import AssistantCancelled, PromptTooLongError
from zaruka.agent.usage import UsageEvent
from zaruka.utils.config import AgentConfig, AIConfig, AppConfig
from zaruka.utils.logger import Logger, LogLevel, set_default_level


def history(count: int) -> list[ConversationTurn]:
    return [
        ConversationTurn(role="user" if i % 2 == 0 else "assistant", text=f"turn {i}")
        for i in range(count)
    ]


def make_assistant(primary_config, tool_registry, scripts, fallbacks=(), **kwargs):
    """Assistant whose handles are ScriptedHandles keyed by config label."""
    handles = {}
    for config, script in zip([primary_config, *fallbacks], scripts):
        handles[config.label] = ScriptedHandle(config, script)

    assistant = Assistant(
        primary=primary_config,
        fallbacks=fallbacks,
        tools=tool_registry,
        system_prompt="You are a helpful assistant.",
        handle_factory=lambda config: handles[config.label],
        **kwargs,
    )
    return assistant, handles


class TestProcess:
    """Tests for the buffered entry point."""

    @pytest.mark.asyncio
    async def test_reply_and_usage(self, primary_config, tool_registry):
        on_usage = MagicMock()
        assistant, _ = make_assistant(
            primary_config, tool_registry, [[answer("Hi there", 100, 20)]], on_usage=on_usage
        )

        result = await assistant.process("hello", history=history(4))

        assert result.text == "Hi there"
        assert result.switched_to is None
        on_usage.assert_called_once_with(UsageEvent("claude-sonnet-4-5", 100, 20))

    @pytest.mark.asyncio
    async def test_history_is_sent_before_message(self, primary_config, tool_registry):
        assistant, handles = make_assistant(primary_config, tool_registry, [[answer("ok")]])

        await assistant.process("now", history=history(3))

        sent = handles[primary_config.label].calls[0]
        assert [m["content"] for m in sent] == ["turn 0", "turn 1", "turn 2", "now"]

    @pytest.mark.asyncio
    async def test_usage_sums_rounds(self, primary_config, tool_registry):
        on_usage = MagicMock()
        assistant, _ = make_assistant(
            primary_config,
            tool_registry,
            [[call_tool("echo", {"text": "a"}), answer("done", 10, 5)]],
            on_usage=on_usage,
        )

        result = await assistant.process("use a tool")

        assert result.used_tools is True
        assert on_usage.call_args.args[0] == UsageEvent("claude-sonnet-4-5", 13, 7)

    @pytest.mark.asyncio
    async def test_fallback_serves_and_is_billed(self, primary_config, fallback_configs, tool_registry):
        on_usage = MagicMock()
        assistant, handles = make_assistant(
            primary_config,
            tool_registry,
            [[RuntimeError("529 overloaded")], [answer("from gpt", 50, 10)], [answer("unused")]],
            fallbacks=fallback_configs,
            on_usage=on_usage,
        )

        result = await assistant.process("hello")

        assert result.text == "from gpt"
        assert result.switched_to == fallback_configs[0]
        assert handles["groq/llama-3.3-70b-versatile"].call_count == 0
        on_usage.assert_called_once_with(UsageEvent("gpt-4o", 50, 10))

    @pytest.mark.asyncio
    async def test_no_usage_on_failure(self, primary_config, tool_registry):
        on_usage = MagicMock()
        assistant, _ = make_assistant(
            primary_config, tool_registry, [[ValueError("bad request")]], on_usage=on_usage
        )

        with pytest.raises(ValueError):
            await assistant.process("hello")

        on_usage.assert_not_called()

    @pytest.mark.asyncio
    async def test_usage_callback_failure_does_not_lose_reply(self, primary_config, tool_registry):
        on_usage = MagicMock(side_effect=RuntimeError("ledger offline"))
        assistant, _ = make_assistant(
            primary_config, tool_registry, [[answer("still here")]], on_usage=on_usage
        )

        result = await assistant.process("hello")

        assert result.text == "still here"
        on_usage.assert_called_once()

    @pytest.mark.asyncio
    async def test_cancelled_request(self, primary_config, tool_registry):
        cancel = asyncio.Event()
        cancel.set()
        assistant, handles = make_assistant(primary_config, tool_registry, [[answer("never")]])

        with pytest.raises(AssistantCancelled):
            await assistant.process("hello", cancel=cancel)

        assert handles[primary_config.label].call_count == 0


class TestPromptTooLong:
    """Tests for the history-free retry."""

    @pytest.mark.asyncio
    async def test_retry_without_history(self, primary_config, tool_registry):
        assistant, handles = make_assistant(
            primary_config,
            tool_registry,
            [[RuntimeError("prompt is too long: 250000 tokens"), answer("short answer")]],
        )

        result = await assistant.process("summarize", history=history(5))

        calls = handles[primary_config.label].calls
        assert len(calls[0]) == 6
        assert calls[1] == [{"role": "user", "content": "summarize"}]
        assert result.text == "short answer"

    @pytest.mark.asyncio
    async def test_retry_too_long_raises_prompt_too_long(self, primary_config, tool_registry):
        assistant, handles = make_assistant(
            primary_config,
            tool_registry,
            [[RuntimeError("prompt is too long"), RuntimeError("context_length_exceeded")]],
        )

        with pytest.raises(PromptTooLongError) as exc_info:
            await assistant.process("x" * 100, history=history(5))

        assert "too long" in str(exc_info.value)
        assert handles[primary_config.label].call_count == 2

    @pytest.mark.asyncio
    async def test_retriable_retry_error_is_not_reported_as_too_long(self, primary_config, tool_registry):
        error = RuntimeError("503 Service Unavailable")
        assistant, _ = make_assistant(
            primary_config, tool_registry, [[RuntimeError("prompt is too long"), error]]
        )

        with pytest.raises(RuntimeError) as exc_info:
            await assistant.process("hi", history=history(2))

        assert exc_info.value is error
        assert exc_info.value.__context__ is None

    @pytest.mark.asyncio
    async def test_other_retry_error_is_raised_as_is(self, primary_config, tool_registry):
        error = ValueError("400 invalid schema")
        assistant, _ = make_assistant(
            primary_config, tool_registry, [[RuntimeError("prompt is too long"), error]]
        )

        with pytest.raises(ValueError) as exc_info:
            await assistant.process("hi", history=history(2))

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_retry_fails_over(self, primary_config, fallback_configs, tool_registry):
        assistant, handles = make_assistant(
            primary_config,
            tool_registry,
            [
                [RuntimeError("prompt is too long"), RuntimeError("429 rate limited")],
                [answer("fallback answer")],
            ],
            fallbacks=fallback_configs[:1],
        )

        result = await assistant.process("hi", history=history(3))

        assert result.text == "fallback answer"
        assert result.switched_to == fallback_configs[0]
        assert handles["openai/gpt-4o"].calls[0] == [{"role": "user", "content": "hi"}]


class TestProcessStream:
    """Tests for the streaming entry point."""

    @pytest.mark.asyncio
    async def test_stream_matches_buffered(self, primary_config, tool_registry):
        script = [call_tool("echo", {"text": "x"}), answer("The streamed reply text")]
        buffered, _ = make_assistant(primary_config, tool_registry, [list(script)])
        streaming, _ = make_assistant(primary_config, tool_registry, [list(script)])
        deltas = []

        plain = await buffered.process("hi")
        streamed = await streaming.process_stream("hi", deltas.append)

        assert streamed.text == plain.text
        assert "".join(deltas) == plain.text

    @pytest.mark.asyncio
    async def test_stream_keeps_prose_of_tool_rounds(self, primary_config, tool_registry):
        script = [call_tool("echo", {"text": "x"}, text="Let me look."), answer("Found it.")]
        buffered, _ = make_assistant(primary_config, tool_registry, [list(script)])
        streaming, _ = make_assistant(primary_config, tool_registry, [list(script)])
        deltas = []

        plain = await buffered.process("hi")
        streamed = await streaming.process_stream("hi", deltas.append)

        # The reply is the final answer; the stream also showed the earlier prose
        assert plain.text == streamed.text == "Found it."
        assert "".join(deltas) == "Let me look.\n\nFound it."

    @pytest.mark.asyncio
    async def test_stream_fails_over_before_any_text(self, primary_config, fallback_configs, tool_registry):
        deltas = []
        assistant, _ = make_assistant(
            primary_config,
            tool_registry,
            [[RuntimeError("ECONNREFUSED")], [answer("backup")]],
            fallbacks=fallback_configs[:1],
        )

        result = await assistant.process_stream("hi", deltas.append)

        assert "".join(deltas) == result.text == "backup"
        assert result.switched_to == fallback_configs[0]


def app_config(primary, fallbacks=(), log_level="info"):
    return AppConfig(
        ai=AIConfig(primary=primary, fallbacks=tuple(fallbacks)),
        agent=AgentConfig(
            max_rounds=4,
            context_tokens=50_000,
            response_reserve=2_000,
            history_char_cap=500,
            working_ttl_hours=24,
        ),
        log_level=log_level,
    )


class TestFromConfig:
    """Tests for Assistant.from_config()."""

    @pytest.fixture(autouse=True)
    def restore_log_level(self):
        previous = Logger().level
        yield
        set_default_level(previous)

    def test_builds_chain_and_limits(self, primary_config, fallback_configs, tool_registry):
        assistant = Assistant.from_config(app_config(primary_config, fallback_configs), tool_registry, "system")

        assert assistant.primary == primary_config
        assert assistant.configs == (primary_config, *fallback_configs)
        assert assistant.step_executor.max_rounds == 4
        assert assistant.builder.context_ceiling == 50_000
        assert assistant.builder.response_reserve == 2_000
        assert assistant.builder.history_char_cap == 500
        assert [c.handle.label for c in assistant.failover.candidates] == [
            "anthropic/claude-sonnet-4-5",
            "openai/gpt-4o",
            "groq/llama-3.3-70b-versatile",
        ]

    def test_applies_log_level(self, primary_config, tool_registry):
        pinned = Logger("Pinned", LogLevel.DEBUG)

        Assistant.from_config(app_config(primary_config, log_level="error"), tool_registry, "system")

        assert Logger("Fresh").level is LogLevel.ERROR
        assert not Logger("Fresh").is_enabled(LogLevel.WARNING)
        assert pinned.level is LogLevel.DEBUG

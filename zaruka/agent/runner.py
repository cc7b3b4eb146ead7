"""
Step Executor
=============

Drives one attempt: a bounded exchange with a single model.

Round Loop:
    messages
       │
       ▼
    model round ──── error ───► remember it, stop
       │
       ▼
    tool calls? ── no ──► terminal answer, stop
       │ yes
       ▼
    execute tools, append results
       │
       └──► next round (at most max_rounds)

Result text:
    The terminal answer when it has text. Models sometimes spend the last
    round on tool calls only, so otherwise the prose of every round is
    joined with blank lines.

Errors:
    A round that fails stops the loop. If nothing usable was produced, the
    error the handle raised is re-raised as-is; callers key rate-limit
    messages and failover decisions off its text, so it is never replaced
    by a generic "no output" error.

Streaming:
    run_stream() relays every text delta to the caller's sink in arrival
    order, before reading the next one. When a later round starts talking
    after an earlier round already did, a blank-line separator delta is
    sent first so the relayed text reads like the joined result.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from zaruka.agent.errors import AssistantCancelled
from zaruka.agent.tools_executor import ToolExecutor, assistant_message
from zaruka.providers.base import ModelHandle, ModelTurn, Usage
from zaruka.tools import ToolRegistry
from zaruka.utils.logger import Logger

logger = Logger("StepExecutor")

DEFAULT_MAX_ROUNDS = 10
ROUND_SEPARATOR = "\n\n"

TextSink = Callable[[str], "None | Awaitable[None]"]


@dataclass
class StepResult:
    """
    Outcome of one attempt.

    Attributes:
        text: Final reply text (may be empty, see run())
        used_tools: Whether any round issued a tool call
        usage: Tokens summed over all rounds
        rounds: Number of model rounds made
    """
    text: str
    used_tools: bool = False
    usage: Usage = field(default_factory=Usage)
    rounds: int = 0


class _DeltaRelay:
    """Delivers deltas to the caller's sink, inserting round separators."""

    def __init__(self, sink: TextSink):
        self._sink = sink
        self._emitted = False
        self._needs_separator = False

    def start_round(self) -> None:
        self._needs_separator = self._emitted

    async def emit(self, delta: str) -> None:
        if self._needs_separator:
            self._needs_separator = False
            await self._deliver(ROUND_SEPARATOR)
        self._emitted = True
        await self._deliver(delta)

    async def _deliver(self, delta: str) -> None:
        result = self._sink(delta)
        if inspect.isawaitable(result):
            await result


def check_cancelled(cancel: asyncio.Event | None) -> None:
    """Raise AssistantCancelled if the caller's cancel signal is set."""
    if cancel is not None and cancel.is_set():
        raise AssistantCancelled("Request cancelled")


class StepExecutor:
    """
    Runs the round loop against one model handle.

    Example:
        executor = StepExecutor(max_rounds=10)
        result = await executor.run(handle, system_prompt, messages, registry)

        # Streaming
        result = await executor.run_stream(
            handle, system_prompt, messages, registry,
            on_text_delta=lambda delta: print(delta, end="")
        )
    """

    def __init__(
        self,
        tool_executor: ToolExecutor | None = None,
        max_rounds: int = DEFAULT_MAX_ROUNDS
    ):
        """
        Args:
            tool_executor: Executes tool calls (a default one if omitted)
            max_rounds: Round cap per attempt, the guard against tool loops
        """
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.tool_executor = tool_executor or ToolExecutor()
        self.max_rounds = max_rounds

    async def run(
        self,
        model: ModelHandle,
        system_prompt: str,
        messages: list[dict],
        tools: ToolRegistry,
        max_rounds: int | None = None,
        cancel: asyncio.Event | None = None
    ) -> StepResult:
        """
        Run one buffered attempt.

        Args:
            model: The model to talk to
            system_prompt: System instructions
            messages: Conversation, current user turn last
            tools: Tools the model may call
            max_rounds: Override of the round cap
            cancel: Optional signal checked before every round

        Returns:
            StepResult. Its text is empty only when the model produced
            nothing and raised nothing.

        Raises:
            The handle's own error when no text was produced.
            AssistantCancelled when the cancel signal is set.
        """
        return await self._run(model, system_prompt, messages, tools, max_rounds, cancel, None)

    async def run_stream(
        self,
        model: ModelHandle,
        system_prompt: str,
        messages: list[dict],
        tools: ToolRegistry,
        on_text_delta: TextSink,
        max_rounds: int | None = None,
        cancel: asyncio.Event | None = None
    ) -> StepResult:
        """
        Like run(), relaying text deltas to on_text_delta as they arrive.

        The sink may be a plain function or a coroutine function.
        """
        relay = _DeltaRelay(on_text_delta)
        return await self._run(model, system_prompt, messages, tools, max_rounds, cancel, relay)

    async def _run(
        self,
        model: ModelHandle,
        system_prompt: str,
        messages: list[dict],
        tools: ToolRegistry,
        max_rounds: int | None,
        cancel: asyncio.Event | None,
        relay: _DeltaRelay | None
    ) -> StepResult:
        round_cap = max_rounds or self.max_rounds
        catalog = tools.get_openai_functions()
        conversation = list(messages)

        usage = Usage()
        round_texts: list[str] = []
        final_text = ""
        used_tools = False
        generation_error: Exception | None = None
        rounds = 0

        for round_number in range(1, round_cap + 1):
            check_cancelled(cancel)
            rounds = round_number
            streamed: list[str] = []

            try:
                if relay is not None:
                    relay.start_round()
                    turn = await self._stream_round(
                        model, system_prompt, conversation, catalog, relay, streamed
                    )
                else:
                    turn = await model.generate(system_prompt, conversation, catalog)
            except Exception as e:
                generation_error = e
                logger.error(f"Generation failed on {model.label} (round {round_number})", e)
                if streamed:
                    round_texts.append("".join(streamed))
                break

            usage.add(turn.usage)
            if turn.text:
                round_texts.append(turn.text)

            if not turn.tool_calls:
                final_text = turn.text
                break

            used_tools = True
            logger.debug(f"Round {round_number}: {len(turn.tool_calls)} tool calls")
            results = await self.tool_executor.execute_all(tools, turn.tool_calls)

            conversation.append(assistant_message(turn))
            conversation.extend(result.to_openai_message() for result in results)
        else:
            logger.warning(f"Reached max rounds ({round_cap}) on {model.label}")

        text = final_text or ROUND_SEPARATOR.join(round_texts)

        if not text:
            if generation_error is not None:
                raise generation_error
            # TODO: decide whether an empty, error-free generation should fail the attempt
            logger.warning(
                "Empty generation: no text, no error",
                {"model": model.label, "rounds": rounds, "used_tools": used_tools}
            )
        elif generation_error is not None:
            logger.warning(f"Returning partial text after a failed round on {model.label}")

        return StepResult(text=text, used_tools=used_tools, usage=usage, rounds=rounds)

    @staticmethod
    async def _stream_round(
        model: ModelHandle,
        system_prompt: str,
        conversation: list[dict],
        catalog: list[dict],
        relay: _DeltaRelay,
        streamed: list[str]
    ) -> ModelTurn:
        turn = None
        async for chunk in model.stream(system_prompt, conversation, catalog):
            if chunk.text:
                streamed.append(chunk.text)
                await relay.emit(chunk.text)
            if chunk.turn is not None:
                turn = chunk.turn

        if turn is None:
            # Stream ended without a final chunk; keep what was said
            turn = ModelTurn(text="".join(streamed))
        return turn

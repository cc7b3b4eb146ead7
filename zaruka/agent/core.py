"""
Assistant
=========

The entry point of the agent core. One call turns a user message plus
stored history into a reply, with tools, failover and usage reporting.

Request Flow:
    user message + history + attachments
         │
         ▼
    Build bounded messages (MessageBudgetBuilder)
         │
         ▼
    Failover over [primary, fallbacks...]
         │    each attempt = StepExecutor round loop
         │
         ├── prompt too long ──► rebuild without history, retry once
         │                         └── too long again ──► PromptTooLongError
         ▼
    Report usage once, return ProcessResult

process() buffers the reply; process_stream() relays text deltas to a
sink while it is generated. Both follow the same retry and failover rules.
A stream only fails over when nothing was relayed yet: an attempt that
produced text returns it instead of raising.

Example:
    assistant = Assistant(
        primary=ProviderConfig("anthropic", "claude-sonnet-4-5", api_key="sk-ant-..."),
        fallbacks=[ProviderConfig("openai", "gpt-4o", api_key="sk-...")],
        tools=registry,
        system_prompt="You are Zaruka, a personal assistant.",
        on_usage=usage_ledger.record,
    )

    result = await assistant.process("What's on my list today?", history=turns)
    print(result.text)
    if result.switched_to:
        print(f"(answered by {result.switched_to.label})")
"""

import asyncio
from typing import Callable, Sequence

from zaruka.agent.context import Attachment, BudgetedMessages, ConversationTurn, MessageBudgetBuilder
from zaruka.agent.errors import ErrorClassifier, ErrorKind, PatternErrorClassifier, PromptTooLongError
from zaruka.agent.failover import Candidate, FailoverCoordinator, ProcessResult
from zaruka.agent.runner import DEFAULT_MAX_ROUNDS, StepExecutor, TextSink
from zaruka.agent.usage import UsageCallback, UsageEvent
from zaruka.providers import ModelHandle, ProviderConfig, create_model_handle
from zaruka.tools import ToolRegistry
from zaruka.utils.config import AppConfig
from zaruka.utils.logger import Logger, set_default_level

logger = Logger("Assistant")


class Assistant:
    """
    Composes budgeting, failover and the round loop.

    Provider configs are resolved to model handles once, at construction,
    and are immutable afterwards. Each call is otherwise independent, so
    one Assistant can serve concurrent conversations.
    """

    def __init__(
        self,
        primary: ProviderConfig,
        tools: ToolRegistry,
        system_prompt: str,
        fallbacks: Sequence[ProviderConfig] = (),
        on_usage: UsageCallback | None = None,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        builder: MessageBudgetBuilder | None = None,
        classifier: ErrorClassifier | None = None,
        step_executor: StepExecutor | None = None,
        handle_factory: Callable[[ProviderConfig], ModelHandle] = create_model_handle
    ):
        """
        Args:
            primary: The preferred model
            tools: Capability set offered to the model
            system_prompt: System instructions
            fallbacks: Models to fail over to, in order
            on_usage: Receives one UsageEvent per successful request
            max_rounds: Tool-calling rounds per attempt
            builder: Message budget builder (default limits if omitted)
            classifier: Error classifier (pattern-based if omitted)
            step_executor: Round loop (built from max_rounds if omitted)
            handle_factory: Resolves a config to a model handle
        """
        self.configs: tuple[ProviderConfig, ...] = (primary, *fallbacks)
        self.tools = tools
        self.system_prompt = system_prompt
        self.on_usage = on_usage
        self.builder = builder or MessageBudgetBuilder()
        self.classifier = classifier or PatternErrorClassifier()
        self.step_executor = step_executor or StepExecutor(max_rounds=max_rounds)

        candidates = [Candidate(config=c, handle=handle_factory(c)) for c in self.configs]
        self.failover = FailoverCoordinator(candidates, self.classifier)

        logger.info(
            f"Assistant initialized with {primary.label}"
            + (f" (+{len(fallbacks)} fallbacks)" if fallbacks else "")
        )

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        tools: ToolRegistry,
        system_prompt: str,
        on_usage: UsageCallback | None = None
    ) -> "Assistant":
        """
        Build an Assistant from the application configuration.

        Also applies the configured log level to every logger that follows
        the default.
        """
        set_default_level(config.log_level)
        return cls(
            primary=config.ai.primary,
            fallbacks=config.ai.fallbacks,
            tools=tools,
            system_prompt=system_prompt,
            on_usage=on_usage,
            max_rounds=config.agent.max_rounds,
            builder=MessageBudgetBuilder(
                context_ceiling=config.agent.context_tokens,
                response_reserve=config.agent.response_reserve,
                history_char_cap=config.agent.history_char_cap,
            ),
        )

    @property
    def primary(self) -> ProviderConfig:
        return self.configs[0]

    async def process(
        self,
        user_message: str,
        history: Sequence[ConversationTurn] | None = None,
        attachments: Sequence[Attachment] | None = None,
        cancel: asyncio.Event | None = None
    ) -> ProcessResult:
        """
        Answer a message.

        Args:
            user_message: The new user message
            history: Prior turns, oldest first (read-only)
            attachments: Files sent with the message
            cancel: Optional signal to abort between rounds/attempts

        Returns:
            ProcessResult with the reply and the serving model

        Raises:
            PromptTooLongError: The message does not fit even without history
            The provider's own error for anything that was not recovered.
        """
        return await self._process(user_message, history, attachments, cancel, None)

    async def process_stream(
        self,
        user_message: str,
        on_text_delta: TextSink,
        history: Sequence[ConversationTurn] | None = None,
        attachments: Sequence[Attachment] | None = None,
        cancel: asyncio.Event | None = None
    ) -> ProcessResult:
        """
        Answer a message, relaying text deltas to on_text_delta live.

        Same arguments, result and errors as process().
        """
        return await self._process(user_message, history, attachments, cancel, on_text_delta)

    async def _process(
        self,
        user_message: str,
        history: Sequence[ConversationTurn] | None,
        attachments: Sequence[Attachment] | None,
        cancel: asyncio.Event | None,
        on_text_delta: TextSink | None
    ) -> ProcessResult:
        logger.info(f"Processing message: {user_message[:50]}...")

        built = self._build(user_message, history, attachments)
        first_error: Exception | None = None
        try:
            result = await self._attempt(built, on_text_delta, cancel)
        except Exception as e:
            if self.classifier.classify(e) is not ErrorKind.PROMPT_TOO_LONG:
                raise
            first_error = e

        # Retried outside the handler so retry errors do not chain to the first one
        if first_error is not None:
            logger.warning(
                "Prompt too long, retrying with the current message only",
                {"history_included": built.history_included, "error": str(first_error)}
            )
            truncated = self._build(user_message, None, attachments)
            try:
                result = await self._attempt(truncated, on_text_delta, cancel)
            except Exception as retry_error:
                if self.classifier.classify(retry_error) is ErrorKind.PROMPT_TOO_LONG:
                    logger.error("Prompt too long even without history", retry_error)
                    raise PromptTooLongError() from retry_error
                raise

        self._report_usage(result)
        logger.info(f"Generated response ({len(result.text)} chars) via {result.served_by.label}")
        return result

    def _build(
        self,
        user_message: str,
        history: Sequence[ConversationTurn] | None,
        attachments: Sequence[Attachment] | None
    ) -> BudgetedMessages:
        return self.builder.build(
            system_prompt=self.system_prompt,
            tool_names=self.tools.list_names(),
            user_message=user_message,
            history=history,
            attachments=attachments,
        )

    async def _attempt(
        self,
        built: BudgetedMessages,
        on_text_delta: TextSink | None,
        cancel: asyncio.Event | None
    ) -> ProcessResult:
        messages = built.messages

        if on_text_delta is None:
            def run(handle: ModelHandle):
                return self.step_executor.run(
                    handle, self.system_prompt, messages, self.tools, cancel=cancel
                )
        else:
            def run(handle: ModelHandle):
                return self.step_executor.run_stream(
                    handle, self.system_prompt, messages, self.tools, on_text_delta, cancel=cancel
                )

        return await self.failover.attempt(run, cancel)

    def _report_usage(self, result: ProcessResult) -> None:
        if self.on_usage is None:
            return
        event = UsageEvent.from_usage(result.served_by.model_id, result.usage)
        try:
            self.on_usage(event)
        except Exception as e:
            logger.error("Usage callback failed", e, {"model": event.model_id})

"""
Agent Core
==========

Forwards a user message to a language model, lets the model call tools,
and returns the reply. The pieces, leaves first:

- context: token estimates and the bounded message list
- runner: StepExecutor, the round loop of one attempt (buffered + streaming)
- errors: ErrorClassifier deciding retry / failover / abort
- failover: FailoverCoordinator over the primary and fallback models
- core: Assistant, the facade with process() and process_stream()
"""

from zaruka.agent.context import (
    Attachment,
    AttachmentDescriptor,
    ConversationTurn,
    MessageBudgetBuilder,
    estimate_tokens,
)
from zaruka.agent.core import Assistant
from zaruka.agent.errors import (
    AssistantCancelled,
    ErrorClassifier,
    ErrorKind,
    PatternErrorClassifier,
    PromptTooLongError,
    ZarukaError,
)
from zaruka.agent.failover import AttemptOutcome, FailoverCoordinator, ProcessResult
from zaruka.agent.runner import StepExecutor, StepResult
from zaruka.agent.usage import UsageEvent, calculate_cost
from zaruka.agent.working import WorkingPhrasePool

__all__ = [
    "Assistant",
    "AssistantCancelled",
    "Attachment",
    "AttachmentDescriptor",
    "AttemptOutcome",
    "ConversationTurn",
    "ErrorClassifier",
    "ErrorKind",
    "FailoverCoordinator",
    "MessageBudgetBuilder",
    "PatternErrorClassifier",
    "ProcessResult",
    "PromptTooLongError",
    "StepExecutor",
    "StepResult",
    "UsageEvent",
    "WorkingPhrasePool",
    "ZarukaError",
    "calculate_cost",
    "estimate_tokens",
]

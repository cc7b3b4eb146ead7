"""
Failover
========

Runs an attempt against the primary model and, when it fails in a way
another provider might not, against each fallback in turn.

    [primary, fallback_1, ..., fallback_n]

    success              → return, noting which fallback served (if any)
    prompt too long      → raise; the Assistant retries with less history
    retriable, not last  → log, try the next candidate
    retriable, last      → raise
    fatal                → raise immediately

Candidates are tried strictly in order and never raced in parallel: a
parallel race would run tools twice and bill twice.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from zaruka.agent.errors import ErrorClassifier, ErrorKind, PatternErrorClassifier
from zaruka.agent.runner import StepResult, check_cancelled
from zaruka.providers.base import ModelHandle, ProviderConfig, Usage
from zaruka.utils.logger import Logger

logger = Logger("Failover")


@dataclass(frozen=True)
class Candidate:
    """A provider config and the handle resolved from it."""
    config: ProviderConfig
    handle: ModelHandle


@dataclass
class AttemptOutcome:
    """Diagnostics for one attempt; logged, never persisted."""
    provider_label: str
    succeeded: bool
    error: BaseException | None = None


@dataclass
class ProcessResult:
    """
    What a request produced.

    Attributes:
        text: Reply text
        usage: Tokens used by the serving attempt
        served_by: Config of the model that produced the reply
        switched_to: Same as served_by when a fallback served, else None
        used_tools: Whether any tool was called
        attempts: One outcome per attempt made, in order
    """
    text: str
    usage: Usage
    served_by: ProviderConfig
    switched_to: ProviderConfig | None = None
    used_tools: bool = False
    attempts: list[AttemptOutcome] = field(default_factory=list)


AttemptRunner = Callable[[ModelHandle], Awaitable[StepResult]]


class FailoverCoordinator:
    """
    Tries candidates in configured order.

    Example:
        coordinator = FailoverCoordinator([primary, fallback])
        result = await coordinator.attempt(
            lambda handle: executor.run(handle, system_prompt, messages, tools)
        )
        if result.switched_to:
            print(f"Served by fallback {result.switched_to.label}")
    """

    def __init__(
        self,
        candidates: list[Candidate],
        classifier: ErrorClassifier | None = None
    ):
        """
        Args:
            candidates: Primary first, then fallbacks
            classifier: Decides which errors fail over

        Raises:
            ValueError: If no candidate is given
        """
        if not candidates:
            raise ValueError("At least one model candidate is required")
        self.candidates = list(candidates)
        self.classifier = classifier or PatternErrorClassifier()

    @property
    def primary(self) -> Candidate:
        return self.candidates[0]

    async def attempt(
        self,
        run: AttemptRunner,
        cancel: asyncio.Event | None = None
    ) -> ProcessResult:
        """
        Run `run` against each candidate until one succeeds.

        Args:
            run: Performs one attempt on a handle
            cancel: Optional signal checked before every attempt

        Returns:
            ProcessResult of the first successful attempt

        Raises:
            The failing attempt's own error when no candidate is left, the
            error is fatal, or the prompt was too long.
        """
        outcomes: list[AttemptOutcome] = []
        last_index = len(self.candidates) - 1

        for index, candidate in enumerate(self.candidates):
            check_cancelled(cancel)
            label = candidate.config.label
            logger.info(f"Attempt {index + 1}/{len(self.candidates)} on {label}")

            try:
                step = await run(candidate.handle)
            except Exception as e:
                outcomes.append(AttemptOutcome(provider_label=label, succeeded=False, error=e))
                kind = self.classifier.classify(e)

                if kind is ErrorKind.RETRIABLE and index < last_index:
                    next_label = self.candidates[index + 1].config.label
                    logger.warning(
                        f"{label} failed ({kind.value}), falling back to {next_label}",
                        {"error_type": type(e).__name__, "error_message": str(e)}
                    )
                    continue

                logger.error(f"{label} failed ({kind.value}), giving up", e)
                raise

            outcomes.append(AttemptOutcome(provider_label=label, succeeded=True))
            if index > 0:
                logger.info(f"Served by fallback {label} after {index} failed attempt(s)")

            return ProcessResult(
                text=step.text,
                usage=step.usage,
                served_by=candidate.config,
                switched_to=candidate.config if index > 0 else None,
                used_tools=step.used_tools,
                attempts=outcomes,
            )

        # Unreachable: the last candidate either returns or raises
        raise RuntimeError("No model candidates were attempted")

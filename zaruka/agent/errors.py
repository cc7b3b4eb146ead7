"""
Error Classification
====================

Decides what to do with an error raised while talking to a model:

    PROMPT_TOO_LONG  the request overflowed the context window
                     → the Assistant retries once without history
    RETRIABLE        rate limits (per-minute token limits included, even when
                     they say "too large"), auth failures, server or
                     network trouble
                     → fail over to the next configured provider
    FATAL            anything else (bad request, programming error)
                     → propagate immediately

Providers do not agree on structured error codes, so the default
classifier matches patterns against the error text. The text includes the
messages of the whole cause chain plus any HTTP status code and response
body, because SDKs often wrap the informative error in a generic one.
Swapping in a structured scheme means implementing ErrorClassifier.
"""

import re
from abc import ABC, abstractmethod
from enum import Enum


class ErrorKind(Enum):
    PROMPT_TOO_LONG = "prompt_too_long"
    RETRIABLE = "retriable"
    FATAL = "fatal"


class ZarukaError(Exception):
    """Base class for errors raised by the agent core itself."""


class PromptTooLongError(ZarukaError):
    """The request did not fit even after dropping the conversation history."""

    DEFAULT_MESSAGE = (
        "Your request is too long for the model's context window, even without "
        "the conversation history. Please shorten the message or attachments, "
        "or disconnect some optional tools (MCP servers) and try again."
    )

    def __init__(self, message: str = DEFAULT_MESSAGE):
        super().__init__(message)


class AssistantCancelled(ZarukaError):
    """The caller cancelled the request."""


def describe_error(error: BaseException) -> str:
    """
    Collect the text of an error and everything it wraps.

    Walks __cause__, and __context__ unless it was suppressed, appending
    the status codes and response bodies exposed by the OpenAI and
    Anthropic SDK errors.
    """
    parts: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = error

    while current is not None and id(current) not in seen:
        seen.add(id(current))
        parts.append(str(current))

        status_code = getattr(current, "status_code", None)
        if status_code:
            parts.append(str(status_code))

        body = getattr(current, "body", None)
        if body:
            parts.append(str(body))

        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None

    return " ".join(part for part in parts if part)


# Per-minute throughput limits, e.g. OpenAI "Request too large for gpt-4o ...
# on tokens per min (TPM)". Checked before the prompt-too-long patterns.
THROUGHPUT_PATTERNS = [
    r"tokens per min",
    r"requests per min",
    r"\bTPM\b",
    r"\bRPM\b",
]

PROMPT_TOO_LONG_PATTERNS = [
    r"too long",
    r"too large",
    # "exceeds the token limit", but not "exceed the rate limit"
    r"\bexceeds?\b(?:(?!rate).)*\blimit",
    r"max(imum)?[ _]context[ _]length",
    r"context[ _]length[ _]exceeded",
    r"maximum (number of )?tokens",
    r"context window",
]

RETRIABLE_PATTERNS = [
    # rate limiting
    r"\b429\b",
    r"rate.?limit",
    r"quota",
    r"resource.?exhausted",
    r"limit exceeded",
    # authorization
    r"\b40[13]\b",
    r"unauthori[sz]ed",
    r"forbidden",
    r"authentication",
    # server side
    r"\b50[0234]\b",
    r"overloaded",
    r"internal server error",
    r"service unavailable",
    r"bad gateway",
    # network
    r"timeout",
    r"timed out",
    r"econnreset",
    r"econnrefused",
    r"etimedout",
    r"connection (reset|refused|error|aborted)",
]


class ErrorClassifier(ABC):
    """Maps an error to an ErrorKind."""

    @abstractmethod
    def classify(self, error: BaseException) -> ErrorKind:
        """Classify an error raised during an attempt."""


class PatternErrorClassifier(ErrorClassifier):
    """
    Case-insensitive pattern matching on the error text.

    Example:
        classifier = PatternErrorClassifier()
        classifier.classify(RuntimeError("429 Too Many Requests"))  # RETRIABLE
    """

    def __init__(
        self,
        prompt_too_long: list[str] | None = None,
        retriable: list[str] | None = None,
        throughput: list[str] | None = None
    ):
        self._throughput = re.compile(
            "|".join(throughput or THROUGHPUT_PATTERNS), re.IGNORECASE
        )
        self._prompt_too_long = re.compile(
            "|".join(prompt_too_long or PROMPT_TOO_LONG_PATTERNS), re.IGNORECASE
        )
        self._retriable = re.compile(
            "|".join(retriable or RETRIABLE_PATTERNS), re.IGNORECASE
        )

    def classify(self, error: BaseException) -> ErrorKind:
        if isinstance(error, ZarukaError):
            return ErrorKind.FATAL

        text = describe_error(error)
        if self._throughput.search(text):
            return ErrorKind.RETRIABLE
        if self._prompt_too_long.search(text):
            return ErrorKind.PROMPT_TOO_LONG
        if self._retriable.search(text):
            return ErrorKind.RETRIABLE
        return ErrorKind.FATAL

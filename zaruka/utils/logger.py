"""
Logger Utility
==============

Context-aware logging for the agent core. Every component owns one
module-level logger named after itself, so a single request can be traced
through the budget builder, the failover loop and each model round:

    [2026-01-31T10:30:00] [INFO] [Failover] Attempt 1/2 on anthropic/claude-sonnet-4-5
    [2026-01-31T10:30:04] [WARN] [Failover] anthropic/claude-sonnet-4-5 failed (retriable)

Levels are filtered by the LOG_LEVEL environment variable. Structured data
passed alongside a message is printed as indented JSON underneath it.

Usage:
    from zaruka.utils.logger import Logger

    logger = Logger("StepExecutor")
    logger.debug("Round finished", {"round": 2, "tool_calls": 1})
"""

import json
import os
import sys
from datetime import datetime
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """Log levels, higher is more severe."""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40


class Colors:
    """ANSI escape codes for colored terminal output."""
    RESET = "\033[0m"
    DEBUG = "\033[36m"    # Cyan
    INFO = "\033[32m"     # Green
    WARNING = "\033[33m"  # Yellow
    ERROR = "\033[31m"    # Red
    DIM = "\033[2m"


_LEVELS = {
    "DEBUG": LogLevel.DEBUG,
    "INFO": LogLevel.INFO,
    "WARNING": LogLevel.WARNING,
    "WARN": LogLevel.WARNING,
    "ERROR": LogLevel.ERROR,
}


def parse_level(value: str | None) -> LogLevel:
    """
    Parse a level name such as "debug" or "WARN".

    Args:
        value: Level name, case-insensitive

    Returns:
        The matching LogLevel, INFO when unset or unknown
    """
    if not value:
        return LogLevel.INFO
    return _LEVELS.get(value.upper(), LogLevel.INFO)


# Level of every logger created without an explicit one
_default_level = parse_level(os.getenv("LOG_LEVEL"))


def set_default_level(level: LogLevel | str) -> None:
    """
    Change the level of all loggers that follow the default.

    Args:
        level: A LogLevel or a name such as "debug"
    """
    global _default_level
    _default_level = parse_level(level) if isinstance(level, str) else level


class Logger:
    """
    A context-aware logger with colored output.

    Example:
        logger = Logger("Assistant")
        logger.info("Request served", {"provider": "openai/gpt-4o"})

        attempt_logger = logger.child("Attempt2")
        attempt_logger.warning("Falling back")   # [Assistant:Attempt2]
    """

    def __init__(self, context: str = "", level: LogLevel | None = None):
        """
        Initialize a logger.

        Args:
            context: Prefix shown on every line (e.g. "Failover")
            level: Minimum level; follows the default (LOG_LEVEL) when omitted
        """
        self.context = context
        self._level = level

    def child(self, child_context: str) -> "Logger":
        """Create a logger whose context is nested under this one."""
        new_context = f"{self.context}:{child_context}" if self.context else child_context
        return Logger(new_context, self._level)

    @property
    def level(self) -> LogLevel:
        """The effective minimum level."""
        return self._level if self._level is not None else _default_level

    def set_level(self, level: LogLevel) -> None:
        """Change the minimum level at runtime."""
        self._level = level

    def is_enabled(self, level: LogLevel) -> bool:
        """Whether messages at `level` would be printed."""
        return level >= self.level

    def _format_message(self, level: str, message: str, color: str) -> str:
        timestamp = datetime.now().isoformat(timespec="seconds")
        context_str = f"[{self.context}] " if self.context else ""

        return (
            f"{Colors.DIM}[{timestamp}]{Colors.RESET} "
            f"{color}[{level}]{Colors.RESET} "
            f"{context_str}{message}"
        )

    def _log(
        self,
        level: LogLevel,
        level_name: str,
        color: str,
        message: str,
        data: dict[str, Any] | None = None
    ) -> None:
        if not self.is_enabled(level):
            return

        stream = sys.stderr if level >= LogLevel.ERROR else sys.stdout
        print(self._format_message(level_name, message, color), file=stream)

        if data:
            data_str = json.dumps(data, indent=2, default=str)
            print(f"{Colors.DIM}{data_str}{Colors.RESET}", file=stream)

    def debug(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log a debug message (only with LOG_LEVEL=debug)."""
        self._log(LogLevel.DEBUG, "DEBUG", Colors.DEBUG, message, data)

    def info(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log an operational message."""
        self._log(LogLevel.INFO, "INFO", Colors.INFO, message, data)

    def warning(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log a recoverable problem, such as a failover hop."""
        self._log(LogLevel.WARNING, "WARN", Colors.WARNING, message, data)

    def error(
        self,
        message: str,
        error: BaseException | None = None,
        data: dict[str, Any] | None = None
    ) -> None:
        """
        Log an error.

        Args:
            message: The error message
            error: Optional exception whose type and text are included
            data: Optional extra structured data
        """
        details = dict(data or {})
        if error is not None:
            details["error_type"] = type(error).__name__
            details["error_message"] = str(error)
        self._log(LogLevel.ERROR, "ERROR", Colors.ERROR, message, details or None)


logger = Logger("Zaruka")

"""
Logger Utility
==============

Console logging for the question agent.

Every component owns a named logger so a single request can be followed
through the loop, the registry and the individual tools:

    [2026-10-17T10:30:00] [INFO] [Agent] Iteration 2: calling model
    [2026-10-17T10:30:01] [INFO] [Tools] Invoking tool: lookup_question
    [2026-10-17T10:30:01] [WARN] [Tools:Database] Question Q999 not found

Levels are filtered by LOG_LEVEL (DEBUG, INFO, WARNING, ERROR). Logs go to
stderr so that the session driver can keep stdout for answers only, which
matters when the agent is piped into another program.

Usage:
    from question_agent.utils.logger import Logger

    logger = Logger("Agent")
    logger.info("Run started", {"request": "find question Q123"})

    tool_logger = logger.child("Executor")
    tool_logger.debug("Parsed action")
"""

import json
import os
import sys
from datetime import datetime
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """Numeric log levels; higher is more severe."""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40


class Colors:
    """ANSI escape codes used when writing to a terminal."""
    RESET = "\033[0m"
    DEBUG = "\033[36m"    # Cyan
    INFO = "\033[32m"     # Green
    WARNING = "\033[33m"  # Yellow
    ERROR = "\033[31m"    # Red
    DIM = "\033[2m"


_LEVEL_NAMES = {
    "DEBUG": LogLevel.DEBUG,
    "INFO": LogLevel.INFO,
    "WARNING": LogLevel.WARNING,
    "WARN": LogLevel.WARNING,
    "ERROR": LogLevel.ERROR,
}

# Process-wide override set from configuration at startup
_level_override: LogLevel | None = None


def parse_level(value: str | None) -> LogLevel:
    """Map a level name to a LogLevel, defaulting to INFO."""
    if not value:
        return LogLevel.INFO
    return _LEVEL_NAMES.get(value.upper(), LogLevel.INFO)


def set_level(value: str) -> None:
    """
    Set the minimum level for every logger, existing or future.

    Called by the session driver once configuration is loaded, so LOG_LEVEL
    from the .env file applies even to loggers created at import time.
    """
    global _level_override
    _level_override = parse_level(value)


class Logger:
    """
    A context-aware logger with colored output.

    Example:
        logger = Logger("Storage")
        logger.warning("Slow write", {"path": "data/questions.json"})
        logger.error("Write failed", err)
    """

    def __init__(self, context: str = ""):
        self.context = context
        self._env_level = parse_level(os.getenv("LOG_LEVEL"))

    @property
    def min_level(self) -> LogLevel:
        return _level_override if _level_override is not None else self._env_level

    def child(self, child_context: str) -> "Logger":
        """Create a logger whose context is nested under this one ([Tools:Qti])."""
        new_context = f"{self.context}:{child_context}" if self.context else child_context
        return Logger(new_context)

    def _use_color(self) -> bool:
        return sys.stderr.isatty()

    def _format_message(self, level: str, message: str, color: str) -> str:
        timestamp = datetime.now().isoformat(timespec="seconds")
        context_str = f"[{self.context}] " if self.context else ""

        if not self._use_color():
            return f"[{timestamp}] [{level}] {context_str}{message}"

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
        if level < self.min_level:
            return

        print(self._format_message(level_name, message, color), file=sys.stderr)

        if data:
            data_str = json.dumps(data, indent=2, default=str)
            if self._use_color():
                data_str = f"{Colors.DIM}{data_str}{Colors.RESET}"
            print(data_str, file=sys.stderr)

    def debug(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Detailed tracing: raw model output, parsed actions, tool payloads."""
        self._log(LogLevel.DEBUG, "DEBUG", Colors.DEBUG, message, data)

    def info(self, message: str, data: dict[str, Any] | None = None) -> None:
        self._log(LogLevel.INFO, "INFO", Colors.INFO, message, data)

    def warning(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Recoverable problems: failed tool calls, unparseable model output."""
        self._log(LogLevel.WARNING, "WARN", Colors.WARNING, message, data)

    def error(self, message: str, error: Exception | None = None) -> None:
        """
        Log an error, optionally with the exception that caused it.

        Args:
            message: What was being attempted
            error: The exception; its type and message are attached as data
        """
        data = None
        if error:
            data = {
                "error_type": type(error).__name__,
                "error_message": str(error),
            }
        self._log(LogLevel.ERROR, "ERROR", Colors.ERROR, message, data)


# Default logger for the package
logger = Logger("QuestionAgent")

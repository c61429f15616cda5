"""
Logger Utility
==============

Context-aware, colour-coded logging for the agent and its tools.

Every component creates its own logger with a short context name, so a
single run reads as a trace through the loop:

    [2024-05-02T10:30:00] [INFO] [AgentLoop] Step 1 started
    [2024-05-02T10:30:02] [INFO] [ToolRegistry:wiki_search] Executing
    [2024-05-02T10:30:03] [WARN] [ToolRegistry] Overwriting tool: wiki_search

Usage:
    from loresmith.utils.logger import Logger

    logger = Logger("WikiClient")
    logger.info("Searching wiki", {"query": "Saber"})

    step_logger = logger.child("Step3")
    step_logger.debug("Parsed 2 commands")
"""

import json
import os
import sys
from datetime import datetime
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """Numeric log levels; a message is printed when its level >= the minimum."""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40


class Colors:
    """ANSI escape codes for terminal output."""
    RESET = "\033[0m"
    DEBUG = "\033[36m"    # Cyan
    INFO = "\033[32m"     # Green
    WARNING = "\033[33m"  # Yellow
    ERROR = "\033[31m"    # Red
    DIM = "\033[2m"
    BOLD = "\033[1m"
    MAGENTA = "\033[35m"
    BLUE = "\033[94m"


_LEVEL_NAMES = {
    "DEBUG": LogLevel.DEBUG,
    "INFO": LogLevel.INFO,
    "WARNING": LogLevel.WARNING,
    "WARN": LogLevel.WARNING,
    "ERROR": LogLevel.ERROR,
}

# Process-wide override set by configure_logging(); None means "read LOG_LEVEL"
_level_override: LogLevel | None = None


def parse_log_level(value: str | None) -> LogLevel:
    """
    Turn a level name such as "debug" or "WARN" into a LogLevel.

    Unknown or empty values fall back to INFO.
    """
    if not value:
        return LogLevel.INFO
    return _LEVEL_NAMES.get(value.strip().upper(), LogLevel.INFO)


def configure_logging(level: str) -> None:
    """Set the minimum level for every logger, including ones created earlier."""
    global _level_override
    _level_override = parse_log_level(level)


def _current_min_level() -> LogLevel:
    if _level_override is not None:
        return _level_override
    return parse_log_level(os.getenv("LOG_LEVEL", "INFO"))


class Logger:
    """
    A logger bound to a context name.

    Example:
        logger = Logger("AgentLoop")
        logger.info("Run started")

        tool_logger = logger.child("read_page")
        tool_logger.warning("add_document callback missing")
        # Logs show [AgentLoop:read_page]
    """

    def __init__(self, context: str = ""):
        """
        Initialize a logger.

        Args:
            context: Prefix shown on every line (e.g. "AgentLoop", "WikiClient")
        """
        self.context = context

    def child(self, child_context: str) -> "Logger":
        """Create a logger whose context is ``<parent>:<child_context>``."""
        new_context = f"{self.context}:{child_context}" if self.context else child_context
        return Logger(new_context)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level >= _current_min_level()

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
        if not self.is_enabled_for(level):
            return

        formatted = self._format_message(level_name, message, color)

        # Errors go to stderr so they survive stdout redirection
        stream = sys.stderr if level >= LogLevel.ERROR else sys.stdout
        print(formatted, file=stream)

        if data:
            data_str = json.dumps(data, indent=2, default=str)
            print(f"{Colors.DIM}{data_str}{Colors.RESET}", file=stream)

    def debug(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log a debug message (only shown with LOG_LEVEL=debug)."""
        self._log(LogLevel.DEBUG, "DEBUG", Colors.DEBUG, message, data)

    def info(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log an informational message."""
        self._log(LogLevel.INFO, "INFO", Colors.INFO, message, data)

    def warning(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log a warning: something unexpected that the run survives."""
        self._log(LogLevel.WARNING, "WARN", Colors.WARNING, message, data)

    def error(self, message: str, error: Exception | None = None) -> None:
        """
        Log an error.

        Args:
            message: What failed
            error: Optional exception whose type and message are printed
        """
        data = None
        if error:
            data = {
                "error_type": type(error).__name__,
                "error_message": str(error),
            }
        self._log(LogLevel.ERROR, "ERROR", Colors.ERROR, message, data)


# Default logger for code that has no more specific context
logger = Logger("Loresmith")

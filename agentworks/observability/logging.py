"""
Structured logging for Agentworks.

Components that the host wires up (executor, webhook handler, credential
store, observability backends) accept an injected StructuredLogger and bind
their own fields with `with_context()`. The default, JSONLogger, renders
each record as a JSON line and forwards it to the stdlib logger of the
same name, so process-wide configuration stays with the host.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol


class LogLevel(Enum):
    """Standard log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class StructuredLogger(Protocol):
    """
    Protocol for structured logging implementations.

    Structured loggers emit logs as key-value pairs rather than
    plain strings, enabling better searchability and analysis.
    """

    def debug(self, message: str, **context: Any) -> None: ...

    def info(self, message: str, **context: Any) -> None: ...

    def warning(self, message: str, **context: Any) -> None: ...

    def error(self, message: str, **context: Any) -> None: ...

    def with_context(self, **extra: Any) -> StructuredLogger:
        """Create a child logger with additional bound fields."""
        ...


@dataclass
class JSONLogger:
    """
    Structured logger that outputs JSON-formatted logs.

    Example output:
        {"timestamp": "2026-01-02T10:30:00+00:00", "level": "info",
         "message": "Tool execution completed", "module": "tool-executor",
         "tool": "http_request", "duration_ms": 84.2}
    """

    name: str = "agentworks"
    extra_context: dict[str, Any] = field(default_factory=dict)
    _python_logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._python_logger = logging.getLogger(self.name)

    def _log(self, level: LogLevel, message: str, context: dict[str, Any]) -> None:
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level.value,
            "message": message,
            **self.extra_context,
            **context,
        }
        getattr(self._python_logger, level.value)(json.dumps(record, default=str))

    def debug(self, message: str, **context: Any) -> None:
        self._log(LogLevel.DEBUG, message, context)

    def info(self, message: str, **context: Any) -> None:
        self._log(LogLevel.INFO, message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(LogLevel.WARNING, message, context)

    def error(self, message: str, **context: Any) -> None:
        self._log(LogLevel.ERROR, message, context)

    def with_context(self, **extra: Any) -> JSONLogger:
        """Create a new logger with additional context."""
        return JSONLogger(name=self.name, extra_context={**self.extra_context, **extra})


def child_logger(logger: StructuredLogger | None, name: str, **bindings: Any) -> StructuredLogger:
    """Bind `bindings` onto an injected logger, or build a JSONLogger for `name`."""
    if logger is None:
        return JSONLogger(name=name, extra_context=dict(bindings))
    return logger.with_context(**bindings)


__all__ = [
    "LogLevel",
    "StructuredLogger",
    "JSONLogger",
    "child_logger",
]

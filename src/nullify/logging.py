"""Structured logging for nullify.

Engine components log through NullifyLogger, which attaches the component,
the current operation and the contract being synthesized to every record.
Output is human-readable text or one JSON object per line.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class LogFormat(Enum):
    """Log output format."""

    TEXT = "text"
    JSON = "json"


@dataclass
class LogContext:
    """Context information for structured logging."""

    component: str = ""
    operation: str = ""
    contract: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def with_extra(self, **kwargs: Any) -> "LogContext":
        """Create new context with additional fields."""
        return LogContext(
            component=self.component,
            operation=self.operation,
            contract=self.contract,
            extra={**self.extra, **kwargs},
        )


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs structured JSON logs."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        ctx = getattr(record, "context", None)
        if isinstance(ctx, LogContext):
            if ctx.component:
                log_data["component"] = ctx.component
            if ctx.operation:
                log_data["operation"] = ctx.operation
            if ctx.contract:
                log_data["contract"] = ctx.contract
            log_data.update(ctx.extra)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Formatter that outputs human-readable logs with context."""

    def format(self, record: logging.LogRecord) -> str:
        prefix_parts = []

        ctx = getattr(record, "context", None)
        if isinstance(ctx, LogContext):
            if ctx.component:
                prefix_parts.append(f"[{ctx.component}]")
            if ctx.operation:
                prefix_parts.append(f"({ctx.operation})")
            if ctx.contract:
                prefix_parts.append(f"<{ctx.contract}>")

        prefix = " ".join(prefix_parts)
        if prefix:
            prefix = f"{prefix} "

        base = super().format(record)

        extra_str = ""
        if isinstance(ctx, LogContext) and ctx.extra:
            extra_str = " " + " ".join(f"{k}={v}" for k, v in ctx.extra.items())

        return f"{prefix}{base}{extra_str}"


def _make_handler(level: int, log_format: LogFormat) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if log_format == LogFormat.JSON:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(TextFormatter("%(asctime)s %(levelname)s %(message)s"))
    return handler


def parse_level(level: int | str) -> int:
    """Accept a logging level as a number or a name such as "debug"."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


class NullifyLogger:
    """Structured logger for nullify components."""

    def __init__(
        self,
        name: str,
        level: int = logging.INFO,
        log_format: LogFormat = LogFormat.TEXT,
    ):
        """Initialize the logger.

        Args:
            name: Logger name (typically component name)
            level: Logging level
            log_format: Output format (TEXT or JSON)
        """
        self._logger = logging.getLogger(f"nullify.{name}")
        self._logger.setLevel(level)
        self._context = LogContext(component=name)
        self._log_format = log_format

        # Only attach a handler when nothing upstream will print the record
        root = logging.getLogger("nullify")
        if not self._logger.handlers and not root.handlers:
            self._logger.addHandler(_make_handler(level, log_format))

    def _derive(self, context: LogContext) -> "NullifyLogger":
        new_logger = NullifyLogger.__new__(NullifyLogger)
        new_logger._logger = self._logger
        new_logger._context = context
        new_logger._log_format = self._log_format
        return new_logger

    def with_context(self, **kwargs: Any) -> "NullifyLogger":
        """Create a new logger with additional context fields."""
        return self._derive(self._context.with_extra(**kwargs))

    def with_operation(self, operation: str) -> "NullifyLogger":
        """Create a new logger for a specific operation."""
        return self._derive(
            LogContext(
                component=self._context.component,
                operation=operation,
                contract=self._context.contract,
                extra=self._context.extra,
            )
        )

    def with_contract(self, contract: str) -> "NullifyLogger":
        """Create a new logger scoped to one contract."""
        return self._derive(
            LogContext(
                component=self._context.component,
                operation=self._context.operation,
                contract=contract,
                extra=self._context.extra,
            )
        )

    def is_enabled_for(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def _log(self, level: int, msg: str, exc_info: Any = None, **kwargs: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "(unknown file)",
            0,
            msg,
            (),
            exc_info,
        )
        record.context = self._context.with_extra(**kwargs) if kwargs else self._context
        self._logger.handle(record)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, **kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, **kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log an error together with the exception being handled."""
        self._log(logging.ERROR, msg, exc_info=sys.exc_info(), **kwargs)

    @contextmanager
    def timed(self, operation: str, **kwargs: Any):
        """Context manager for timing operations.

        Yields:
            Dict where 'elapsed_ms' will be set after completion
        """
        start = time.perf_counter()
        result: dict[str, Any] = {}
        try:
            yield result
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            result["elapsed_ms"] = elapsed_ms
            self.debug(
                f"{operation} completed",
                elapsed_ms=f"{elapsed_ms:.2f}",
                **kwargs,
            )


_loggers: dict[str, NullifyLogger] = {}


def get_logger(
    name: str,
    level: int = logging.INFO,
    log_format: LogFormat = LogFormat.TEXT,
) -> NullifyLogger:
    """Get or create a logger for a component."""
    if name not in _loggers:
        _loggers[name] = NullifyLogger(name, level, log_format)
    return _loggers[name]


def configure_logging(
    level: int | str = logging.INFO,
    log_format: LogFormat = LogFormat.TEXT,
) -> None:
    """Configure the root nullify logger.

    Component loggers are reset to inherit the new level, and their private
    handlers are dropped so records are printed once, by the root handler.
    """
    level = parse_level(level)
    root = logging.getLogger("nullify")
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(_make_handler(level, log_format))

    for component in _loggers.values():
        component._logger.setLevel(logging.NOTSET)
        component._logger.handlers.clear()
        component._log_format = log_format


def log_event(
    component: str,
    event: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a single event quickly."""
    get_logger(component)._log(level, event, **kwargs)


__all__ = [
    "LogContext",
    "LogFormat",
    "NullifyLogger",
    "StructuredFormatter",
    "TextFormatter",
    "configure_logging",
    "get_logger",
    "log_event",
    "parse_level",
]

"""Logging configuration for sqstemplate."""

import json
import logging
import os
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, cast


class ContextStore:
    """A thread-safe store for logging context."""

    def __init__(self) -> None:
        """Initializes the ContextStore with an empty per-thread slot."""
        self._context = threading.local()

    def set(self, data: dict[str, Any]) -> None:
        """Replaces the context of the current thread.

        Args:
            data: The context data, e.g. the queue URL and the message ID.
        """
        self._context.data = data

    def get(self) -> dict[str, Any]:
        """Gets the context of the current thread.

        Returns:
            The context data, or an empty dict when nothing was set.
        """
        return getattr(self._context, "data", {})

    def clear(self) -> None:
        """Clears the context of the current thread."""
        self._context.data = {}


_context_store = ContextStore()


class ContextFilter(logging.Filter):
    """Injects the ContextStore data and the 'extra' kwargs into each record."""

    RESERVED_ATTRS = (
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
    )

    def filter(self, record: logging.LogRecord) -> bool:
        """Attaches the merged context to the record as ``record.context``.

        Args:
            record: The log record to enrich.

        Returns:
            Always True, records are never dropped.
        """
        thread_context = _context_store.get().copy()

        extra_context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self.RESERVED_ATTRS and key not in ("context",)
        }

        # The per-call 'extra' context takes precedence.
        thread_context.update(extra_context)
        record.context = thread_context

        return True


class SQSTemplateLogger(logging.Logger):
    """A logger with temporary context and debug-gated helpers.

    Every library operation receives a ``debug`` flag through its options.
    The ``*_if`` helpers only emit when that flag is on, so a consumer running
    without debug stays silent except for fatal terminations.
    """

    @contextmanager
    def contextualize(self, **kwargs: Any) -> Iterator[None]:
        """A context manager to add temporary context to logs.

        Example:
            with logger.contextualize(message_id="12345"):
                logger.info("This log will have the message_id.")
        """
        previous = _context_store.get()
        _context_store.set({**previous, **kwargs})
        try:
            yield
        finally:
            _context_store.set(previous)

    def info_if(self, enabled: bool, msg: str, *args: Any, **kwargs: Any) -> None:
        """Logs at INFO level when ``enabled`` is set.

        Args:
            enabled: The debug flag of the calling operation.
            msg: The message to log.
            *args: Arguments merged into ``msg``.
            **kwargs: Keyword arguments for ``Logger.info``.
        """
        if enabled:
            kwargs.setdefault("stacklevel", 2)
            self.info(msg, *args, **kwargs)

    def warning_if(self, enabled: bool, msg: str, *args: Any, **kwargs: Any) -> None:
        """Logs at WARNING level when ``enabled`` is set."""
        if enabled:
            kwargs.setdefault("stacklevel", 2)
            self.warning(msg, *args, **kwargs)

    def error_if(self, enabled: bool, msg: str, *args: Any, **kwargs: Any) -> None:
        """Logs at ERROR level when ``enabled`` is set."""
        if enabled:
            kwargs.setdefault("stacklevel", 2)
            self.error(msg, *args, **kwargs)


class TextFormatter(logging.Formatter):
    """Formats logs as a human-readable string."""

    def format(self, record: logging.LogRecord) -> str:
        """Formats a log record, appending the non-empty context values.

        Args:
            record: The log record to format.

        Returns:
            The formatted log line.
        """
        log_message = super().format(record)

        if hasattr(record, "context") and record.context:
            context_text = " ".join(f"{k}={v}" for k, v in record.context.items() if v)
            if context_text:
                log_message += f" | {context_text}"

        return log_message


class JsonFormatter(logging.Formatter):
    """Formats logs as a JSON string."""

    def format(self, record: logging.LogRecord) -> str:
        """Formats a log record as a single-line JSON object.

        Args:
            record: The log record to format.

        Returns:
            The JSON text, with the context keys at the top level.
        """
        log_object = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process": record.process,
            "thread": record.thread,
            **getattr(record, "context", {}),
        }

        if record.exc_info:
            log_object["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_object, indent=None, separators=(",", ":"), default=str)


def setup_logger() -> SQSTemplateLogger:
    """Enables and configures the sqstemplate logger.

    The level comes from ``SQSTEMPLATE_LOG_LEVEL`` (a name or a number) and
    ``SQSTEMPLATE_ENABLE_LOG_SERIALIZE=1`` switches to JSON lines.

    Returns:
        The configured logger.
    """
    log_level = os.getenv("SQSTEMPLATE_LOG_LEVEL", "INFO").upper()
    log_serialize = bool(int(os.getenv("SQSTEMPLATE_ENABLE_LOG_SERIALIZE", 0)))

    logging.setLoggerClass(SQSTemplateLogger)
    logger = logging.getLogger("sqstemplate")
    logging.setLoggerClass(logging.Logger)

    if logger.hasHandlers():
        logger.handlers.clear()

    logger.setLevel(int(log_level) if log_level.isdigit() else log_level)
    logger.propagate = False

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())

    formatter: logging.Formatter = JsonFormatter()
    if not log_serialize:
        fmt = (
            "%(asctime)s | %(levelname)-8s "
            "| %(process)d:%(thread)d "
            "| %(module)s:%(funcName)s:%(lineno)d "
            "| %(message)s"
        )
        formatter = TextFormatter(fmt)

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return cast(SQSTemplateLogger, logger)


logger: SQSTemplateLogger = setup_logger()

"""Logging infrastructure with correlation ID tracking and content redaction.

Every record emitted by the recovery engine passes through two filters:
``CorrelationIDFilter`` stamps the current correlation ID (set per handled
error so retries, fallbacks and escalation for one failure can be traced
together) and ``SensitiveDataFilter`` strips patient-communication content
from the message, its arguments and any ``extra`` fields.
"""

import contextvars
import logging
import logging.handlers
import sys
from collections.abc import Mapping
from typing import Final, override

from recovery_engine.utils.sanitization import (
    sanitize_args,
    sanitize_value,
)

# Inherited by asyncio tasks created within the same context
correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)

DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - %(message)s"

SYSLOG_LOG_FORMAT: Final[str] = (
    "recovery-engine[%(process)d]: %(levelname)s - [%(correlation_id)s] - %(name)s - %(message)s"
)

DEFAULT_SYSLOG_ADDRESS: Final[str] = "/dev/log"

_STANDARD_RECORD_ATTRS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "correlation_id",
    }
)


class CorrelationIDFilter(logging.Filter):
    """Logging filter that adds the context correlation ID to log records."""

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        correlation_id = correlation_id_var.get()
        record.correlation_id = correlation_id if correlation_id is not None else "N/A"
        return True


class SensitiveDataFilter(logging.Filter):
    """Logging filter that redacts conversation content and identifiers.

    Sanitizes the message text, the ``args`` tuple used for % formatting and
    every non-standard attribute added through ``extra={}``. Field names such
    as ``transcript`` or ``patient_id`` are redacted wholesale; other string
    values have medical record numbers, contact details and quoted speech
    removed.

    Examples:
        >>> logger.warning("No match for %s", "transcript='I need water'")
        # Logged as: "No match for transcript='<REDACTED>'"

        >>> logger.error("Recognition failed", extra={"utterance": "help"})
        # extra sanitized to: {"utterance": "<REDACTED>"}
    """

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            sanitized_msg = sanitize_value(record.msg)
            if isinstance(sanitized_msg, str):
                record.msg = sanitized_msg

        if record.args and isinstance(record.args, tuple):
            record.args = sanitize_args(record.args)

        for attr_name in list(record.__dict__.keys()):
            if attr_name not in _STANDARD_RECORD_ATTRS and not attr_name.startswith("_"):
                attr_value: object = getattr(record, attr_name)  # pyright: ignore[reportAny]
                setattr(record, attr_name, sanitize_value(attr_value, field_name=attr_name))

        return True


def configure_logging(
    *,
    log_level: str = "INFO",
    enable_syslog: bool = False,
    syslog_address: str = DEFAULT_SYSLOG_ADDRESS,
    enable_console: bool = True,
) -> None:
    """Configure root logging with correlation IDs and content redaction.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_syslog: Attach a syslog handler, useful on bedside devices
            that forward syslog to the hospital's monitoring stack
        syslog_address: Syslog socket address
        enable_console: Enable console output handler
    """
    root_logger = logging.getLogger()

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    root_logger.handlers.clear()

    correlation_filter = CorrelationIDFilter()
    sensitive_filter = SensitiveDataFilter()

    if enable_syslog:
        try:
            syslog_handler = logging.handlers.SysLogHandler(
                address=syslog_address,
                facility=logging.handlers.SysLogHandler.LOG_DAEMON,
            )
            syslog_handler.setFormatter(logging.Formatter(SYSLOG_LOG_FORMAT))
            syslog_handler.addFilter(correlation_filter)
            syslog_handler.addFilter(sensitive_filter)
            root_logger.addHandler(syslog_handler)

        except OSError as exc:
            # Syslog socket missing, fall back to console only
            print(
                f"Warning: Could not connect to syslog at {syslog_address}: {exc}",
                file=sys.stderr,
            )

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        console_handler.addFilter(correlation_filter)
        console_handler.addFilter(sensitive_filter)
        root_logger.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the specified module."""
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> contextvars.Token[str | None]:
    """Set the correlation ID for the current context.

    Returns the ContextVar token so callers that scope the ID to a single
    handled error can restore the previous value afterwards.

    Example:
        >>> token = set_correlation_id("fault-3f9a1c2b7e10")
        >>> logger.info("Handling speech recognition failure")
        >>> correlation_id_var.reset(token)
    """
    return correlation_id_var.set(correlation_id)


def get_correlation_id() -> str | None:
    """Get the current correlation ID from context."""
    return correlation_id_var.get()


def clear_correlation_id() -> None:
    """Clear the correlation ID from the current context."""
    _ = correlation_id_var.set(None)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    extra: Mapping[str, object] | None = None,
) -> None:
    """Log a message with additional context fields.

    Example:
        >>> log_with_context(
        ...     logger,
        ...     logging.WARNING,
        ...     "Fallback engaged",
        ...     extra={"component": "speech-recognition", "recovery_kind": "manual-input"},
        ... )
    """
    context = dict(extra) if extra else {}

    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id

    logger.log(level, message, extra=context)

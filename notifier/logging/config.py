"""Logging configuration for the notification dispatcher.

Records leave through a single stderr handler (stdout carries CLI command
output) either as one JSON object per line or as a readable line followed by
sorted ``key=value`` pairs. Both formats read extra fields through
iter_extra_fields, so credentials are redacted the same way in each.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterator, Literal, Optional, TextIO, Tuple

from .context import get_log_context

LogFormat = Literal["json", "key-value"]
LOG_FORMATS = ("json", "key-value")

SERVICE_NAME = "notification-dispatch"

KEY_VALUE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
KEY_VALUE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord has; anything else came from extra= or a filter
RESERVED_ATTRS: FrozenSet[str] = frozenset(logging.makeLogRecord({}).__dict__) | {
    "message",
    "asctime",
    "taskName",
}

SENSITIVE_KEYS = frozenset({"password", "smtp_pass", "pass", "secret", "authorization"})
REDACTED = "***"


def iter_extra_fields(
    record: logging.LogRecord, skip: FrozenSet[str] = frozenset()
) -> Iterator[Tuple[str, Any]]:
    """Yield the record's non-standard fields sorted by name, secrets redacted."""
    for key in sorted(record.__dict__):
        if key in RESERVED_ATTRS or key in skip or key.startswith("_"):
            continue
        value = record.__dict__[key]
        if key.lower() in SENSITIVE_KEYS and value is not None:
            value = REDACTED
        yield key, value


def format_utc_timestamp(created: float) -> str:
    """``2026-01-05T15:04:05.123Z``"""
    moment = datetime.fromtimestamp(created, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ContextualFilter(logging.Filter):
    """Stamp records with service/environment and the active dispatch context.

    Service and environment always overwrite; context fields never replace a
    key the log call passed explicitly through ``extra=``.
    """

    def __init__(self, service: str = SERVICE_NAME, environment: str = "local"):
        super().__init__()
        self.static_fields = {"service": service, "environment": environment}

    def filter(self, record: logging.LogRecord) -> bool:
        record.__dict__.update(self.static_fields)
        for key, value in get_log_context().items():
            record.__dict__.setdefault(key, value)
        return True


def _json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool, list, dict)):
        return value
    return str(value)


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, then extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": format_utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update((key, _json_value(value)) for key, value in iter_extra_fields(record))

        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def _key_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    text = str(value)
    if any(ch in text for ch in " =,"):
        return f'"{text}"'
    return text


class KeyValueFormatter(logging.Formatter):
    """``<time> [LEVEL] logger: message key=value ...`` for terminals."""

    # Constant for a deployment, so left off human-readable lines
    SKIP_FIELDS = frozenset({"service", "environment"})

    def __init__(self, fmt: str = KEY_VALUE_FORMAT, datefmt: Optional[str] = KEY_VALUE_DATEFMT):
        super().__init__(fmt, datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        pairs = [
            f"{key}={_key_value(value)}"
            for key, value in iter_extra_fields(record, self.SKIP_FIELDS)
        ]
        return " ".join([line, *pairs])


def configure_logging(
    level: str = "INFO",
    format_type: LogFormat = "key-value",
    environment: str = "local",
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure the root logger with the specified level and format.

    Calling it again replaces the previous handler.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: 'json' or 'key-value'
        environment: Environment label stamped on every record
        stream: Output stream (defaults to stderr)

    Raises:
        ValueError: If level or format_type is invalid
    """
    # Accept LogLevel/LogFormat members as well as their string values
    level = getattr(level, "value", level)
    format_type = getattr(format_type, "value", format_type)

    numeric_level = logging.getLevelName(str(level).upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    if format_type not in LOG_FORMATS:
        raise ValueError(
            f"Invalid log format: {format_type}. Must be one of: {', '.join(LOG_FORMATS)}"
        )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if format_type == "json" else KeyValueFormatter())
    handler.addFilter(ContextualFilter(environment=environment))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers[:] = [handler]

    logging.getLogger(__name__).debug(
        "Logging configured",
        extra={
            "event": "logging.configured",
            "component": "logging",
            "log_level": str(level).upper(),
            "log_format": format_type,
        },
    )

"""Structured logging with OpenTelemetry trace context.

Library modules log through ``logging.getLogger(__name__)``; all of them sit
under the ``envelope_core`` logger, which ``configure_logging`` equips with a
single handler.

Usage:
    from envelope_core.telemetry import configure_logging

    configure_logging(config.logging)
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

from opentelemetry import trace

from envelope_core.config.models import LoggingConfig
from envelope_core.types import LogFormat

ROOT_LOGGER_NAME = "envelope_core"

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Attributes every LogRecord has; anything else came in through ``extra``
_STANDARD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def _trace_fields() -> dict[str, str]:
    context = trace.get_current_span().get_span_context()
    if not context.is_valid:
        return {}
    return {
        "trace_id": format(context.trace_id, "032x"),
        "span_id": format(context.span_id, "016x"),
    }


class StructuredLogFormatter(logging.Formatter):
    """One JSON object per record.

    Keys: ``timestamp``, ``level``, ``component`` (logger name), ``message``,
    ``trace_id`` / ``span_id`` inside a span, ``exception`` when one is
    attached, then any ``extra`` fields. Values JSON cannot encode are
    written with ``str``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
            **_trace_fields(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(
            (key, value) for key, value in vars(record).items() if key not in _STANDARD_ATTRS
        )
        return json.dumps(entry, default=str)


def configure_logging(
    config: LoggingConfig | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Install one handler on the ``envelope_core`` logger.

    Calling it again replaces the handler installed by the previous call.

    Args:
        config: Logging configuration (defaults to JSON at INFO)
        stream: Output stream (defaults to stderr)

    Returns:
        The configured ``envelope_core`` logger
    """
    config = config or LoggingConfig()
    root = logging.getLogger(ROOT_LOGGER_NAME)
    reset_logging()

    handler = logging.StreamHandler(stream or sys.stderr)
    if config.format == LogFormat.JSON:
        handler.setFormatter(StructuredLogFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    handler._envelope_handler = True  # type: ignore[attr-defined]

    root.addHandler(handler)
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))
    return root


def reset_logging() -> None:
    """Remove handlers installed by ``configure_logging`` (for testing)."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if getattr(handler, "_envelope_handler", False):
            root.removeHandler(handler)
    root.setLevel(logging.NOTSET)

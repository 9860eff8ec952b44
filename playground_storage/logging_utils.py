"""
Logging helpers for the playground storage package.

Modules log through ``logging.getLogger(__name__)``. Hosts that ship logs to
an aggregator can switch the package to one-JSON-object-per-line output with
``configure_structured_logging()``. The sync coordinator tags its records
with ``user_id`` / ``project_id`` through ``StorageLoggerAdapter`` so that a
single project's save and upload history can be filtered out of the stream.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

PACKAGE_LOGGER = "playground_storage"

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "taskName",
}


def _context_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for key, value in vars(record).items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            value = str(value)
        fields[key] = value
    return fields


class StructuredJsonFormatter(logging.Formatter):
    """Render a record as a single JSON line.

    Fixed keys are ``timestamp`` (UTC, ISO 8601), ``level``, ``logger`` and
    ``message``; ``exception`` is added when the record carries one. Context
    passed through ``extra`` (project_id, user_id, ...) follows as top-level
    keys, stringified when not JSON serializable.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(_context_fields(record))
        return json.dumps(entry, default=str)


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str | None = PACKAGE_LOGGER,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Send a logger's output to ``stream`` (stdout by default) as JSON lines.

    Calling it again replaces the handler instead of stacking a second one.

    Args:
        level: Threshold for the configured logger
        logger_name: Logger to configure; None selects the root logger
        stream: Destination for the formatted lines

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def get_storage_logger(component: str) -> logging.Logger:
    """Logger for a storage component, e.g. ``sync`` or ``cosmos``."""
    return logging.getLogger(f"{PACKAGE_LOGGER}.{component}")


class StorageLoggerAdapter(logging.LoggerAdapter):
    """Adapter that stamps every record with the bound project context."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "StorageLoggerAdapter":
        """Copy of this adapter with extra context; None values are dropped."""
        merged = dict(self.extra or {})
        merged.update((key, value) for key, value in context.items() if value is not None)
        return StorageLoggerAdapter(self.logger, merged)

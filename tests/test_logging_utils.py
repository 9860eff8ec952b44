"""Tests for structured logging helpers."""

import json
import logging

from playground_storage.logging_utils import (
    StorageLoggerAdapter,
    StructuredJsonFormatter,
    configure_structured_logging,
    get_storage_logger,
)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="playground_storage.sync",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Remote save failed: %s",
        args=("timeout",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredJsonFormatter:
    """Tests for the JSON formatter."""

    def test_standard_fields(self) -> None:
        payload = json.loads(StructuredJsonFormatter().format(make_record()))

        assert payload["level"] == "WARNING"
        assert payload["logger"] == "playground_storage.sync"
        assert payload["message"] == "Remote save failed: timeout"
        assert "timestamp" in payload

    def test_extra_context_is_included(self) -> None:
        payload = json.loads(
            StructuredJsonFormatter().format(make_record(project_id="p1", user_id="u1"))
        )

        assert payload["project_id"] == "p1"
        assert payload["user_id"] == "u1"

    def test_unserializable_extra_is_stringified(self) -> None:
        payload = json.loads(StructuredJsonFormatter().format(make_record(target=object())))

        assert payload["target"].startswith("<object object")


class TestLoggers:
    """Tests for logger naming and configuration."""

    def test_storage_logger_namespace(self) -> None:
        assert get_storage_logger("cosmos").name == "playground_storage.cosmos"

    def test_configure_replaces_handlers(self) -> None:
        logger = configure_structured_logging(logging.DEBUG, "playground_storage.test")
        logger = configure_structured_logging(logging.DEBUG, "playground_storage.test")

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, StructuredJsonFormatter)
        assert logger.level == logging.DEBUG


class TestStorageLoggerAdapter:
    """Tests for context binding."""

    def test_bind_merges_and_drops_none(self) -> None:
        adapter = StorageLoggerAdapter(get_storage_logger("sync"), {"user_id": "u1"})

        bound = adapter.bind(project_id="p1", operation=None)

        assert bound.extra == {"user_id": "u1", "project_id": "p1"}
        assert adapter.extra == {"user_id": "u1"}

    def test_process_adds_context(self) -> None:
        adapter = StorageLoggerAdapter(get_storage_logger("sync"), {"user_id": "u1"})

        _, kwargs = adapter.process("msg", {"extra": {"project_id": "p1"}})

        assert kwargs["extra"] == {"user_id": "u1", "project_id": "p1"}

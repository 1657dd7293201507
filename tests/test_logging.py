"""Tests for structured logging setup."""

import json
import logging
import sys
from collections.abc import Iterator

import pytest

from netbox_operator.main import JsonFormatter, setup_logging


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    """Undo setup_logging() changes after the test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("azure").setLevel(logging.NOTSET)
    logging.getLogger("urllib3").setLevel(logging.NOTSET)


def make_record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        "netbox_operator.reconciler", logging.INFO, __file__, 1, "Created resource", None, None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_basic_fields(self) -> None:
        """Test that level, message and logger name are emitted."""
        data = json.loads(JsonFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["message"] == "Created resource"
        assert data["logger"] == "netbox_operator.reconciler"
        assert data["timestamp"].endswith("Z")

    def test_extra_fields(self) -> None:
        """Test that extra fields become top-level keys."""
        data = json.loads(JsonFormatter().format(make_record(kind="site", identifier=12)))

        assert data["kind"] == "site"
        assert data["identifier"] == 12
        assert "msg" not in data

    def test_sets_are_serialised_sorted(self) -> None:
        """Test that set values are written as sorted lists."""
        data = json.loads(JsonFormatter().format(make_record(tags=frozenset({"b", "a"}))))

        assert data["tags"] == ["a", "b"]

    def test_exception_included(self) -> None:
        """Test that exception tracebacks are included."""
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record()
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: boom" in data["exception"]


class TestSetupLogging:
    """Tests for setup_logging()."""

    @pytest.mark.usefixtures("restore_root_logger")
    def test_json_by_default(self) -> None:
        """Test that the root logger gets a single JSON handler."""
        setup_logging(logging.DEBUG)

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.DEBUG
        assert logging.getLogger("azure").level == logging.WARNING

    @pytest.mark.usefixtures("restore_root_logger")
    def test_text_output(self) -> None:
        """Test that text output uses a plain formatter."""
        setup_logging(json_output=False)

        formatter = logging.getLogger().handlers[0].formatter
        assert formatter is not None
        assert not isinstance(formatter, JsonFormatter)

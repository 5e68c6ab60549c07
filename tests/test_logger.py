import io
import json
import logging

import pytest

from profiling_relay.errors import ConfigurationError
from profiling_relay.logger import (
    PlainTextFormatter,
    StructuredFormatter,
    configure_logging,
    get_logger,
    log_with_context,
)


def make_record(**context):
    record = logging.LogRecord(
        name="profiling_relay.drain",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Synced chunk",
        args=(),
        exc_info=None,
    )
    for key, value in context.items():
        setattr(record, f"ctx_{key}", value)
    return record


def teardown_function():
    logger = logging.getLogger("profiling_relay")
    for handler in list(logger.handlers):
        if getattr(handler, "_profiling_relay_console", False):
            logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


def test_get_logger_is_namespaced():
    assert get_logger("drain").name == "profiling_relay.drain"
    assert get_logger("profiling_relay.storage").name == "profiling_relay.storage"


def test_log_with_context(caplog):
    logger = get_logger("test_context")
    with caplog.at_level(logging.INFO, logger="profiling_relay"):
        log_with_context(logger, "info", "Synced chunk", count=3, backend="file")

    record = caplog.records[0]
    assert record.ctx_count == 3
    assert record.ctx_backend == "file"


def test_log_filtering_none_values(caplog):
    logger = get_logger("test_none")
    with caplog.at_level(logging.INFO, logger="profiling_relay"):
        log_with_context(logger, "info", "message", present="yes", missing=None)

    record = caplog.records[0]
    assert record.ctx_present == "yes"
    assert not hasattr(record, "ctx_missing")


def test_structured_formatter():
    output = StructuredFormatter().format(make_record(count=3, first_id=1))
    entry = json.loads(output)

    assert entry["level"] == "INFO"
    assert entry["logger"] == "profiling_relay.drain"
    assert entry["message"] == "Synced chunk"
    assert entry["count"] == 3
    assert entry["first_id"] == 1
    assert "timestamp" in entry


def test_structured_formatter_without_timestamp():
    entry = json.loads(StructuredFormatter(include_timestamp=False).format(make_record()))
    assert "timestamp" not in entry


def test_plain_text_formatter():
    output = PlainTextFormatter(include_timestamp=False).format(make_record(count=3))
    assert output == "INFO profiling_relay.drain Synced chunk (count=3)"


def test_configure_logging_json():
    stream = io.StringIO()
    configure_logging("json", "INFO", stream=stream)
    log_with_context(get_logger("cli"), "info", "hello", backend="file")

    entry = json.loads(stream.getvalue().strip())
    assert entry["message"] == "hello"
    assert entry["backend"] == "file"


def test_configure_logging_replaces_handler():
    first, second = io.StringIO(), io.StringIO()
    configure_logging("plain", "INFO", stream=first)
    configure_logging("plain", "INFO", stream=second)
    get_logger("cli").info("once")

    assert first.getvalue() == ""
    assert "once" in second.getvalue()


def test_configure_logging_level():
    stream = io.StringIO()
    configure_logging("plain", "warning", stream=stream)
    get_logger("cli").info("hidden")
    assert stream.getvalue() == ""


def test_configure_logging_unknown_level():
    with pytest.raises(ConfigurationError):
        configure_logging("plain", "bogus", stream=io.StringIO())

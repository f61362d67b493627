"""Tests for the rate limiter's logging helpers."""

import io
import json
import logging
import sys
from unittest.mock import patch

import pytest

from ratelimiter.core.logging import (
    LIMITER_FIELDS,
    ContextTextFormatter,
    JSONFormatter,
    get_log_context,
    get_logger,
    get_logging_config,
    setup_logging,
)


def limiter_record(msg="Rate limiter get failed", level=logging.WARNING, **context):
    record = logging.LogRecord(
        name="ratelimiter.limiters.base",
        level=level,
        pathname="base.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for name, value in context.items():
        setattr(record, name, value)
    return record


class TestContextTextFormatter:
    def test_without_context_is_plain(self):
        formatter = ContextTextFormatter("%(levelname)s %(message)s")
        assert formatter.format(limiter_record()) == "WARNING Rate limiter get failed"

    def test_appends_context_in_field_order(self):
        formatter = ContextTextFormatter("%(message)s")
        record = limiter_record(
            operation="get", client_id="client-1", algorithm="token_bucket"
        )

        line = formatter.format(record)

        assert line == (
            "Rate limiter get failed | "
            "client_id=client-1 algorithm=token_bucket operation=get"
        )

    def test_ignores_unknown_attributes(self):
        formatter = ContextTextFormatter("%(message)s")
        record = limiter_record(client_id="client-1", status_code=429)
        assert formatter.format(record) == "Rate limiter get failed | client_id=client-1"


class TestJSONFormatter:
    def test_minimal_entry(self):
        data = json.loads(JSONFormatter().format(limiter_record()))

        assert set(data) == {"time", "level", "logger", "message"}
        assert data["level"] == "WARNING"
        assert data["logger"] == "ratelimiter.limiters.base"
        assert data["message"] == "Rate limiter get failed"

    def test_context_is_nested(self):
        record = limiter_record(
            client_id="client-1",
            cache_name="limits",
            key="ratelimit:client-1",
            path="/v1/items",
            method="GET",
        )

        data = json.loads(JSONFormatter().format(record))

        assert data["context"] == {
            "client_id": "client-1",
            "cache_name": "limits",
            "key": "ratelimit:client-1",
            "path": "/v1/items",
            "method": "GET",
        }
        assert "client_id" not in data

    def test_exception_text(self):
        try:
            raise ConnectionError("cache down")
        except ConnectionError:
            record = limiter_record(level=logging.ERROR)
            record.exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(record))

        assert data["exception"].startswith("Traceback")
        assert "ConnectionError: cache down" in data["exception"]


class TestGetLoggingConfig:
    @pytest.mark.parametrize("log_format", ["text", "structured", "json"])
    def test_single_formatter_per_format(self, log_format):
        config = get_logging_config(log_format=log_format, log_level="info")

        assert list(config["formatters"]) == [log_format]
        assert config["handlers"]["ratelimiter"]["formatter"] == log_format
        assert config["loggers"]["ratelimiter"]["level"] == "INFO"
        assert config["loggers"]["ratelimiter"]["propagate"] is False
        assert "root" not in config

    def test_falls_back_to_settings(self):
        with patch("ratelimiter.core.logging.settings") as mock_settings:
            mock_settings.log_format = "JSON"
            mock_settings.log_level = "debug"
            config = get_logging_config()

        assert config["formatters"]["json"]["()"] == "ratelimiter.core.logging.JSONFormatter"
        assert config["loggers"]["ratelimiter"]["level"] == "DEBUG"

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="xml"):
            get_logging_config(log_format="xml", log_level="INFO")


class TestSetupLogging:
    def test_package_logger_only(self):
        root_handlers = list(logging.getLogger().handlers)

        setup_logging(log_format="json", log_level="WARNING")

        package_logger = logging.getLogger("ratelimiter")
        assert package_logger.level == logging.WARNING
        assert package_logger.propagate is False
        assert [type(h.formatter) for h in package_logger.handlers] == [JSONFormatter]
        assert logging.getLogger().handlers == root_handlers
        assert logging.getLogger("redis").level == logging.WARNING

    def test_structured_output_carries_context(self):
        setup_logging(log_format="structured", log_level="DEBUG")
        handler = logging.getLogger("ratelimiter").handlers[0]
        stream = io.StringIO()
        handler.setStream(stream)

        get_logger("ratelimiter.limiters").debug(
            "Rate limit exceeded", extra=get_log_context(client_id="c1", key="ratelimit:c1")
        )

        assert stream.getvalue().rstrip().endswith(
            "Rate limit exceeded | client_id=c1 key=ratelimit:c1"
        )


class TestLogHelpers:
    def test_get_logger_names(self):
        assert get_logger().name == "ratelimiter"
        assert get_logger("ratelimiter.core.cache").name == "ratelimiter.core.cache"

    def test_get_log_context_drops_unset(self):
        context = get_log_context(client_id="client-1", algorithm="fixed_window")
        assert context == {"client_id": "client-1", "algorithm": "fixed_window"}

    def test_get_log_context_accepts_request_fields(self):
        context = get_log_context(key="ratelimit:c", path="/v1", method=None)
        assert context == {"key": "ratelimit:c", "path": "/v1"}
        assert set(context) <= set(LIMITER_FIELDS)

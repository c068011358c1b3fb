"""Tests for logging setup."""

import io
import json
import logging
import sys
from collections.abc import Iterator

import pytest

from storefront.logs import JSONFormatter, configure_logging


@pytest.fixture
def restore_root() -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    storefront_level = logging.getLogger("storefront").level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)
    logging.getLogger("storefront").setLevel(storefront_level)


def record(msg: str, **extra: object) -> logging.LogRecord:
    rec = logging.LogRecord("storefront.shop", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(rec, key, value)
    return rec


class TestJSONFormatter:
    def test_basic_fields(self) -> None:
        payload = json.loads(JSONFormatter().format(record("Order placed")))
        assert payload["level"] == "info"
        assert payload["logger"] == "storefront.shop"
        assert payload["message"] == "Order placed"
        assert "time" in payload

    def test_extra_fields_at_top_level(self) -> None:
        payload = json.loads(JSONFormatter().format(record("x", user_id=4, total=12.5)))
        assert payload["user_id"] == 4
        assert payload["total"] == 12.5

    def test_exception(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            rec = logging.LogRecord("storefront", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
        payload = json.loads(JSONFormatter().format(rec))
        assert "RuntimeError: boom" in payload["exception"]


@pytest.mark.usefixtures("restore_root")
class TestConfigureLogging:
    def test_text_output(self) -> None:
        stream = io.StringIO()
        configure_logging("info", "text", stream=stream)
        logging.getLogger("storefront.shop").info("hello %s", "world")
        assert "[INFO] storefront.shop: hello world" in stream.getvalue()

    def test_json_output(self) -> None:
        stream = io.StringIO()
        configure_logging("info", "json", stream=stream)
        logging.getLogger("storefront.shop").info("ready", extra={"routes": 3})
        line = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert line["message"] == "ready"
        assert line["routes"] == 3

    def test_level_filters(self) -> None:
        stream = io.StringIO()
        configure_logging("warning", stream=stream)
        logging.getLogger("storefront.shop").info("hidden")
        assert "hidden" not in stream.getvalue()

    def test_repeated_calls_replace_handler(self) -> None:
        configure_logging(stream=io.StringIO())
        configure_logging(stream=io.StringIO())
        named = [h for h in logging.getLogger().handlers if h.get_name() == "storefront"]
        assert len(named) == 1

    def test_unknown_level(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging("loud")

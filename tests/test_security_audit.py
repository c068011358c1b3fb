"""Tests for security audit events."""

import logging
from collections.abc import Iterator

import pytest

from storefront.security.audit import SecurityEvent, emit_security_event, set_security_event_sink


@pytest.fixture
def events() -> Iterator[list[SecurityEvent]]:
    captured: list[SecurityEvent] = []
    set_security_event_sink(captured.append)
    try:
        yield captured
    finally:
        set_security_event_sink(None)


class FakeRequest:
    path = "/login"
    method = "POST"
    ip = "10.1.2.3"


def test_emit_without_sink_is_noop() -> None:
    set_security_event_sink(None)
    event = emit_security_event("auth.test")
    assert event.name == "auth.test"


def test_event_fields_from_request(events: list[SecurityEvent]) -> None:
    emit_security_event("auth.login.failure", request=FakeRequest(), user_id=5, details={"email": "a@b.co"})
    (event,) = events
    assert event.path == "/login"
    assert event.method == "POST"
    assert event.ip == "10.1.2.3"
    assert event.user_id == "5"
    assert event.details == {"email": "a@b.co"}


def test_suspicious_events_log_as_warning(caplog: pytest.LogCaptureFixture) -> None:
    set_security_event_sink(None)
    with caplog.at_level(logging.INFO, logger="storefront.security"):
        emit_security_event("csrf.rejected")
        emit_security_event("auth.login.success")
    levels = {record.getMessage(): record.levelno for record in caplog.records}
    assert levels["security event csrf.rejected"] == logging.WARNING
    assert levels["security event auth.login.success"] == logging.INFO

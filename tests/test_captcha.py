"""Tests for the login CAPTCHA helper."""

import pytest

from storefront.captcha import ALPHABET, CaptchaHelper
from storefront.sessions import Session, SessionConfig


def new_session() -> Session:
    return Session(config=SessionConfig(secret_key="s"))


class TestCaptchaHelper:
    def test_generate_text(self) -> None:
        text = CaptchaHelper().generate_text()
        assert len(text) == 6
        assert set(text) <= set(ALPHABET)
        assert len(CaptchaHelper().generate_text(4)) == 4

    def test_length_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="positive"):
            CaptchaHelper().generate_text(0)

    def test_generate_stores_lower_case(self) -> None:
        helper = CaptchaHelper()
        session = new_session()
        text = helper.generate(session)
        assert helper.text(session) == text.lower()

    def test_validate_is_case_insensitive(self) -> None:
        helper = CaptchaHelper()
        session = new_session()
        helper.store(session, "AbC123")
        assert helper.validate(session, "abc123")
        assert helper.validate(session, " ABC123 ")
        assert not helper.validate(session, "abc124")
        assert not helper.validate(session, None)

    def test_validate_without_code(self) -> None:
        assert not CaptchaHelper().validate(new_session(), "anything")

    def test_clear(self) -> None:
        helper = CaptchaHelper()
        session = new_session()
        helper.generate(session)
        helper.clear(session)
        assert helper.text(session) is None

    def test_custom_session_key(self) -> None:
        helper = CaptchaHelper(session_key="login_code")
        session = new_session()
        helper.store(session, "XYZ")
        assert session.get("login_code") == "xyz"

    def test_render_svg(self) -> None:
        svg = CaptchaHelper(width=120, height=40).render_svg("Q7<>")
        assert svg.startswith("<svg")
        assert 'width="120"' in svg
        assert 'height="40"' in svg
        assert "Q7&lt;&gt;" in svg
        assert svg.count("<line") == 5

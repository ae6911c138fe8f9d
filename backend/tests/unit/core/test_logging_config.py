"""
Unit Tests for log formatting and redaction
"""
import json
import logging

from app.core.logging_config import (
    JSONFormatter,
    mask_email,
    redact,
    set_request_id,
    set_user_id,
)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("backoffice", logging.INFO, __file__, 10, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestMasking:

    def test_mask_email(self):
        assert mask_email("maria.lopez@example.com") == "ma***@example.com"

    def test_mask_email_passthrough(self):
        assert mask_email(None) is None
        assert mask_email("not-an-email") == "not-an-email"

    def test_redact_nested(self):
        fields = {
            "client_ip": "10.0.0.1",
            "state": "signed-state",
            "changes": {"password": {"old": "a", "new": "b"}, "name": {"old": "x", "new": "y"}},
        }

        clean = redact(fields)

        assert clean["client_ip"] == "10.0.0.1"
        assert clean["state"] == "***"
        assert clean["changes"]["password"] == "***"
        assert clean["changes"]["name"] == {"old": "x", "new": "y"}

    def test_redact_keeps_empty_values(self):
        assert redact({"code": None}) == {"code": None}


class TestJSONFormatter:

    def test_includes_context_and_redacts_extra(self):
        set_request_id("req-1")
        set_user_id("user-1")
        try:
            line = JSONFormatter().format(make_record(event_type="auth", access_token="abc"))
        finally:
            set_request_id("")
            set_user_id("")

        data = json.loads(line)
        assert data["message"] == "hello"
        assert data["request_id"] == "req-1"
        assert data["user_id"] == "user-1"
        assert data["event_type"] == "auth"
        assert data["access_token"] == "***"

    def test_omits_empty_context(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert "request_id" not in data
        assert "user_id" not in data

"""Unit tests for logging service."""

import json

import structlog

from videotube.services.logging_service import configure_logging, get_logger, redact_sensitive


class TestRedactSensitive:
    """Tests for redact_sensitive processor."""

    def test_redacts_password_fields(self):
        event_dict = {"password": "secret123", "password_hash": "$2b$...", "event": "x"}
        result = redact_sensitive(None, None, event_dict)
        assert result["password"] == "REDACTED"
        assert result["password_hash"] == "REDACTED"

    def test_redacts_tokens(self):
        event_dict = {
            "refresh_token": "eyJ...",
            "accessToken": "eyJ...",
            "event": "refresh_token_rejected",
        }
        result = redact_sensitive(None, None, event_dict)
        assert result["refresh_token"] == "REDACTED"
        assert result["accessToken"] == "REDACTED"

    def test_keeps_event_name(self):
        result = redact_sensitive(None, None, {"event": "refresh_token_rejected"})
        assert result["event"] == "refresh_token_rejected"

    def test_redacts_authorization_cookie_and_secrets(self):
        event_dict = {
            "Authorization": "Bearer abc",
            "cookie": "accessToken=abc",
            "api_secret": "shh",
            "API_KEY": "k",
        }
        result = redact_sensitive(None, None, event_dict)
        assert set(result.values()) == {"REDACTED"}

    def test_preserves_non_sensitive_fields(self):
        event_dict = {"correlation_id": "abc-123", "user_id": "u1", "duration_ms": 10}
        result = redact_sensitive(None, None, dict(event_dict))
        assert result == event_dict


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_outputs_json_with_redaction(self, capsys):
        configure_logging("INFO")
        structlog.get_logger("test").info("user_logged_in", user_id="u1", password="pw")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "user_logged_in"
        assert record["user_id"] == "u1"
        assert record["password"] == "REDACTED"
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_get_logger_binds_name(self):
        configure_logging("DEBUG")
        logger = get_logger("session")
        assert logger is not None

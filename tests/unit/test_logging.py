# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for log formatting and redaction."""

from __future__ import annotations

import json
import logging

import pytest

from nexus_audit.core.exceptions import ConfigurationError
from nexus_audit.core.logging import JsonFormatter, TextFormatter, redact_sensitive, setup_logging


def _record(msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("nexus_audit.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRedaction:
    def test_bearer_token(self) -> None:
        out = redact_sensitive("Authorization: Bearer abcdef123456789")
        assert "123456789" not in out
        assert "[REDACTED]" in out

    def test_jwt(self) -> None:
        out = redact_sensitive("token=eyJhbGciOiJIUzI1NiJ9.payload.sig")
        assert "payload" not in out

    def test_password(self) -> None:
        out = redact_sensitive('{"email": "a@b.c", "password": "hunter2"}')
        assert "hunter2" not in out
        assert "a@b.c" in out

    def test_api_key_header(self) -> None:
        out = redact_sensitive("X-API-Key: abcd1234secret")
        assert "secret" not in out

    def test_plain_text_untouched(self) -> None:
        assert redact_sensitive("User logged in") == "User logged in"


class TestFormatters:
    def test_json_includes_context_fields(self) -> None:
        line = JsonFormatter().format(_record("stored", event_id="e1", action="logout"))
        data = json.loads(line)
        assert data["message"] == "stored"
        assert data["event_id"] == "e1"
        assert data["action"] == "logout"
        assert "user_id" not in data

    def test_json_redacts(self) -> None:
        data = json.loads(JsonFormatter().format(_record("password=hunter2")))
        assert "hunter2" not in data["message"]

    def test_text_redacts(self) -> None:
        fmt = TextFormatter("%(levelname)s %(message)s")
        assert "hunter2" not in fmt.format(_record("password: hunter2"))


class TestSetupLogging:
    def test_configures_package_logger(self) -> None:
        setup_logging("debug", "text")
        root = logging.getLogger("nexus_audit")
        try:
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, TextFormatter)
        finally:
            root.handlers.clear()
            root.setLevel(logging.NOTSET)

    def test_unknown_format_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            setup_logging("info", "xml")

# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Structured logging with sensitive data redaction.

Audit and notification code attach context through ``extra=``; the JSON
formatter copies the known keys into each log line.
"""

import json
import logging
import re
import sys
from typing import Any

from nexus_audit.core.exceptions import ConfigurationError

REDACT_PATTERNS = [
    re.compile(r"(Bearer\s+[a-zA-Z0-9\-._~+/]{6})[a-zA-Z0-9\-._~+/]*"),
    re.compile(r"(eyJ[a-zA-Z0-9_\-]{6})[a-zA-Z0-9_\-.]*"),
    re.compile(r"((?:\"|')?password(?:\"|')?\s*[:=]\s*(?:\"|')?)[^\"',\s}]+", re.IGNORECASE),
    re.compile(r"(X-API-Key:\s*[a-zA-Z0-9]{4})[a-zA-Z0-9\-_]*", re.IGNORECASE),
]

LOG_FORMATS = ("json", "text")
CONTEXT_FIELDS = ("event_id", "action", "severity", "actor_id", "channel_id", "user_id")


def redact_sensitive(text: str) -> str:
    for pattern in REDACT_PATTERNS:
        text = pattern.sub(r"\1[REDACTED]", text)
    return text


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_sensitive(record.getMessage()),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = str(value)
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = redact_sensitive(str(record.exc_info[1]))
        return json.dumps(log_entry)


class TextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return redact_sensitive(super().format(record))


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure the ``nexus_audit`` logger tree to write to stderr."""
    if fmt not in LOG_FORMATS:
        raise ConfigurationError(f"Unknown log format {fmt!r}; expected one of {LOG_FORMATS}")
    root = logging.getLogger("nexus_audit")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            TextFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    root.addHandler(handler)

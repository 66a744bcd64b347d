"""Structured logging for the automation runner.

Provides a JSON log formatter with secret redaction, used when the runner
is started with ``--log-json``.
"""

from __future__ import annotations

import json
import logging
import re


# ---------------------------------------------------------------------------
# Redaction patterns
# ---------------------------------------------------------------------------

_REDACTION_PATTERNS = [
    # API keys (common patterns)
    (re.compile(r"(sk-[a-zA-Z0-9]{20,})"), "[REDACTED_API_KEY]"),
    (re.compile(r"(key-[a-zA-Z0-9]{20,})"), "[REDACTED_API_KEY]"),
    # Bearer tokens
    (re.compile(r"(Bearer\s+[a-zA-Z0-9._\-]{20,})"), "Bearer [REDACTED_TOKEN]"),
    # Credentials passed inline to commands
    (re.compile(r"((?:token|password|secret)=)\S+", re.IGNORECASE), r"\1[REDACTED]"),
    # Generic long hex strings that look like secrets
    (re.compile(r"([a-fA-F0-9]{40,})"), "[REDACTED_HASH]"),
]

_CONTEXT_FIELDS = ("automation_id", "automation_type", "cwd", "mode")


def redact(text: str) -> str:
    """Redact sensitive patterns from a string."""
    for pattern, replacement in _REDACTION_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


# ---------------------------------------------------------------------------
# Structured log formatter
# ---------------------------------------------------------------------------

class StructuredFormatter(logging.Formatter):
    """JSON log formatter with optional redaction."""

    def __init__(self, redact_enabled: bool = True):
        super().__init__()
        self.redact_enabled = redact_enabled

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Add automation context if the caller passed it via ``extra``
        for name in _CONTEXT_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = str(record.exc_info[1])

        text = json.dumps(log_entry, default=str)
        if self.redact_enabled:
            text = redact(text)
        return text


def setup_structured_logging(
    level: int = logging.INFO,
    redact_enabled: bool = True,
) -> logging.Handler:
    """Configure the root logger to use structured JSON output."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter(redact_enabled=redact_enabled))
    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)
    return handler

"""Logging utilities with sanitization, correlation ID, and structured logging support.

This module provides:
- Log sanitization to mask credentials, phone numbers and passwords
- Correlation ID support for tracking a request through its log lines
- SanitizingFormatter for complete output sanitization including exceptions
- JSONFormatter for structured JSON logging
"""

from __future__ import annotations

import contextvars
import json
import logging
import re
import uuid
from datetime import UTC, datetime
from typing import Any, ClassVar

correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

# Order matters: session strings must be masked before the shorter patterns
SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # Telethon StringSession (version digit + long urlsafe base64 body)
    (re.compile(r"\b1[A-Za-z0-9_\-+/]{200,}={0,2}"), "***SESSION_STRING***"),
    # API hash / token assignments
    (
        re.compile(r"(api[_-]?(?:key|hash)|token)['\"]?\s*[:=]\s*['\"]?([A-Za-z0-9_\-]{20,})"),
        r"\1=***TOKEN***",
    ),
    # Phone numbers (international format)
    (re.compile(r"\+?[1-9]\d{6,14}"), "***PHONE***"),
    # Passwords in various contexts
    (
        re.compile(r"(password|passwd|pwd)['\"]?\s*[:=]\s*['\"]?([^\s'\",}]{1,})"),
        r"\1=***PASSWORD***",
    ),
    # Verification codes in key=value form
    (re.compile(r"(code)['\"]?\s*[:=]\s*['\"]?(\d{4,8})"), r"\1=***CODE***"),
    # Generic hex secrets (api_hash values)
    (re.compile(r"\b[a-f0-9]{32,}\b"), "***HEX_SECRET***"),
]


def sanitize_text(text: str) -> str:
    """Apply all sanitization patterns to text."""
    for pattern, replacement in SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class LogSanitizer(logging.Filter):
    """Filter that sanitizes sensitive data from log records.

    Exception tracebacks are sanitized by SanitizingFormatter at format time.
    """

    PATTERNS: ClassVar[list[tuple[re.Pattern[str], str]]] = SENSITIVE_PATTERNS

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = sanitize_text(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._sanitize_value(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._sanitize_value(arg) for arg in record.args)

        return True

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return sanitize_text(value)
        elif isinstance(value, dict):
            return {k: self._sanitize_value(v) for k, v in value.items()}
        elif isinstance(value, list | tuple):
            return type(value)(self._sanitize_value(item) for item in value)
        return value


class SanitizingFormatter(logging.Formatter):
    """Formatter that sanitizes the final formatted output, tracebacks included."""

    def format(self, record: logging.LogRecord) -> str:
        return sanitize_text(super().format(record))


class CorrelationIDFilter(logging.Filter):
    """Filter that adds the current correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        cid = correlation_id.get()
        record.correlation_id = cid if cid else "-"
        return True


def get_correlation_id() -> str | None:
    return correlation_id.get()


def set_correlation_id(cid: str) -> None:
    correlation_id.set(cid)


def clear_correlation_id() -> None:
    correlation_id.set(None)


def generate_correlation_id() -> str:
    return uuid.uuid4().hex[:16]


class JSONFormatter(logging.Formatter):
    """Formatter that outputs logs as JSON for log aggregators.

    Each log entry includes timestamp, level, logger, message,
    correlation_id, exception text when present, and any extra fields.
    """

    _STANDARD_ATTRS: ClassVar[frozenset[str]] = frozenset(
        {
            "name",
            "msg",
            "args",
            "created",
            "filename",
            "funcName",
            "levelname",
            "levelno",
            "lineno",
            "module",
            "msecs",
            "pathname",
            "process",
            "processName",
            "relativeCreated",
            "stack_info",
            "exc_info",
            "exc_text",
            "thread",
            "threadName",
            "taskName",
            "correlation_id",
            "message",
        }
    )

    def __init__(self, sanitize: bool = True) -> None:
        super().__init__()
        self.sanitize = sanitize

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "correlation_id"):
            log_entry["correlation_id"] = record.correlation_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in self._STANDARD_ATTRS and not key.startswith("_"):
                try:
                    json.dumps(value)
                    log_entry[key] = value
                except (TypeError, ValueError):
                    log_entry[key] = str(value)

        if self.sanitize:
            log_entry = {
                key: sanitize_text(value) if isinstance(value, str) else value
                for key, value in log_entry.items()
            }

        return json.dumps(log_entry, ensure_ascii=False, default=str)

"""Centralized logging helpers.

Every module logs through ``logging.getLogger(__name__)``; this module only
owns root configuration plus a few helpers for structured ``extra=`` fields,
timing and URL redaction so credentials never reach log output.
"""
from __future__ import annotations

import logging
import os
import re
import time
import urllib.parse
from typing import Any, Dict, Optional

from constants import Constants

_HANDLER_NAME = "pkgfeed"
_SENSITIVE_QUERY_KEYS = {"password", "pwd", "token", "apikey", "api_key", "secret"}


def configure_logging(level: Optional[str] = None) -> None:
    """Install the project stream handler on the root logger.

    Safe to call more than once. The level comes from ``level`` when given,
    otherwise from the ``PKGFEED_LOG_LEVEL`` environment variable (default WARNING).
    """
    root = logging.getLogger()
    level_name = (level or os.environ.get(Constants.ENV_LOG_LEVEL, "WARNING")).upper()
    root.setLevel(getattr(logging, level_name, logging.WARNING))

    for handler in root.handlers:
        if handler.get_name() == _HANDLER_NAME:
            return

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
    root.addHandler(handler)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra=`` mapping for structured log records, dropping ``None`` values."""
    return {key: value for key, value in fields.items() if value is not None}


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records from ``logger`` would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


class Timer:
    """Context manager measuring wall-clock duration in milliseconds."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds; still running timers report time so far."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)


def safe_url(url: Optional[str]) -> str:
    """Return ``url`` with userinfo and sensitive query values redacted."""
    if not url:
        return ""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return redact(url)

    netloc = parts.netloc
    if "@" in netloc:
        netloc = "***@" + netloc.rsplit("@", 1)[1]

    query = parts.query
    if query:
        pairs = urllib.parse.parse_qsl(query, keep_blank_values=True)
        if any(key.lower() in _SENSITIVE_QUERY_KEYS for key, _ in pairs):
            query = "&".join(
                f"{key}=***" if key.lower() in _SENSITIVE_QUERY_KEYS else f"{key}={value}"
                for key, value in pairs
            )

    return urllib.parse.urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


def redact(text: str) -> str:
    """Mask ``key=value`` secrets in free-form text."""
    pattern = r"(?i)\b(" + "|".join(sorted(_SENSITIVE_QUERY_KEYS)) + r")=([^&\s]+)"
    return re.sub(pattern, r"\1=***", text)

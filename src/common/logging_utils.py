"""Logging helpers shared by the CLI and library modules.

Provides one-shot logging configuration, structured ``extra`` payloads for
DEBUG traces, a small timer and URL redaction for logged targets.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Any, Dict, Iterable, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from constants import Constants

_SENSITIVE_KEYS = ("token", "key", "secret", "password", "auth", "sig")


class _ContextFormatter(logging.Formatter):
    """Append structured context fields to DEBUG records."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        ctx = getattr(record, "ctx", None)
        if record.levelno <= logging.DEBUG and isinstance(ctx, dict) and ctx:
            fields = " ".join(f"{k}={v}" for k, v in sorted(ctx.items()))
            return f"{base} [{fields}]"
        return base


def configure_logging(
    level: str = "INFO",
    logfile: Optional[str] = None,
    quiet: bool = False,
) -> None:
    """Configure the root logger once for CLI usage.

    Args:
        level: Log level name (DEBUG, INFO, ...).
        logfile: Optional path of an additional log file.
        quiet: Only emit ERROR and above on the console.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    numeric = getattr(logging, str(level).upper(), logging.INFO)
    root.setLevel(numeric)
    formatter = _ContextFormatter(Constants.LOG_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.setLevel(logging.ERROR if quiet else numeric)
    root.addHandler(console)

    if logfile:
        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(numeric)
        root.addHandler(file_handler)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra`` mapping for structured log records.

    None values are dropped so call sites can pass optional fields freely.
    """
    return {"ctx": {k: v for k, v in fields.items() if v is not None}}


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records would be emitted by ``logger``."""
    return logger.isEnabledFor(logging.DEBUG)


def safe_url(url: str) -> str:
    """Redact credentials and token-like query parameters from a URL."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    netloc = parts.netloc
    if "@" in netloc:
        netloc = "***@" + netloc.rsplit("@", 1)[1]
    query = parts.query
    if query:
        pairs = []
        for key, value in parse_qsl(query, keep_blank_values=True):
            if any(s in key.lower() for s in _SENSITIVE_KEYS):
                value = "***"
            pairs.append((key, value))
        query = urlencode(pairs)
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


def format_names(names: Iterable[str]) -> str:
    """Render a set of package names for a single log line."""
    return ", ".join(sorted(names)) or "(none)"


class Timer:
    """Context manager measuring wall-clock duration."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)

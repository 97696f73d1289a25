"""
Logging utilities for safe4337-ops.

Features:
- Human readable ``[timestamp] LEVEL: message`` lines with a context block
- ANSI colours only when writing to a terminal
- JSON structured output for machine consumption
- Context loggers that carry persistent fields (address, mode, step)
- Convenience levels for the common operational messages
- API key masking in logged URLs
"""
from __future__ import annotations

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, TextIO
from urllib.parse import urlsplit, urlunsplit

ROOT_LOGGER_NAME = "safe4337_ops"

_COLORS = {
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[31m",
    logging.WARNING: "\x1b[33m",
    logging.INFO: "\x1b[36m",
    logging.DEBUG: "\x1b[37m",
}
_RESET = "\x1b[0m"

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime", "context"}


def mask_url(url: str) -> str:
    """Hide query parameters (API keys) of a URL."""
    if not url:
        return url
    parts = urlsplit(url)
    if not parts.query:
        return url
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "<params_masked>", ""))


def _json_default(obj: Any) -> Any:
    if isinstance(obj, bytes):
        return "0x" + obj.hex()
    if isinstance(obj, datetime):
        return obj.isoformat()
    return str(obj)


class TextFormatter(logging.Formatter):
    """``[timestamp] LEVEL: message`` with an optional context block."""

    def __init__(self, colors: bool = False):
        super().__init__()
        self.colors = colors

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
            timespec="milliseconds"
        )
        message = f"[{timestamp}] {record.levelname}: {record.getMessage()}"

        context = getattr(record, "context", None)
        if context:
            message += "\n  Context: " + json.dumps(context, indent=2, default=_json_default)

        if record.exc_info:
            message += f"\n  Error: {record.exc_info[1]}"
            message += "\n  Stack: " + self.formatException(record.exc_info)

        if self.colors:
            color = _COLORS.get(record.levelno, "")
            return f"{color}{message}{_RESET}"
        return message


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=_json_default)


def setup_logging(
    level: str = "INFO",
    colors: Optional[bool] = None,
    json_format: bool = False,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure logging for the toolkit.

    Args:
        level: Log level name
        colors: Force colours on/off; defaults to whether the stream is a TTY
        json_format: Emit JSON lines instead of text
        stream: Output stream (stdout by default)
    """
    stream = stream or sys.stdout
    if colors is None:
        colors = hasattr(stream, "isatty") and stream.isatty()

    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter() if json_format else TextFormatter(colors=colors))

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.propagate = False

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter merging persistent context into every record.

    Per-call context is passed with ``context={...}`` and wins over the
    persistent fields.
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        super().__init__(logger, dict(context or {}))

    def process(self, msg, kwargs):
        context = {**self.extra, **(kwargs.pop("context", None) or {})}
        extra = dict(kwargs.get("extra") or {})
        if context:
            extra["context"] = context
        kwargs["extra"] = extra
        return msg, kwargs

    def child(self, **context: Any) -> "ContextLogger":
        return ContextLogger(self.logger, {**self.extra, **context})

    def success(self, msg: str, *args, **kwargs) -> None:
        self.info(f"SUCCESS: {msg}", *args, **kwargs)

    def failure(self, msg: str, *args, **kwargs) -> None:
        self.error(f"ERROR: {msg}", *args, **kwargs)

    def progress(self, msg: str, *args, **kwargs) -> None:
        self.info(f"🔄 {msg}", *args, **kwargs)

    def network(self, msg: str, *args, **kwargs) -> None:
        self.info(f"🌐 {msg}", *args, **kwargs)

    def contract(self, msg: str, *args, **kwargs) -> None:
        self.info(f"📋 {msg}", *args, **kwargs)

    def transaction(self, msg: str, *args, **kwargs) -> None:
        self.info(f"💰 {msg}", *args, **kwargs)


def get_logger(name: str = ROOT_LOGGER_NAME, **context: Any) -> ContextLogger:
    """Get a context logger; ``name`` is usually ``__name__``."""
    return ContextLogger(logging.getLogger(name), context)


@contextmanager
def operation_context(
    operation: str,
    log: Optional[ContextLogger] = None,
    **metadata: Any,
) -> Iterator[Dict[str, Any]]:
    """
    Time an operation and log its outcome.

    Usage:
        with operation_context("deploy_safe", log, owner=owner) as ctx:
            ...
            ctx["tx_hash"] = tx_hash
    """
    log = log or get_logger()
    ctx: Dict[str, Any] = dict(metadata)
    started = time.monotonic()
    log.debug(f"Starting {operation}", context=metadata)
    try:
        yield ctx
    except Exception as e:
        ctx["duration_ms"] = round((time.monotonic() - started) * 1000)
        ctx["error"] = str(e)
        log.error(f"{operation} failed after {ctx['duration_ms']}ms", context=ctx)
        raise
    ctx["duration_ms"] = round((time.monotonic() - started) * 1000)
    log.debug(f"Completed {operation} in {ctx['duration_ms']}ms", context=ctx)

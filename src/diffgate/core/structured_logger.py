"""
Structured Logging with Trace IDs
=================================

JSON-structured logging for tool calls. Every tool invocation runs inside a
``TraceContext`` so the log lines of one edit (validation, publish, wait,
write) can be followed through the handshake.

stdout carries the MCP protocol, so handlers installed here always write to
stderr or to a file.
"""

import json
import logging
import re
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from pathlib import Path

# Context variable to store trace_id for the current tool call
_trace_id_var: ContextVar[str | None] = ContextVar('trace_id', default=None)

_SECRET_PATTERNS = re.compile(
    r"(sk-[A-Za-z0-9_-]{8,}|ghp_[A-Za-z0-9]+|xox[bp]-[A-Za-z0-9-]+|"
    r"AKIA[0-9A-Z]{16}|Bearer\s+[A-Za-z0-9._~+/=-]+)",
    re.IGNORECASE,
)


def _redact_secrets(text: str) -> str:
    return _SECRET_PATTERNS.sub("[REDACTED]", text)


def current_trace_id() -> str | None:
    return _trace_id_var.get()


class StructuredLogger:
    """
    Structured logger that outputs JSON lines with trace IDs

    Example output:
    {
        "timestamp": "2026-10-17T10:30:45.123Z",
        "level": "INFO",
        "trace_id": "abc123",
        "component": "ApprovalHandshake",
        "message": "Change approved",
        "fingerprint": "3f2a9c0d1b7e4a55",
        "filepath": "/work/app.py"
    }
    """

    def __init__(self, component: str, logger: logging.Logger | None = None) -> None:
        """
        Initialize structured logger

        Args:
            component: Component name (e.g., 'ApprovalHandshake', 'MailboxStore')
            logger: Optional existing logger (creates new if not provided)
        """
        self.component = component
        self.logger = logger or logging.getLogger(f"diffgate.{component}")

    def _log(self, level: str, message: str, **kwargs) -> None:
        log_entry = {
            'timestamp': datetime.now(tz=UTC).isoformat(),
            'level': level,
            'component': self.component,
            'message': _redact_secrets(message),
        }

        trace_id = _trace_id_var.get()
        if trace_id:
            log_entry['trace_id'] = trace_id

        for k, v in kwargs.items():
            log_entry[k] = _redact_secrets(v) if isinstance(v, str) else v

        getattr(self.logger, level.lower())(json.dumps(log_entry, default=str))

    def debug(self, message: str, **kwargs) -> None:
        self._log('DEBUG', message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log('INFO', message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log('WARNING', message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log('ERROR', message, **kwargs)


class TraceContext:
    """
    Context manager for setting trace_id for one tool call

    Usage:
        with TraceContext() as trace_id:
            # All structured logs within this context carry this trace_id
            logger.info("Proposing edit")
    """

    def __init__(self, trace_id: str | None = None) -> None:
        self.trace_id = trace_id or self._generate_trace_id()
        self.token = None

    def __enter__(self) -> str:
        self.token = _trace_id_var.set(self.trace_id)
        return self.trace_id

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        _trace_id_var.reset(self.token)

    @staticmethod
    def _generate_trace_id() -> str:
        return str(uuid.uuid4())[:8]


class _RedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return _redact_secrets(super().format(record))


def configure_logging(level: str = "INFO", output_file: Path | None = None, fmt: str = "json") -> logging.Handler:
    """
    Install a single handler on the ``diffgate`` logger hierarchy.

    Args:
        level: Log level name
        output_file: Optional log file; stderr is used when omitted
        fmt: 'json' emits the structured message as-is, 'text' prefixes
            timestamp, level and logger name

    Returns:
        The installed handler
    """
    root = logging.getLogger("diffgate")
    for existing in list(root.handlers):
        root.removeHandler(existing)

    if output_file is not None:
        output_file = Path(output_file)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(output_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)

    if fmt == "text":
        handler.setFormatter(_RedactingFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    else:
        handler.setFormatter(_RedactingFormatter("%(message)s"))

    root.addHandler(handler)
    root.setLevel(level.upper())
    root.propagate = False
    return handler


def get_logger(component: str) -> StructuredLogger:
    """
    Get a structured logger for a component

    Args:
        component: Component name

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(component)

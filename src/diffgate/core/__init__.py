"""Core diffgate module - errors and logging shared by every layer."""

from diffgate.core.exceptions import (
    ConfigurationError,
    DiffGateError,
    DuplicateFingerprintError,
    ErrorCode,
    MailboxIOError,
    TextNotFoundError,
    ValidationError,
)
from diffgate.core.structured_logger import StructuredLogger, TraceContext, configure_logging, get_logger

__all__ = [
    "configure_logging",
    "ConfigurationError",
    "DiffGateError",
    "DuplicateFingerprintError",
    "ErrorCode",
    "get_logger",
    "MailboxIOError",
    "StructuredLogger",
    "TextNotFoundError",
    "TraceContext",
    "ValidationError",
]

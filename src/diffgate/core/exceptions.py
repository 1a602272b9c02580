"""
Custom Exceptions for diffgate
==============================

Structured error handling lets the tool layer turn failures into
descriptive results based on type rather than parsing strings.

Error Codes:
- 1xxx: Client errors (argument validation, text lookup, duplicates)
- 4xxx: Execution errors (mailbox I/O)
- 5xxx: System errors (internal, configuration)
"""

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Structured error codes for user-friendly messages"""

    # 1xxx: Client Errors
    VALIDATION_ERROR = 1001
    TEXT_NOT_FOUND = 1004
    DUPLICATE_FINGERPRINT = 1005

    # 4xxx: Execution Errors
    MAILBOX_IO = 4004

    # 5xxx: System Errors
    INTERNAL_ERROR = 5001
    CONFIGURATION_ERROR = 5003


class DiffGateError(Exception):
    """Base exception for all diffgate errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging"""
        return {
            'error_type': self.__class__.__name__,
            'error_code': int(self.error_code),
            'message': self.message,
            'details': self.details
        }

    def user_message(self) -> str:
        """Get user-friendly error message based on error code"""
        code_messages = {
            ErrorCode.VALIDATION_ERROR: "Invalid tool arguments",
            ErrorCode.TEXT_NOT_FOUND: "Could not find the text to replace",
            ErrorCode.DUPLICATE_FINGERPRINT: "An identical change is already awaiting review",
            ErrorCode.MAILBOX_IO: "Review mailbox unavailable",
            ErrorCode.INTERNAL_ERROR: "Internal error",
            ErrorCode.CONFIGURATION_ERROR: "Configuration error",
        }
        return f"Error {self.error_code}: {code_messages.get(self.error_code, self.message)}"


class ValidationError(DiffGateError):
    """Raised when tool arguments are malformed"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)


class TextNotFoundError(DiffGateError):
    """Raised when the text to replace is absent from the current file"""

    def __init__(self, file_path: str, details: dict[str, Any] | None = None):
        super().__init__(
            f"Could not find the text to replace in {file_path}",
            ErrorCode.TEXT_NOT_FOUND,
            details,
        )
        self.file_path = file_path


class DuplicateFingerprintError(DiffGateError):
    """Raised when a proposal with the same fingerprint is still pending.

    ``entry`` is the live pending entry, so callers can share its wait.
    """

    def __init__(self, fingerprint: str, entry: Any = None):
        super().__init__(
            f"Change {fingerprint} is already awaiting review",
            ErrorCode.DUPLICATE_FINGERPRINT,
            {'fingerprint': fingerprint},
        )
        self.fingerprint = fingerprint
        self.entry = entry


class MailboxIOError(DiffGateError):
    """Raised when a mailbox artifact cannot be written"""

    def __init__(self, message: str, path: str | None = None, details: dict[str, Any] | None = None):
        details = dict(details or {})
        if path is not None:
            details['path'] = path
        super().__init__(message, ErrorCode.MAILBOX_IO, details)
        self.path = path


class ConfigurationError(DiffGateError):
    """Raised when settings are invalid"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)

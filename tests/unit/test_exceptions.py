"""Tests for diffgate.core.exceptions"""

from diffgate.core.exceptions import (
    ConfigurationError,
    DiffGateError,
    DuplicateFingerprintError,
    ErrorCode,
    MailboxIOError,
    TextNotFoundError,
    ValidationError,
)


class TestDiffGateError:
    def test_defaults(self):
        err = DiffGateError("boom")
        assert str(err) == "boom"
        assert err.error_code is ErrorCode.INTERNAL_ERROR
        assert err.details == {}

    def test_to_dict(self):
        err = ValidationError("file_path must not be empty", {"field": "file_path"})
        assert err.to_dict() == {
            "error_type": "ValidationError",
            "error_code": 1001,
            "message": "file_path must not be empty",
            "details": {"field": "file_path"},
        }

    def test_user_message(self):
        assert MailboxIOError("disk full").user_message() == "Error 4004: Review mailbox unavailable"


class TestSubclasses:
    def test_text_not_found(self):
        err = TextNotFoundError("/work/app.py")
        assert err.message == "Could not find the text to replace in /work/app.py"
        assert err.error_code is ErrorCode.TEXT_NOT_FOUND
        assert err.file_path == "/work/app.py"

    def test_duplicate_fingerprint_carries_entry(self):
        entry = object()
        err = DuplicateFingerprintError("0123456789abcdef", entry)
        assert err.entry is entry
        assert err.details == {"fingerprint": "0123456789abcdef"}

    def test_mailbox_io_path_in_details(self):
        err = MailboxIOError("cannot write", path="/tmp/mb/x.request.json", details={"errno": 28})
        assert err.details == {"errno": 28, "path": "/tmp/mb/x.request.json"}
        assert err.path == "/tmp/mb/x.request.json"

    def test_all_are_diffgate_errors(self):
        for cls in (ValidationError, ConfigurationError, MailboxIOError):
            assert issubclass(cls, DiffGateError)

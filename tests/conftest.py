"""
Pytest configuration for diffgate tests - validates the environment,
registers markers, and provides a temporary mailbox plus a scripted reviewer.
"""

import asyncio
import shutil
import sys
import tempfile
from pathlib import Path

import pytest

from diffgate.approval.handshake import ApprovalHandshake
from diffgate.approval.mailbox import REQUEST_SUFFIX, MailboxStore

# =============================================================================
# SHARED FIXTURES
# =============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    tmp_dir = tempfile.mkdtemp()
    yield Path(tmp_dir)
    shutil.rmtree(tmp_dir, ignore_errors=True)


@pytest.fixture
def mailbox_dir(temp_dir):
    return temp_dir / "mailbox"


@pytest.fixture
def workspace(temp_dir):
    """Directory holding the files the agent edits."""
    work = temp_dir / "work"
    work.mkdir()
    return work


@pytest.fixture
def mailbox(mailbox_dir):
    return MailboxStore(mailbox_dir, poll_interval=0.01)


@pytest.fixture
def handshake(mailbox):
    return ApprovalHandshake(mailbox, deadline=2.0)


class ScriptedReviewer:
    """Plays the editor side: waits for request artifacts and answers them."""

    def __init__(self, mailbox: MailboxStore) -> None:
        self.mailbox = mailbox

    async def wait_for_request(self, timeout: float = 2.0) -> str:
        loop = asyncio.get_running_loop()
        expires_at = loop.time() + timeout
        while loop.time() < expires_at:
            if self.mailbox.directory.is_dir():
                found = sorted(self.mailbox.directory.glob(f"*{REQUEST_SUFFIX}"))
                if found:
                    return found[0].name[: -len(REQUEST_SUFFIX)]
            await asyncio.sleep(0.01)
        raise AssertionError("no review request was published")

    async def answer(self, approved: bool, timeout: float = 2.0) -> str:
        fingerprint = await self.wait_for_request(timeout)
        assert self.mailbox.write_response(fingerprint, approved)
        return fingerprint

    def answer_later(self, approved: bool) -> asyncio.Task:
        return asyncio.create_task(self.answer(approved))


@pytest.fixture
def reviewer(mailbox):
    return ScriptedReviewer(mailbox)


def _list_files(directory: Path) -> list[str]:
    if not directory.is_dir():
        return []
    return sorted(p.name for p in directory.iterdir())


@pytest.fixture
def mailbox_files():
    """Names of every file left in a mailbox directory, temporary files included."""
    return _list_files


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Validate test environment and configure pytest with custom markers."""
    missing = []
    for mod in ("pydantic", "pydantic_settings", "yaml", "click", "mcp"):
        try:
            __import__(mod)
        except ImportError:
            missing.append(mod)

    if missing:
        print(
            "\n"
            "=" * 70 + "\n"
            f" Missing dependencies: {', '.join(missing)}\n"
            " Run: pip install -e '.[test]'\n"
            "=" * 70,
            file=sys.stderr,
        )
        raise SystemExit(1)

    config.addinivalue_line(
        "markers", "unit: Fast unit tests with no external dependencies"
    )
    config.addinivalue_line(
        "markers", "integration: Several components together against a real temporary mailbox"
    )

"""
Mailbox Store
=============

A shared directory used as the request/response channel between the
proposing process (this server) and an out-of-process reviewer (the editor).

Layout, one pair per fingerprint:

    <mailbox>/<hash>.request.json    written by the proposer
    <mailbox>/<hash>.response.json   written by the reviewer

Every artifact is written to a temporary name in the same directory and
moved into place with ``os.replace``, so a reader never observes a partial
payload. Each artifact has exactly one writer and one consumer, so no
locking is needed.
"""

import asyncio
import logging
import os
import re
import tempfile
import time
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, Field, StrictBool
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError

from diffgate.approval.registry import ChangeProposal, Outcome
from diffgate.core.exceptions import MailboxIOError, ValidationError

logger = logging.getLogger(__name__)

REQUEST_SUFFIX = ".request.json"
RESPONSE_SUFFIX = ".response.json"
DEFAULT_POLL_INTERVAL = 0.1

_FINGERPRINT_RE = re.compile(r"^[0-9a-f]{8,64}$")


class ReviewRequest(BaseModel):
    hash: str
    filepath: str
    original: str
    modified: str
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))

    @classmethod
    def from_proposal(cls, proposal: ChangeProposal) -> "ReviewRequest":
        return cls(**proposal.to_dict())


class ReviewResponse(BaseModel):
    approved: StrictBool
    hash: str | None = None


def resolve_mailbox_dir(override: str | Path | None = None) -> Path:
    """
    Locate the mailbox directory.

    An explicit per-session override wins; otherwise the per-user data
    directory ($XDG_DATA_HOME or ~/.local/share) is used.
    """
    if override:
        return Path(override).expanduser()
    data_home = os.environ.get("XDG_DATA_HOME")
    base = Path(data_home) if data_home else Path.home() / ".local" / "share"
    return base / "diffgate" / "mailbox"


def check_fingerprint(fingerprint: str) -> str:
    """Reject anything that could not have come from the fingerprint generator."""
    if not _FINGERPRINT_RE.match(fingerprint or ""):
        raise ValidationError(f"Invalid change hash: {fingerprint!r}", {"hash": fingerprint})
    return fingerprint


class ApprovalTransport(ABC):
    """Hand-off of one review request and its decision, keyed by fingerprint."""

    @abstractmethod
    async def publish(self, request: ReviewRequest) -> None:
        """Make the request visible to the reviewer. Raises MailboxIOError."""

    @abstractmethod
    async def await_response(self, fingerprint: str, deadline: float) -> Outcome:
        """Wait up to ``deadline`` seconds; APPROVED, REJECTED or TIMED_OUT."""

    @abstractmethod
    async def submit_response(self, fingerprint: str, approved: bool) -> bool:
        """Record a decision; False when no matching request exists."""

    @abstractmethod
    async def discard(self, fingerprint: str) -> None:
        """Best-effort removal of everything held for ``fingerprint``."""


class MailboxStore(ApprovalTransport):
    """Filesystem mailbox; survives reviewer restarts where a held socket would not."""

    def __init__(self, directory: str | Path, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self.directory = Path(directory)
        self.poll_interval = poll_interval

    def request_path(self, fingerprint: str) -> Path:
        return self.directory / f"{check_fingerprint(fingerprint)}{REQUEST_SUFFIX}"

    def response_path(self, fingerprint: str) -> Path:
        return self.directory / f"{check_fingerprint(fingerprint)}{RESPONSE_SUFFIX}"

    # ------------------------------------------------------------------
    # Proposer side
    # ------------------------------------------------------------------

    async def publish(self, request: ReviewRequest) -> None:
        await asyncio.to_thread(self._sync_publish, request)
        logger.debug("Published review request %s", request.hash)

    async def await_response(self, fingerprint: str, deadline: float) -> Outcome:
        loop = asyncio.get_running_loop()
        expires_at = loop.time() + deadline
        while True:
            response = await asyncio.to_thread(self._sync_read_response, fingerprint)
            if response is not None:
                await self.discard(fingerprint)
                return Outcome.APPROVED if response.approved else Outcome.REJECTED
            remaining = expires_at - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(self.poll_interval, remaining))

        logger.info("No review response for %s within %.1fs", fingerprint, deadline)
        await self.discard(fingerprint)
        return Outcome.TIMED_OUT

    async def discard(self, fingerprint: str) -> None:
        await asyncio.to_thread(self._sync_discard, fingerprint)

    # ------------------------------------------------------------------
    # Reviewer side
    # ------------------------------------------------------------------

    async def submit_response(self, fingerprint: str, approved: bool) -> bool:
        return await asyncio.to_thread(self.write_response, fingerprint, approved)

    def write_response(self, fingerprint: str, approved: bool) -> bool:
        if not self.request_path(fingerprint).exists():
            logger.info("No pending request for %s; response dropped", fingerprint)
            return False
        payload = ReviewResponse(approved=approved, hash=fingerprint).model_dump_json()
        self._atomic_write(self.response_path(fingerprint), payload)
        return True

    def read_request(self, fingerprint: str) -> ReviewRequest | None:
        path = self.request_path(fingerprint)
        try:
            return ReviewRequest.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, PydanticValidationError) as e:
            logger.warning("Unreadable review request %s: %s", path.name, e)
            return None

    def list_requests(self) -> list[ReviewRequest]:
        if not self.directory.is_dir():
            return []
        requests = []
        for path in self.directory.glob(f"*{REQUEST_SUFFIX}"):
            request = self.read_request(path.name[: -len(REQUEST_SUFFIX)])
            if request is not None:
                requests.append(request)
        return sorted(requests, key=lambda r: r.timestamp)

    def sweep_stale(self, max_age: float) -> int:
        """
        Remove artifacts abandoned by a previous process.

        Requests older than ``max_age`` seconds (and their responses),
        responses with no request, and leftover temporary files are deleted.

        Returns:
            Number of files removed
        """
        if not self.directory.is_dir():
            return 0
        cutoff = time.time() - max_age
        removed = 0
        for path in list(self.directory.iterdir()):
            name = path.name
            try:
                if name.endswith(REQUEST_SUFFIX):
                    stale = path.stat().st_mtime < cutoff
                elif name.endswith(RESPONSE_SUFFIX):
                    request = self.directory / (name[: -len(RESPONSE_SUFFIX)] + REQUEST_SUFFIX)
                    stale = not request.exists() or request.stat().st_mtime < cutoff
                elif name.startswith(".") and name.endswith(".tmp"):
                    stale = path.stat().st_mtime < cutoff
                else:
                    continue
                if stale:
                    path.unlink()
                    removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.debug("Could not sweep %s: %s", name, e)
        if removed:
            logger.info("Swept %s stale mailbox artifacts from %s", removed, self.directory)
        return removed

    # ------------------------------------------------------------------
    # Private sync helpers (called via asyncio.to_thread)
    # ------------------------------------------------------------------

    def _sync_publish(self, request: ReviewRequest) -> None:
        try:
            payload = request.model_dump_json()
        except PydanticSerializationError as e:
            # e.g. lone surrogates, which have no UTF-8 encoding
            raise MailboxIOError(f"Cannot serialize review request: {e}", details={"hash": request.hash}) from e
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise MailboxIOError(f"Cannot create mailbox directory: {e}", str(self.directory)) from e

        # a response left by an earlier process must not decide this request
        response = self.response_path(request.hash)
        try:
            response.unlink(missing_ok=True)
        except OSError as e:
            raise MailboxIOError(f"Cannot clear stale response: {e}", str(response)) from e
        self._atomic_write(self.request_path(request.hash), payload)

    def _sync_read_response(self, fingerprint: str) -> ReviewResponse | None:
        path = self.response_path(fingerprint)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.debug("Response %s not readable yet: %s", path.name, e)
            return None
        try:
            response = ReviewResponse.model_validate_json(raw)
        except PydanticValidationError:
            # Reviewers that write in place may be caught mid-write; retry next tick
            logger.debug("Ignoring malformed response for %s", fingerprint)
            return None
        if response.hash is not None and response.hash != fingerprint:
            logger.warning("Response for %s names a different hash %s", fingerprint, response.hash)
            return None
        return response

    def _sync_discard(self, fingerprint: str) -> None:
        for path in (self.request_path(fingerprint), self.response_path(fingerprint)):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.debug("Could not remove %s: %s", path.name, e)

    def _atomic_write(self, target: Path, payload: str) -> None:
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{target.name}.", suffix=".tmp")
        except OSError as e:
            raise MailboxIOError(f"Cannot write to mailbox: {e}", str(target)) from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, target)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise MailboxIOError(f"Cannot write to mailbox: {e}", str(target)) from e

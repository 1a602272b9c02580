"""Pending Change Registry - in-memory table of proposals awaiting a decision."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from diffgate.approval.fingerprint import DEFAULT_FINGERPRINT_LENGTH, fingerprint
from diffgate.core.exceptions import DuplicateFingerprintError

logger = logging.getLogger(__name__)


class Outcome(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not Outcome.PENDING


@dataclass(frozen=True)
class ChangeProposal:
    path: str
    before: str
    after: str
    fingerprint: str

    @classmethod
    def create(
        cls, path: str, before: str, after: str, length: int = DEFAULT_FINGERPRINT_LENGTH
    ) -> "ChangeProposal":
        return cls(path=path, before=before, after=after, fingerprint=fingerprint(path, before, after, length))

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.fingerprint,
            "filepath": self.path,
            "original": self.before,
            "modified": self.after,
        }


@dataclass
class PendingEntry:
    proposal: ChangeProposal
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    outcome: Outcome = Outcome.PENDING
    future: asyncio.Future = None

    def __post_init__(self):
        if self.future is None:
            self.future = asyncio.get_running_loop().create_future()

    @property
    def fingerprint(self) -> str:
        return self.proposal.fingerprint

    async def wait(self) -> Outcome:
        """Wait for the terminal outcome; several waiters may share one entry."""
        return await asyncio.shield(self.future)


class PendingChangeRegistry:
    """
    Proposals awaiting review, keyed by fingerprint.

    Each entry leaves PENDING exactly once and is removed on that transition,
    so late or repeated decisions for the same fingerprint are no-ops.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PendingEntry] = {}

    def register(self, proposal: ChangeProposal) -> PendingEntry:
        existing = self._entries.get(proposal.fingerprint)
        if existing is not None and existing.outcome is Outcome.PENDING:
            raise DuplicateFingerprintError(proposal.fingerprint, existing)
        entry = PendingEntry(proposal=proposal)
        self._entries[proposal.fingerprint] = entry
        logger.debug("Registered pending change %s for %s", proposal.fingerprint, proposal.path)
        return entry

    def resolve(self, fingerprint: str, approved: bool) -> bool:
        return self._transition(fingerprint, Outcome.APPROVED if approved else Outcome.REJECTED)

    def expire(self, fingerprint: str) -> bool:
        return self._transition(fingerprint, Outcome.TIMED_OUT)

    def fail(self, fingerprint: str) -> bool:
        return self._transition(fingerprint, Outcome.FAILED)

    def lookup(self, fingerprint: str) -> ChangeProposal | None:
        entry = self._entries.get(fingerprint)
        return entry.proposal if entry else None

    def pending(self) -> list[ChangeProposal]:
        return [e.proposal for e in self._entries.values() if e.outcome is Outcome.PENDING]

    def _transition(self, fingerprint: str, outcome: Outcome) -> bool:
        entry = self._entries.get(fingerprint)
        if entry is None or entry.outcome is not Outcome.PENDING:
            logger.debug("Ignoring %s for %s: no pending change", outcome.value, fingerprint)
            return False
        entry.outcome = outcome
        del self._entries[fingerprint]
        if not entry.future.done():
            entry.future.set_result(outcome)
        logger.debug("Change %s resolved as %s", fingerprint, outcome.value)
        return True

    def __contains__(self, fingerprint: str) -> bool:
        return fingerprint in self._entries

    def __len__(self) -> int:
        return len(self._entries)

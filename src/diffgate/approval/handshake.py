"""
Approval Handshake
==================

Drives one proposed change from submission to a single terminal decision:

    Submitted -> AwaitingDecision -> Approved | Rejected | TimedOut | Failed

The entry's future is the only decision channel. Two producers may feed it:
the mailbox poller (a reviewer in another process writing a response
artifact) and ``resolve()`` (a decision delivered in-process). Whichever
arrives first wins; the registry ignores the rest.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from diffgate.approval.mailbox import ApprovalTransport, ReviewRequest
from diffgate.approval.registry import ChangeProposal, Outcome, PendingChangeRegistry, PendingEntry
from diffgate.approval.fingerprint import DEFAULT_FINGERPRINT_LENGTH
from diffgate.core.exceptions import DuplicateFingerprintError, MailboxIOError
from diffgate.core.structured_logger import get_logger

ReviewNotifier = Callable[[ReviewRequest], Awaitable[None]]

DEFAULT_DEADLINE = 60.0

logger = logging.getLogger(__name__)
slog = get_logger("ApprovalHandshake")


class ApprovalHandshake:
    """Coordinator owning the pending registry and the transport to the reviewer."""

    def __init__(
        self,
        transport: ApprovalTransport,
        registry: PendingChangeRegistry | None = None,
        deadline: float = DEFAULT_DEADLINE,
        fingerprint_length: int = DEFAULT_FINGERPRINT_LENGTH,
        notifier: ReviewNotifier | None = None,
    ) -> None:
        self.transport = transport
        self.registry = registry or PendingChangeRegistry()
        self.deadline = deadline
        self.fingerprint_length = fingerprint_length
        self.notifier = notifier

    async def propose_change(self, path: str, before: str, after: str, deadline: float | None = None) -> Outcome:
        """
        Submit a change for review and wait for its decision.

        Args:
            path: Target file path
            before: Current content ('' when the file does not exist)
            after: Proposed content
            deadline: Seconds to wait for a decision (defaults to the coordinator's)

        Returns:
            APPROVED, REJECTED, TIMED_OUT or FAILED. Only APPROVED allows the
            caller to touch the file.
        """
        deadline = self.deadline if deadline is None else deadline
        proposal = ChangeProposal.create(path, before, after, self.fingerprint_length)

        try:
            entry = self.registry.register(proposal)
        except DuplicateFingerprintError as e:
            slog.info("Identical change already awaiting review; sharing its decision",
                      fingerprint=proposal.fingerprint, filepath=path)
            return await e.entry.wait()

        request = ReviewRequest.from_proposal(proposal)
        try:
            try:
                await self.transport.publish(request)
            except MailboxIOError as e:
                logger.error("Failed to publish review request %s: %s", proposal.fingerprint, e, exc_info=True)
                self.registry.fail(proposal.fingerprint)
                await self.transport.discard(proposal.fingerprint)
                slog.error("Review request could not be published", fingerprint=proposal.fingerprint,
                           filepath=path, error=e.to_dict())
                return Outcome.FAILED

            slog.info("Awaiting review", fingerprint=proposal.fingerprint, filepath=path, deadline=deadline)
            # the deadline runs from publication; a slow notifier must not extend it
            notify = asyncio.create_task(self._notify(request)) if self.notifier else None
            try:
                return await self._await_decision(entry, deadline)
            finally:
                if notify is not None and not notify.done():
                    notify.cancel()
        finally:
            # no-op once a decision was recorded; covers cancellation mid-handshake
            self.registry.fail(proposal.fingerprint)

    def resolve(self, fingerprint: str, approved: bool) -> bool:
        """Deliver a decision in-process; False if nothing is pending for it."""
        return self.registry.resolve(fingerprint, approved)

    def lookup(self, fingerprint: str) -> ChangeProposal | None:
        return self.registry.lookup(fingerprint)

    def get_stats(self) -> dict[str, Any]:
        return {
            "pending": len(self.registry),
            "deadline": self.deadline,
        }

    async def _await_decision(self, entry: PendingEntry, deadline: float) -> Outcome:
        fp = entry.fingerprint
        relay = asyncio.create_task(self._relay_mailbox_decision(fp, deadline))
        try:
            outcome = await asyncio.wait_for(entry.wait(), timeout=deadline)
        except TimeoutError:
            self.registry.expire(fp)
            outcome = await entry.wait()
        finally:
            relay.cancel()
            try:
                await relay
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error("Mailbox poll for %s failed: %s", fp, e, exc_info=True)
            await self.transport.discard(fp)

        slog.info(f"Change {outcome.value}", fingerprint=fp, filepath=entry.proposal.path)
        return outcome

    async def _relay_mailbox_decision(self, fingerprint: str, deadline: float) -> None:
        outcome = await self.transport.await_response(fingerprint, deadline)
        if outcome is Outcome.TIMED_OUT:
            self.registry.expire(fingerprint)
        else:
            self.registry.resolve(fingerprint, outcome is Outcome.APPROVED)

    async def _notify(self, request: ReviewRequest) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier(request)
        except Exception as e:
            logger.warning("Reviewer notification failed for %s: %s", request.hash, e)

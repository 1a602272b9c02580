"""Tests for the approval handshake state machine."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from diffgate.approval.fingerprint import fingerprint
from diffgate.approval.handshake import ApprovalHandshake
from diffgate.approval.mailbox import MailboxStore, ReviewRequest
from diffgate.approval.registry import Outcome, PendingChangeRegistry
from diffgate.core.exceptions import MailboxIOError


class TestApprovalHandshake:
    def test_initialization(self, mailbox):
        hs = ApprovalHandshake(mailbox)
        assert hs.deadline == 60.0
        assert hs.fingerprint_length == 16
        assert isinstance(hs.registry, PendingChangeRegistry)
        assert hs.get_stats() == {"pending": 0, "deadline": 60.0}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("approved,expected", [(True, Outcome.APPROVED), (False, Outcome.REJECTED)])
    async def test_reviewer_decision(self, handshake, reviewer, mailbox_files, approved, expected):
        task = reviewer.answer_later(approved)
        outcome = await handshake.propose_change("/work/a.py", "old", "new")
        fp = await task
        assert outcome is expected
        assert fp == fingerprint("/work/a.py", "old", "new")
        assert len(handshake.registry) == 0
        assert mailbox_files(handshake.transport.directory) == []

    @pytest.mark.asyncio
    async def test_request_visible_before_waiting(self, handshake, reviewer):
        task = asyncio.create_task(handshake.propose_change("/work/a.py", "old", "new"))
        fp = await reviewer.wait_for_request()
        request = handshake.transport.read_request(fp)
        assert request.filepath == "/work/a.py"
        assert request.original == "old"
        assert request.modified == "new"
        assert handshake.lookup(fp).after == "new"
        handshake.resolve(fp, False)
        assert await task is Outcome.REJECTED

    @pytest.mark.asyncio
    async def test_timeout(self, mailbox, mailbox_files):
        hs = ApprovalHandshake(mailbox, deadline=0.1)
        outcome = await hs.propose_change("/work/a.py", "old", "new")
        assert outcome is Outcome.TIMED_OUT
        assert len(hs.registry) == 0
        assert mailbox_files(mailbox.directory) == []

    @pytest.mark.asyncio
    async def test_per_call_deadline(self, handshake):
        outcome = await handshake.propose_change("/work/a.py", "old", "new", deadline=0.05)
        assert outcome is Outcome.TIMED_OUT

    @pytest.mark.asyncio
    async def test_publish_failure_is_failed_and_never_waits(self, mailbox):
        hs = ApprovalHandshake(mailbox, deadline=30)
        with patch.object(MailboxStore, "publish", AsyncMock(side_effect=MailboxIOError("read-only"))), \
                patch.object(MailboxStore, "await_response", AsyncMock()) as await_response:
            outcome = await asyncio.wait_for(hs.propose_change("/work/a.py", "old", "new"), timeout=2)
        assert outcome is Outcome.FAILED
        await_response.assert_not_called()
        assert len(hs.registry) == 0

    @pytest.mark.asyncio
    async def test_in_process_resolution(self, handshake, mailbox_files):
        async def approve_later():
            while not handshake.registry.pending():
                await asyncio.sleep(0.01)
            fp = handshake.registry.pending()[0].fingerprint
            assert handshake.resolve(fp, True) is True
            assert handshake.resolve(fp, False) is False

        task = asyncio.create_task(approve_later())
        outcome = await handshake.propose_change("/work/a.py", "old", "new")
        await task
        assert outcome is Outcome.APPROVED
        assert mailbox_files(handshake.transport.directory) == []

    @pytest.mark.asyncio
    async def test_late_response_after_timeout_ignored(self, mailbox):
        hs = ApprovalHandshake(mailbox, deadline=0.05)
        outcome = await hs.propose_change("/work/a.py", "old", "new")
        fp = fingerprint("/work/a.py", "old", "new")
        assert outcome is Outcome.TIMED_OUT
        assert hs.resolve(fp, True) is False
        assert await mailbox.submit_response(fp, True) is False

    @pytest.mark.asyncio
    async def test_duplicate_proposal_shares_wait(self, handshake, reviewer, mailbox_files):
        first = asyncio.create_task(handshake.propose_change("/work/a.py", "old", "new"))
        await reviewer.wait_for_request()
        second = asyncio.create_task(handshake.propose_change("/work/a.py", "old", "new"))
        await asyncio.sleep(0.05)
        assert len(handshake.registry) == 1
        assert mailbox_files(handshake.transport.directory) == [
            f"{fingerprint('/work/a.py', 'old', 'new')}.request.json"
        ]
        await reviewer.answer(True)
        assert await asyncio.gather(first, second) == [Outcome.APPROVED, Outcome.APPROVED]

    @pytest.mark.asyncio
    async def test_concurrent_independent_proposals(self, mailbox):
        hs = ApprovalHandshake(mailbox, deadline=2)
        a = asyncio.create_task(hs.propose_change("/work/a.py", "", "a"))
        b = asyncio.create_task(hs.propose_change("/work/b.py", "", "b"))
        fp_a = fingerprint("/work/a.py", "", "a")
        fp_b = fingerprint("/work/b.py", "", "b")
        while len(mailbox.list_requests()) < 2:
            await asyncio.sleep(0.01)
        mailbox.write_response(fp_b, False)
        assert await b is Outcome.REJECTED
        assert not a.done()
        mailbox.write_response(fp_a, True)
        assert await a is Outcome.APPROVED

    @pytest.mark.asyncio
    async def test_cancelled_wait_releases_entry(self, handshake, reviewer, mailbox_files):
        task = asyncio.create_task(handshake.propose_change("/work/a.py", "old", "new"))
        await reviewer.wait_for_request()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(handshake.registry) == 0
        assert mailbox_files(handshake.transport.directory) == []

    @pytest.mark.asyncio
    async def test_notifier_called_with_request(self, mailbox):
        notifier = AsyncMock()
        hs = ApprovalHandshake(mailbox, deadline=0.05, notifier=notifier)
        await hs.propose_change("/work/a.py", "old", "new")
        notifier.assert_awaited_once()
        request = notifier.await_args.args[0]
        assert isinstance(request, ReviewRequest)
        assert request.hash == fingerprint("/work/a.py", "old", "new")

    @pytest.mark.asyncio
    async def test_notifier_failure_does_not_block_review(self, mailbox, reviewer):
        hs = ApprovalHandshake(mailbox, deadline=2, notifier=AsyncMock(side_effect=ConnectionRefusedError()))
        task = reviewer.answer_later(True)
        assert await hs.propose_change("/work/a.py", "old", "new") is Outcome.APPROVED
        await task

    @pytest.mark.asyncio
    async def test_slow_notifier_does_not_extend_deadline(self, mailbox, mailbox_files):
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def stalled_notifier(request):
            started.set()
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        hs = ApprovalHandshake(mailbox, deadline=0.1, notifier=stalled_notifier)
        loop = asyncio.get_running_loop()
        began = loop.time()
        outcome = await hs.propose_change("/work/a.py", "old", "new")
        assert outcome is Outcome.TIMED_OUT
        assert loop.time() - began < 1.0
        assert started.is_set()
        await asyncio.wait_for(cancelled.wait(), timeout=1)
        assert mailbox_files(mailbox.directory) == []

    @pytest.mark.asyncio
    async def test_slow_notifier_does_not_delay_decision(self, mailbox, reviewer):
        async def stalled_notifier(request):
            await asyncio.sleep(5)

        hs = ApprovalHandshake(mailbox, deadline=2, notifier=stalled_notifier)
        task = reviewer.answer_later(True)
        outcome = await asyncio.wait_for(hs.propose_change("/work/a.py", "old", "new"), timeout=1.5)
        assert outcome is Outcome.APPROVED
        await task

    @pytest.mark.asyncio
    async def test_unencodable_content_is_failed(self, handshake, mailbox_files):
        outcome = await asyncio.wait_for(
            handshake.propose_change("/work/a.py", "", "x\ud800y"), timeout=1
        )
        assert outcome is Outcome.FAILED
        assert len(handshake.registry) == 0
        assert mailbox_files(handshake.transport.directory) == []

    @pytest.mark.asyncio
    async def test_stale_response_from_earlier_process_ignored(self, mailbox):
        fp = fingerprint("/work/a.py", "old", "new")
        mailbox.directory.mkdir(parents=True)
        mailbox.response_path(fp).write_text('{"approved": true}', encoding="utf-8")

        hs = ApprovalHandshake(mailbox, deadline=0.1)
        assert await hs.propose_change("/work/a.py", "old", "new") is Outcome.TIMED_OUT

    @pytest.mark.asyncio
    async def test_custom_fingerprint_length(self, mailbox, reviewer):
        hs = ApprovalHandshake(mailbox, deadline=2, fingerprint_length=32)
        task = reviewer.answer_later(True)
        await hs.propose_change("/work/a.py", "old", "new")
        assert len(await task) == 32

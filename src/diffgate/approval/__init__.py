"""
Approval Protocol - Diff Review Handshake
=========================================

A proposed file change is fingerprinted, registered as pending, published
to a shared mailbox directory and resolved exactly once: approved or
rejected by a reviewer, timed out, or failed if it could not be published.
Only an explicit approval lets the caller write the file.
"""

from .fingerprint import fingerprint
from .handshake import ApprovalHandshake, ReviewNotifier
from .mailbox import (
    ApprovalTransport,
    MailboxStore,
    ReviewRequest,
    ReviewResponse,
    resolve_mailbox_dir,
)
from .registry import ChangeProposal, Outcome, PendingChangeRegistry, PendingEntry

__all__ = [
    'ApprovalHandshake',
    'ApprovalTransport',
    'ChangeProposal',
    'fingerprint',
    'MailboxStore',
    'Outcome',
    'PendingChangeRegistry',
    'PendingEntry',
    'resolve_mailbox_dir',
    'ReviewNotifier',
    'ReviewRequest',
    'ReviewResponse',
]

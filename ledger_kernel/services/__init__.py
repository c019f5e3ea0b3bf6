"""Imperative shell: services that own every ledger mutation."""

from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.audit_trail import AuditTrail
from ledger_kernel.services.entry_locks import EntryLockRegistry
from ledger_kernel.services.journal_store import (
    JournalStore,
    format_entry_number,
    parse_entry_sequence,
)
from ledger_kernel.services.posting_engine import (
    PostingEngine,
    PostingResult,
    ReversalResult,
    VoidResult,
)

__all__ = [
    "AccountRegistry",
    "AuditTrail",
    "EntryLockRegistry",
    "JournalStore",
    "PostingEngine",
    "PostingResult",
    "ReversalResult",
    "VoidResult",
    "format_entry_number",
    "parse_entry_sequence",
]

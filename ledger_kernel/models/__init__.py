"""Domain models for the ledger kernel."""

from ledger_kernel.models.account import (
    ACCOUNT_NUMBER_PREFIX,
    NORMAL_BALANCE_BY_TYPE,
    OTHER_ACCOUNT_NUMBER_PREFIX,
    Account,
    AccountType,
    CashFlowCategory,
    NormalBalance,
)
from ledger_kernel.models.audit import AuditAction, AuditRecord
from ledger_kernel.models.journal import (
    EFFECTIVE_STATUSES,
    Journal,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    JournalType,
)

__all__ = [
    "ACCOUNT_NUMBER_PREFIX",
    "NORMAL_BALANCE_BY_TYPE",
    "OTHER_ACCOUNT_NUMBER_PREFIX",
    "Account",
    "AccountType",
    "CashFlowCategory",
    "NormalBalance",
    "AuditAction",
    "AuditRecord",
    "EFFECTIVE_STATUSES",
    "Journal",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "JournalType",
]

"""Read-only selectors over the journal line history."""

from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.ledger_selector import (
    AccountActivity,
    AccountInfo,
    BalanceDrift,
    LedgerLine,
    LedgerSelector,
)

__all__ = [
    "AccountActivity",
    "AccountInfo",
    "BalanceDrift",
    "BaseSelector",
    "LedgerLine",
    "LedgerSelector",
]

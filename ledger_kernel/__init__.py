"""
Ledger Kernel

A multi-tenant double-entry ledger with:
- Typed, hierarchical chart of accounts with a cached running balance
- Journal entries numbered per journal
- An explicit draft -> posted -> voided / reversed state machine
- Replay of journal lines for balance verification
"""

__version__ = "0.1.0"

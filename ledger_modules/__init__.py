"""
Ledger Modules.

Thin orchestration layers over the ledger kernel:
- Reporting: financial statements replayed from journal lines
- Documents: balanced line templates for invoices, bills, payments and
  token transfers, posted through the kernel's PostingEngine

Processing logic lives in the kernel; modules only compose it.
"""

"""
Financial Reporting Module (``ledger_modules.reporting``).

Responsibility
--------------
Read-only module that generates financial statements from the ledger:
income statement, balance sheet, cash flow statement, trial balance and
general ledger.

Architecture position
---------------------
**Modules layer** -- statement logic is implemented as pure functions in
``statements.py``; ``ReportingService`` loads replays and delegates.

Invariants enforced
-------------------
* No journal entries are created or changed by this module.
* Every figure is recomputed from effective journal lines, so a report
  doubles as a check on the cached account balances.

Failure modes
-------------
* Bad date range or grouping -> ``ReportParameterError``.
* No activity -> zero totals, never an error.

Audit relevance
---------------
Unbalanced balance sheets and trial balances, and nonzero cash flow
reconciliation differences, are reported in the DTO and logged at
WARNING.
"""

from ledger_modules.reporting.config import CashFlowClassification, ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheetOptions,
    BalanceSheetReport,
    CashFlowItem,
    CashFlowOptions,
    CashFlowReconciliation,
    CashFlowSection,
    CashFlowStatementReport,
    ExternalFlowSummary,
    GeneralLedgerAccount,
    GeneralLedgerLine,
    GeneralLedgerReport,
    GroupBy,
    IncomeStatementOptions,
    IncomeStatementReport,
    ReportItem,
    ReportMetadata,
    ReportType,
    StatementSection,
    TrialBalanceLine,
    TrialBalanceOptions,
    TrialBalanceReport,
    TrialBalanceTotals,
)
from ledger_modules.reporting.service import ReportingService
from ledger_modules.reporting.statements import (
    ApportionmentStrategy,
    proportional_apportionment,
    render_to_dict,
)

__all__ = [
    # Service
    "ReportingService",
    # Config
    "ReportingConfig",
    "CashFlowClassification",
    # Options
    "IncomeStatementOptions",
    "BalanceSheetOptions",
    "CashFlowOptions",
    "TrialBalanceOptions",
    "GroupBy",
    # Models
    "ReportType",
    "ReportMetadata",
    "ReportItem",
    "StatementSection",
    "IncomeStatementReport",
    "BalanceSheetReport",
    "CashFlowItem",
    "CashFlowSection",
    "CashFlowReconciliation",
    "ExternalFlowSummary",
    "CashFlowStatementReport",
    "TrialBalanceLine",
    "TrialBalanceTotals",
    "TrialBalanceReport",
    "GeneralLedgerLine",
    "GeneralLedgerAccount",
    "GeneralLedgerReport",
    # Apportionment and rendering
    "ApportionmentStrategy",
    "proportional_apportionment",
    "render_to_dict",
]

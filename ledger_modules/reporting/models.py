"""
Financial Reporting Domain Models (``ledger_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects for report options and report outputs:
income statement, balance sheet, cash flow statement, trial balance and
general ledger.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``ReportingService`` and the pure builders in ``statements.py``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Optional comparison fields are ``None`` when the comparison was not
  requested, never zero.

Failure modes
-------------
* Construction with invalid enum values raises ``ValueError``.

Audit relevance
---------------
* ``ReportMetadata`` carries the generation timestamp from the injected
  clock and the report parameters, so a report can be reproduced.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.models.account import CashFlowCategory


# =========================================================================
# Enums
# =========================================================================


class ReportType(str, Enum):
    """Types of financial reports."""

    INCOME_STATEMENT = "income_statement"
    BALANCE_SHEET = "balance_sheet"
    CASH_FLOW = "cash_flow"
    TRIAL_BALANCE = "trial_balance"
    GENERAL_LEDGER = "general_ledger"


class GroupBy(str, Enum):
    """How account amounts are rolled up into report items."""

    NONE = "none"
    TYPE = "type"
    SUBTYPE = "subtype"
    ACCOUNT = "account"


# =========================================================================
# Options
# =========================================================================


@dataclass(frozen=True)
class IncomeStatementOptions:
    compare_with_previous_period: bool = False
    include_external_amounts: bool = False
    show_percentages: bool = True
    group_by: GroupBy = GroupBy.TYPE


@dataclass(frozen=True)
class BalanceSheetOptions:
    compare_with_previous_year: bool = False
    include_external_amounts: bool = False
    group_by: GroupBy = GroupBy.TYPE


@dataclass(frozen=True)
class CashFlowOptions:
    """
    Cash flow statement options.

    ``cash_account_ids`` empty means auto-detect: accounts flagged
    ``is_cash_equivalent`` plus asset accounts whose subtype is one of the
    configured cash subtypes.
    """

    compare_with_previous_period: bool = False
    include_external_flow: bool = True
    cash_account_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class TrialBalanceOptions:
    include_zero_balances: bool = False
    group_by: GroupBy = GroupBy.NONE
    include_external_amounts: bool = False


# =========================================================================
# Report Metadata (common to all reports)
# =========================================================================


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every financial report."""

    report_type: ReportType
    organization_id: UUID
    entity_name: str
    currency: str
    generated_at: str  # ISO format timestamp from injected clock
    as_of_date: date | None = None
    period_start: date | None = None
    period_end: date | None = None
    comparative_start: date | None = None
    comparative_end: date | None = None


# =========================================================================
# Grouped statements (income statement, balance sheet)
# =========================================================================


@dataclass(frozen=True)
class ReportItem:
    """One group (type, subtype or single account) on a statement."""

    key: str
    name: str
    amount: Decimal
    account_count: int
    previous_amount: Decimal | None = None
    external_amount: Decimal | None = None
    percent_of_revenue: Decimal | None = None
    previous_percent_of_revenue: Decimal | None = None


@dataclass(frozen=True)
class StatementSection:
    """A section (revenue, expenses, assets, ...) and its total."""

    label: str
    items: tuple[ReportItem, ...]
    total: Decimal
    previous_total: Decimal | None = None
    percent_of_revenue: Decimal | None = None
    previous_percent_of_revenue: Decimal | None = None

    @property
    def change(self) -> Decimal | None:
        if self.previous_total is None:
            return None
        return self.total - self.previous_total


@dataclass(frozen=True)
class IncomeStatementReport:
    """Revenue - Expenses = Net Income over a period."""

    metadata: ReportMetadata
    revenue: StatementSection
    expenses: StatementSection
    net_income: Decimal
    net_income_percent_of_revenue: Decimal | None = None
    previous_net_income: Decimal | None = None
    previous_net_income_percent_of_revenue: Decimal | None = None
    net_income_change: Decimal | None = None


@dataclass(frozen=True)
class BalanceSheetReport:
    """
    Assets = Liabilities + Equity as of a date.

    ``balanced`` and ``difference`` are always exposed; an unbalanced sheet
    is a finding, not an exception.
    """

    metadata: ReportMetadata
    assets: StatementSection
    liabilities: StatementSection
    equity: StatementSection
    retained_earnings: Decimal
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    total_liabilities_and_equity: Decimal
    difference: Decimal
    balanced: bool
    previous_retained_earnings: Decimal | None = None
    previous_total_liabilities_and_equity: Decimal | None = None
    previous_balanced: bool | None = None


# =========================================================================
# Cash Flow Statement (direct attribution)
# =========================================================================


@dataclass(frozen=True)
class CashFlowAccountShare:
    """A non-cash account's signed movement inside one attributed item."""

    account_id: UUID
    account_number: str
    name: str
    amount: Decimal


@dataclass(frozen=True)
class CashFlowItem:
    """The part of one entry's cash impact attributed to one section."""

    journal_entry_id: UUID
    entry_number: str
    entry_date: date
    description: str
    amount: Decimal
    accounts: tuple[CashFlowAccountShare, ...]


@dataclass(frozen=True)
class CashFlowSection:
    category: CashFlowCategory
    label: str
    items: tuple[CashFlowItem, ...]
    total: Decimal
    previous_total: Decimal | None = None


@dataclass(frozen=True)
class ExternalFlowSummary:
    """Confirmed token movements on cash accounts, from line shadow amounts."""

    inflow: Decimal
    outflow: Decimal
    net: Decimal
    line_count: int


@dataclass(frozen=True)
class CashFlowReconciliation:
    """operating + investing + financing against the observed cash change."""

    calculated_change: Decimal
    actual_change: Decimal
    difference: Decimal


@dataclass(frozen=True)
class CashFlowStatementReport:
    metadata: ReportMetadata
    cash_account_ids: tuple[UUID, ...]
    operating: CashFlowSection
    investing: CashFlowSection
    financing: CashFlowSection
    beginning_cash: Decimal
    ending_cash: Decimal
    net_change_cash: Decimal
    reconciliation: CashFlowReconciliation
    external_flow: ExternalFlowSummary | None = None
    previous_beginning_cash: Decimal | None = None
    previous_ending_cash: Decimal | None = None
    previous_net_change_cash: Decimal | None = None
    previous_external_flow: ExternalFlowSummary | None = None


# =========================================================================
# Trial Balance
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceLine:
    """One account, or one group of accounts, on the trial balance."""

    key: str
    name: str
    debit: Decimal
    credit: Decimal
    net_debit: Decimal
    net_credit: Decimal
    balance: Decimal  # debit - credit
    account_count: int = 1
    account_id: UUID | None = None
    account_number: str | None = None
    account_type: str | None = None
    subtype: str | None = None
    external_amount: Decimal | None = None


@dataclass(frozen=True)
class TrialBalanceTotals:
    debit: Decimal
    credit: Decimal
    net_debit: Decimal
    net_credit: Decimal
    external_amount: Decimal | None = None


@dataclass(frozen=True)
class TrialBalanceReport:
    metadata: ReportMetadata
    group_by: GroupBy
    lines: tuple[TrialBalanceLine, ...]
    totals: TrialBalanceTotals
    difference: Decimal  # net_debit - net_credit
    balanced: bool


# =========================================================================
# General Ledger
# =========================================================================


@dataclass(frozen=True)
class GeneralLedgerLine:
    journal_entry_id: UUID
    entry_number: str
    entry_date: date
    line_number: int
    description: str | None
    debit: Decimal
    credit: Decimal
    balance: Decimal  # running, on the account's normal side
    reference: str | None = None
    external_amount: Decimal | None = None


@dataclass(frozen=True)
class GeneralLedgerAccount:
    account_id: UUID
    account_number: str
    name: str
    account_type: str
    beginning_balance: Decimal
    lines: tuple[GeneralLedgerLine, ...]
    total_debit: Decimal
    total_credit: Decimal
    ending_balance: Decimal


@dataclass(frozen=True)
class GeneralLedgerReport:
    metadata: ReportMetadata
    accounts: tuple[GeneralLedgerAccount, ...]

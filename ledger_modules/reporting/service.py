"""
Reporting Module Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Orchestrates report generation (income statement, balance sheet, cash
flow statement, trial balance, general ledger) by bridging
``LedgerSelector`` replays to the pure builders in ``statements.py``.
This is a **read-only** service: nothing is posted, flushed or committed.

Architecture position
---------------------
**Modules layer** -- thin glue.  Constructor: ``session`` + ``clock`` +
``config`` (+ an optional cash flow apportionment strategy).

Invariants enforced
-------------------
* Read-only -- reports are replays of effective journal lines, never of
  the cached account balances.
* Every query is scoped by organization; an account filter naming an
  account of another organization is "not found".
* "No data" renders as zeros, never as an error.
* One snapshot per report.  When the session has no open transaction the
  report starts one at REPEATABLE READ (PostgreSQL), so a post committed
  mid-report is either wholly in or wholly out.  A caller-opened
  transaction keeps its level; a weaker one is logged as
  ``report_snapshot_not_pinned``.  ``report_session_scope()`` gives a
  dedicated read-only session.

Failure modes
-------------
* start > end  -> ``ReportParameterError`` before any query runs.
* Unknown grouping  -> ``ReportParameterError``.
* Account filter not in the organization  -> ``AccountNotFoundError``.

Audit relevance
---------------
A structured ``*_generated`` log event is emitted for every report with
its parameters and headline figures.  Balance sheet, trial balance and
cash flow reconciliation results are logged with their balance flags so
an unbalanced ledger is visible in the logs as well as in the report.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.db.engine import SNAPSHOT_LEVELS, begin_snapshot
from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import ReportParameterError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.selectors.ledger_selector import BalanceDrift, LedgerSelector
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheetOptions,
    BalanceSheetReport,
    CashFlowOptions,
    CashFlowStatementReport,
    GeneralLedgerReport,
    GroupBy,
    IncomeStatementOptions,
    IncomeStatementReport,
    ReportMetadata,
    ReportType,
    TrialBalanceOptions,
    TrialBalanceReport,
)
from ledger_modules.reporting.statements import (
    ApportionmentStrategy,
    CashFlowPeriod,
    build_balance_sheet,
    build_cash_flow_statement,
    build_general_ledger,
    build_income_statement,
    build_trial_balance,
    identify_cash_accounts,
    proportional_apportionment,
)

logger = get_logger("modules.reporting.service")


def previous_period(start: date, end: date) -> tuple[date, date]:
    """Equal-length window ending the day before ``start``."""
    length = end - start
    previous_end = start - timedelta(days=1)
    return previous_end - length, previous_end


def one_year_earlier(as_of: date) -> date:
    """Same calendar day a year earlier; Feb 29 maps to Feb 28."""
    try:
        return as_of.replace(year=as_of.year - 1)
    except ValueError:
        return as_of.replace(year=as_of.year - 1, day=28)


class ReportingService:
    """
    Financial statement generation service.

    Contract
    --------
    * Every public method returns a frozen report DTO.
    * Date windows are inclusive on both ends; as-of reports include the
      as-of date.

    Guarantees
    ----------
    * No financial logic lives here; it delegates to ``statements.py``.
    * Clock is injectable; with a fixed clock, identical calls over an
      unchanged ledger return equal reports.

    Non-goals
    ---------
    * Does NOT read ``Account.balance``; use ``balance_drift()`` to compare
      the cache with the replay.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
        apportionment: ApportionmentStrategy | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()
        self._apportionment = apportionment or proportional_apportionment
        self._ledger = LedgerSelector(session)

        logger.info(
            "reporting_service_initialized",
            extra={
                "entity_name": self._config.entity_name,
                "default_currency": self._config.default_currency,
            },
        )

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _build_metadata(
        self,
        report_type: ReportType,
        organization_id: UUID,
        as_of_date: date | None = None,
        period_start: date | None = None,
        period_end: date | None = None,
        comparative_start: date | None = None,
        comparative_end: date | None = None,
    ) -> ReportMetadata:
        """Build report metadata with injected clock timestamp."""
        return ReportMetadata(
            report_type=report_type,
            organization_id=organization_id,
            entity_name=self._config.entity_name,
            currency=self._config.default_currency,
            generated_at=self._clock.iso_now(),
            as_of_date=as_of_date,
            period_start=period_start,
            period_end=period_end,
            comparative_start=comparative_start,
            comparative_end=comparative_end,
        )

    def _pin_snapshot(self) -> None:
        level = begin_snapshot(self._session)
        if level is not None and level not in SNAPSHOT_LEVELS:
            logger.warning(
                "report_snapshot_not_pinned", extra={"isolation_level": level}
            )

    @staticmethod
    def _validate_range(start: date, end: date) -> None:
        if start is None or end is None:
            raise ReportParameterError("Start date and end date are required", field="start")
        if start > end:
            raise ReportParameterError(
                f"Start date {start.isoformat()} is after end date {end.isoformat()}",
                field="start",
            )

    # =========================================================================
    # Shared primitive
    # =========================================================================

    def account_balance_as_of(
        self,
        organization_id: UUID,
        account_id: UUID,
        cutoff: date,
        inclusive: bool = True,
    ) -> Decimal:
        """
        Replayed balance of one account, positive on its normal side.

        ``inclusive=False`` counts only lines dated strictly before the
        cutoff (opening balance semantics).
        """
        return self._ledger.account_balance_as_of(
            organization_id, account_id, cutoff, inclusive=inclusive,
        )

    def balance_drift(self, organization_id: UUID) -> list[BalanceDrift]:
        """Accounts whose cached balance disagrees with the replay."""
        return self._ledger.balance_drift(organization_id)

    # =========================================================================
    # Public API
    # =========================================================================

    def generate_income_statement(
        self,
        organization_id: UUID,
        start: date,
        end: date,
        options: IncomeStatementOptions | None = None,
    ) -> IncomeStatementReport:
        """
        Revenue and expense activity within [start, end].

        With ``compare_with_previous_period`` the comparison window has the
        same length and ends the day before ``start``.
        """
        options = options or IncomeStatementOptions()
        self._validate_range(start, end)

        with LogContext.bind(organization_id=organization_id):
            self._pin_snapshot()
            accounts = self._ledger.accounts(organization_id)
            activity = self._ledger.activity(organization_id, start=start, end=end)

            comparative_start = comparative_end = None
            previous_activity = None
            if options.compare_with_previous_period:
                comparative_start, comparative_end = previous_period(start, end)
                previous_activity = self._ledger.activity(
                    organization_id, start=comparative_start, end=comparative_end,
                )

            metadata = self._build_metadata(
                ReportType.INCOME_STATEMENT,
                organization_id,
                period_start=start,
                period_end=end,
                comparative_start=comparative_start,
                comparative_end=comparative_end,
            )
            report = build_income_statement(
                accounts, activity, metadata, options, self._config, previous_activity,
            )

            logger.info(
                "income_statement_generated",
                extra={
                    "period_start": start.isoformat(),
                    "period_end": end.isoformat(),
                    "group_by": GroupBy(options.group_by).value,
                    "total_revenue": str(report.revenue.total),
                    "total_expenses": str(report.expenses.total),
                    "net_income": str(report.net_income),
                },
            )
        return report

    def generate_balance_sheet(
        self,
        organization_id: UUID,
        as_of: date,
        options: BalanceSheetOptions | None = None,
    ) -> BalanceSheetReport:
        """Assets, liabilities and equity through ``as_of`` (inclusive)."""
        options = options or BalanceSheetOptions()
        if as_of is None:
            raise ReportParameterError("as_of date is required", field="as_of")

        with LogContext.bind(organization_id=organization_id):
            self._pin_snapshot()
            accounts = self._ledger.accounts(organization_id)
            activity = self._ledger.activity(organization_id, end=as_of)

            previous_as_of = None
            previous_activity = None
            if options.compare_with_previous_year:
                previous_as_of = one_year_earlier(as_of)
                previous_activity = self._ledger.activity(
                    organization_id, end=previous_as_of,
                )

            metadata = self._build_metadata(
                ReportType.BALANCE_SHEET,
                organization_id,
                as_of_date=as_of,
                comparative_end=previous_as_of,
            )
            report = build_balance_sheet(
                accounts, activity, metadata, options, self._config, previous_activity,
            )

            log = logger.info if report.balanced else logger.warning
            log(
                "balance_sheet_generated",
                extra={
                    "as_of_date": as_of.isoformat(),
                    "total_assets": str(report.total_assets),
                    "total_liabilities_and_equity": str(report.total_liabilities_and_equity),
                    "difference": str(report.difference),
                    "balanced": report.balanced,
                },
            )
        return report

    def generate_cash_flow_statement(
        self,
        organization_id: UUID,
        start: date,
        end: date,
        options: CashFlowOptions | None = None,
    ) -> CashFlowStatementReport:
        """
        Cash movements within [start, end] attributed to sections.

        Beginning cash counts lines strictly before ``start``; ending cash
        counts lines through ``end``.
        """
        options = options or CashFlowOptions()
        self._validate_range(start, end)

        with LogContext.bind(organization_id=organization_id):
            self._pin_snapshot()
            accounts = self._ledger.accounts(organization_id)
            for account_id in options.cash_account_ids:
                self._ledger.account(organization_id, account_id)
            cash_ids = identify_cash_accounts(
                accounts, self._config, options.cash_account_ids,
            )

            current = self._cash_period(organization_id, cash_ids, start, end)
            comparative_start = comparative_end = None
            previous = None
            if options.compare_with_previous_period:
                comparative_start, comparative_end = previous_period(start, end)
                previous = self._cash_period(
                    organization_id, cash_ids, comparative_start, comparative_end,
                )

            metadata = self._build_metadata(
                ReportType.CASH_FLOW,
                organization_id,
                period_start=start,
                period_end=end,
                comparative_start=comparative_start,
                comparative_end=comparative_end,
            )
            report = build_cash_flow_statement(
                accounts,
                cash_ids,
                current,
                metadata,
                options,
                self._config,
                strategy=self._apportionment,
                previous=previous,
            )

            difference = report.reconciliation.difference
            log = logger.info if difference == ZERO else logger.warning
            log(
                "cash_flow_statement_generated",
                extra={
                    "period_start": start.isoformat(),
                    "period_end": end.isoformat(),
                    "cash_account_count": len(cash_ids),
                    "net_change_cash": str(report.net_change_cash),
                    "reconciliation_difference": str(difference),
                },
            )
        return report

    def generate_trial_balance(
        self,
        organization_id: UUID,
        as_of: date,
        options: TrialBalanceOptions | None = None,
    ) -> TrialBalanceReport:
        """Net debit/credit per account through ``as_of`` (inclusive)."""
        options = options or TrialBalanceOptions()
        if as_of is None:
            raise ReportParameterError("as_of date is required", field="as_of")

        with LogContext.bind(organization_id=organization_id):
            self._pin_snapshot()
            accounts = self._ledger.accounts(organization_id)
            activity = self._ledger.activity(organization_id, end=as_of)
            metadata = self._build_metadata(
                ReportType.TRIAL_BALANCE, organization_id, as_of_date=as_of,
            )
            report = build_trial_balance(
                accounts, activity, metadata, options, self._config,
            )

            log = logger.info if report.balanced else logger.warning
            log(
                "trial_balance_generated",
                extra={
                    "as_of_date": as_of.isoformat(),
                    "line_count": len(report.lines),
                    "total_net_debit": str(report.totals.net_debit),
                    "total_net_credit": str(report.totals.net_credit),
                    "balanced": report.balanced,
                },
            )
        return report

    def generate_general_ledger(
        self,
        organization_id: UUID,
        start: date,
        end: date,
        account_id: UUID | None = None,
    ) -> GeneralLedgerReport:
        """
        Opening balance (strictly before ``start``) plus a running balance
        over every line in [start, end], per account.
        """
        self._validate_range(start, end)

        with LogContext.bind(organization_id=organization_id):
            self._pin_snapshot()
            if account_id is not None:
                accounts = [self._ledger.account(organization_id, account_id)]
                account_ids = [account_id]
            else:
                accounts = self._ledger.accounts(organization_id)
                account_ids = None

            opening = self._ledger.balances_as_of(
                organization_id, cutoff=start, inclusive=False,
            )
            lines = self._ledger.ledger_lines(
                organization_id, start=start, end=end, account_ids=account_ids,
            )
            metadata = self._build_metadata(
                ReportType.GENERAL_LEDGER,
                organization_id,
                period_start=start,
                period_end=end,
            )
            report = build_general_ledger(
                accounts, opening, lines, metadata, include_empty=account_id is not None,
            )

            logger.info(
                "general_ledger_generated",
                extra={
                    "period_start": start.isoformat(),
                    "period_end": end.isoformat(),
                    "account_filter": str(account_id) if account_id else None,
                    "account_count": len(report.accounts),
                    "line_count": len(lines),
                },
            )
        return report

    # =========================================================================
    # Internal Implementation
    # =========================================================================

    def _cash_period(
        self,
        organization_id: UUID,
        cash_ids: tuple[UUID, ...],
        start: date,
        end: date,
    ) -> CashFlowPeriod:
        ids = list(cash_ids)
        before = self._ledger.activity(
            organization_id, end=start, end_inclusive=False, account_ids=ids,
        )
        through = self._ledger.activity(organization_id, end=end, account_ids=ids)
        return CashFlowPeriod(
            lines=tuple(self._ledger.ledger_lines(organization_id, start=start, end=end)),
            beginning_cash=sum((a.net for a in before.values()), ZERO),
            ending_cash=sum((a.net for a in through.values()), ZERO),
        )

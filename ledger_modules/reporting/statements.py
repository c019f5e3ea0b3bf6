"""
Pure financial statement transformation functions.

These functions turn replayed account activity and ledger lines into
structured reports.  ZERO I/O.  ZERO side effects.

All monetary values are Decimal.  All inputs and outputs are frozen
dataclasses or plain mappings.

Functions in this module follow the ledger_kernel/domain/ purity convention:
- No database access
- No clock access
- Deterministic: same inputs always produce same outputs
- Every ratio is guarded; a zero denominator yields 0, never an error
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.domain.balance import signed_delta
from ledger_kernel.exceptions import ReportParameterError
from ledger_kernel.models.account import AccountType, CashFlowCategory
from ledger_kernel.selectors.ledger_selector import (
    AccountActivity,
    AccountInfo,
    LedgerLine,
)
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheetOptions,
    BalanceSheetReport,
    CashFlowAccountShare,
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
    StatementSection,
    TrialBalanceLine,
    TrialBalanceOptions,
    TrialBalanceReport,
    TrialBalanceTotals,
)

CATEGORY_ORDER: tuple[CashFlowCategory, ...] = (
    CashFlowCategory.OPERATING,
    CashFlowCategory.INVESTING,
    CashFlowCategory.FINANCING,
)

SECTION_LABELS: dict[CashFlowCategory, str] = {
    CashFlowCategory.OPERATING: "Operating Activities",
    CashFlowCategory.INVESTING: "Investing Activities",
    CashFlowCategory.FINANCING: "Financing Activities",
}

RETAINED_EARNINGS_KEY = "retained-earnings"

STATEMENT_GROUPINGS = (GroupBy.TYPE, GroupBy.SUBTYPE, GroupBy.ACCOUNT)
TRIAL_BALANCE_GROUPINGS = (GroupBy.NONE, GroupBy.TYPE, GroupBy.SUBTYPE)

# (net cash impact, signed total per section, decimal places) -> share per
# section.  Shares must sum exactly to the impact.
ApportionmentStrategy = Callable[
    [Decimal, Mapping[CashFlowCategory, Decimal], int],
    dict[CashFlowCategory, Decimal],
]


# =========================================================================
# Helpers
# =========================================================================


def percent_of(part: Decimal, whole: Decimal, places: int = 2) -> Decimal:
    """part / whole * 100, rounded; 0 when whole is 0."""
    if whole == ZERO:
        return round_money(ZERO, places)
    return round_money(part / whole * 100, places)


def format_group_name(key: str, group_by: GroupBy) -> str:
    """'accounts-receivable' -> 'Accounts Receivable'; 'asset' -> 'Asset'."""
    if group_by == GroupBy.TYPE:
        return key[:1].upper() + key[1:]
    if group_by == GroupBy.SUBTYPE:
        return " ".join(word[:1].upper() + word[1:] for word in key.split("-"))
    return key


def natural_amounts(
    accounts: Sequence[AccountInfo],
    activity: Mapping[UUID, AccountActivity],
) -> dict[UUID, Decimal]:
    """Signed balance per account, positive on its normal side."""
    amounts: dict[UUID, Decimal] = {}
    for account in accounts:
        act = activity.get(account.account_id)
        if act is not None:
            amounts[account.account_id] = signed_delta(
                account.account_type, act.debit_total, act.credit_total,
            )
    return amounts


def _check_grouping(group_by: GroupBy, allowed: tuple[GroupBy, ...]) -> GroupBy:
    try:
        group_by = GroupBy(group_by)
    except ValueError:
        raise ReportParameterError(
            f"Unknown group_by: {group_by}", field="group_by"
        ) from None
    if group_by not in allowed:
        raise ReportParameterError(
            f"group_by must be one of {', '.join(g.value for g in allowed)}",
            field="group_by",
        )
    return group_by


def _group_key(account: AccountInfo, group_by: GroupBy) -> tuple[str, str]:
    if group_by == GroupBy.TYPE:
        key = AccountType(account.account_type).value
        return key, format_group_name(key, group_by)
    if group_by == GroupBy.SUBTYPE:
        key = account.subtype or "Other"
        return key, format_group_name(key, group_by)
    return account.account_number, account.name


@dataclass
class _GroupTotals:
    name: str
    account_count: int = 0
    amount: Decimal = ZERO
    previous: Decimal = ZERO
    external: Decimal = ZERO


def _build_section(
    label: str,
    accounts: Sequence[AccountInfo],
    current: Mapping[UUID, Decimal],
    previous: Mapping[UUID, Decimal] | None,
    external: Mapping[UUID, Decimal] | None,
    group_by: GroupBy,
) -> StatementSection:
    groups: dict[str, _GroupTotals] = {}
    for account in accounts:
        key, name = _group_key(account, group_by)
        totals = groups.setdefault(key, _GroupTotals(name=name))
        totals.account_count += 1
        totals.amount += current.get(account.account_id, ZERO)
        if previous is not None:
            totals.previous += previous.get(account.account_id, ZERO)
        if external is not None:
            totals.external += external.get(account.account_id, ZERO)

    items = [
        ReportItem(
            key=key,
            name=totals.name,
            amount=totals.amount,
            account_count=totals.account_count,
            previous_amount=totals.previous if previous is not None else None,
            external_amount=totals.external if external is not None else None,
        )
        for key, totals in groups.items()
        if totals.amount != ZERO or (previous is not None and totals.previous != ZERO)
    ]
    items.sort(key=lambda item: (-abs(item.amount), item.key))

    return StatementSection(
        label=label,
        items=tuple(items),
        total=sum((g.amount for g in groups.values()), ZERO),
        previous_total=(
            sum((g.previous for g in groups.values()), ZERO)
            if previous is not None
            else None
        ),
    )


def _of_type(
    accounts: Sequence[AccountInfo],
    account_type: AccountType,
) -> list[AccountInfo]:
    return [a for a in accounts if AccountType(a.account_type) == account_type]


def _external_amounts(
    activity: Mapping[UUID, AccountActivity],
) -> dict[UUID, Decimal]:
    return {account_id: act.external_total for account_id, act in activity.items()}


# =========================================================================
# 1. INCOME STATEMENT
# =========================================================================


def build_income_statement(
    accounts: Sequence[AccountInfo],
    activity: Mapping[UUID, AccountActivity],
    metadata: ReportMetadata,
    options: IncomeStatementOptions,
    config: ReportingConfig,
    previous_activity: Mapping[UUID, AccountActivity] | None = None,
) -> IncomeStatementReport:
    """
    Revenue - Expenses = Net Income for the activity window given.

    With ``show_percentages`` every expense item, the expense total and
    net income carry a percent of revenue; 0 when revenue is 0.
    """
    group_by = _check_grouping(options.group_by, STATEMENT_GROUPINGS)
    places = config.display_precision

    current = natural_amounts(accounts, activity)
    previous = (
        natural_amounts(accounts, previous_activity)
        if previous_activity is not None
        else None
    )
    external = _external_amounts(activity) if options.include_external_amounts else None

    revenue = _build_section(
        "Revenue", _of_type(accounts, AccountType.REVENUE),
        current, previous, external, group_by,
    )
    expenses = _build_section(
        "Expenses", _of_type(accounts, AccountType.EXPENSE),
        current, previous, external, group_by,
    )

    net_income = revenue.total - expenses.total
    previous_net_income = None
    if previous is not None:
        previous_net_income = revenue.previous_total - expenses.previous_total

    net_percent = None
    previous_net_percent = None
    if options.show_percentages:
        items = tuple(
            replace(
                item,
                percent_of_revenue=percent_of(abs(item.amount), revenue.total, places),
                previous_percent_of_revenue=(
                    percent_of(abs(item.previous_amount), revenue.previous_total, places)
                    if previous is not None
                    else None
                ),
            )
            for item in expenses.items
        )
        expenses = replace(
            expenses,
            items=items,
            percent_of_revenue=percent_of(abs(expenses.total), revenue.total, places),
            previous_percent_of_revenue=(
                percent_of(abs(expenses.previous_total), revenue.previous_total, places)
                if previous is not None
                else None
            ),
        )
        net_percent = percent_of(net_income, revenue.total, places)
        if previous is not None:
            previous_net_percent = percent_of(
                previous_net_income, revenue.previous_total, places,
            )

    return IncomeStatementReport(
        metadata=metadata,
        revenue=revenue,
        expenses=expenses,
        net_income=net_income,
        net_income_percent_of_revenue=net_percent,
        previous_net_income=previous_net_income,
        previous_net_income_percent_of_revenue=previous_net_percent,
        net_income_change=(
            net_income - previous_net_income
            if previous_net_income is not None
            else None
        ),
    )


# =========================================================================
# 2. BALANCE SHEET
# =========================================================================


def compute_retained_earnings(
    accounts: Sequence[AccountInfo],
    balances: Mapping[UUID, Decimal],
) -> Decimal:
    """Cumulative revenue minus cumulative expenses."""
    revenue = sum(
        (balances.get(a.account_id, ZERO) for a in _of_type(accounts, AccountType.REVENUE)),
        ZERO,
    )
    expenses = sum(
        (balances.get(a.account_id, ZERO) for a in _of_type(accounts, AccountType.EXPENSE)),
        ZERO,
    )
    return revenue - expenses


def build_balance_sheet(
    accounts: Sequence[AccountInfo],
    activity: Mapping[UUID, AccountActivity],
    metadata: ReportMetadata,
    options: BalanceSheetOptions,
    config: ReportingConfig,
    previous_activity: Mapping[UUID, AccountActivity] | None = None,
) -> BalanceSheetReport:
    """
    Assets = Liabilities + Equity, with a synthetic Retained Earnings line.

    ``activity`` is all-time activity through the as-of date, so retained
    earnings are cumulative, not for a period.
    """
    group_by = _check_grouping(options.group_by, STATEMENT_GROUPINGS)

    balances = natural_amounts(accounts, activity)
    previous = (
        natural_amounts(accounts, previous_activity)
        if previous_activity is not None
        else None
    )
    external = _external_amounts(activity) if options.include_external_amounts else None

    assets = _build_section(
        "Assets", _of_type(accounts, AccountType.ASSET),
        balances, previous, external, group_by,
    )
    liabilities = _build_section(
        "Liabilities", _of_type(accounts, AccountType.LIABILITY),
        balances, previous, external, group_by,
    )
    equity = _build_section(
        "Equity", _of_type(accounts, AccountType.EQUITY),
        balances, previous, external, group_by,
    )

    retained = compute_retained_earnings(accounts, balances)
    previous_retained = (
        compute_retained_earnings(accounts, previous) if previous is not None else None
    )
    equity = replace(
        equity,
        items=equity.items + (
            ReportItem(
                key=RETAINED_EARNINGS_KEY,
                name="Retained Earnings",
                amount=retained,
                account_count=0,
                previous_amount=previous_retained,
            ),
        ),
        total=equity.total + retained,
        previous_total=(
            equity.previous_total + previous_retained if previous is not None else None
        ),
    )

    liabilities_and_equity = liabilities.total + equity.total
    difference = assets.total - liabilities_and_equity

    previous_le = None
    previous_balanced = None
    if previous is not None:
        previous_le = liabilities.previous_total + equity.previous_total
        previous_balanced = (
            abs(assets.previous_total - previous_le) < config.balance_tolerance
        )

    return BalanceSheetReport(
        metadata=metadata,
        assets=assets,
        liabilities=liabilities,
        equity=equity,
        retained_earnings=retained,
        total_assets=assets.total,
        total_liabilities=liabilities.total,
        total_equity=equity.total,
        total_liabilities_and_equity=liabilities_and_equity,
        difference=difference,
        balanced=abs(difference) < config.balance_tolerance,
        previous_retained_earnings=previous_retained,
        previous_total_liabilities_and_equity=previous_le,
        previous_balanced=previous_balanced,
    )


# =========================================================================
# 3. TRIAL BALANCE
# =========================================================================


def build_trial_balance(
    accounts: Sequence[AccountInfo],
    activity: Mapping[UUID, AccountActivity],
    metadata: ReportMetadata,
    options: TrialBalanceOptions,
    config: ReportingConfig,
) -> TrialBalanceReport:
    """
    Net debit/credit per account through the as-of date.

    net = debit - credit; a positive net is shown as net debit, a negative
    one as net credit, whatever the account's normal side.
    """
    group_by = _check_grouping(options.group_by, TRIAL_BALANCE_GROUPINGS)
    include_external = options.include_external_amounts

    rows: list[TrialBalanceLine] = []
    for account in sorted(accounts, key=lambda a: a.account_number):
        act = activity.get(account.account_id) or AccountActivity(account.account_id)
        balance = act.net
        if balance == ZERO and not options.include_zero_balances:
            continue
        rows.append(
            TrialBalanceLine(
                key=account.account_number,
                name=account.name,
                debit=act.debit_total,
                credit=act.credit_total,
                net_debit=balance if balance > ZERO else ZERO,
                net_credit=-balance if balance < ZERO else ZERO,
                balance=balance,
                account_id=account.account_id,
                account_number=account.account_number,
                account_type=AccountType(account.account_type).value,
                subtype=account.subtype,
                external_amount=act.external_total if include_external else None,
            )
        )

    if group_by != GroupBy.NONE:
        rows = _group_trial_balance(rows, group_by, include_external)

    totals = TrialBalanceTotals(
        debit=sum((r.debit for r in rows), ZERO),
        credit=sum((r.credit for r in rows), ZERO),
        net_debit=sum((r.net_debit for r in rows), ZERO),
        net_credit=sum((r.net_credit for r in rows), ZERO),
        external_amount=(
            sum((r.external_amount for r in rows), ZERO) if include_external else None
        ),
    )
    difference = totals.net_debit - totals.net_credit

    return TrialBalanceReport(
        metadata=metadata,
        group_by=group_by,
        lines=tuple(rows),
        totals=totals,
        difference=difference,
        balanced=abs(difference) < config.balance_tolerance,
    )


def _group_trial_balance(
    rows: list[TrialBalanceLine],
    group_by: GroupBy,
    include_external: bool,
) -> list[TrialBalanceLine]:
    grouped: dict[str, TrialBalanceLine] = {}
    for row in rows:
        key = row.account_type if group_by == GroupBy.TYPE else (row.subtype or "Other")
        existing = grouped.get(key)
        if existing is None:
            grouped[key] = TrialBalanceLine(
                key=key,
                name=format_group_name(key, group_by),
                debit=row.debit,
                credit=row.credit,
                net_debit=row.net_debit,
                net_credit=row.net_credit,
                balance=row.balance,
                account_count=1,
                account_type=row.account_type if group_by == GroupBy.TYPE else None,
                external_amount=row.external_amount if include_external else None,
            )
            continue
        grouped[key] = replace(
            existing,
            debit=existing.debit + row.debit,
            credit=existing.credit + row.credit,
            net_debit=existing.net_debit + row.net_debit,
            net_credit=existing.net_credit + row.net_credit,
            balance=existing.balance + row.balance,
            account_count=existing.account_count + 1,
            external_amount=(
                existing.external_amount + row.external_amount
                if include_external
                else None
            ),
        )
    return sorted(grouped.values(), key=lambda line: line.name)


# =========================================================================
# 4. CASH FLOW STATEMENT
# =========================================================================


def identify_cash_accounts(
    accounts: Sequence[AccountInfo],
    config: ReportingConfig,
    explicit_ids: Sequence[UUID] = (),
) -> tuple[UUID, ...]:
    """
    Cash and cash-equivalent accounts.

    An explicit list wins.  Otherwise: accounts flagged is_cash_equivalent,
    plus asset accounts whose subtype is a configured cash subtype.
    """
    if explicit_ids:
        return tuple(dict.fromkeys(explicit_ids))
    return tuple(
        a.account_id
        for a in accounts
        if a.is_cash_equivalent
        or (
            AccountType(a.account_type) == AccountType.ASSET
            and a.subtype in config.cash_subtypes
        )
    )


def classify_account(account: AccountInfo, config: ReportingConfig) -> CashFlowCategory:
    """Explicit override on the account, else the configured default table."""
    if account.cash_flow_category is not None:
        return CashFlowCategory(account.cash_flow_category)
    return config.classification.classify(account.account_type, account.subtype)


def describe_accounts(names: Sequence[str]) -> str:
    """'Sales' or 'Sales and 2 more accounts'."""
    if len(names) == 1:
        return names[0]
    return f"{names[0]} and {len(names) - 1} more accounts"


def proportional_apportionment(
    impact: Decimal,
    section_totals: Mapping[CashFlowCategory, Decimal],
    places: int = 2,
) -> dict[CashFlowCategory, Decimal]:
    """
    Split a cash impact across sections by |section total| / sum(|totals|).

    Each share is rounded to ``places``; the rounding remainder goes to the
    section with the largest weight (earliest section on ties), so the
    shares always sum exactly to ``impact``.
    """
    if not section_totals:
        return {CashFlowCategory.OPERATING: impact}

    ordered = sorted(section_totals, key=CATEGORY_ORDER.index)
    weights = {category: abs(section_totals[category]) for category in ordered}
    total_weight = sum(weights.values(), ZERO)
    if total_weight == ZERO:
        return {ordered[0]: impact}

    shares = {
        category: round_money(impact * weights[category] / total_weight, places)
        for category in ordered
    }
    remainder = impact - sum(shares.values(), ZERO)
    if remainder != ZERO:
        anchor = max(ordered, key=lambda c: (weights[c], -CATEGORY_ORDER.index(c)))
        shares[anchor] += remainder
    return shares


@dataclass(frozen=True)
class CashFlowPeriod:
    """Lines of one window plus the cash balances bracketing it."""

    lines: tuple[LedgerLine, ...]
    beginning_cash: Decimal
    ending_cash: Decimal


def attribute_cash_flows(
    lines: Sequence[LedgerLine],
    accounts_by_id: Mapping[UUID, AccountInfo],
    cash_account_ids: Sequence[UUID],
    config: ReportingConfig,
    strategy: ApportionmentStrategy = proportional_apportionment,
) -> dict[CashFlowCategory, list[CashFlowItem]]:
    """
    Attribute each entry's net cash impact to the sections of its non-cash side.

    Entries with |impact| below the balance tolerance are skipped.  An entry
    touching only cash accounts is attributed to operating.
    """
    cash_ids = set(cash_account_ids)
    by_entry: dict[UUID, list[LedgerLine]] = {}
    for line in lines:
        by_entry.setdefault(line.journal_entry_id, []).append(line)

    result: dict[CashFlowCategory, list[CashFlowItem]] = {c: [] for c in CATEGORY_ORDER}
    for entry_lines in by_entry.values():
        cash_lines = [line for line in entry_lines if line.account_id in cash_ids]
        if not cash_lines:
            continue
        impact = sum((line.debit - line.credit for line in cash_lines), ZERO)
        if abs(impact) < config.balance_tolerance:
            continue

        head = entry_lines[0]
        per_section: dict[CashFlowCategory, dict[UUID, Decimal]] = {}
        for line in entry_lines:
            if line.account_id in cash_ids:
                continue
            account = accounts_by_id[line.account_id]
            category = classify_account(account, config)
            amounts = per_section.setdefault(category, {})
            amounts[line.account_id] = amounts.get(line.account_id, ZERO) + signed_delta(
                account.account_type, line.debit, line.credit,
            )

        if not per_section:
            result[CashFlowCategory.OPERATING].append(
                CashFlowItem(
                    journal_entry_id=head.journal_entry_id,
                    entry_number=head.entry_number,
                    entry_date=head.entry_date,
                    description=head.entry_description or f"Entry {head.entry_number}",
                    amount=impact,
                    accounts=(),
                )
            )
            continue

        section_totals = {
            category: sum(amounts.values(), ZERO)
            for category, amounts in per_section.items()
        }
        shares = strategy(impact, section_totals, config.display_precision)
        for category in CATEGORY_ORDER:
            share = shares.get(category, ZERO)
            if share == ZERO:
                continue
            account_shares = tuple(
                CashFlowAccountShare(
                    account_id=account_id,
                    account_number=accounts_by_id[account_id].account_number,
                    name=accounts_by_id[account_id].name,
                    amount=amount,
                )
                for account_id, amount in per_section.get(category, {}).items()
            )
            result[category].append(
                CashFlowItem(
                    journal_entry_id=head.journal_entry_id,
                    entry_number=head.entry_number,
                    entry_date=head.entry_date,
                    description=(
                        describe_accounts([s.name for s in account_shares])
                        if account_shares
                        else head.entry_description or f"Entry {head.entry_number}"
                    ),
                    amount=share,
                    accounts=account_shares,
                )
            )

    for items in result.values():
        items.sort(key=lambda i: (-abs(i.amount), i.entry_date, i.entry_number))
    return result


def summarize_external_flow(
    lines: Sequence[LedgerLine],
    cash_account_ids: Sequence[UUID],
) -> ExternalFlowSummary:
    """Confirmed shadow amounts on cash lines: debits in, credits out."""
    cash_ids = set(cash_account_ids)
    inflow = ZERO
    outflow = ZERO
    count = 0
    for line in lines:
        if (
            line.account_id not in cash_ids
            or not line.external_confirmed
            or line.external_amount is None
        ):
            continue
        count += 1
        if line.debit > ZERO:
            inflow += line.external_amount
        else:
            outflow += line.external_amount
    return ExternalFlowSummary(
        inflow=inflow, outflow=outflow, net=inflow - outflow, line_count=count,
    )


def build_cash_flow_statement(
    accounts: Sequence[AccountInfo],
    cash_account_ids: Sequence[UUID],
    current: CashFlowPeriod,
    metadata: ReportMetadata,
    options: CashFlowOptions,
    config: ReportingConfig,
    strategy: ApportionmentStrategy = proportional_apportionment,
    previous: CashFlowPeriod | None = None,
) -> CashFlowStatementReport:
    """
    Direct-attribution cash flow statement with a reconciliation block.

    ``reconciliation.difference`` is (operating + investing + financing) -
    (ending cash - beginning cash).  A nonzero difference is reported as is.
    """
    accounts_by_id = {a.account_id: a for a in accounts}
    attributed = attribute_cash_flows(
        current.lines, accounts_by_id, cash_account_ids, config, strategy,
    )
    previous_totals: dict[CashFlowCategory, Decimal] = {}
    if previous is not None:
        for category, items in attribute_cash_flows(
            previous.lines, accounts_by_id, cash_account_ids, config, strategy,
        ).items():
            previous_totals[category] = sum((i.amount for i in items), ZERO)

    sections = {
        category: CashFlowSection(
            category=category,
            label=SECTION_LABELS[category],
            items=tuple(attributed[category]),
            total=sum((i.amount for i in attributed[category]), ZERO),
            previous_total=previous_totals.get(category, ZERO) if previous else None,
        )
        for category in CATEGORY_ORDER
    }

    net_change = current.ending_cash - current.beginning_cash
    calculated = sum((s.total for s in sections.values()), ZERO)

    return CashFlowStatementReport(
        metadata=metadata,
        cash_account_ids=tuple(cash_account_ids),
        operating=sections[CashFlowCategory.OPERATING],
        investing=sections[CashFlowCategory.INVESTING],
        financing=sections[CashFlowCategory.FINANCING],
        beginning_cash=current.beginning_cash,
        ending_cash=current.ending_cash,
        net_change_cash=net_change,
        reconciliation=CashFlowReconciliation(
            calculated_change=calculated,
            actual_change=net_change,
            difference=calculated - net_change,
        ),
        external_flow=(
            summarize_external_flow(current.lines, cash_account_ids)
            if options.include_external_flow
            else None
        ),
        previous_beginning_cash=previous.beginning_cash if previous else None,
        previous_ending_cash=previous.ending_cash if previous else None,
        previous_net_change_cash=(
            previous.ending_cash - previous.beginning_cash if previous else None
        ),
        previous_external_flow=(
            summarize_external_flow(previous.lines, cash_account_ids)
            if previous is not None and options.include_external_flow
            else None
        ),
    )


# =========================================================================
# 5. GENERAL LEDGER
# =========================================================================


def build_general_ledger(
    accounts: Sequence[AccountInfo],
    beginning_balances: Mapping[UUID, Decimal],
    lines: Sequence[LedgerLine],
    metadata: ReportMetadata,
    include_empty: bool = False,
) -> GeneralLedgerReport:
    """
    Running balance trace per account.

    ``lines`` must already be in chronological order (entry date, then
    entry number).  Accounts with neither an opening balance nor lines are
    omitted unless ``include_empty``.
    """
    by_account: dict[UUID, list[LedgerLine]] = {}
    for line in lines:
        by_account.setdefault(line.account_id, []).append(line)

    ledger_accounts = []
    for account in sorted(accounts, key=lambda a: a.account_number):
        account_lines = by_account.get(account.account_id, [])
        beginning = beginning_balances.get(account.account_id, ZERO)
        if not account_lines and beginning == ZERO and not include_empty:
            continue

        running = beginning
        traced = []
        for line in account_lines:
            running += signed_delta(account.account_type, line.debit, line.credit)
            traced.append(
                GeneralLedgerLine(
                    journal_entry_id=line.journal_entry_id,
                    entry_number=line.entry_number,
                    entry_date=line.entry_date,
                    line_number=line.line_number,
                    description=line.description or line.entry_description,
                    debit=line.debit,
                    credit=line.credit,
                    balance=running,
                    reference=line.reference,
                    external_amount=line.external_amount,
                )
            )

        ledger_accounts.append(
            GeneralLedgerAccount(
                account_id=account.account_id,
                account_number=account.account_number,
                name=account.name,
                account_type=AccountType(account.account_type).value,
                beginning_balance=beginning,
                lines=tuple(traced),
                total_debit=sum((line.debit for line in account_lines), ZERO),
                total_credit=sum((line.credit for line in account_lines), ZERO),
                ending_balance=running,
            )
        )

    return GeneralLedgerReport(metadata=metadata, accounts=tuple(ledger_accounts))


# =========================================================================
# 6. RENDERER (dict/JSON output)
# =========================================================================


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert any report dataclass to a plain, JSON-safe structure.

    Decimal and UUID become strings, dates ISO strings, enums their value,
    tuples lists.  Properties are not rendered.
    """
    if obj is None or isinstance(obj, bool):
        return obj
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (Decimal, UUID)):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(render_to_dict(k)): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float)):
        return obj
    return str(obj)

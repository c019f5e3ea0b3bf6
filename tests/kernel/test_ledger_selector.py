"""
Tests for LedgerSelector: replay of effective lines and cache drift checks.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import update

from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import Account
from ledger_kernel.selectors.ledger_selector import LedgerSelector


def dr(account, amount, **kwargs):
    return LineSpec.debit_line(account.id, Decimal(amount), **kwargs)


def cr(account, amount, **kwargs):
    return LineSpec.credit_line(account.id, Decimal(amount), **kwargs)


@pytest.fixture
def selector(session) -> LedgerSelector:
    return LedgerSelector(session)


class TestActivity:

    def test_only_effective_entries_count(
        self, selector, posting_engine, chart, org_id, actor_id, record_entry
    ):
        record_entry([dr(chart.cash, "100"), cr(chart.sales, "100")])
        record_entry([dr(chart.cash, "5"), cr(chart.sales, "5")], post=False)
        voided = record_entry([dr(chart.cash, "7"), cr(chart.sales, "7")])
        posting_engine.void_entry(org_id, voided.id, "error", actor_id)

        activity = selector.activity(org_id)
        assert activity[chart.cash.id].debit_total == Decimal("100")
        assert activity[chart.cash.id].line_count == 1
        assert activity[chart.sales.id].net == Decimal("-100")

    def test_reversed_and_reversal_both_count(
        self, selector, posting_engine, chart, org_id, actor_id, record_entry
    ):
        entry = record_entry([dr(chart.cash, "40"), cr(chart.sales, "40")])
        reversal = posting_engine.create_reversal_entry(
            org_id, entry.id, date(2024, 3, 20), "wrong", actor_id
        )
        posting_engine.post_entry(org_id, reversal.reversal_entry_id, actor_id)

        cash = selector.activity(org_id)[chart.cash.id]
        assert (cash.debit_total, cash.credit_total) == (Decimal("40"), Decimal("40"))
        assert cash.line_count == 2

    def test_window_bounds(self, selector, chart, org_id, record_entry):
        record_entry([dr(chart.cash, "1"), cr(chart.sales, "1")], entry_date=date(2024, 1, 31))
        record_entry([dr(chart.cash, "2"), cr(chart.sales, "2")], entry_date=date(2024, 2, 1))
        record_entry([dr(chart.cash, "4"), cr(chart.sales, "4")], entry_date=date(2024, 2, 29))

        feb = selector.activity(org_id, start=date(2024, 2, 1), end=date(2024, 2, 29))
        assert feb[chart.cash.id].debit_total == Decimal("6")

        before_end = selector.activity(org_id, end=date(2024, 2, 29), end_inclusive=False)
        assert before_end[chart.cash.id].debit_total == Decimal("3")

    def test_other_organization_invisible(
        self, selector, chart, other_org_id, record_entry
    ):
        record_entry([dr(chart.cash, "1"), cr(chart.sales, "1")])
        assert selector.activity(other_org_id) == {}

    def test_external_shadow_follows_side(self, selector, chart, org_id, record_entry):
        record_entry([
            dr(chart.wallet, "25", external_amount=Decimal("25")),
            cr(chart.sales, "25"),
        ])
        record_entry([
            dr(chart.rent, "10"),
            cr(chart.wallet, "10", external_amount=Decimal("10")),
        ])
        assert selector.activity(org_id)[chart.wallet.id].external_total == Decimal("15")


class TestBalances:

    def test_balance_as_of_inclusive_and_opening(self, selector, chart, org_id, record_entry):
        record_entry([dr(chart.cash, "10"), cr(chart.sales, "10")], entry_date=date(2024, 3, 1))
        record_entry([dr(chart.cash, "5"), cr(chart.sales, "5")], entry_date=date(2024, 3, 2))

        cutoff = date(2024, 3, 2)
        assert selector.account_balance_as_of(org_id, chart.cash.id, cutoff) == Decimal("15")
        assert selector.account_balance_as_of(
            org_id, chart.cash.id, cutoff, inclusive=False
        ) == Decimal("10")
        assert selector.account_balance_as_of(
            org_id, chart.sales.id, cutoff
        ) == Decimal("15")

    def test_balance_without_lines_is_zero(self, selector, chart, org_id):
        assert selector.account_balance_as_of(
            org_id, chart.equipment.id, date(2024, 12, 31)
        ) == Decimal("0")

    def test_foreign_account_not_found(self, selector, chart, other_org_id):
        with pytest.raises(AccountNotFoundError):
            selector.account_balance_as_of(other_org_id, chart.cash.id, date(2024, 1, 1))

    def test_accounts_include_archived(self, selector, accounts, chart, org_id, actor_id):
        accounts.archive(org_id, chart.equipment.id, actor_id)
        infos = {a.account_id: a for a in selector.accounts(org_id)}
        assert infos[chart.equipment.id].is_archived is True


class TestLedgerLines:

    def test_chronological_order(self, selector, chart, org_id, record_entry):
        late = record_entry([dr(chart.cash, "2"), cr(chart.sales, "2")],
                            entry_date=date(2024, 3, 20))
        early = record_entry([dr(chart.cash, "1"), cr(chart.sales, "1")],
                             entry_date=date(2024, 3, 10), description="first")

        lines = selector.ledger_lines(org_id, account_ids=[chart.cash.id])
        assert [line.journal_entry_id for line in lines] == [early.id, late.id]
        assert lines[0].entry_description == "first"


class TestBalanceDrift:

    def test_consistent_cache_has_no_drift(
        self, selector, posting_engine, chart, org_id, actor_id, record_entry
    ):
        record_entry([dr(chart.cash, "100"), cr(chart.sales, "100")])
        voided = record_entry([dr(chart.rent, "20"), cr(chart.cash, "20")])
        posting_engine.void_entry(org_id, voided.id, "wrong", actor_id)
        assert selector.balance_drift(org_id) == []

    def test_tampered_cache_is_reported(
        self, selector, session, captured_logs, chart, org_id, record_entry
    ):
        record_entry([dr(chart.cash, "100"), cr(chart.sales, "100")])
        session.execute(
            update(Account).where(Account.id == chart.cash.id).values(balance=Decimal("90"))
        )
        session.expire_all()

        drifts = selector.balance_drift(org_id)
        assert [d.account_id for d in drifts] == [chart.cash.id]
        assert drifts[0].difference == Decimal("-10")

        logged = [r for r in captured_logs() if r["message"] == "balance_drift_detected"]
        assert logged[0]["account_number"] == "1000"

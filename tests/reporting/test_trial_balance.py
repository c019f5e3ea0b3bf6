"""Trial balance generation through ReportingService."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.exceptions import ReportParameterError
from ledger_modules.reporting.models import GroupBy, TrialBalanceOptions


def dr(account, amount, **kwargs):
    return LineSpec.debit_line(account.id, Decimal(amount), **kwargs)


def cr(account, amount, **kwargs):
    return LineSpec.credit_line(account.id, Decimal(amount), **kwargs)


AS_OF = date(2024, 3, 31)


@pytest.fixture
def ledger(chart, record_entry):
    record_entry([dr(chart.cash, "1000"), cr(chart.capital, "1000")])
    record_entry([dr(chart.rent, "250"), cr(chart.cash, "250")])
    record_entry([dr(chart.receivables, "400"), cr(chart.sales, "400")])
    record_entry([dr(chart.cash, "300"), cr(chart.receivables, "300")])


class TestTrialBalance:

    def test_lines_by_account_number(self, reporting, chart, org_id, ledger):
        report = reporting.generate_trial_balance(org_id, AS_OF)
        assert [line.account_number for line in report.lines] == [
            "1000", "1100", "3000", "4000", "5000",
        ]
        cash = report.lines[0]
        assert (cash.debit, cash.credit) == (Decimal("1300"), Decimal("250"))
        assert cash.balance == Decimal("1050")
        assert (cash.net_debit, cash.net_credit) == (Decimal("1050"), Decimal("0"))

        capital = report.lines[2]
        assert (capital.net_debit, capital.net_credit) == (Decimal("0"), Decimal("1000"))
        assert capital.balance == Decimal("-1000")

    def test_totals_balance(self, reporting, org_id, ledger):
        report = reporting.generate_trial_balance(org_id, AS_OF)
        assert report.totals.debit == report.totals.credit == Decimal("1950")
        assert report.totals.net_debit == Decimal("1400")
        assert report.totals.net_credit == Decimal("1400")
        assert report.difference == Decimal("0")
        assert report.balanced is True

    def test_zero_balances_optional(self, reporting, chart, org_id, ledger):
        report = reporting.generate_trial_balance(
            org_id, AS_OF, TrialBalanceOptions(include_zero_balances=True)
        )
        assert len(report.lines) == 14
        untouched = next(line for line in report.lines if line.account_number == "2000")
        assert untouched.balance == Decimal("0")

    def test_group_by_type(self, reporting, org_id, ledger):
        report = reporting.generate_trial_balance(
            org_id, AS_OF, TrialBalanceOptions(group_by=GroupBy.TYPE)
        )
        assert [line.name for line in report.lines] == [
            "Asset", "Equity", "Expense", "Revenue",
        ]
        asset = report.lines[0]
        assert asset.account_count == 2
        assert asset.net_debit == Decimal("1150")
        assert report.balanced is True

    def test_group_by_subtype(self, reporting, org_id, ledger):
        report = reporting.generate_trial_balance(
            org_id, AS_OF, TrialBalanceOptions(group_by=GroupBy.SUBTYPE)
        )
        assert report.lines[0].name == "Accounts Receivable"
        assert report.group_by == GroupBy.SUBTYPE

    def test_account_grouping_rejected(self, reporting, org_id):
        with pytest.raises(ReportParameterError):
            reporting.generate_trial_balance(
                org_id, AS_OF, TrialBalanceOptions(group_by=GroupBy.ACCOUNT)
            )

    def test_drafts_and_voids_excluded(
        self, posting_engine, reporting, chart, org_id, actor_id, record_entry
    ):
        record_entry([dr(chart.cash, "10"), cr(chart.sales, "10")], post=False)
        voided = record_entry([dr(chart.cash, "20"), cr(chart.sales, "20")])
        posting_engine.void_entry(org_id, voided.id, "error", actor_id)

        report = reporting.generate_trial_balance(org_id, AS_OF)
        assert report.lines == ()
        assert report.balanced is True

    def test_external_totals(self, reporting, chart, org_id, record_entry):
        record_entry([
            dr(chart.wallet, "60", external_amount=Decimal("60")),
            cr(chart.sales, "60"),
        ])
        report = reporting.generate_trial_balance(
            org_id, AS_OF, TrialBalanceOptions(include_external_amounts=True)
        )
        wallet = next(line for line in report.lines if line.account_number == "1200")
        assert wallet.external_amount == Decimal("60")
        assert report.totals.external_amount == Decimal("60")

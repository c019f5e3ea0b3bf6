"""Balance sheet generation through ReportingService."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import LineSpec
from ledger_modules.reporting.models import BalanceSheetOptions, GroupBy
from ledger_modules.reporting.service import one_year_earlier


def dr(account, amount, **kwargs):
    return LineSpec.debit_line(account.id, Decimal(amount), **kwargs)


def cr(account, amount, **kwargs):
    return LineSpec.credit_line(account.id, Decimal(amount), **kwargs)


@pytest.fixture
def opened_company(chart, record_entry):
    record_entry([dr(chart.bank, "10000"), cr(chart.capital, "10000")],
                 entry_date=date(2023, 1, 2))
    record_entry([dr(chart.bank, "5000"), cr(chart.loan, "5000")],
                 entry_date=date(2024, 1, 15))
    record_entry([dr(chart.equipment, "4000"), cr(chart.bank, "4000")],
                 entry_date=date(2024, 2, 1))
    record_entry([dr(chart.receivables, "1500"), cr(chart.sales, "1500")],
                 entry_date=date(2024, 2, 20))
    record_entry([dr(chart.rent, "600"), cr(chart.bank, "600")],
                 entry_date=date(2024, 2, 28))


class TestBalanceSheet:

    def test_sections_and_retained_earnings(self, reporting, org_id, opened_company):
        sheet = reporting.generate_balance_sheet(org_id, date(2024, 3, 31))

        assert sheet.total_assets == Decimal("15900")
        assert sheet.total_liabilities == Decimal("5000")
        assert sheet.retained_earnings == Decimal("900")
        assert sheet.total_equity == Decimal("10900")
        assert sheet.total_liabilities_and_equity == Decimal("15900")
        assert sheet.balanced is True

    def test_retained_earnings_is_synthetic_equity_item(
        self, reporting, org_id, opened_company
    ):
        sheet = reporting.generate_balance_sheet(org_id, date(2024, 3, 31))
        last = sheet.equity.items[-1]
        assert (last.key, last.name) == ("retained-earnings", "Retained Earnings")
        assert last.account_count == 0
        assert last.amount == Decimal("900")

    def test_as_of_is_inclusive(self, reporting, org_id, opened_company):
        sheet = reporting.generate_balance_sheet(org_id, date(2024, 2, 28))
        assert sheet.retained_earnings == Decimal("900")
        earlier = reporting.generate_balance_sheet(org_id, date(2024, 2, 27))
        assert earlier.retained_earnings == Decimal("1500")

    def test_group_by_subtype(self, reporting, org_id, opened_company):
        sheet = reporting.generate_balance_sheet(
            org_id, date(2024, 3, 31), BalanceSheetOptions(group_by=GroupBy.SUBTYPE)
        )
        assert [item.key for item in sheet.assets.items] == [
            "bank", "fixed-assets", "accounts-receivable",
        ]
        assert sheet.assets.items[2].name == "Accounts Receivable"

    def test_previous_year_comparison(self, reporting, org_id, opened_company):
        sheet = reporting.generate_balance_sheet(
            org_id, date(2024, 3, 31), BalanceSheetOptions(compare_with_previous_year=True)
        )
        assert sheet.metadata.comparative_end == date(2023, 3, 31)
        assert sheet.assets.previous_total == Decimal("10000")
        assert sheet.previous_retained_earnings == Decimal("0")
        assert sheet.previous_total_liabilities_and_equity == Decimal("10000")
        assert sheet.previous_balanced is True

    def test_unbalanced_sheet_is_reported_not_raised(
        self, posting_engine, reporting, chart, org_id, actor_id, record_entry
    ):
        # 0.01 difference is within posting tolerance but still a finding here
        record_entry([dr(chart.bank, "100.01"), cr(chart.capital, "100.00")])
        sheet = reporting.generate_balance_sheet(org_id, date(2024, 3, 31))
        assert sheet.difference == Decimal("0.01")
        assert sheet.balanced is False

    def test_empty_ledger(self, reporting, chart, org_id):
        sheet = reporting.generate_balance_sheet(org_id, date(2024, 3, 31))
        assert sheet.total_assets == Decimal("0")
        assert sheet.balanced is True
        assert [item.key for item in sheet.equity.items] == ["retained-earnings"]

    def test_inactive_accounts_still_reported(
        self, reporting, accounts, chart, org_id, actor_id, record_entry
    ):
        record_entry([dr(chart.equipment, "50"), cr(chart.capital, "50")])
        accounts.update_account(org_id, chart.equipment.id, actor_id=actor_id, is_active=False)
        sheet = reporting.generate_balance_sheet(org_id, date(2024, 3, 31))
        assert sheet.total_assets == Decimal("50")


class TestOneYearEarlier:

    def test_plain_date(self):
        assert one_year_earlier(date(2024, 3, 31)) == date(2023, 3, 31)

    def test_leap_day(self):
        assert one_year_earlier(date(2024, 2, 29)) == date(2023, 2, 28)

"""DocumentPostingService: default accounts, journal placement, atomicity."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.exceptions import AccountInactiveError, DocumentTemplateError
from ledger_kernel.models.account import AccountType
from ledger_kernel.models.journal import JournalEntryStatus, JournalType
from ledger_modules.documents import (
    BillDocument,
    DocumentItem,
    InvoiceDocument,
    PaymentDocument,
    PaymentMethod,
    TokenTransfer,
    TransferDirection,
)

TX_HASH = "0x" + "cd" * 32


@pytest.fixture
def balance_of(session):
    def _balance(account):
        session.refresh(account)
        return account.balance

    return _balance


def make_invoice(chart, documents, org_id, **kwargs):
    defaults = dict(
        invoice_number="INV-1001",
        customer_name="Acme",
        invoice_date=date(2024, 3, 1),
        receivable_account_id=documents.receivable_account(org_id),
        items=(DocumentItem(chart.sales.id, Decimal("2"), Decimal("50")),),
        tax_total=Decimal("8"),
        tax_account_id=documents.tax_account(org_id),
    )
    defaults.update(kwargs)
    return InvoiceDocument(**defaults)


class TestDefaultAccounts:

    def test_lookups_by_subtype(self, documents, chart, org_id):
        assert documents.receivable_account(org_id) == chart.receivables.id
        assert documents.payable_account(org_id) == chart.payables.id
        assert documents.tax_account(org_id) == chart.sales_tax.id
        assert documents.fee_account(org_id) == chart.fees.id
        assert documents.unclassified_revenue_account(org_id) == chart.unclassified.id

    def test_cash_account_per_method(self, documents, chart, org_id):
        assert documents.cash_account(org_id, PaymentMethod.CASH) == chart.cash.id
        assert documents.cash_account(org_id, PaymentMethod.BANK_TRANSFER) == chart.bank.id
        assert documents.cash_account(org_id, PaymentMethod.TOKEN) == chart.wallet.id

    def test_token_wallet_by_address(self, documents, chart, org_id):
        address = chart.wallet.external_address
        assert documents.cash_account(org_id, PaymentMethod.TOKEN, address) == chart.wallet.id

    def test_missing_default(self, documents, chart, org_id):
        with pytest.raises(DocumentTemplateError):
            documents.cash_account(org_id, PaymentMethod.CREDIT_CARD)

    def test_inactive_accounts_skipped(self, documents, accounts, chart, org_id, actor_id):
        accounts.update_account(org_id, chart.payables.id, actor_id=actor_id, is_active=False)
        with pytest.raises(DocumentTemplateError):
            documents.payable_account(org_id)

    def test_other_organization_has_no_defaults(self, documents, chart, other_org_id):
        with pytest.raises(DocumentTemplateError):
            documents.default_account(other_org_id, AccountType.ASSET, ("cash",))


class TestPostInvoice:

    def test_posts_into_sales_journal(self, documents, journals, chart, org_id, actor_id):
        result = documents.post_invoice(
            org_id, make_invoice(chart, documents, org_id), actor_id
        )
        assert result.entry_number == "SAL-2403-00001"
        assert result.total_debits == Decimal("108")

        entry = journals.get_entry(org_id, result.entry_id)
        assert entry.current_status == JournalEntryStatus.POSTED
        assert entry.journal.journal_type == JournalType.SALES
        assert entry.reference == "INV-1001"

    def test_updates_balances(self, documents, chart, org_id, actor_id, balance_of):
        documents.post_invoice(org_id, make_invoice(chart, documents, org_id), actor_id)
        assert balance_of(chart.receivables) == Decimal("108")
        assert balance_of(chart.sales) == Decimal("100")
        assert balance_of(chart.sales_tax) == Decimal("8")

    def test_rejection_leaves_nothing_behind(
        self, documents, accounts, journals, chart, org_id, actor_id, balance_of,
        captured_logs,
    ):
        invoice = make_invoice(chart, documents, org_id)
        accounts.update_account(org_id, chart.sales.id, actor_id=actor_id, is_active=False)

        with pytest.raises(AccountInactiveError):
            documents.post_invoice(org_id, invoice, actor_id)

        assert journals.list_entries(org_id) == []
        assert balance_of(chart.receivables) == Decimal("0")
        (record,) = [r for r in captured_logs() if r["message"] == "document_rejected"]
        assert record["code"] == "ACCOUNT_INACTIVE"
        assert record["journal_type"] == "sales"

    def test_success_is_logged(self, documents, chart, org_id, actor_id, captured_logs):
        result = documents.post_invoice(
            org_id, make_invoice(chart, documents, org_id), actor_id
        )
        (record,) = [r for r in captured_logs() if r["message"] == "document_posted"]
        assert record["entry_number"] == result.entry_number
        assert Decimal(record["total"]) == Decimal("108")


class TestInvoiceLifecycle:

    def test_invoice_then_payment_clears_receivable(
        self, documents, chart, org_id, actor_id, balance_of
    ):
        documents.post_invoice(org_id, make_invoice(chart, documents, org_id), actor_id)
        payment = documents.post_payment(org_id, PaymentDocument(
            invoice_number="INV-1001",
            customer_name="Acme",
            payment_date=date(2024, 3, 18),
            amount=Decimal("108"),
            cash_account_id=documents.cash_account(org_id, PaymentMethod.BANK_TRANSFER),
            receivable_account_id=documents.receivable_account(org_id),
            method=PaymentMethod.BANK_TRANSFER,
        ), actor_id)

        assert payment.entry_number == "CAS-2403-00001"
        assert balance_of(chart.receivables) == Decimal("0")
        assert balance_of(chart.bank) == Decimal("108")

    def test_bill_posts_to_purchases(self, documents, chart, org_id, actor_id, balance_of):
        result = documents.post_bill(org_id, BillDocument(
            bill_number="B-77",
            vendor_name="Landlord",
            bill_date=date(2024, 3, 2),
            payable_account_id=documents.payable_account(org_id),
            items=(DocumentItem(chart.rent.id, Decimal("1"), Decimal("1200")),),
        ), actor_id)
        assert result.entry_number == "PUR-2403-00001"
        assert balance_of(chart.payables) == Decimal("1200")
        assert balance_of(chart.rent) == Decimal("1200")


class TestTokenTransfer:

    def test_outgoing_transfer_with_fee(
        self, documents, journals, chart, org_id, actor_id, balance_of
    ):
        result = documents.post_token_transfer(org_id, TokenTransfer(
            direction=TransferDirection.OUTGOING,
            transaction_hash=TX_HASH,
            transfer_date=date(2024, 3, 8),
            amount=Decimal("25"),
            wallet_account_id=chart.wallet.id,
            counter_account_id=chart.payables.id,
            fee=Decimal("0.40"),
            fee_account_id=documents.fee_account(org_id),
            notes="Vendor settlement",
        ), actor_id)

        assert balance_of(chart.wallet) == Decimal("-25.40")
        assert balance_of(chart.fees) == Decimal("0.40")
        entry = journals.get_entry(org_id, result.entry_id)
        assert entry.external_reference == TX_HASH
        assert entry.notes == "Vendor settlement"
        assert all(line.external_confirmed for line in entry.lines)

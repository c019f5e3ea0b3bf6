"""
Document posting templates -- invoices, bills, payments and token transfers
turned into balanced line sets.

Responsibility:
    Pure builders.  Each takes a fully resolved document (account ids
    already chosen) and returns a ``DocumentLines`` value: target journal
    type, entry header fields and the ``LineSpec`` tuple.  Nothing here
    reads the database or posts anything.

Architecture position:
    Modules > Documents -- functional core.  ``DocumentPostingService``
    resolves default accounts and hands the result to the JournalStore and
    PostingEngine.

Invariants enforced:
    - Every returned line set balances exactly: the control line (AR, AP,
      cash or wallet) is the sum of the already-rounded detail lines.
    - Zero-amount lines (a fully discounted item, a zero tax) are dropped,
      so the debit XOR credit rule always holds.

Failure modes:
    - DocumentTemplateError for an empty document, negative quantities or
      prices, a discount larger than allowed, a tax without a tax account,
      a non-positive payment or transfer amount, or a document that nets to
      zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.exceptions import DocumentTemplateError
from ledger_kernel.models.journal import JournalType

HUNDRED = Decimal("100")


class DiscountType(str, Enum):
    NONE = "none"
    PERCENTAGE = "percentage"
    AMOUNT = "amount"


class PaymentMethod(str, Enum):
    """How a customer or vendor payment moved."""

    CASH = "cash"
    BANK_TRANSFER = "bank-transfer"
    CREDIT_CARD = "credit-card"
    TOKEN = "token"


# Default cash-side account subtype per payment method (asset accounts)
PAYMENT_METHOD_SUBTYPES: dict[PaymentMethod, tuple[str, ...]] = {
    PaymentMethod.CASH: ("cash",),
    PaymentMethod.BANK_TRANSFER: ("bank",),
    PaymentMethod.CREDIT_CARD: ("merchant-account",),
    PaymentMethod.TOKEN: ("cryptocurrencies",),
}


class TransferDirection(str, Enum):
    OUTGOING = "outgoing"
    INCOMING = "incoming"


# =========================================================================
# Documents
# =========================================================================


@dataclass(frozen=True)
class DocumentItem:
    """
    One priced line of an invoice or bill.

    ``tax_rate`` is a percentage and only applies to bills, where tax is
    folded into the expense line.  Invoice tax is a separate total.
    """

    account_id: UUID
    quantity: Decimal
    unit_price: Decimal
    description: str | None = None
    discount_type: DiscountType = DiscountType.NONE
    discount_value: Decimal = ZERO
    tax_rate: Decimal = ZERO
    project_id: UUID | None = None
    department_id: UUID | None = None

    def gross_amount(self) -> Decimal:
        return self.quantity * self.unit_price

    def net_amount(self) -> Decimal:
        """Gross amount less the discount, unrounded."""
        amount = self.gross_amount()
        if self.discount_type == DiscountType.PERCENTAGE:
            return amount - amount * self.discount_value / HUNDRED
        if self.discount_type == DiscountType.AMOUNT:
            return amount - min(self.discount_value, amount)
        return amount


@dataclass(frozen=True)
class InvoiceDocument:
    invoice_number: str
    customer_name: str
    invoice_date: date
    receivable_account_id: UUID
    items: tuple[DocumentItem, ...]
    customer_id: UUID | None = None
    tax_total: Decimal = ZERO
    tax_account_id: UUID | None = None
    reference: str | None = None


@dataclass(frozen=True)
class PaymentDocument:
    """A customer payment against an invoice."""

    invoice_number: str
    customer_name: str
    payment_date: date
    amount: Decimal
    cash_account_id: UUID
    receivable_account_id: UUID
    method: PaymentMethod = PaymentMethod.CASH
    customer_id: UUID | None = None
    reference: str | None = None
    transaction_hash: str | None = None


@dataclass(frozen=True)
class BillDocument:
    bill_number: str
    vendor_name: str
    bill_date: date
    payable_account_id: UUID
    items: tuple[DocumentItem, ...]
    vendor_id: UUID | None = None
    vendor_reference: str | None = None


@dataclass(frozen=True)
class BillPaymentDocument:
    bill_number: str
    vendor_name: str
    payment_date: date
    amount: Decimal
    payable_account_id: UUID
    cash_account_id: UUID
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    vendor_id: UUID | None = None
    reference: str | None = None
    transaction_hash: str | None = None


@dataclass(frozen=True)
class TokenTransfer:
    """
    A confirmed token movement on a wallet account.

    ``counter_account_id`` is the other side: the expense or payable an
    outgoing transfer settles, or the revenue or receivable an incoming one
    came from.
    """

    direction: TransferDirection
    transaction_hash: str
    transfer_date: date
    amount: Decimal
    wallet_account_id: UUID
    counter_account_id: UUID
    fee: Decimal = ZERO
    fee_account_id: UUID | None = None
    counterparty_address: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class DocumentLines:
    """A balanced line set with the header fields of the entry to create."""

    journal_type: JournalType
    entry_date: date
    description: str
    lines: tuple[LineSpec, ...]
    reference: str | None = None
    external_reference: str | None = None

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)


# =========================================================================
# Validation helpers
# =========================================================================


def _require_positive(value: Decimal, field: str) -> Decimal:
    amount = round_money(value)
    if amount <= ZERO:
        raise DocumentTemplateError(f"{field} must be greater than zero", field=field)
    return amount


def _item_amount(item: DocumentItem, index: int) -> Decimal:
    field = f"items[{index}]"
    if item.quantity < ZERO:
        raise DocumentTemplateError("Quantity cannot be negative", field=field)
    if item.unit_price < ZERO:
        raise DocumentTemplateError("Unit price cannot be negative", field=field)
    if item.discount_value < ZERO:
        raise DocumentTemplateError("Discount cannot be negative", field=field)
    if item.discount_type == DiscountType.PERCENTAGE and item.discount_value > HUNDRED:
        raise DocumentTemplateError("Percentage discount exceeds 100", field=field)
    if item.tax_rate < ZERO:
        raise DocumentTemplateError("Tax rate cannot be negative", field=field)
    return item.net_amount()


def _require_items(items: tuple[DocumentItem, ...]) -> None:
    if not items:
        raise DocumentTemplateError("Document has no line items", field="items")


def _method_hash(method: PaymentMethod, transaction_hash: str | None) -> str | None:
    if method == PaymentMethod.TOKEN and not transaction_hash:
        raise DocumentTemplateError(
            "Token payments need a transaction hash", field="transaction_hash"
        )
    return transaction_hash if method == PaymentMethod.TOKEN else None


# =========================================================================
# Builders
# =========================================================================


def build_invoice_lines(invoice: InvoiceDocument) -> DocumentLines:
    """
    Dr Accounts Receivable (total) / Cr Revenue per item, Cr Tax Payable.

    Sales journal.  The receivable line is the sum of the rounded credit
    lines.
    """
    _require_items(invoice.items)
    description = f"Invoice {invoice.invoice_number} - {invoice.customer_name}"

    credits: list[LineSpec] = []
    for index, item in enumerate(invoice.items):
        amount = round_money(_item_amount(item, index))
        if amount == ZERO:
            continue
        credits.append(
            LineSpec.credit_line(
                item.account_id,
                amount,
                description=item.description or description,
                customer_id=invoice.customer_id,
                project_id=item.project_id,
                department_id=item.department_id,
            )
        )

    tax = round_money(invoice.tax_total)
    if tax < ZERO:
        raise DocumentTemplateError("Tax cannot be negative", field="tax_total")
    if tax > ZERO:
        if invoice.tax_account_id is None:
            raise DocumentTemplateError(
                "Invoice carries tax but no tax account", field="tax_account_id"
            )
        credits.append(
            LineSpec.credit_line(invoice.tax_account_id, tax, description="Sales tax")
        )

    total = sum((line.credit for line in credits), ZERO)
    if total <= ZERO:
        raise DocumentTemplateError("Invoice total is zero", field="items")

    receivable = LineSpec.debit_line(
        invoice.receivable_account_id,
        total,
        description=description,
        customer_id=invoice.customer_id,
    )
    return DocumentLines(
        journal_type=JournalType.SALES,
        entry_date=invoice.invoice_date,
        description=description,
        reference=invoice.reference or invoice.invoice_number,
        lines=(receivable, *credits),
    )


def build_payment_lines(payment: PaymentDocument) -> DocumentLines:
    """Dr Cash/Bank / Cr Accounts Receivable.  Cash-receipts journal."""
    amount = _require_positive(payment.amount, "amount")
    tx_hash = _method_hash(payment.method, payment.transaction_hash)
    token = payment.method == PaymentMethod.TOKEN

    cash = LineSpec.debit_line(
        payment.cash_account_id,
        amount,
        description=f"Payment for Invoice {payment.invoice_number}",
        external_amount=amount if token else None,
        external_confirmed=token,
    )
    receivable = LineSpec.credit_line(
        payment.receivable_account_id,
        amount,
        description=(
            f"Payment for Invoice {payment.invoice_number} - {payment.customer_name}"
        ),
        customer_id=payment.customer_id,
    )
    return DocumentLines(
        journal_type=JournalType.CASH_RECEIPTS,
        entry_date=payment.payment_date,
        description=(
            f"Payment for Invoice {payment.invoice_number} - {payment.customer_name}"
        ),
        reference=payment.reference or payment.invoice_number,
        external_reference=tx_hash,
        lines=(cash, receivable),
    )


def build_bill_lines(bill: BillDocument) -> DocumentLines:
    """
    Dr Expense per item (net of discount, tax folded in) / Cr Accounts Payable.

    Purchases journal.
    """
    _require_items(bill.items)
    description = f"Bill {bill.bill_number} - {bill.vendor_name}"

    debits: list[LineSpec] = []
    for index, item in enumerate(bill.items):
        net = _item_amount(item, index)
        amount = round_money(net + net * item.tax_rate / HUNDRED)
        if amount == ZERO:
            continue
        debits.append(
            LineSpec.debit_line(
                item.account_id,
                amount,
                description=item.description or description,
                vendor_id=bill.vendor_id,
                project_id=item.project_id,
                department_id=item.department_id,
            )
        )

    total = sum((line.debit for line in debits), ZERO)
    if total <= ZERO:
        raise DocumentTemplateError("Bill total is zero", field="items")

    payable = LineSpec.credit_line(
        bill.payable_account_id,
        total,
        description=description,
        vendor_id=bill.vendor_id,
    )
    return DocumentLines(
        journal_type=JournalType.PURCHASES,
        entry_date=bill.bill_date,
        description=description,
        reference=bill.vendor_reference or bill.bill_number,
        lines=(payable, *debits),
    )


def build_bill_payment_lines(payment: BillPaymentDocument) -> DocumentLines:
    """Dr Accounts Payable / Cr Cash/Bank.  Cash-disbursements journal."""
    amount = _require_positive(payment.amount, "amount")
    tx_hash = _method_hash(payment.method, payment.transaction_hash)
    token = payment.method == PaymentMethod.TOKEN
    description = f"Payment for Bill {payment.bill_number} - {payment.vendor_name}"

    payable = LineSpec.debit_line(
        payment.payable_account_id,
        amount,
        description=description,
        vendor_id=payment.vendor_id,
    )
    cash = LineSpec.credit_line(
        payment.cash_account_id,
        amount,
        description=f"Payment for Bill {payment.bill_number}",
        external_amount=amount if token else None,
        external_confirmed=token,
    )
    return DocumentLines(
        journal_type=JournalType.CASH_DISBURSEMENTS,
        entry_date=payment.payment_date,
        description=description,
        reference=payment.reference or payment.bill_number,
        external_reference=tx_hash,
        lines=(payable, cash),
    )


def build_token_transfer_lines(transfer: TokenTransfer) -> DocumentLines:
    """
    Balanced lines for a confirmed token transfer.  General journal.

    Outgoing: Dr counter-account / Cr wallet, and for a fee Dr fee expense /
    Cr wallet.  Incoming: Dr wallet / Cr counter-account.  Every line
    carries the token amount as its confirmed external shadow amount.
    """
    amount = _require_positive(transfer.amount, "amount")
    if not transfer.transaction_hash:
        raise DocumentTemplateError(
            "Token transfer needs a transaction hash", field="transaction_hash"
        )
    fee = round_money(transfer.fee)
    if fee < ZERO:
        raise DocumentTemplateError("Fee cannot be negative", field="fee")

    shadow = {"external_confirmed": True}
    if transfer.direction == TransferDirection.OUTGOING:
        label = transfer.notes or "Token payment"
        if transfer.counterparty_address:
            label = f"{label} to {transfer.counterparty_address}"
        lines = [
            LineSpec.debit_line(
                transfer.counter_account_id, amount, description=label,
                external_amount=amount, **shadow,
            ),
            LineSpec.credit_line(
                transfer.wallet_account_id, amount, description=label,
                external_amount=amount, **shadow,
            ),
        ]
        if fee > ZERO:
            if transfer.fee_account_id is None:
                raise DocumentTemplateError(
                    "Transfer carries a fee but no fee account", field="fee_account_id"
                )
            lines.append(
                LineSpec.debit_line(
                    transfer.fee_account_id, fee, description="Transaction fee",
                    external_amount=fee, **shadow,
                )
            )
            lines.append(
                LineSpec.credit_line(
                    transfer.wallet_account_id, fee, description="Transaction fee",
                    external_amount=fee, **shadow,
                )
            )
    else:
        if fee > ZERO:
            raise DocumentTemplateError(
                "Incoming transfers carry no fee", field="fee"
            )
        label = transfer.notes or "Token receipt"
        if transfer.counterparty_address:
            label = f"{label} from {transfer.counterparty_address}"
        lines = [
            LineSpec.debit_line(
                transfer.wallet_account_id, amount, description=label,
                external_amount=amount, **shadow,
            ),
            LineSpec.credit_line(
                transfer.counter_account_id, amount, description=label,
                external_amount=amount, **shadow,
            ),
        ]

    return DocumentLines(
        journal_type=JournalType.GENERAL,
        entry_date=transfer.transfer_date,
        description=lines[0].description,
        reference=transfer.transaction_hash[:100],
        external_reference=transfer.transaction_hash,
        lines=tuple(lines),
    )

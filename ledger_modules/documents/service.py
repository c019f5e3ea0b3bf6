"""
DocumentPostingService -- places document line sets in the right journal
and posts them.

Thin glue layer that:
1. Resolves default accounts by type and subtype (AccountRegistry)
2. Builds the balanced line set (pure templates)
3. Stores a draft entry in the document's journal (JournalStore)
4. Posts it (PostingEngine)

All balancing rules live in templates.py.  All state rules live in the
kernel.  The service flushes only; the caller owns the transaction.

Usage:
    documents = DocumentPostingService(session, accounts, journals, engine)
    invoice = InvoiceDocument(
        invoice_number="INV-1001", customer_name="Acme",
        invoice_date=date(2024, 3, 1),
        receivable_account_id=documents.receivable_account(org_id),
        items=(DocumentItem(revenue_id, Decimal("2"), Decimal("50")),),
    )
    result = documents.post_invoice(org_id, invoice, actor_id)
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.exceptions import DocumentTemplateError, LedgerError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountType
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.journal_store import JournalStore
from ledger_kernel.services.posting_engine import PostingEngine, PostingResult
from ledger_modules.documents.templates import (
    PAYMENT_METHOD_SUBTYPES,
    BillDocument,
    BillPaymentDocument,
    DocumentLines,
    InvoiceDocument,
    PaymentDocument,
    PaymentMethod,
    TokenTransfer,
    build_bill_lines,
    build_bill_payment_lines,
    build_invoice_lines,
    build_payment_lines,
    build_token_transfer_lines,
)

logger = get_logger("modules.documents.service")


class DocumentPostingService:
    """
    Posts invoices, bills, payments and token transfers.

    Transaction boundary: draft creation and posting share one SAVEPOINT,
    so a rejected posting leaves no draft behind.  The caller commits.
    """

    def __init__(
        self,
        session: Session,
        accounts: AccountRegistry,
        journals: JournalStore,
        engine: PostingEngine,
    ):
        self._session = session
        self._accounts = accounts
        self._journals = journals
        self._engine = engine

    # =========================================================================
    # Default accounts
    # =========================================================================

    def default_account(
        self,
        organization_id: UUID,
        account_type: AccountType,
        subtypes: Sequence[str],
    ) -> UUID:
        """Id of the first active account matching one of ``subtypes``."""
        account = self._accounts.find_by_subtype(organization_id, account_type, subtypes)
        if account is None:
            raise DocumentTemplateError(
                f"No active {account_type.value} account with subtype "
                f"{' or '.join(subtypes)}",
                field="account_id",
            )
        return account.id

    def receivable_account(self, organization_id: UUID) -> UUID:
        return self.default_account(
            organization_id, AccountType.ASSET, ("accounts-receivable",)
        )

    def payable_account(self, organization_id: UUID) -> UUID:
        return self.default_account(
            organization_id, AccountType.LIABILITY, ("accounts-payable",)
        )

    def tax_account(self, organization_id: UUID) -> UUID:
        return self.default_account(
            organization_id, AccountType.LIABILITY, ("tax-payable",)
        )

    def fee_account(self, organization_id: UUID) -> UUID:
        return self.default_account(
            organization_id, AccountType.EXPENSE, ("transaction-fees",)
        )

    def unclassified_revenue_account(self, organization_id: UUID) -> UUID:
        return self.default_account(
            organization_id, AccountType.REVENUE, ("unclassified",)
        )

    def cash_account(
        self,
        organization_id: UUID,
        method: PaymentMethod,
        wallet_address: str | None = None,
    ) -> UUID:
        """
        Cash-side account for a payment method.

        Token payments prefer the account linked to ``wallet_address`` and
        fall back to the default cryptocurrency asset account.
        """
        if method == PaymentMethod.TOKEN and wallet_address:
            wallet = self._accounts.find_by_external_address(
                organization_id, wallet_address
            )
            if wallet is not None:
                return wallet.id
        return self.default_account(
            organization_id, AccountType.ASSET, PAYMENT_METHOD_SUBTYPES[method]
        )

    # =========================================================================
    # Posting
    # =========================================================================

    def post_document(
        self,
        organization_id: UUID,
        document: DocumentLines,
        actor_id: UUID,
        notes: str | None = None,
    ) -> PostingResult:
        """Store ``document`` as a draft in its journal and post it."""
        try:
            with self._session.begin_nested():
                journal = self._journals.get_or_create_journal(
                    organization_id, document.journal_type, actor_id
                )
                entry = self._journals.create_entry(
                    organization_id,
                    journal_id=journal.id,
                    entry_date=document.entry_date,
                    lines=document.lines,
                    actor_id=actor_id,
                    description=document.description,
                    reference=document.reference,
                    external_reference=document.external_reference,
                    notes=notes,
                )
                result = self._engine.post_entry(organization_id, entry.id, actor_id)
        except LedgerError as exc:
            logger.warning(
                "document_rejected",
                extra={
                    "organization_id": str(organization_id),
                    "journal_type": document.journal_type.value,
                    "description": document.description,
                    "code": exc.code,
                },
            )
            raise

        logger.info(
            "document_posted",
            extra={
                "organization_id": str(organization_id),
                "journal_type": document.journal_type.value,
                "entry_id": str(result.entry_id),
                "entry_number": result.entry_number,
                "total": str(result.total_debits),
            },
        )
        return result

    def post_invoice(
        self, organization_id: UUID, invoice: InvoiceDocument, actor_id: UUID
    ) -> PostingResult:
        return self.post_document(organization_id, build_invoice_lines(invoice), actor_id)

    def post_payment(
        self, organization_id: UUID, payment: PaymentDocument, actor_id: UUID
    ) -> PostingResult:
        return self.post_document(organization_id, build_payment_lines(payment), actor_id)

    def post_bill(
        self, organization_id: UUID, bill: BillDocument, actor_id: UUID
    ) -> PostingResult:
        return self.post_document(organization_id, build_bill_lines(bill), actor_id)

    def post_bill_payment(
        self, organization_id: UUID, payment: BillPaymentDocument, actor_id: UUID
    ) -> PostingResult:
        return self.post_document(
            organization_id, build_bill_payment_lines(payment), actor_id
        )

    def post_token_transfer(
        self, organization_id: UUID, transfer: TokenTransfer, actor_id: UUID
    ) -> PostingResult:
        return self.post_document(
            organization_id,
            build_token_transfer_lines(transfer),
            actor_id,
            notes=transfer.notes,
        )

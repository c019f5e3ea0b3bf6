"""
Document Posting Module (``ledger_modules.documents``).

Responsibility
--------------
Turns invoices, customer payments, bills, bill payments and confirmed
token transfers into balanced journal entries and posts them.

Architecture position
---------------------
**Modules layer** -- line construction is pure (``templates.py``);
``DocumentPostingService`` resolves default accounts, picks the journal and
delegates to the kernel's JournalStore and PostingEngine.

Invariants enforced
-------------------
* Templates only emit balanced line sets; the PostingEngine still
  re-checks the balance before anything is posted.
* No external I/O happens inside the posting transaction: token amounts
  and hashes arrive already confirmed.

Failure modes
-------------
* Malformed documents or missing default accounts -> ``DocumentTemplateError``.
* Kernel rejections (inactive account, unbalanced lines) propagate unchanged.
"""

from ledger_modules.documents.service import DocumentPostingService
from ledger_modules.documents.templates import (
    BillDocument,
    BillPaymentDocument,
    DiscountType,
    DocumentItem,
    DocumentLines,
    InvoiceDocument,
    PaymentDocument,
    PaymentMethod,
    TokenTransfer,
    TransferDirection,
    build_bill_lines,
    build_bill_payment_lines,
    build_invoice_lines,
    build_payment_lines,
    build_token_transfer_lines,
)

__all__ = [
    "DocumentPostingService",
    "BillDocument",
    "BillPaymentDocument",
    "DiscountType",
    "DocumentItem",
    "DocumentLines",
    "InvoiceDocument",
    "PaymentDocument",
    "PaymentMethod",
    "TokenTransfer",
    "TransferDirection",
    "build_bill_lines",
    "build_bill_payment_lines",
    "build_invoice_lines",
    "build_payment_lines",
    "build_token_transfer_lines",
]

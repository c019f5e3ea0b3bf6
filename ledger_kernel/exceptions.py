"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (invoice workflows, payment collectors, the reporting
API) must react to failures precisely. Parsing message strings is fragile,
so every failure here is:
  1. A TYPED exception class (catch by type, not message)
  2. Tagged with a CODE attribute (machine-readable, API-safe)
  3. Carrying structured DATA as attributes (not just a message string)

Example:
    try:
        engine.post_entry(org_id, entry_id, actor_id)
    except UnbalancedEntryError as e:
        return {"error": e.code, "debits": e.debits, "credits": e.credits}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- ValidationError
    |   +-- LineInvariantError
    |   +-- EmptyEntryError
    |   +-- ParentTypeMismatchError
    |   +-- AccountCycleError
    |   +-- AccountInactiveError
    |   +-- ReportParameterError
    |   +-- DocumentTemplateError
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- JournalNotFoundError
    |   +-- EntryNotFoundError
    |
    +-- ConflictError
    |   +-- DuplicateAccountNumberError   (also a ValidationError)
    |   +-- DuplicateExternalAddressError
    |   +-- DuplicateJournalNameError
    |   +-- AccountHasTransactionsError
    |   +-- AccountHasChildrenError
    |   +-- JournalHasEntriesError
    |
    +-- UnbalancedEntryError
    |
    +-- InvalidStateTransitionError
        +-- EntryNotDraftError
        +-- AlreadyVoidError
        +-- ReconciledError
        +-- NotPostedError
        +-- AlreadyReversedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Malformed input, bad date range
                | LINE_INVARIANT_VIOLATION    | Line has both or neither debit/credit
                | EMPTY_ENTRY                 | Posting an entry without lines
                | PARENT_TYPE_MISMATCH        | Parent account of a different type
                | ACCOUNT_CYCLE               | Parent chain would loop back
                | ACCOUNT_INACTIVE            | Line targets archived/inactive account
                | INVALID_REPORT_PARAMETERS   | Report window or option invalid
                | INVALID_DOCUMENT            | Document cannot produce balanced lines
----------------|-----------------------------|-----------------------------------------
Not found       | ACCOUNT_NOT_FOUND           | Absent, or owned by another organization
                | JOURNAL_NOT_FOUND           | Absent, or owned by another organization
                | ENTRY_NOT_FOUND             | Absent, or owned by another organization
----------------|-----------------------------|-----------------------------------------
Conflict        | DUPLICATE_ACCOUNT_NUMBER    | Account number already used in org
                | DUPLICATE_EXTERNAL_ADDRESS  | Wallet address already linked in org
                | DUPLICATE_JOURNAL_NAME      | Journal name already used in org
                | ACCOUNT_HAS_TRANSACTIONS    | Archive/delete an account with lines
                | ACCOUNT_HAS_CHILDREN        | Delete an account with sub-accounts
                | JOURNAL_HAS_ENTRIES         | Delete a journal with entries
----------------|-----------------------------|-----------------------------------------
Posting         | UNBALANCED_ENTRY            | |debits - credits| above tolerance
----------------|-----------------------------|-----------------------------------------
State           | INVALID_STATE_TRANSITION    | Generic illegal transition
                | ENTRY_NOT_DRAFT             | Post/edit/delete a non-draft entry
                | ENTRY_ALREADY_VOID          | Void an already voided entry
                | ENTRY_RECONCILED            | Void a reconciled entry
                | ENTRY_NOT_POSTED            | Reverse/reconcile a non-posted entry
                | ENTRY_ALREADY_REVERSED      | Reverse an entry twice

===============================================================================
HTTP MAPPING
===============================================================================

Each class carries an ``http_status`` so the excluded HTTP layer can tell
caller errors (4xx) apart from internal failures. Any exception that is not
a LedgerError is an internal error (5xx).
"""


class LedgerError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_ERROR"
    http_status: int = 500


# Validation


class ValidationError(LedgerError):
    """Input is malformed or violates a structural rule."""

    code: str = "VALIDATION_ERROR"
    http_status: int = 422

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class LineInvariantError(ValidationError):
    """A journal line must carry exactly one strictly positive side."""

    code: str = "LINE_INVARIANT_VIOLATION"

    def __init__(self, line_number: int, debit: str, credit: str, reason: str):
        self.line_number = line_number
        self.debit = debit
        self.credit = credit
        self.reason = reason
        super().__init__(
            f"Line {line_number} {reason}: debit={debit}, credit={credit}",
            field="lines",
        )


class EmptyEntryError(ValidationError):
    """Journal entry has no lines."""

    code: str = "EMPTY_ENTRY"

    def __init__(self, journal_entry_id: str):
        self.journal_entry_id = journal_entry_id
        super().__init__(
            f"Journal entry {journal_entry_id} has no lines", field="lines"
        )


class ParentTypeMismatchError(ValidationError):
    """Parent account type differs from the child's type."""

    code: str = "PARENT_TYPE_MISMATCH"

    def __init__(self, parent_id: str, parent_type: str, account_type: str):
        self.parent_id = parent_id
        self.parent_type = parent_type
        self.account_type = account_type
        super().__init__(
            f"Parent account {parent_id} is {parent_type}, "
            f"account is {account_type}",
            field="parent_id",
        )


class AccountCycleError(ValidationError):
    """Re-parenting would make an account its own ancestor."""

    code: str = "ACCOUNT_CYCLE"

    def __init__(self, account_id: str, parent_id: str):
        self.account_id = account_id
        self.parent_id = parent_id
        super().__init__(
            f"Account {account_id} cannot be placed under {parent_id}: "
            "it would become its own ancestor",
            field="parent_id",
        )


class AccountInactiveError(ValidationError):
    """Account is archived or inactive and cannot receive lines."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account is inactive: {account_id}", field="account_id")


class ReportParameterError(ValidationError):
    """Report parameters are inconsistent (e.g. end before start)."""

    code: str = "INVALID_REPORT_PARAMETERS"


class DocumentTemplateError(ValidationError):
    """A document cannot be turned into a balanced set of lines."""

    code: str = "INVALID_DOCUMENT"


# Not found


class NotFoundError(LedgerError):
    """Entity is absent or belongs to another organization."""

    code: str = "NOT_FOUND"
    http_status: int = 404


class AccountNotFoundError(NotFoundError):
    """Account was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class JournalNotFoundError(NotFoundError):
    """Journal was not found."""

    code: str = "JOURNAL_NOT_FOUND"

    def __init__(self, journal_id: str):
        self.journal_id = journal_id
        super().__init__(f"Journal not found: {journal_id}")


class EntryNotFoundError(NotFoundError):
    """Journal entry was not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, journal_entry_id: str):
        self.journal_entry_id = journal_entry_id
        super().__init__(f"Journal entry not found: {journal_entry_id}")


# Conflict


class ConflictError(LedgerError):
    """Operation conflicts with existing ledger state."""

    code: str = "CONFLICT"
    http_status: int = 409


class DuplicateAccountNumberError(ConflictError, ValidationError):
    """Account number is already used within the organization."""

    code: str = "DUPLICATE_ACCOUNT_NUMBER"
    http_status: int = 409

    def __init__(self, account_number: str):
        self.account_number = account_number
        self.field = "account_number"
        LedgerError.__init__(
            self, f"Account number already exists: {account_number}"
        )


class DuplicateExternalAddressError(ConflictError):
    """External wallet address is already linked to another account."""

    code: str = "DUPLICATE_EXTERNAL_ADDRESS"

    def __init__(self, external_address: str):
        self.external_address = external_address
        super().__init__(
            f"External address already linked to an account: {external_address}"
        )


class DuplicateJournalNameError(ConflictError):
    """Journal name is already used within the organization."""

    code: str = "DUPLICATE_JOURNAL_NAME"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Journal name already exists: {name}")


class AccountHasTransactionsError(ConflictError):
    """Account is referenced by journal lines."""

    code: str = "ACCOUNT_HAS_TRANSACTIONS"

    def __init__(self, account_id: str, operation: str):
        self.account_id = account_id
        self.operation = operation
        hint = " (consider archiving)" if operation == "delete" else ""
        super().__init__(
            f"Cannot {operation} account {account_id}: "
            f"it has journal lines{hint}"
        )


class AccountHasChildrenError(ConflictError):
    """Account still has sub-accounts."""

    code: str = "ACCOUNT_HAS_CHILDREN"

    def __init__(self, account_id: str, child_count: int):
        self.account_id = account_id
        self.child_count = child_count
        super().__init__(
            f"Cannot delete account {account_id}: it has {child_count} child accounts"
        )


class JournalHasEntriesError(ConflictError):
    """Journal still holds entries."""

    code: str = "JOURNAL_HAS_ENTRIES"

    def __init__(self, journal_id: str, entry_count: int):
        self.journal_id = journal_id
        self.entry_count = entry_count
        super().__init__(
            f"Cannot delete journal {journal_id}: it has {entry_count} entries "
            "(deactivate it instead)"
        )


# Posting


class UnbalancedEntryError(LedgerError):
    """Journal entry debits do not equal credits within tolerance."""

    code: str = "UNBALANCED_ENTRY"
    http_status: int = 422

    def __init__(
        self,
        journal_entry_id: str,
        debits: str,
        credits: str,
        tolerance: str,
    ):
        self.journal_entry_id = journal_entry_id
        self.debits = debits
        self.credits = credits
        self.tolerance = tolerance
        super().__init__(
            f"Unbalanced entry {journal_entry_id}: "
            f"debits={debits}, credits={credits}, tolerance={tolerance}"
        )


# State machine


class InvalidStateTransitionError(LedgerError):
    """Requested transition is not allowed from the entry's current status."""

    code: str = "INVALID_STATE_TRANSITION"
    http_status: int = 409

    def __init__(self, journal_entry_id: str, status: str, action: str):
        self.journal_entry_id = journal_entry_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} entry {journal_entry_id}: status is {status}"
        )


class EntryNotDraftError(InvalidStateTransitionError):
    """Only draft entries may be posted, edited or deleted."""

    code: str = "ENTRY_NOT_DRAFT"


class AlreadyVoidError(InvalidStateTransitionError):
    """Entry has already been voided."""

    code: str = "ENTRY_ALREADY_VOID"

    def __init__(self, journal_entry_id: str):
        super().__init__(journal_entry_id, "voided", "void")


class ReconciledError(InvalidStateTransitionError):
    """Reconciled entries cannot be voided."""

    code: str = "ENTRY_RECONCILED"

    def __init__(self, journal_entry_id: str):
        super().__init__(journal_entry_id, "reconciled", "void")


class NotPostedError(InvalidStateTransitionError):
    """Operation requires a posted entry."""

    code: str = "ENTRY_NOT_POSTED"


class AlreadyReversedError(InvalidStateTransitionError):
    """Entry already has a reversal."""

    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, journal_entry_id: str, reversal_entry_id: str):
        self.reversal_entry_id = reversal_entry_id
        super().__init__(journal_entry_id, "reversed", "reverse")

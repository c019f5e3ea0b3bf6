"""
PostingEngine -- the balancing state machine.

Responsibility:
    Moves journal entries through draft -> posted -> {voided | reversed |
    reconciled} and is the single writer of account balance deltas.  Each
    transition is an explicit, named method; nothing happens as a side
    effect of saving an entity.

Architecture position:
    Kernel > Services -- imperative shell.  Consumes JournalStore (entry
    loading, reversal drafts), AccountRegistry (balance mutation),
    AuditTrail and EntryLockRegistry.

Invariants enforced:
    - A posted entry has >= 1 line, every line passes the one-side rule, and
      |sum(debit) - sum(credit)| <= tolerance.
    - Posting applies, and voiding a posted entry exactly un-applies, the
      per-account deltas given by the shared sign convention.
    - A reversal is created only for a POSTED entry without an existing
      reversal; the original becomes REVERSED and points at the new draft.
    - Critical section: validation -> balance mutation -> status change ->
      audit write run inside a SAVEPOINT, so a failure leaves no partial
      effect.  The per-entry lock taken first is held until the caller's
      transaction commits or rolls back.

Failure modes:
    - EntryNotFoundError, EntryNotDraftError, EmptyEntryError,
      LineInvariantError, UnbalancedEntryError, AccountInactiveError.
    - AlreadyVoidError, ReconciledError, NotPostedError,
      AlreadyReversedError, InvalidStateTransitionError.

Audit relevance:
    Post, void, reverse and reconcile each write an AuditRecord in the same
    transaction as the state change, carrying totals and reasons.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.db.types import BALANCE_TOLERANCE, ZERO
from ledger_kernel.domain.balance import (
    aggregate_deltas,
    check_entry_balance,
    validate_line_sides,
)
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AlreadyReversedError,
    AlreadyVoidError,
    EmptyEntryError,
    EntryNotDraftError,
    InvalidStateTransitionError,
    LedgerError,
    NotPostedError,
    ReconciledError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.audit import AuditAction
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.audit_trail import AuditTrail
from ledger_kernel.services.entry_locks import (
    EntryLockRegistry,
    process_registry,
    release_session_locks,
)
from ledger_kernel.services.journal_store import JournalStore

logger = get_logger("services.posting_engine")


@dataclass(frozen=True)
class PostingResult:
    """Outcome of a successful post."""

    entry_id: UUID
    entry_number: str
    total_debits: Decimal
    total_credits: Decimal
    account_deltas: tuple[tuple[UUID, Decimal], ...]
    posted_at: datetime


@dataclass(frozen=True)
class VoidResult:
    """Outcome of a successful void."""

    entry_id: UUID
    previous_status: JournalEntryStatus
    balances_reverted: bool
    account_deltas: tuple[tuple[UUID, Decimal], ...]


@dataclass(frozen=True)
class ReversalResult:
    """Outcome of a reversal: the new draft waiting to be posted."""

    original_entry_id: UUID
    reversal_entry_id: UUID
    reversal_entry_number: str
    reversal_date: date


def _append_note(existing: str | None, note: str) -> str:
    return f"{existing}\n{note}" if existing else note


class PostingEngine:
    """
    Validates and commits journal entries and their balance effects.

    Contract:
        Every operation takes an explicit organization_id; entries of other
        organizations are not found.  All operations are short and
        all-or-nothing; there is no cancellation.

    Guarantees:
        - post_entry() is the only normal-path mutation of account balances.
        - void_entry() on a posted entry restores every touched balance to its
          pre-post value.
        - Reversal is two-step: create_reversal_entry() only creates a draft;
          balances change when that draft is posted.

    Non-goals:
        - Does NOT commit; callers wrap calls in session_scope().
        - Does NOT perform external I/O.  Amounts from collaborators (wallet
          lookups, exchange rates) are resolved before calling in.
    """

    def __init__(
        self,
        session: Session,
        accounts: AccountRegistry,
        journals: JournalStore,
        clock: Clock | None = None,
        locks: EntryLockRegistry | None = None,
        audit: AuditTrail | None = None,
        tolerance: Decimal = BALANCE_TOLERANCE,
    ):
        self._session = session
        self._accounts = accounts
        self._journals = journals
        self._clock = clock or SystemClock()
        self._locks = locks or process_registry()
        self._audit = audit or AuditTrail(session, self._clock)
        self._tolerance = tolerance

    # =========================================================================
    # Transitions
    # =========================================================================

    def post_entry(
        self,
        organization_id: UUID,
        entry_id: UUID,
        actor_id: UUID,
    ) -> PostingResult:
        """
        Post a draft entry and apply its balance deltas.

        Preconditions:
            - Entry is DRAFT and has at least one line.
        Postconditions:
            - Entry is POSTED with posted_at stamped.
            - Every line's signed delta is added to its account balance.

        Raises:
            EntryNotDraftError: entry is not DRAFT.
            EmptyEntryError: entry has no lines.
            LineInvariantError: a line has both or neither side positive.
            UnbalancedEntryError: |debits - credits| > tolerance.
            AccountInactiveError: a line targets an archived/inactive account.
        """
        with self._critical_section(organization_id, entry_id, actor_id, "post"):
            entry = self._journals.get_entry_for_update(organization_id, entry_id)
            if not entry.is_draft:
                raise EntryNotDraftError(
                    str(entry_id), entry.current_status.value, "post"
                )
            if not entry.lines:
                raise EmptyEntryError(str(entry_id))

            for line in entry.lines:
                validate_line_sides(line.line_number, line.debit, line.credit)
            debits = entry.total_debits
            credits = entry.total_credits
            check_entry_balance(entry.id, debits, credits, self._tolerance)

            deltas = self._entry_deltas(organization_id, entry, check_active=True)
            self._apply(organization_id, deltas)

            now = self._clock.now()
            entry.status = JournalEntryStatus.POSTED
            entry.posted_at = now
            entry.posted_by_id = actor_id
            entry.mark_updated(actor_id)
            self._session.flush()

            self._audit.record(
                organization_id,
                "journal_entry",
                entry.id,
                AuditAction.ENTRY_POSTED,
                actor_id,
                payload={
                    "entry_number": entry.entry_number,
                    "total_debits": str(debits),
                    "total_credits": str(credits),
                },
            )
            entry_number = entry.entry_number

        logger.info(
            "entry_posted",
            extra={
                "entry_number": entry_number,
                "total_debits": str(debits),
                "total_credits": str(credits),
                "accounts_touched": len(deltas),
            },
        )
        return PostingResult(
            entry_id=entry_id,
            entry_number=entry_number,
            total_debits=debits,
            total_credits=credits,
            account_deltas=tuple(deltas.items()),
            posted_at=now,
        )

    def void_entry(
        self,
        organization_id: UUID,
        entry_id: UUID,
        reason: str,
        actor_id: UUID,
    ) -> VoidResult:
        """
        Make an entry inert, un-applying its balance effect if it was posted.

        Postconditions:
            - Entry is VOIDED; notes carry "Voided: <reason>".
            - If it was POSTED, every touched balance is back to its
              pre-post value.

        Raises:
            ValidationError: blank reason.
            AlreadyVoidError: entry is already VOIDED.
            ReconciledError: entry is RECONCILED.
            InvalidStateTransitionError: entry is REVERSED (its reversal
                already offsets it), or is a draft reversal.
        """
        if not reason or not reason.strip():
            raise ValidationError("A void reason is required", field="reason")

        with self._critical_section(organization_id, entry_id, actor_id, "void"):
            entry = self._journals.get_entry_for_update(organization_id, entry_id)
            status = entry.current_status
            if status == JournalEntryStatus.VOIDED:
                raise AlreadyVoidError(str(entry_id))
            if status == JournalEntryStatus.RECONCILED:
                raise ReconciledError(str(entry_id))
            if status == JournalEntryStatus.REVERSED:
                raise InvalidStateTransitionError(str(entry_id), status.value, "void")
            if status == JournalEntryStatus.DRAFT and entry.reversal_of_id is not None:
                # The original already points at this draft; it must be posted.
                raise InvalidStateTransitionError(
                    str(entry_id), status.value, "void reversal"
                )

            deltas: dict[UUID, Decimal] = {}
            if status == JournalEntryStatus.POSTED:
                applied = self._entry_deltas(organization_id, entry, check_active=False)
                deltas = {account_id: -delta for account_id, delta in applied.items()}
                self._apply(organization_id, deltas)

            entry.status = JournalEntryStatus.VOIDED
            entry.voided_at = self._clock.now()
            entry.notes = _append_note(entry.notes, f"Voided: {reason.strip()}")
            entry.mark_updated(actor_id)
            self._session.flush()

            self._audit.record(
                organization_id,
                "journal_entry",
                entry.id,
                AuditAction.ENTRY_VOIDED,
                actor_id,
                reason=reason.strip(),
                payload={
                    "entry_number": entry.entry_number,
                    "previous_status": status.value,
                },
            )

        logger.info(
            "entry_voided",
            extra={
                "previous_status": status.value,
                "balances_reverted": bool(deltas),
                "reason": reason.strip(),
            },
        )
        return VoidResult(
            entry_id=entry_id,
            previous_status=status,
            balances_reverted=status == JournalEntryStatus.POSTED,
            account_deltas=tuple(deltas.items()),
        )

    def create_reversal_entry(
        self,
        organization_id: UUID,
        entry_id: UUID,
        reversal_date: date,
        reason: str,
        actor_id: UUID,
    ) -> ReversalResult:
        """
        Create a DRAFT entry that mirrors a posted entry with sides swapped.

        Postconditions:
            - New draft in the same journal; line i has debit = original
              credit and credit = original debit.
            - reversal.reversal_of_id == original.id and
              original.reversed_by_id == reversal.id; original is REVERSED.
            - No balance changes until the draft is posted.

        Raises:
            AlreadyReversedError: the entry already has a reversal.
            NotPostedError: the entry is not POSTED.
        """
        with self._critical_section(organization_id, entry_id, actor_id, "reverse"):
            original = self._journals.get_entry_for_update(organization_id, entry_id)
            if original.reversed_by_id is not None:
                raise AlreadyReversedError(str(entry_id), str(original.reversed_by_id))
            if not original.is_posted:
                raise NotPostedError(
                    str(entry_id), original.current_status.value, "reverse"
                )

            lines = [
                LineSpec(
                    account_id=line.account_id,
                    debit=line.debit,
                    credit=line.credit,
                    customer_id=line.customer_id,
                    vendor_id=line.vendor_id,
                    project_id=line.project_id,
                    department_id=line.department_id,
                    external_amount=line.external_amount,
                ).swapped(
                    description=f"Reversal of {line.description}"
                    if line.description
                    else "Reversal"
                )
                for line in original.lines
            ]
            reversal = self._journals.create_entry(
                organization_id,
                journal_id=original.journal_id,
                entry_date=reversal_date,
                lines=lines,
                actor_id=actor_id,
                description=(
                    f"Reversal of entry {original.entry_number}: {original.description}"
                    if original.description
                    else f"Reversal of entry {original.entry_number}"
                ),
                reference=original.reference,
                notes=reason,
                reversal_of_id=original.id,
            )

            original.reversed_by_id = reversal.id
            original.status = JournalEntryStatus.REVERSED
            original.mark_updated(actor_id)
            self._session.flush()

            self._audit.record(
                organization_id,
                "journal_entry",
                original.id,
                AuditAction.ENTRY_REVERSED,
                actor_id,
                reason=reason,
                payload={
                    "entry_number": original.entry_number,
                    "reversal_entry_id": str(reversal.id),
                    "reversal_entry_number": reversal.entry_number,
                },
            )
            result = ReversalResult(
                original_entry_id=original.id,
                reversal_entry_id=reversal.id,
                reversal_entry_number=reversal.entry_number,
                reversal_date=reversal_date,
            )

        logger.info(
            "reversal_created",
            extra={
                "reversal_entry_id": str(result.reversal_entry_id),
                "reversal_entry_number": result.reversal_entry_number,
            },
        )
        return result

    def reconcile_entry(
        self,
        organization_id: UUID,
        entry_id: UUID,
        actor_id: UUID,
        reconciliation_ref: str | None = None,
    ) -> JournalEntry:
        """
        Mark a posted entry and all its lines reconciled.

        A reconciled entry keeps its balance effect and can no longer be
        voided.

        Raises:
            NotPostedError: the entry is not POSTED.
        """
        with self._critical_section(organization_id, entry_id, actor_id, "reconcile"):
            entry = self._journals.get_entry_for_update(organization_id, entry_id)
            if not entry.is_posted:
                raise NotPostedError(
                    str(entry_id), entry.current_status.value, "reconcile"
                )
            now = self._clock.now()
            entry.status = JournalEntryStatus.RECONCILED
            entry.reconciled_at = now
            entry.mark_updated(actor_id)
            for line in entry.lines:
                line.is_reconciled = True
                line.reconciled_at = now
                line.reconciliation_ref = reconciliation_ref
            self._session.flush()

            self._audit.record(
                organization_id,
                "journal_entry",
                entry.id,
                AuditAction.ENTRY_RECONCILED,
                actor_id,
                payload={"reconciliation_ref": reconciliation_ref},
            )

        logger.info("entry_reconciled", extra={"reconciliation_ref": reconciliation_ref})
        return entry

    # =========================================================================
    # Internal Implementation
    # =========================================================================

    @contextmanager
    def _critical_section(
        self,
        organization_id: UUID,
        entry_id: UUID,
        actor_id: UUID,
        action: str,
    ) -> Iterator[None]:
        """
        Per-entry lock + SAVEPOINT; failures are logged and re-raised.

        The entry lock stays held until the caller's transaction ends.
        """
        with LogContext.bind(
            organization_id=organization_id, entry_id=entry_id, actor_id=actor_id
        ):
            self._locks.hold_until_transaction_end(
                self._session, organization_id, entry_id
            )
            try:
                with self._session.begin_nested():
                    yield
            except LedgerError as exc:
                logger.warning(
                    "entry_transition_rejected",
                    extra={"action": action, "code": exc.code, "detail": str(exc)},
                )
                raise
            finally:
                if not self._session.in_transaction():
                    release_session_locks(self._session)

    def _entry_deltas(
        self,
        organization_id: UUID,
        entry: JournalEntry,
        check_active: bool,
    ) -> dict[UUID, Decimal]:
        rows = []
        for line in entry.lines:
            account = self._accounts.get_account(organization_id, line.account_id)
            if check_active and not account.accepts_lines:
                raise AccountInactiveError(str(account.id))
            rows.append((account.id, account.account_type, line.debit, line.credit))
        return aggregate_deltas(rows)

    def _apply(self, organization_id: UUID, deltas: dict[UUID, Decimal]) -> None:
        for account_id, delta in deltas.items():
            if delta != ZERO:
                self._accounts.adjust_balance(organization_id, account_id, delta)

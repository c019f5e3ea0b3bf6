"""
JournalStore -- journals and the draft side of journal entries.

Responsibility:
    CRUD over journals and journal entries, always scoped by organization,
    plus per-journal entry numbering.  Creates and edits DRAFT entries only;
    every status change beyond draft belongs to the PostingEngine.

Architecture position:
    Kernel > Services -- imperative shell.  Consumes AccountRegistry for line
    account checks.  Consumed by PostingEngine (reversal drafts) and by
    collaborators building entries.

Invariants enforced:
    - Journal names unique per organization.
    - Entry numbers ``<PREFIX>-<YY><MM>-<NNNNN>``, sequential per journal,
      derived from the highest existing number of that journal.
    - Lines numbered from 1; each line passes the one-side rule and targets
      an active account of the same organization before it is stored.
    - Only DRAFT entries may be edited or deleted.

Failure modes:
    - JournalNotFoundError / EntryNotFoundError for absent or foreign ids.
    - DuplicateJournalNameError, JournalHasEntriesError.
    - ValidationError for float or non-numeric line amounts.
    - LineInvariantError, AccountNotFoundError, AccountInactiveError.
    - EntryNotDraftError when editing or deleting a non-draft entry.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import replace
from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import to_money
from ledger_kernel.domain.balance import validate_line_sides
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.exceptions import (
    AccountInactiveError,
    DuplicateJournalNameError,
    EntryNotDraftError,
    EntryNotFoundError,
    InvalidStateTransitionError,
    JournalHasEntriesError,
    JournalNotFoundError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.journal import (
    Journal,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    JournalType,
)
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.base import BaseService

logger = get_logger("services.journal_store")

_SEQUENCE_RE = re.compile(r"-(\d{5,})$")


def format_entry_number(prefix: str, entry_date: date, sequence: int) -> str:
    """``GEN-2403-00007`` style number."""
    return f"{prefix}-{entry_date:%y%m}-{sequence:05d}"


def parse_entry_sequence(entry_number: str) -> int | None:
    """Trailing sequence of an entry number, or None if it has none."""
    match = _SEQUENCE_RE.search(entry_number)
    return int(match.group(1)) if match else None


def _line_amount(line_number: int, field: str, value: object) -> Decimal:
    try:
        amount = to_money(value)
    except (TypeError, InvalidOperation) as exc:
        raise ValidationError(
            f"Line {line_number} {field} is not a decimal amount: {value!r}",
            field=field,
        ) from exc
    if not amount.is_finite():
        raise ValidationError(
            f"Line {line_number} {field} must be finite: {value!r}", field=field
        )
    return amount


class JournalStore(BaseService[JournalEntry]):
    """
    Journal and draft entry store.

    Contract:
        Every read and write takes an explicit organization_id; entities of
        other organizations are reported as not found.

    Guarantees:
        - Draft entries are stored with fully validated lines.
        - Entry numbers never repeat within a journal.

    Non-goals:
        - Does NOT post, void or reverse (PostingEngine).
        - Does NOT check debit == credit; drafts may be unbalanced while
          being edited.  Balance is checked at posting time.
    """

    def __init__(
        self,
        session: Session,
        accounts: AccountRegistry,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._accounts = accounts
        self._clock = clock or SystemClock()

    # =========================================================================
    # Journals
    # =========================================================================

    def create_journal(
        self,
        organization_id: UUID,
        *,
        name: str,
        journal_type: JournalType | str,
        actor_id: UUID,
        description: str | None = None,
    ) -> Journal:
        if not name or not name.strip():
            raise ValidationError("Journal name is required", field="name")
        try:
            journal_type = JournalType(journal_type)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown journal type: {journal_type!r}", field="journal_type"
            ) from exc

        taken = self.session.execute(
            select(Journal.id).where(
                Journal.organization_id == organization_id,
                Journal.name == name.strip(),
            )
        ).first()
        if taken is not None:
            raise DuplicateJournalNameError(name.strip())

        journal = Journal(
            organization_id=organization_id,
            name=name.strip(),
            journal_type=journal_type,
            description=description,
            created_by_id=actor_id,
        )
        self.session.add(journal)
        self.session.flush()
        logger.info(
            "journal_created",
            extra={
                "organization_id": str(organization_id),
                "journal_id": str(journal.id),
                "journal_type": journal_type.value,
            },
        )
        return journal

    def get_journal(self, organization_id: UUID, journal_id: UUID) -> Journal:
        journal = self.session.get(Journal, journal_id)
        if journal is None or journal.organization_id != organization_id:
            raise JournalNotFoundError(str(journal_id))
        return journal

    def list_journals(
        self,
        organization_id: UUID,
        include_inactive: bool = False,
    ) -> list[Journal]:
        query = select(Journal).where(Journal.organization_id == organization_id)
        if not include_inactive:
            query = query.where(Journal.is_active.is_(True))
        return list(self.session.execute(query.order_by(Journal.name)).scalars())

    def get_or_create_journal(
        self,
        organization_id: UUID,
        journal_type: JournalType,
        actor_id: UUID,
    ) -> Journal:
        """First active journal of the type, created with its default name if none."""
        journal = self.session.execute(
            select(Journal)
            .where(
                Journal.organization_id == organization_id,
                Journal.journal_type == journal_type.value,
                Journal.is_active.is_(True),
            )
            .order_by(Journal.name)
            .limit(1)
        ).scalar_one_or_none()
        if journal is not None:
            return journal
        return self.create_journal(
            organization_id,
            name=journal_type.default_name,
            journal_type=journal_type,
            actor_id=actor_id,
        )

    def deactivate_journal(
        self, organization_id: UUID, journal_id: UUID, actor_id: UUID
    ) -> Journal:
        journal = self.get_journal(organization_id, journal_id)
        journal.is_active = False
        journal.mark_updated(actor_id)
        self.session.flush()
        logger.info("journal_deactivated", extra={"journal_id": str(journal_id)})
        return journal

    def delete_journal(self, organization_id: UUID, journal_id: UUID) -> None:
        """
        Raises:
            JournalHasEntriesError: the journal holds entries; deactivate it.
        """
        journal = self.get_journal(organization_id, journal_id)
        count = self.session.execute(
            select(func.count())
            .select_from(JournalEntry)
            .where(JournalEntry.journal_id == journal_id)
        ).scalar_one()
        if count:
            raise JournalHasEntriesError(str(journal_id), count)
        self.session.delete(journal)
        self.session.flush()
        logger.info("journal_deleted", extra={"journal_id": str(journal_id)})

    # =========================================================================
    # Numbering
    # =========================================================================

    def next_entry_number(self, journal: Journal, entry_date: date) -> str:
        """
        Next entry number for a journal.

        The sequence continues from the highest existing number in the
        journal, whatever month that number was issued in.
        """
        numbers = self.session.execute(
            select(JournalEntry.entry_number).where(
                JournalEntry.journal_id == journal.id
            )
        ).scalars()
        sequences = [s for s in (parse_entry_sequence(n) for n in numbers) if s is not None]
        next_sequence = max(sequences, default=0) + 1
        return format_entry_number(journal.prefix, entry_date, next_sequence)

    # =========================================================================
    # Entries
    # =========================================================================

    def get_entry(self, organization_id: UUID, entry_id: UUID) -> JournalEntry:
        """
        Raises:
            EntryNotFoundError: absent, or owned by another organization.
        """
        entry = self.session.get(JournalEntry, entry_id)
        if entry is None or entry.organization_id != organization_id:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def get_entry_for_update(self, organization_id: UUID, entry_id: UUID) -> JournalEntry:
        """Load an entry with a row lock (no-op on SQLite)."""
        entry = self.session.execute(
            select(JournalEntry)
            .where(
                JournalEntry.id == entry_id,
                JournalEntry.organization_id == organization_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def list_entries(
        self,
        organization_id: UUID,
        journal_id: UUID | None = None,
        status: JournalEntryStatus | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[JournalEntry]:
        """Entries ordered by date then entry number."""
        query = select(JournalEntry).where(JournalEntry.organization_id == organization_id)
        if journal_id is not None:
            query = query.where(JournalEntry.journal_id == journal_id)
        if status is not None:
            query = query.where(JournalEntry.status == JournalEntryStatus(status).value)
        if start_date is not None:
            query = query.where(JournalEntry.entry_date >= start_date)
        if end_date is not None:
            query = query.where(JournalEntry.entry_date <= end_date)
        query = query.order_by(JournalEntry.entry_date, JournalEntry.entry_number)
        return list(self.session.execute(query).scalars())

    def create_entry(
        self,
        organization_id: UUID,
        *,
        journal_id: UUID,
        entry_date: date,
        lines: Sequence[LineSpec],
        actor_id: UUID,
        description: str | None = None,
        reference: str | None = None,
        external_reference: str | None = None,
        notes: str | None = None,
        reversal_of_id: UUID | None = None,
    ) -> JournalEntry:
        """
        Store a new DRAFT entry with numbered, validated lines.

        Raises:
            JournalNotFoundError: journal absent or foreign.
            ValidationError: journal inactive.
            LineInvariantError / AccountNotFoundError / AccountInactiveError.
        """
        journal = self.get_journal(organization_id, journal_id)
        if not journal.is_active:
            raise ValidationError(
                f"Journal {journal_id} is inactive", field="journal_id"
            )
        lines = self._validate_lines(organization_id, lines)

        entry = JournalEntry(
            organization_id=organization_id,
            journal_id=journal.id,
            entry_number=self.next_entry_number(journal, entry_date),
            entry_date=entry_date,
            description=description,
            reference=reference,
            external_reference=external_reference,
            notes=notes,
            status=JournalEntryStatus.DRAFT,
            reversal_of_id=reversal_of_id,
            created_by_id=actor_id,
        )
        entry.lines = self._build_lines(lines, actor_id)
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "entry_draft_created",
            extra={
                "organization_id": str(organization_id),
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "line_count": len(lines),
            },
        )
        return entry

    def update_draft(
        self,
        organization_id: UUID,
        entry_id: UUID,
        *,
        actor_id: UUID,
        entry_date: date | None = None,
        description: str | None = None,
        reference: str | None = None,
        notes: str | None = None,
        lines: Sequence[LineSpec] | None = None,
    ) -> JournalEntry:
        """
        Edit a draft.  Passing ``lines`` replaces all lines.

        Raises:
            EntryNotDraftError: the entry has left DRAFT.
        """
        entry = self.get_entry(organization_id, entry_id)
        if not entry.is_draft:
            raise EntryNotDraftError(str(entry_id), entry.current_status.value, "edit")

        if entry_date is not None:
            entry.entry_date = entry_date
        if description is not None:
            entry.description = description
        if reference is not None:
            entry.reference = reference
        if notes is not None:
            entry.notes = notes
        if lines is not None:
            lines = self._validate_lines(organization_id, lines)
            entry.lines.clear()
            # Flush the orphan deletes before reusing line numbers
            self.session.flush()
            entry.lines.extend(self._build_lines(lines, actor_id))

        entry.mark_updated(actor_id)
        self.session.flush()
        logger.info("entry_draft_updated", extra={"entry_id": str(entry_id)})
        return entry

    def delete_draft(self, organization_id: UUID, entry_id: UUID) -> None:
        """
        Raises:
            EntryNotDraftError: the entry has left DRAFT.
            InvalidStateTransitionError: the draft is a pending reversal; its
                original already points at it.
        """
        entry = self.get_entry(organization_id, entry_id)
        if not entry.is_draft:
            raise EntryNotDraftError(str(entry_id), entry.current_status.value, "delete")
        if entry.reversal_of_id is not None:
            raise InvalidStateTransitionError(str(entry_id), "draft", "delete reversal")
        self.session.delete(entry)
        self.session.flush()
        logger.info("entry_draft_deleted", extra={"entry_id": str(entry_id)})

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _validate_lines(
        self, organization_id: UUID, lines: Sequence[LineSpec]
    ) -> list[LineSpec]:
        """Return the lines with every amount coerced to Decimal."""
        validated = []
        for number, spec in enumerate(lines, start=1):
            spec = replace(
                spec,
                debit=_line_amount(number, "debit", spec.debit),
                credit=_line_amount(number, "credit", spec.credit),
                external_amount=(
                    None if spec.external_amount is None
                    else _line_amount(number, "external_amount", spec.external_amount)
                ),
            )
            validate_line_sides(number, spec.debit, spec.credit)
            account = self._accounts.get_account(organization_id, spec.account_id)
            if not account.accepts_lines:
                raise AccountInactiveError(str(spec.account_id))
            validated.append(spec)
        return validated

    @staticmethod
    def _build_lines(lines: Sequence[LineSpec], actor_id: UUID) -> list[JournalLine]:
        return [
            JournalLine(
                line_number=number,
                account_id=spec.account_id,
                description=spec.description,
                debit=spec.debit,
                credit=spec.credit,
                customer_id=spec.customer_id,
                vendor_id=spec.vendor_id,
                project_id=spec.project_id,
                department_id=spec.department_id,
                external_amount=spec.external_amount,
                external_confirmed=spec.external_confirmed,
                created_by_id=actor_id,
            )
            for number, spec in enumerate(lines, start=1)
        ]

"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journals, journal entries and journal
    lines -- the single source of financial truth.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.
Invariants enforced:
    - Line side rule: debit >= 0, credit >= 0, and exactly one of them is
      strictly positive (CHECK constraints ck_line_* back the service-level
      validation).
    - Line numbers unique within an entry; entry numbers unique within a
      journal; journal names unique within an organization.
    - Balance within tolerance for posted entries (enforced by PostingEngine;
      is_balanced is a read-side convenience).
Failure modes:
    - IntegrityError on a duplicate number or a line violating the checks.
Audit relevance:
    Journal lines on effective entries are what every report replays.
    Voided entries stay in place for history but never count.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import BALANCE_TOLERANCE

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class JournalType(str, Enum):
    """Fixed set of journal partitions."""

    GENERAL = "general"
    SALES = "sales"
    PURCHASES = "purchases"
    CASH_RECEIPTS = "cash-receipts"
    CASH_DISBURSEMENTS = "cash-disbursements"
    PAYROLL = "payroll"
    FIXED_ASSETS = "fixed-assets"

    @property
    def prefix(self) -> str:
        """Entry number prefix: first three characters, upper-cased."""
        return self.value[:3].upper()

    @property
    def default_name(self) -> str:
        """Human name used when a journal is created on demand."""
        return f"{self.value.replace('-', ' ').title()} Journal"


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry.

    Contract: DRAFT -> POSTED -> {VOIDED | REVERSED | RECONCILED}.
    DRAFT may also go straight to VOIDED.  VOIDED and REVERSED are terminal.
    """

    DRAFT = "draft"
    POSTED = "posted"
    RECONCILED = "reconciled"
    REVERSED = "reversed"
    VOIDED = "voided"


# Statuses whose lines have been applied to balances and are replayed by
# reports.  A reversed entry keeps its effect; its posted reversal offsets it.
EFFECTIVE_STATUSES: tuple[JournalEntryStatus, ...] = (
    JournalEntryStatus.POSTED,
    JournalEntryStatus.RECONCILED,
    JournalEntryStatus.REVERSED,
)


class Journal(TrackedBase):
    """
    Named partition of journal entries ("Sales Journal", ...).

    Purely a grouping and numbering mechanism; it takes no part in the
    balancing invariant.
    """

    __tablename__ = "journals"

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_journal_org_name"),
        Index("idx_journal_org_type", "organization_id", "journal_type"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    journal_type: Mapped[JournalType] = mapped_column(
        String(30),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Journal {self.name} type={self.journal_type}>"

    @property
    def prefix(self) -> str:
        return JournalType(self.journal_type).prefix


class JournalEntry(TrackedBase):
    """
    Journal entry header -- one double-entry transaction.

    Contract:
        Belongs to exactly one organization and one journal of that
        organization.  Only DRAFT entries may be edited or deleted.

    Guarantees:
        - A POSTED entry has at least one line and balances within tolerance.
        - reversal_of_id / reversed_by_id link a reversal pair permanently.

    Non-goals:
        - Does NOT enforce state transitions; PostingEngine does, through
          named transition methods rather than persistence hooks.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint(
            "journal_id", "entry_number", name="uq_entry_journal_number"
        ),
        Index("idx_entry_org_date", "organization_id", "entry_date"),
        Index("idx_entry_org_status", "organization_id", "status"),
        Index("idx_entry_external_ref", "external_reference"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    journal_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journals.id"),
        nullable=False,
    )

    # <PREFIX>-<YY><MM>-<NNNNN>
    entry_number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    # Transaction (accounting) date
    entry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    reference: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(12),
        default=JournalEntryStatus.DRAFT,
        nullable=False,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    posted_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    reconciled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Set on a reversal entry: the entry it offsets
    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    # Set on the original once a reversal exists
    reversed_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    # Correlation token from the payment rail (e.g. chain transaction hash)
    external_reference: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        String(4000),
        nullable=True,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalLine.line_number",
    )

    journal: Mapped["Journal"] = relationship(
        foreign_keys=[journal_id],
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} status={self.status}>"

    @property
    def current_status(self) -> JournalEntryStatus:
        return JournalEntryStatus(self.status)

    @property
    def is_draft(self) -> bool:
        return self.current_status == JournalEntryStatus.DRAFT

    @property
    def is_posted(self) -> bool:
        return self.current_status == JournalEntryStatus.POSTED

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        """Debits equal credits within BALANCE_TOLERANCE."""
        return abs(self.total_debits - self.total_credits) <= BALANCE_TOLERANCE


class JournalLine(TrackedBase):
    """
    Individual posting within a journal entry.

    Contract:
        Exactly one of debit/credit is strictly positive, the other zero.
        line_number is 1-based and unique within the entry.

    Guarantees:
        - CHECK constraints reject negative amounts and both/neither sides.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        UniqueConstraint(
            "journal_entry_id", "line_number", name="uq_line_entry_number"
        ),
        CheckConstraint("debit >= 0", name="ck_line_debit_non_negative"),
        CheckConstraint("credit >= 0", name="ck_line_credit_non_negative"),
        CheckConstraint(
            "(debit > 0 AND credit = 0) OR (credit > 0 AND debit = 0)",
            name="ck_line_one_side",
        ),
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    # Analytical dimensions (ids owned by collaborator systems)
    customer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    vendor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    project_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    department_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Token amount shadowing this line on the payment rail
    external_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    external_confirmed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    is_reconciled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    reconciled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    reconciliation_ref: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    entry: Mapped["JournalEntry"] = relationship(
        back_populates="lines",
    )

    account: Mapped["Account"] = relationship(
        back_populates="journal_lines",
    )

    def __repr__(self) -> str:
        return (
            f"<JournalLine {self.line_number} account={self.account_id} "
            f"dr={self.debit} cr={self.credit}>"
        )

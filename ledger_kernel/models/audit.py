"""
Module: ledger_kernel.models.audit
Responsibility: ORM persistence for the append-only audit trail of ledger
    state transitions (post, void, reverse, reconcile, account archive).
Architecture position: Kernel > Models.  May import from db/ only.
Invariants enforced:
    - Records are only ever inserted; no service updates or deletes them.
    - Every record is written inside the same transaction as the state
      change it describes.
Audit relevance:
    This IS the audit trail.  Void reasons and reversal reasons live here
    as well as on the entry notes.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Types of auditable ledger actions."""

    # Account lifecycle
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_ARCHIVED = "account_archived"
    ACCOUNT_DELETED = "account_deleted"

    # Entry lifecycle
    ENTRY_POSTED = "entry_posted"
    ENTRY_VOIDED = "entry_voided"
    ENTRY_REVERSED = "entry_reversed"
    ENTRY_RECONCILED = "entry_reconciled"


class AuditRecord(Base):
    """
    One audited action on a ledger entity.

    Contract:
        Append-only.  payload carries the structured facts of the action
        (totals, affected accounts, linked entry ids).
    """

    __tablename__ = "audit_records"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_org_occurred", "organization_id", "occurred_at"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    action: Mapped[AuditAction] = mapped_column(
        String(50),
        nullable=False,
    )

    actor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    reason: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    payload: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<AuditRecord {self.action} {self.entity_type}:{self.entity_id}>"

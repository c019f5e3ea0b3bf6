"""
Module: ledger_kernel.db.base
Responsibility: Declarative base for the ledger schema -- portable UUID
    keys, the money column type, constraint naming and the actor-tracking
    columns shared by accounts, journals, entries and lines.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/, services/, selectors/, domain/,
    or outer layers.

Invariants enforced:
    - Every row has a uuid4 primary key, stored as a 36-character string so
      SQLite and PostgreSQL share one schema.
    - ``Decimal`` annotations map to Numeric(38, 9); money is never float.
    - Rows deriving from TrackedBase always name their creator.

Audit relevance:
    created_by_id / updated_by_id identify who created and last changed
    every account, journal, entry and line.  Status transitions are also
    written to the audit trail with a reason.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, MetaData, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Deterministic names for constraints declared without one
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UUIDString(TypeDecorator):
    """
    UUID stored as String(36).

    Binds ``str(value)``; always returns a UUID.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Root of every ledger model; supplies the ``id`` primary key."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds creation and last-change stamps.

    ``created_at`` / ``updated_at`` come from the database clock; the actor
    columns are set by services.  Ledger business timestamps (posted_at,
    voided_at, ...) come from the injected Clock instead.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def mark_updated(self, actor_id: UUID) -> None:
        self.updated_by_id = actor_id

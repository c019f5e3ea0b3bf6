"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of
    every journal line -- including the cached running balance.
Architecture position: Kernel > Models.  May import from db/ only.
Invariants enforced:
    - account_number unique within an organization (uq_account_org_number).
    - external_address unique within an organization when set
      (uq_account_org_external_address).
    - A child account's type equals its parent's type, and the parent chain
      has no cycles (enforced by AccountRegistry, not this model).
    - balance is mutated only through AccountRegistry.adjust_balance(),
      which the PostingEngine alone calls.
Failure modes:
    - IntegrityError on a duplicate number/address that slipped past the
      registry checks.
Audit relevance:
    The cached balance is a convenience; the journal lines are the truth.
    LedgerSelector.balance_drift() replays the lines to prove the cache.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalLine


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Side on which an account type naturally increases."""

    DEBIT = "debit"
    CREDIT = "credit"


class CashFlowCategory(str, Enum):
    """Cash flow statement section an account's activity belongs to."""

    OPERATING = "operating"
    INVESTING = "investing"
    FINANCING = "financing"


# Leading digit of auto-generated account numbers, per type
ACCOUNT_NUMBER_PREFIX: dict[AccountType, str] = {
    AccountType.ASSET: "1",
    AccountType.LIABILITY: "2",
    AccountType.EQUITY: "3",
    AccountType.REVENUE: "4",
    AccountType.EXPENSE: "5",
}
OTHER_ACCOUNT_NUMBER_PREFIX = "9"

NORMAL_BALANCE_BY_TYPE: dict[AccountType, NormalBalance] = {
    AccountType.ASSET: NormalBalance.DEBIT,
    AccountType.EXPENSE: NormalBalance.DEBIT,
    AccountType.LIABILITY: NormalBalance.CREDIT,
    AccountType.EQUITY: NormalBalance.CREDIT,
    AccountType.REVENUE: NormalBalance.CREDIT,
}


class Account(TrackedBase):
    """
    Chart of accounts entry -- a single node in the ledger hierarchy.

    Contract:
        (organization_id, account_number) is unique.  parent_id, when set,
        points at an account of the same organization and type.

    Guarantees:
        - account_type is one of ASSET, LIABILITY, EQUITY, REVENUE, EXPENSE.
        - balance is signed per the account type's normal side: a positive
          balance on an asset means a net debit, on a revenue a net credit.

    Non-goals:
        - Does NOT guard deletion or archiving; AccountRegistry does.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "account_number", name="uq_account_org_number"
        ),
        UniqueConstraint(
            "organization_id",
            "external_address",
            name="uq_account_org_external_address",
        ),
        Index("idx_account_org_type", "organization_id", "account_type"),
        Index("idx_account_parent", "parent_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    account_number: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_type: Mapped[AccountType] = mapped_column(
        String(20),
        nullable=False,
    )

    # Free-form classification, e.g. "cash", "accounts-receivable"
    subtype: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    is_archived: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Cached running balance, signed per the normal side
    balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    balance_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Token wallet address linked to this account
    external_address: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
    )

    is_cash_equivalent: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Explicit cash flow override; None means the default table decides
    cash_flow_category: Mapped[CashFlowCategory | None] = mapped_column(
        String(20),
        nullable=True,
    )

    is_reconcilable: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    parent: Mapped["Account | None"] = relationship(
        remote_side="Account.id",
        foreign_keys=[parent_id],
    )

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.account_number}: {self.name}>"

    @property
    def normal_balance(self) -> NormalBalance:
        """Normal side derived from the account type."""
        return NORMAL_BALANCE_BY_TYPE[AccountType(self.account_type)]

    @property
    def is_debit_normal(self) -> bool:
        """True for asset and expense accounts."""
        return self.normal_balance == NormalBalance.DEBIT

    @property
    def accepts_lines(self) -> bool:
        """Whether new journal lines may target this account."""
        return self.is_active and not self.is_archived

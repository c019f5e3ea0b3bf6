"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only replay of journal lines -- per-account activity,
    balances as of a date, the chronological line trace used by the general
    ledger, and the drift check between cached and replayed balances.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/balance.py and selectors/base.py.  Consumed by the reporting
    module and by operators checking cache health.

Invariants enforced:
    - Only lines of effective entries (posted, reconciled, reversed) count.
      Drafts and voided entries are invisible to every query here.
    - Every replayed balance uses signed_delta(), the same sign convention
      the PostingEngine uses when it mutates the cache.
    - Sums are accumulated as Decimal in Python, never as database floats.
    - Every query is scoped by organization_id.

Failure modes:
    - AccountNotFoundError from account_balance_as_of() for an absent or
      foreign account.
    - "No lines" is never an error: activity is empty and balances are zero.

Audit relevance:
    balance_drift() is the read-side proof of the cache: after any sequence
    of post/void/reverse, every account's cached balance must equal its
    replayed balance.  Mismatches are logged as ``balance_drift_detected``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.balance import signed_delta
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType, CashFlowCategory
from ledger_kernel.models.journal import (
    EFFECTIVE_STATUSES,
    JournalEntry,
    JournalLine,
)
from ledger_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.ledger")


@dataclass(frozen=True)
class AccountInfo:
    """Detached snapshot of an account, as seen by reports."""

    account_id: UUID
    account_number: str
    name: str
    account_type: AccountType
    subtype: str | None = None
    parent_id: UUID | None = None
    is_active: bool = True
    is_archived: bool = False
    is_cash_equivalent: bool = False
    cash_flow_category: CashFlowCategory | None = None
    balance: Decimal = ZERO


@dataclass(frozen=True)
class AccountActivity:
    """Debit/credit totals for one account over some window."""

    account_id: UUID
    debit_total: Decimal = ZERO
    credit_total: Decimal = ZERO
    external_total: Decimal = ZERO
    line_count: int = 0

    @property
    def net(self) -> Decimal:
        """Debits minus credits."""
        return self.debit_total - self.credit_total


@dataclass(frozen=True)
class LedgerLine:
    """A single effective line with its entry header fields."""

    journal_entry_id: UUID
    journal_line_id: UUID
    entry_number: str
    entry_date: date
    line_number: int
    account_id: UUID
    debit: Decimal
    credit: Decimal
    description: str | None = None
    entry_description: str | None = None
    reference: str | None = None
    external_amount: Decimal | None = None
    external_confirmed: bool = False


@dataclass(frozen=True)
class BalanceDrift:
    """An account whose cached balance disagrees with its replay."""

    account_id: UUID
    account_number: str
    cached_balance: Decimal
    replayed_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.cached_balance - self.replayed_balance


def _to_info(account: Account) -> AccountInfo:
    category = account.cash_flow_category
    return AccountInfo(
        account_id=account.id,
        account_number=account.account_number,
        name=account.name,
        account_type=AccountType(account.account_type),
        subtype=account.subtype,
        parent_id=account.parent_id,
        is_active=account.is_active,
        is_archived=account.is_archived,
        is_cash_equivalent=account.is_cash_equivalent,
        cash_flow_category=CashFlowCategory(category) if category else None,
        balance=account.balance if account.balance is not None else ZERO,
    )


class LedgerSelector(BaseSelector[JournalLine]):
    """
    Replays effective journal lines.

    Contract:
        Date windows are on JournalEntry.entry_date.  ``start`` is always
        inclusive; ``end`` is inclusive unless ``end_inclusive=False``.

    Guarantees:
        - Results are deterministic for an unchanged ledger: activity is
          keyed by account id and line traces are ordered by
          (entry_date, entry_number, line_number).

    Non-goals:
        - No currency conversion; the ledger is single-currency per
          organization.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    # =========================================================================
    # Accounts
    # =========================================================================

    def accounts(
        self,
        organization_id: UUID,
        account_types: tuple[AccountType, ...] | None = None,
    ) -> list[AccountInfo]:
        """All accounts of the organization, archived included, by number."""
        query = select(Account).where(Account.organization_id == organization_id)
        if account_types:
            query = query.where(
                Account.account_type.in_([t.value for t in account_types])
            )
        query = query.order_by(Account.account_number)
        return [_to_info(a) for a in self.session.scalars(query).all()]

    def account(self, organization_id: UUID, account_id: UUID) -> AccountInfo:
        account = self.session.scalars(
            select(Account).where(
                Account.organization_id == organization_id,
                Account.id == account_id,
            )
        ).first()
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return _to_info(account)

    # =========================================================================
    # Activity and balances
    # =========================================================================

    def activity(
        self,
        organization_id: UUID,
        start: date | None = None,
        end: date | None = None,
        end_inclusive: bool = True,
        account_ids: list[UUID] | None = None,
    ) -> dict[UUID, AccountActivity]:
        """
        Debit/credit totals per account for effective lines in a window.

        Accounts without lines in the window are absent from the result.
        """
        query = (
            select(
                JournalLine.account_id,
                JournalLine.debit,
                JournalLine.credit,
                JournalLine.external_amount,
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntry.organization_id == organization_id,
                JournalEntry.status.in_([s.value for s in EFFECTIVE_STATUSES]),
            )
        )
        query = self._apply_window(query, start, end, end_inclusive)
        if account_ids is not None:
            query = query.where(JournalLine.account_id.in_(account_ids))

        totals: dict[UUID, list] = {}
        for account_id, debit, credit, external in self.session.execute(query):
            bucket = totals.setdefault(account_id, [ZERO, ZERO, ZERO, 0])
            bucket[0] += debit or ZERO
            bucket[1] += credit or ZERO
            if external is not None:
                # Shadow amounts follow the side of the line they sit on.
                bucket[2] += external if (debit or ZERO) > ZERO else -external
            bucket[3] += 1

        return {
            account_id: AccountActivity(
                account_id=account_id,
                debit_total=values[0],
                credit_total=values[1],
                external_total=values[2],
                line_count=values[3],
            )
            for account_id, values in sorted(totals.items(), key=lambda kv: str(kv[0]))
        }

    def account_balance_as_of(
        self,
        organization_id: UUID,
        account_id: UUID,
        cutoff: date,
        inclusive: bool = True,
    ) -> Decimal:
        """
        Replayed balance of one account through ``cutoff``.

        Args:
            inclusive: True counts lines dated on the cutoff (as-of
                semantics); False counts only lines strictly before it
                (opening-balance semantics).

        Raises:
            AccountNotFoundError: account absent or in another organization.
        """
        info = self.account(organization_id, account_id)
        activity = self.activity(
            organization_id,
            end=cutoff,
            end_inclusive=inclusive,
            account_ids=[account_id],
        ).get(account_id)
        if activity is None:
            return ZERO
        return signed_delta(info.account_type, activity.debit_total, activity.credit_total)

    def balances_as_of(
        self,
        organization_id: UUID,
        cutoff: date | None,
        inclusive: bool = True,
    ) -> dict[UUID, Decimal]:
        """Replayed balance of every account with activity through ``cutoff``."""
        types = {a.account_id: a.account_type for a in self.accounts(organization_id)}
        return {
            account_id: signed_delta(types[account_id], act.debit_total, act.credit_total)
            for account_id, act in self.activity(
                organization_id, end=cutoff, end_inclusive=inclusive
            ).items()
        }

    # =========================================================================
    # Line traces
    # =========================================================================

    def ledger_lines(
        self,
        organization_id: UUID,
        start: date | None = None,
        end: date | None = None,
        account_ids: list[UUID] | None = None,
    ) -> list[LedgerLine]:
        """Effective lines in [start, end], chronological, entry number tie-break."""
        query = (
            select(JournalLine, JournalEntry)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntry.organization_id == organization_id,
                JournalEntry.status.in_([s.value for s in EFFECTIVE_STATUSES]),
            )
        )
        query = self._apply_window(query, start, end, True)
        if account_ids is not None:
            query = query.where(JournalLine.account_id.in_(account_ids))
        query = query.order_by(
            JournalEntry.entry_date,
            JournalEntry.entry_number,
            JournalLine.line_number,
        )

        return [
            LedgerLine(
                journal_entry_id=entry.id,
                journal_line_id=line.id,
                entry_number=entry.entry_number,
                entry_date=entry.entry_date,
                line_number=line.line_number,
                account_id=line.account_id,
                debit=line.debit or ZERO,
                credit=line.credit or ZERO,
                description=line.description,
                entry_description=entry.description,
                reference=entry.reference,
                external_amount=line.external_amount,
                external_confirmed=line.external_confirmed,
            )
            for line, entry in self.session.execute(query).all()
        ]

    # =========================================================================
    # Cache health
    # =========================================================================

    def balance_drift(self, organization_id: UUID) -> list[BalanceDrift]:
        """
        Accounts whose cached balance differs from the full replay.

        Returns:
            Empty list when the cache is consistent.
        """
        replayed = self.balances_as_of(organization_id, cutoff=None)
        drifts = []
        for info in self.accounts(organization_id):
            expected = replayed.get(info.account_id, ZERO)
            if info.balance != expected:
                drifts.append(
                    BalanceDrift(
                        account_id=info.account_id,
                        account_number=info.account_number,
                        cached_balance=info.balance,
                        replayed_balance=expected,
                    )
                )

        for drift in drifts:
            logger.warning(
                "balance_drift_detected",
                extra={
                    "organization_id": str(organization_id),
                    "account_id": str(drift.account_id),
                    "account_number": drift.account_number,
                    "cached_balance": str(drift.cached_balance),
                    "replayed_balance": str(drift.replayed_balance),
                },
            )
        return drifts

    @staticmethod
    def _apply_window(query, start: date | None, end: date | None, end_inclusive: bool):
        if start is not None:
            query = query.where(JournalEntry.entry_date >= start)
        if end is not None:
            if end_inclusive:
                query = query.where(JournalEntry.entry_date <= end)
            else:
                query = query.where(JournalEntry.entry_date < end)
        return query

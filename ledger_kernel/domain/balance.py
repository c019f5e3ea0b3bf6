"""
Balance rules -- the sign convention and balancing checks shared by the
posting engine and the reporting engine.

Responsibility:
    One definition of "what does a debit do to this account", used both when
    the PostingEngine mutates cached balances and when reports replay lines.
    If these ever diverged, the cache and the replay would drift apart.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - Asset/expense: debit increases, credit decreases.
      Liability/equity/revenue: credit increases, debit decreases.
    - Line side rule: both amounts >= 0, exactly one strictly positive.
    - Entry balance: |sum(debit) - sum(credit)| <= tolerance.

Failure modes:
    - LineInvariantError for a line violating the side rule.
    - UnbalancedEntryError carrying both totals for self-diagnosis.
"""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from ledger_kernel.db.types import BALANCE_TOLERANCE, ZERO, within_tolerance
from ledger_kernel.exceptions import LineInvariantError, UnbalancedEntryError
from ledger_kernel.models.account import (
    NORMAL_BALANCE_BY_TYPE,
    AccountType,
    NormalBalance,
)


def normal_balance_for(account_type: AccountType | str) -> NormalBalance:
    return NORMAL_BALANCE_BY_TYPE[AccountType(account_type)]


def signed_delta(
    account_type: AccountType | str,
    debit: Decimal,
    credit: Decimal,
) -> Decimal:
    """
    Balance change caused by a line on an account of the given type.

    Postconditions:
        Positive means the balance grows on the account's normal side.
    """
    if normal_balance_for(account_type) == NormalBalance.DEBIT:
        return debit - credit
    return credit - debit


def validate_line_sides(line_number: int, debit: Decimal, credit: Decimal) -> None:
    """
    Enforce the one-side rule for a single line.

    Raises:
        LineInvariantError: negative amount, both sides positive, or neither.
    """
    if debit < ZERO or credit < ZERO:
        raise LineInvariantError(
            line_number, str(debit), str(credit), "has a negative amount"
        )
    if debit > ZERO and credit > ZERO:
        raise LineInvariantError(
            line_number, str(debit), str(credit), "cannot have both debit and credit"
        )
    if debit == ZERO and credit == ZERO:
        raise LineInvariantError(
            line_number, str(debit), str(credit), "must have either debit or credit"
        )


def check_entry_balance(
    journal_entry_id: UUID | str,
    debits: Decimal,
    credits: Decimal,
    tolerance: Decimal = BALANCE_TOLERANCE,
) -> None:
    """
    Raises:
        UnbalancedEntryError: |debits - credits| > tolerance.
    """
    if not within_tolerance(debits, credits, tolerance):
        raise UnbalancedEntryError(
            journal_entry_id=str(journal_entry_id),
            debits=str(debits),
            credits=str(credits),
            tolerance=str(tolerance),
        )


def aggregate_deltas(
    lines: Iterable[tuple[UUID, AccountType | str, Decimal, Decimal]],
) -> dict[UUID, Decimal]:
    """
    Net balance change per account for a set of lines.

    Args:
        lines: (account_id, account_type, debit, credit) tuples.

    Returns:
        account_id -> signed delta, in account-id order so that callers
        update rows in a stable sequence.
    """
    deltas: dict[UUID, Decimal] = {}
    for account_id, account_type, debit, credit in lines:
        deltas[account_id] = deltas.get(account_id, ZERO) + signed_delta(
            account_type, debit, credit
        )
    return {key: deltas[key] for key in sorted(deltas, key=str)}

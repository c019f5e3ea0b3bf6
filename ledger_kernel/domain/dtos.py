"""
DTOs -- immutable inputs to the journal entry store.

Responsibility:
    ``LineSpec`` is what collaborators (manual entry, document templates,
    the payment-rail confirmer) hand to the ledger: a fully materialized line
    with an account id and explicit debit/credit amounts.  No lazy
    references, no ORM objects.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Failure modes:
    - LineSpec does not validate itself; ``validate_line_sides`` in
      domain/balance.py raises LineInvariantError with the line number once
      the line's position in the entry is known.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class LineSpec:
    """
    Specification for one journal line.

    Contract:
        Exactly one of debit/credit should be strictly positive.  Dimension
        ids and the external shadow amount are optional.
    """

    account_id: UUID
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    description: str | None = None
    customer_id: UUID | None = None
    vendor_id: UUID | None = None
    project_id: UUID | None = None
    department_id: UUID | None = None
    external_amount: Decimal | None = None
    external_confirmed: bool = False

    @classmethod
    def debit_line(cls, account_id: UUID, amount: Decimal, **kwargs) -> LineSpec:
        return cls(account_id=account_id, debit=amount, **kwargs)

    @classmethod
    def credit_line(cls, account_id: UUID, amount: Decimal, **kwargs) -> LineSpec:
        return cls(account_id=account_id, credit=amount, **kwargs)

    def swapped(self, description: str | None = None) -> LineSpec:
        """Same line with debit and credit exchanged."""
        return replace(
            self,
            debit=self.credit,
            credit=self.debit,
            description=description if description is not None else self.description,
        )

"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for the read-only query side of the
    ledger.  Selectors replay journal lines into plain DTOs; they never
    mutate anything.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and exceptions.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: no session.add(), delete(), flush() or commit().
    - DTO return convention: frozen dataclasses, never ORM instances.
    - The caller owns the session and therefore the snapshot being read.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Accept a Session from the caller, run read-only queries, return DTOs.
    """

    def __init__(self, session: Session):
        self.session = session

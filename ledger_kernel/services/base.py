"""
BaseService -- abstract base for kernel services.

Responsibility:
    Common constructor contract.  Every service receives a SQLAlchemy
    ``Session`` and persists through ``session.flush()`` -- never
    ``session.commit()``.

Invariants enforced:
    Transaction boundaries belong to the caller (``session_scope()``), so a
    post, a void and the audit record written with it commit or roll back
    together.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()`` on the caller's transaction.

    Non-goals:
        - Read-only reporting queries live in ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session

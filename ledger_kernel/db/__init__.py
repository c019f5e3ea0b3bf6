"""Database layer - engine, base classes, and types."""

from ledger_kernel.db.base import Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    report_session_scope,
    session_scope,
)
from ledger_kernel.db.types import BALANCE_TOLERANCE, Money, round_money

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "report_session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "Money",
    "BALANCE_TOLERANCE",
    "round_money",
]

"""Pure domain layer: clock, line DTOs and the balance rules."""

from ledger_kernel.domain.balance import (
    aggregate_deltas,
    check_entry_balance,
    normal_balance_for,
    signed_delta,
    validate_line_sides,
)
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import LineSpec

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "LineSpec",
    "aggregate_deltas",
    "check_entry_balance",
    "normal_balance_for",
    "signed_delta",
    "validate_line_sides",
]

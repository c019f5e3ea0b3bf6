"""
Clock -- injectable time source.

Responsibility:
    posted_at, voided_at, reconciled_at, balance_updated_at, audit
    occurred_at and report ``generated_at`` are all read from a Clock handed
    to the service.  No service calls ``datetime.now()`` itself.

Architecture position:
    Kernel > Domain.  SystemClock is the only place that reads wall time.

Audit relevance:
    With a DeterministicClock two report runs over the same ledger render
    identically, metadata included.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Source of timezone-aware UTC datetimes."""

    @abstractmethod
    def now(self) -> datetime: ...

    def iso_now(self) -> str:
        return self.now().isoformat()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock frozen at ``start`` until moved with ``advance()``.

    Naive datetimes are taken as UTC.
    """

    def __init__(self, start: datetime | None = None):
        start = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._current = start

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 1) -> datetime:
        self._current += timedelta(seconds=seconds)
        return self._current

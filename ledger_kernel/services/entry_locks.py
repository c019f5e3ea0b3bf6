"""
EntryLockRegistry -- in-process mutual exclusion per journal entry.

Responsibility:
    Serializes post / void / reverse / reconcile calls that target the same
    entry inside one process, keyed by (organization_id, entry_id).  Row
    locks (SELECT ... FOR UPDATE) give the same guarantee across processes
    on PostgreSQL; this registry covers backends without row locks.

Architecture position:
    Kernel > Services -- infrastructure owned by PostingEngine.  Engines
    built without an explicit registry share ``process_registry()``.

Lock scope:
    PostingEngine takes the lock with ``hold_until_transaction_end``: it is
    held until the session's outer transaction commits, rolls back or is
    closed, not only for the SAVEPOINT of the transition.  A second session
    therefore never reads the entry before the first one's change is
    committed.  The lock is re-entrant per session; two sessions driven by
    the same thread on the same entry would deadlock.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from sqlalchemy import event
from sqlalchemy.orm import Session, SessionTransaction

LockKey = tuple[UUID, UUID]

_SESSION_INFO_KEY = "ledger_entry_locks"


class EntryLockRegistry:
    """
    Reference-counted map of per-entry locks.

    Guarantees:
        - Two holders of the same (organization_id, entry_id) never overlap.
        - Locks for different entries never block each other.
        - Entries with no holder or waiter are removed from the map.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[LockKey, threading.Lock] = {}
        self._waiters: dict[LockKey, int] = {}

    def acquire(self, organization_id: UUID, entry_id: UUID) -> LockKey:
        key = (organization_id, entry_id)
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._waiters[key] = self._waiters.get(key, 0) + 1
        lock.acquire()
        return key

    def release(self, key: LockKey) -> None:
        with self._guard:
            self._locks[key].release()
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    @contextmanager
    def hold(self, organization_id: UUID, entry_id: UUID) -> Iterator[None]:
        key = self.acquire(organization_id, entry_id)
        try:
            yield
        finally:
            self.release(key)

    def hold_until_transaction_end(
        self, session: Session, organization_id: UUID, entry_id: UUID
    ) -> None:
        """Lock the entry for the rest of ``session``'s outer transaction."""
        held: dict[LockKey, EntryLockRegistry] = session.info.setdefault(
            _SESSION_INFO_KEY, {}
        )
        key = (organization_id, entry_id)
        if key in held:
            return
        held[self.acquire(organization_id, entry_id)] = self
        if not event.contains(session, "after_transaction_end", _on_transaction_end):
            event.listen(session, "after_transaction_end", _on_transaction_end)

    def active_keys(self) -> int:
        """Number of entries currently held or awaited."""
        with self._guard:
            return len(self._locks)


def release_session_locks(session: Session) -> None:
    """Release every entry lock ``session`` holds."""
    held = session.info.pop(_SESSION_INFO_KEY, {})
    for key, registry in held.items():
        registry.release(key)


def _on_transaction_end(session: Session, transaction: SessionTransaction) -> None:
    # SAVEPOINTs end inside the outer transaction; keep the locks
    if transaction.parent is None:
        release_session_locks(session)


_process_registry = EntryLockRegistry()


def process_registry() -> EntryLockRegistry:
    """The registry shared by every engine in this process."""
    return _process_registry

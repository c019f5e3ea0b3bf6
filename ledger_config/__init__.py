"""
ledger_config -- settings and the composition root.

Responsibility:
    ``get_settings()`` is the single way to obtain runtime settings; no
    other component reads configuration files or environment variables.
    ``build_ledger()`` wires one set of services around a session.

Architecture position:
    Configuration -- sits above ``ledger_kernel`` and ``ledger_modules``.
    The kernel MUST NEVER import from ``ledger_config``.

Invariants enforced:
    - Services are constructed per session and passed explicitly; there
      are no module-level service instances.
    - Every bundle built without an explicit ``locks`` argument shares the
      process-wide EntryLockRegistry, so per-session bundles on different
      threads exclude each other per entry until their transaction ends.

Failure modes:
    - ``FileNotFoundError`` -- explicit settings path does not exist.
    - ``ValueError`` -- a setting fails validation.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.orm import Session

from ledger_config.loader import load_settings
from ledger_config.settings import LedgerSettings
from ledger_kernel.db.engine import init_engine_from_url
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.logging_config import configure_logging
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.audit_trail import AuditTrail
from ledger_kernel.services.entry_locks import EntryLockRegistry, process_registry
from ledger_kernel.services.journal_store import JournalStore
from ledger_kernel.services.posting_engine import PostingEngine
from ledger_modules.documents.service import DocumentPostingService
from ledger_modules.reporting.service import ReportingService


@dataclass(frozen=True)
class Ledger:
    """Services bound to one session."""

    session: Session
    accounts: AccountRegistry
    journals: JournalStore
    posting: PostingEngine
    reporting: ReportingService
    documents: DocumentPostingService


def get_settings(path: Path | None = None) -> LedgerSettings:
    """Settings from ``path`` or the bundled defaults, with env overrides."""
    return load_settings(path)


def configure(settings: LedgerSettings) -> None:
    """Configure logging and the database engine from ``settings``."""
    configure_logging(level=settings.log_level)
    init_engine_from_url(settings.database_url, echo=settings.echo_sql)


def build_ledger(
    settings: LedgerSettings,
    session: Session,
    clock: Clock | None = None,
    locks: EntryLockRegistry | None = None,
) -> Ledger:
    """
    Construct every service around ``session``.  The caller commits.

    ``locks`` defaults to the process-wide registry; pass a private one only
    when no other bundle can touch the same entries.
    """
    clock = clock or SystemClock()
    audit = AuditTrail(session, clock)
    accounts = AccountRegistry(session, clock=clock, audit=audit)
    journals = JournalStore(session, accounts, clock=clock)
    posting = PostingEngine(
        session,
        accounts,
        journals,
        clock=clock,
        locks=locks or process_registry(),
        audit=audit,
        tolerance=settings.balance_tolerance,
    )
    return Ledger(
        session=session,
        accounts=accounts,
        journals=journals,
        posting=posting,
        reporting=ReportingService(
            session, clock=clock, config=settings.reporting_config()
        ),
        documents=DocumentPostingService(session, accounts, journals, posting),
    )


__all__ = [
    "Ledger",
    "LedgerSettings",
    "build_ledger",
    "configure",
    "get_settings",
    "load_settings",
]

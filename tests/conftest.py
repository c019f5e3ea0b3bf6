"""
Pytest fixtures for the ledger test suite.

Provides:
- An in-memory SQLite database per test (fresh schema every time)
- Service fixtures bound to the test session and a deterministic clock
- A small chart of accounts covering every account type
- ``record_entry`` for creating (and by default posting) journal entries

Environment Variables:
- LEDGER_TEST_DATABASE_URL: run against another database (e.g. PostgreSQL)
  instead of in-memory SQLite.  The schema is dropped after each test.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import date, datetime, timezone
from io import StringIO
from uuid import UUID, uuid4

import pytest

from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.journal import JournalType
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.audit_trail import AuditTrail
from ledger_kernel.services.entry_locks import EntryLockRegistry
from ledger_kernel.services.journal_store import JournalStore
from ledger_kernel.services.posting_engine import PostingEngine
from ledger_modules.documents.service import DocumentPostingService
from ledger_modules.reporting.service import ReportingService

DEFAULT_TEST_URL = "sqlite:///:memory:"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, posting_engine):
            ...
            logs = captured_logs()
            assert any(r["message"] == "entry_posted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """Fresh schema per test."""
    url = os.environ.get("LEDGER_TEST_DATABASE_URL", DEFAULT_TEST_URL)
    db_engine = init_engine_from_url(url)
    create_tables()
    yield db_engine
    if url != DEFAULT_TEST_URL:
        drop_tables()
    reset_engine()


@pytest.fixture
def session(engine):
    db_session = get_session()
    yield db_session
    db_session.rollback()
    db_session.close()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 6, 30, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def org_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_org_id() -> UUID:
    return uuid4()


@pytest.fixture
def actor_id() -> UUID:
    return uuid4()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def audit(session, deterministic_clock) -> AuditTrail:
    return AuditTrail(session, deterministic_clock)


@pytest.fixture
def accounts(session, deterministic_clock, audit) -> AccountRegistry:
    return AccountRegistry(session, clock=deterministic_clock, audit=audit)


@pytest.fixture
def journals(session, accounts, deterministic_clock) -> JournalStore:
    return JournalStore(session, accounts, clock=deterministic_clock)


@pytest.fixture
def entry_locks() -> EntryLockRegistry:
    return EntryLockRegistry()


@pytest.fixture
def posting_engine(
    session, accounts, journals, deterministic_clock, entry_locks, audit
) -> PostingEngine:
    return PostingEngine(
        session,
        accounts,
        journals,
        clock=deterministic_clock,
        locks=entry_locks,
        audit=audit,
    )


@pytest.fixture
def reporting(session, deterministic_clock) -> ReportingService:
    return ReportingService(session, clock=deterministic_clock)


@pytest.fixture
def documents(session, accounts, journals, posting_engine) -> DocumentPostingService:
    return DocumentPostingService(session, accounts, journals, posting_engine)


# =============================================================================
# Chart of accounts
# =============================================================================


@dataclass
class Chart:
    cash: Account
    bank: Account
    receivables: Account
    wallet: Account
    equipment: Account
    payables: Account
    sales_tax: Account
    loan: Account
    capital: Account
    sales: Account
    services: Account
    unclassified: Account
    rent: Account
    fees: Account


WALLET_ADDRESS = "0x4b1d9e0c2f6a7e13c0ffee00000000000000beef"


@pytest.fixture
def chart(accounts, org_id, actor_id) -> Chart:
    """One account per common subtype, numbered in the usual bands."""

    def make(number, name, account_type, subtype, **kwargs):
        return accounts.create_account(
            org_id,
            name=name,
            account_type=account_type,
            actor_id=actor_id,
            account_number=number,
            subtype=subtype,
            **kwargs,
        )

    return Chart(
        cash=make("1000", "Cash", AccountType.ASSET, "cash"),
        bank=make("1010", "Operating Bank", AccountType.ASSET, "bank",
                  is_cash_equivalent=True),
        receivables=make("1100", "Accounts Receivable", AccountType.ASSET,
                         "accounts-receivable"),
        wallet=make("1200", "Token Wallet", AccountType.ASSET, "cryptocurrencies",
                    external_address=WALLET_ADDRESS, is_cash_equivalent=True),
        equipment=make("1500", "Equipment", AccountType.ASSET, "fixed-assets"),
        payables=make("2000", "Accounts Payable", AccountType.LIABILITY,
                      "accounts-payable"),
        sales_tax=make("2100", "Sales Tax Payable", AccountType.LIABILITY,
                       "tax-payable"),
        loan=make("2500", "Bank Loan", AccountType.LIABILITY, "loans"),
        capital=make("3000", "Owner Capital", AccountType.EQUITY, "owner-capital"),
        sales=make("4000", "Product Sales", AccountType.REVENUE, "sales"),
        services=make("4100", "Service Revenue", AccountType.REVENUE, "services"),
        unclassified=make("4900", "Unclassified Income", AccountType.REVENUE,
                          "unclassified"),
        rent=make("5000", "Rent", AccountType.EXPENSE, "rent"),
        fees=make("5100", "Transaction Fees", AccountType.EXPENSE, "transaction-fees"),
    )


@pytest.fixture
def record_entry(org_id, actor_id, journals, posting_engine):
    """
    Create an entry from LineSpecs and post it unless ``post=False``.

    Usage::

        entry = record_entry([dr(chart.cash, "100"), cr(chart.sales, "100")])
    """

    def _record(
        lines,
        entry_date: date = date(2024, 3, 15),
        description: str | None = None,
        post: bool = True,
        journal_type: JournalType = JournalType.GENERAL,
        reference: str | None = None,
    ):
        journal = journals.get_or_create_journal(org_id, journal_type, actor_id)
        entry = journals.create_entry(
            org_id,
            journal_id=journal.id,
            entry_date=entry_date,
            lines=lines,
            actor_id=actor_id,
            description=description,
            reference=reference,
        )
        if post:
            posting_engine.post_entry(org_id, entry.id, actor_id)
        return entry

    return _record

"""
Reports read a single snapshot even when another session commits while the
report's queries are running.

Uses a file-backed SQLite database in WAL mode so a writer can commit
while the report's read transaction is open, or LEDGER_TEST_DATABASE_URL
when set (PostgreSQL exercises the REPEATABLE READ upgrade).
"""

import os
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from ledger_kernel.db.engine import (
    SNAPSHOT_LEVELS,
    begin_snapshot,
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    report_session_scope,
    reset_engine,
    session_scope,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.models.account import AccountType
from ledger_kernel.models.journal import JournalType
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.audit_trail import AuditTrail
from ledger_kernel.services.entry_locks import EntryLockRegistry
from ledger_kernel.services.journal_store import JournalStore
from ledger_kernel.services.posting_engine import PostingEngine
from ledger_modules.reporting.service import ReportingService

CLOCK = DeterministicClock(datetime(2024, 6, 30, 9, 0, tzinfo=timezone.utc))
MARCH = (date(2024, 3, 1), date(2024, 3, 31))


@pytest.fixture
def shared_db(tmp_path):
    url = os.environ.get("LEDGER_TEST_DATABASE_URL")
    db_engine = init_engine_from_url(url or f"sqlite:///{tmp_path / 'ledger.db'}")
    if url is None:
        raw = db_engine.raw_connection()
        try:
            raw.cursor().execute("PRAGMA journal_mode=WAL")
        finally:
            raw.close()
    create_tables()
    yield db_engine
    if url is not None:
        drop_tables()
    reset_engine()


def post_cash_sale(org_id, actor_id, cash_id, sales_id, amount, entry_date):
    with session_scope() as session:
        audit = AuditTrail(session, CLOCK)
        accounts = AccountRegistry(session, clock=CLOCK, audit=audit)
        journals = JournalStore(session, accounts, clock=CLOCK)
        posting = PostingEngine(
            session, accounts, journals, clock=CLOCK, locks=EntryLockRegistry(),
            audit=audit,
        )
        journal = journals.get_or_create_journal(org_id, JournalType.GENERAL, actor_id)
        entry = journals.create_entry(
            org_id,
            journal_id=journal.id,
            entry_date=entry_date,
            lines=[
                LineSpec.debit_line(cash_id, Decimal(amount)),
                LineSpec.credit_line(sales_id, Decimal(amount)),
            ],
            actor_id=actor_id,
        )
        posting.post_entry(org_id, entry.id, actor_id)


@pytest.fixture
def cash_ledger(shared_db, org_id, actor_id):
    with session_scope() as session:
        accounts = AccountRegistry(session, clock=CLOCK, audit=AuditTrail(session, CLOCK))
        cash = accounts.create_account(
            org_id, name="Cash", account_type=AccountType.ASSET, actor_id=actor_id,
            subtype="cash",
        )
        sales = accounts.create_account(
            org_id, name="Sales", account_type=AccountType.REVENUE, actor_id=actor_id,
        )
        cash_id, sales_id = cash.id, sales.id
    post_cash_sale(org_id, actor_id, cash_id, sales_id, "100", date(2024, 3, 1))
    return cash_id, sales_id


def test_commit_during_cash_flow_is_not_seen(
    monkeypatch, cash_ledger, org_id, actor_id
):
    cash_id, sales_id = cash_ledger
    original = LedgerSelector.ledger_lines
    committed = []

    def ledger_lines_after_concurrent_post(self, *args, **kwargs):
        if not committed:
            post_cash_sale(org_id, actor_id, cash_id, sales_id, "50", date(2024, 3, 10))
            committed.append(True)
        return original(self, *args, **kwargs)

    monkeypatch.setattr(LedgerSelector, "ledger_lines", ledger_lines_after_concurrent_post)

    with report_session_scope() as session:
        report = ReportingService(session, clock=CLOCK).generate_cash_flow_statement(
            org_id, *MARCH
        )

    assert committed == [True]
    assert report.reconciliation.difference == Decimal("0")
    assert report.ending_cash == Decimal("100")

    monkeypatch.undo()
    with report_session_scope() as session:
        later = ReportingService(session, clock=CLOCK).generate_cash_flow_statement(
            org_id, *MARCH
        )
    assert later.ending_cash == Decimal("150")
    assert later.reconciliation.difference == Decimal("0")


def test_snapshot_level_of_fresh_session(shared_db):
    session = get_session()
    try:
        level = begin_snapshot(session)
        if shared_db.dialect.name == "postgresql":
            assert level in SNAPSHOT_LEVELS
        else:
            assert level is None
        assert session.in_transaction()
    finally:
        session.rollback()
        session.close()

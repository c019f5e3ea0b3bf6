"""session_scope: the caller-owned transaction boundary around services."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from ledger_kernel.db.engine import get_session, is_postgres, session_scope
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.models.account import AccountType
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.audit_trail import AuditTrail

CLOCK = DeterministicClock(datetime(2024, 6, 30, 9, 0, 0, tzinfo=timezone.utc))


def registry(session):
    return AccountRegistry(session, clock=CLOCK, audit=AuditTrail(session, CLOCK))


def count_accounts(org_id):
    session = get_session()
    try:
        return len(registry(session).list_accounts(org_id))
    finally:
        session.close()


def test_commits_on_success(engine):
    org_id, actor_id = uuid4(), uuid4()
    with session_scope() as session:
        registry(session).create_account(
            org_id, name="Cash", account_type=AccountType.ASSET, actor_id=actor_id,
        )
    assert count_accounts(org_id) == 1


def test_rolls_back_on_error(engine, captured_logs):
    org_id, actor_id = uuid4(), uuid4()
    with pytest.raises(RuntimeError):
        with session_scope() as session:
            registry(session).create_account(
                org_id, name="Cash", account_type=AccountType.ASSET, actor_id=actor_id,
            )
            raise RuntimeError("boom")

    assert count_accounts(org_id) == 0
    assert any(r["message"] == "transaction_rolled_back" for r in captured_logs())


def test_in_memory_sqlite_is_not_postgres(engine):
    assert is_postgres() == (engine.dialect.name == "postgresql")

"""
Tests for AccountRegistry: numbering, hierarchy rules, archive/delete guards
and organization scoping.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.exceptions import (
    AccountCycleError,
    AccountHasChildrenError,
    AccountHasTransactionsError,
    AccountInactiveError,
    AccountNotFoundError,
    ConflictError,
    DuplicateAccountNumberError,
    DuplicateExternalAddressError,
    ParentTypeMismatchError,
    ValidationError,
)
from ledger_kernel.models.account import AccountType, CashFlowCategory, NormalBalance
from ledger_kernel.models.audit import AuditAction


class TestAccountNumbering:

    def test_first_account_of_type_starts_band(self, accounts, org_id):
        assert accounts.generate_account_number(org_id, AccountType.ASSET) == "1000"
        assert accounts.generate_account_number(org_id, AccountType.LIABILITY) == "2000"
        assert accounts.generate_account_number(org_id, AccountType.EQUITY) == "3000"
        assert accounts.generate_account_number(org_id, AccountType.REVENUE) == "4000"
        assert accounts.generate_account_number(org_id, AccountType.EXPENSE) == "5000"

    def test_next_number_is_max_plus_one(self, accounts, org_id, actor_id):
        accounts.create_account(
            org_id, name="Cash", account_type="asset", actor_id=actor_id,
            account_number="1000",
        )
        accounts.create_account(
            org_id, name="Inventory", account_type="asset", actor_id=actor_id,
            account_number="1450",
        )
        assert accounts.generate_account_number(org_id, "asset") == "1451"

    def test_longer_explicit_numbers_stay_outside_band(self, accounts, org_id, actor_id):
        accounts.create_account(
            org_id, name="Cash", account_type="asset", actor_id=actor_id,
            account_number="1000",
        )
        accounts.create_account(
            org_id, name="Sub-ledger", account_type="asset", actor_id=actor_id,
            account_number="15000",
        )
        assert accounts.generate_account_number(org_id, "asset") == "1001"

    def test_auto_numbered_when_number_omitted(self, accounts, org_id, actor_id):
        first = accounts.create_account(
            org_id, name="Sales", account_type=AccountType.REVENUE, actor_id=actor_id,
        )
        second = accounts.create_account(
            org_id, name="Services", account_type=AccountType.REVENUE, actor_id=actor_id,
        )
        assert (first.account_number, second.account_number) == ("4000", "4001")

    def test_numbering_is_per_organization(self, accounts, org_id, other_org_id, actor_id):
        accounts.create_account(
            org_id, name="Cash", account_type="asset", actor_id=actor_id,
        )
        assert accounts.generate_account_number(other_org_id, "asset") == "1000"

    def test_exhausted_band_raises(self, accounts, org_id, actor_id):
        accounts.create_account(
            org_id, name="Last", account_type="expense", actor_id=actor_id,
            account_number="5999",
        )
        with pytest.raises(ValidationError):
            accounts.generate_account_number(org_id, "expense")


class TestCreateAccount:

    def test_defaults(self, accounts, org_id, actor_id):
        account = accounts.create_account(
            org_id, name="  Cash  ", account_type="asset", actor_id=actor_id,
            subtype="cash",
        )
        assert account.name == "Cash"
        assert account.balance == Decimal("0")
        assert account.is_active is True
        assert account.is_archived is False
        assert account.normal_balance == NormalBalance.DEBIT

    def test_duplicate_number_rejected(self, accounts, org_id, actor_id):
        accounts.create_account(
            org_id, name="Cash", account_type="asset", actor_id=actor_id,
            account_number="1000",
        )
        with pytest.raises(DuplicateAccountNumberError) as exc_info:
            accounts.create_account(
                org_id, name="Petty Cash", account_type="asset", actor_id=actor_id,
                account_number="1000",
            )
        assert isinstance(exc_info.value, ValidationError)
        assert isinstance(exc_info.value, ConflictError)

    def test_same_number_allowed_in_other_organization(
        self, accounts, org_id, other_org_id, actor_id
    ):
        accounts.create_account(
            org_id, name="Cash", account_type="asset", actor_id=actor_id,
            account_number="1000",
        )
        other = accounts.create_account(
            other_org_id, name="Cash", account_type="asset", actor_id=actor_id,
            account_number="1000",
        )
        assert other.organization_id == other_org_id

    def test_duplicate_external_address_rejected(self, accounts, org_id, actor_id):
        accounts.create_account(
            org_id, name="Wallet", account_type="asset", actor_id=actor_id,
            external_address="0xabc",
        )
        with pytest.raises(DuplicateExternalAddressError):
            accounts.create_account(
                org_id, name="Wallet 2", account_type="asset", actor_id=actor_id,
                external_address="0xabc",
            )

    def test_blank_name_rejected(self, accounts, org_id, actor_id):
        with pytest.raises(ValidationError):
            accounts.create_account(
                org_id, name="   ", account_type="asset", actor_id=actor_id,
            )

    def test_unknown_type_rejected(self, accounts, org_id, actor_id):
        with pytest.raises(ValidationError):
            accounts.create_account(
                org_id, name="Mystery", account_type="contra", actor_id=actor_id,
            )

    def test_cash_flow_override_stored(self, accounts, org_id, actor_id):
        account = accounts.create_account(
            org_id, name="Deposits", account_type="liability", actor_id=actor_id,
            cash_flow_category="financing",
        )
        assert CashFlowCategory(account.cash_flow_category) == CashFlowCategory.FINANCING

    def test_creation_is_audited(self, accounts, audit, org_id, actor_id):
        account = accounts.create_account(
            org_id, name="Cash", account_type="asset", actor_id=actor_id,
        )
        history = audit.history(org_id, account.id)
        assert [AuditAction(r.action) for r in history] == [AuditAction.ACCOUNT_CREATED]


class TestHierarchy:

    def test_child_must_share_parent_type(self, accounts, org_id, actor_id):
        parent = accounts.create_account(
            org_id, name="Current Assets", account_type="asset", actor_id=actor_id,
        )
        with pytest.raises(ParentTypeMismatchError):
            accounts.create_account(
                org_id, name="Payables", account_type="liability", actor_id=actor_id,
                parent_id=parent.id,
            )

    def test_parent_from_other_org_is_not_found(
        self, accounts, org_id, other_org_id, actor_id
    ):
        foreign = accounts.create_account(
            other_org_id, name="Assets", account_type="asset", actor_id=actor_id,
        )
        with pytest.raises(AccountNotFoundError):
            accounts.create_account(
                org_id, name="Cash", account_type="asset", actor_id=actor_id,
                parent_id=foreign.id,
            )

    def test_reparent_to_descendant_is_cycle(self, accounts, org_id, actor_id):
        root = accounts.create_account(
            org_id, name="Assets", account_type="asset", actor_id=actor_id,
        )
        child = accounts.create_account(
            org_id, name="Current", account_type="asset", actor_id=actor_id,
            parent_id=root.id,
        )
        grandchild = accounts.create_account(
            org_id, name="Cash", account_type="asset", actor_id=actor_id,
            parent_id=child.id,
        )
        with pytest.raises(AccountCycleError):
            accounts.update_account(
                org_id, root.id, actor_id=actor_id, parent_id=grandchild.id,
            )

    def test_account_cannot_be_its_own_parent(self, accounts, org_id, actor_id):
        account = accounts.create_account(
            org_id, name="Assets", account_type="asset", actor_id=actor_id,
        )
        with pytest.raises(AccountCycleError):
            accounts.update_account(
                org_id, account.id, actor_id=actor_id, parent_id=account.id,
            )

    def test_detach_from_parent(self, accounts, org_id, actor_id):
        root = accounts.create_account(
            org_id, name="Assets", account_type="asset", actor_id=actor_id,
        )
        child = accounts.create_account(
            org_id, name="Cash", account_type="asset", actor_id=actor_id,
            parent_id=root.id,
        )
        updated = accounts.update_account(
            org_id, child.id, actor_id=actor_id, parent_id=None,
        )
        assert updated.parent_id is None


class TestArchiveAndDelete:

    def test_archive_untouched_account(self, accounts, org_id, actor_id):
        account = accounts.create_account(
            org_id, name="Old", account_type="expense", actor_id=actor_id,
        )
        archived = accounts.archive(org_id, account.id, actor_id)
        assert archived.is_archived is True
        assert archived.is_active is False

    def test_archive_with_lines_conflicts(self, accounts, chart, org_id, actor_id, record_entry):
        record_entry([
            LineSpec.debit_line(chart.cash.id, Decimal("10")),
            LineSpec.credit_line(chart.sales.id, Decimal("10")),
        ])
        with pytest.raises(AccountHasTransactionsError):
            accounts.archive(org_id, chart.cash.id, actor_id)

    def test_draft_lines_also_block_delete(self, accounts, chart, org_id, actor_id, record_entry):
        record_entry(
            [
                LineSpec.debit_line(chart.rent.id, Decimal("10")),
                LineSpec.credit_line(chart.cash.id, Decimal("10")),
            ],
            post=False,
        )
        with pytest.raises(AccountHasTransactionsError):
            accounts.delete_account(org_id, chart.rent.id, actor_id)

    def test_delete_with_children_conflicts(self, accounts, org_id, actor_id):
        parent = accounts.create_account(
            org_id, name="Assets", account_type="asset", actor_id=actor_id,
        )
        accounts.create_account(
            org_id, name="Cash", account_type="asset", actor_id=actor_id,
            parent_id=parent.id,
        )
        with pytest.raises(AccountHasChildrenError) as exc_info:
            accounts.delete_account(org_id, parent.id, actor_id)
        assert exc_info.value.child_count == 1

    def test_delete_untouched_account(self, accounts, org_id, actor_id):
        account = accounts.create_account(
            org_id, name="Temp", account_type="expense", actor_id=actor_id,
        )
        accounts.delete_account(org_id, account.id, actor_id)
        with pytest.raises(AccountNotFoundError):
            accounts.get_account(org_id, account.id)

    def test_archived_account_rejects_new_lines(
        self, accounts, chart, org_id, actor_id, record_entry
    ):
        spare = accounts.create_account(
            org_id, name="Spare", account_type="expense", actor_id=actor_id,
        )
        accounts.archive(org_id, spare.id, actor_id)
        with pytest.raises(AccountInactiveError):
            record_entry([
                LineSpec.debit_line(spare.id, Decimal("5")),
                LineSpec.credit_line(chart.cash.id, Decimal("5")),
            ])


class TestLookups:

    def test_other_org_account_is_not_found(self, accounts, chart, other_org_id):
        with pytest.raises(AccountNotFoundError):
            accounts.get_account(other_org_id, chart.cash.id)

    def test_unknown_id_is_not_found(self, accounts, org_id):
        with pytest.raises(AccountNotFoundError):
            accounts.get_account(org_id, uuid4())

    def test_list_excludes_archived(self, accounts, org_id, actor_id):
        keep = accounts.create_account(
            org_id, name="Keep", account_type="asset", actor_id=actor_id,
        )
        gone = accounts.create_account(
            org_id, name="Gone", account_type="asset", actor_id=actor_id,
        )
        accounts.archive(org_id, gone.id, actor_id)
        assert [a.id for a in accounts.list_accounts(org_id)] == [keep.id]
        assert len(accounts.list_accounts(org_id, include_archived=True)) == 2

    def test_find_by_subtype_tries_subtypes_in_order(self, accounts, chart, org_id):
        found = accounts.find_by_subtype(org_id, "asset", ["merchant-account", "bank"])
        assert found.id == chart.bank.id
        assert accounts.find_by_subtype(org_id, "asset", ["inventory"]) is None

    def test_find_by_external_address(self, accounts, chart, org_id, other_org_id):
        address = chart.wallet.external_address
        assert accounts.find_by_external_address(org_id, address).id == chart.wallet.id
        assert accounts.find_by_external_address(other_org_id, address) is None
        assert accounts.find_by_external_address(org_id, "0xdead") is None

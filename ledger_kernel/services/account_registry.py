"""
AccountRegistry -- the chart of accounts.

Responsibility:
    Creates, edits, archives and deletes accounts for one organization at a
    time, auto-numbers them by type band, and applies the balance deltas the
    PostingEngine computes.

Architecture position:
    Kernel > Services -- imperative shell.  Consumed by JournalStore (line
    account checks), PostingEngine (balance mutation) and collaborators
    resolving default accounts by subtype.

Invariants enforced:
    - Account number unique within the organization.
    - External (wallet) address unique within the organization.
    - Parent account exists in the same organization, has the same type, and
      re-parenting never creates a cycle.
    - An account with any journal line can be neither archived nor deleted;
      an account with children cannot be deleted.
    - adjust_balance() is the only writer of Account.balance.

Failure modes:
    - ValidationError / ParentTypeMismatchError / AccountCycleError.
    - DuplicateAccountNumberError / DuplicateExternalAddressError.
    - AccountHasTransactionsError / AccountHasChildrenError.
    - AccountNotFoundError for absent ids and ids of other organizations.

Audit relevance:
    Account creation, archiving and deletion each write an AuditRecord.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import (
    AccountCycleError,
    AccountHasChildrenError,
    AccountHasTransactionsError,
    AccountNotFoundError,
    DuplicateAccountNumberError,
    DuplicateExternalAddressError,
    ParentTypeMismatchError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import (
    ACCOUNT_NUMBER_PREFIX,
    OTHER_ACCOUNT_NUMBER_PREFIX,
    Account,
    AccountType,
    CashFlowCategory,
)
from ledger_kernel.models.audit import AuditAction
from ledger_kernel.models.journal import JournalLine
from ledger_kernel.services.audit_trail import AuditTrail
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account_registry")

_UNSET = object()


def _coerce_account_type(value: AccountType | str) -> AccountType:
    try:
        return AccountType(value)
    except ValueError as exc:
        raise ValidationError(
            f"Unknown account type: {value!r}", field="account_type"
        ) from exc


def _coerce_category(value: CashFlowCategory | str | None) -> CashFlowCategory | None:
    if value is None:
        return None
    try:
        return CashFlowCategory(value)
    except ValueError as exc:
        raise ValidationError(
            f"Unknown cash flow category: {value!r}", field="cash_flow_category"
        ) from exc


class AccountRegistry(BaseService[Account]):
    """
    Chart of accounts service.

    Contract:
        Every method takes an explicit organization_id.  Accounts of other
        organizations are reported as not found.

    Guarantees:
        - generate_account_number() returns the next free number in the
          type's band (1xxx assets ... 5xxx expenses, 9xxx other).
        - Balance deltas are applied with a single UPDATE ... SET balance =
          balance + delta, so concurrent postings to one account do not lose
          updates.

    Non-goals:
        - Does NOT commit; the caller owns the transaction.
        - Does NOT decide balance deltas; the PostingEngine does.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit or AuditTrail(session, self._clock)

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_account(self, organization_id: UUID, account_id: UUID) -> Account:
        """
        Raises:
            AccountNotFoundError: absent, or owned by another organization.
        """
        account = self.session.get(Account, account_id)
        if account is None or account.organization_id != organization_id:
            raise AccountNotFoundError(str(account_id))
        return account

    def get_by_number(self, organization_id: UUID, account_number: str) -> Account:
        account = self.session.execute(
            select(Account).where(
                Account.organization_id == organization_id,
                Account.account_number == account_number,
            )
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(account_number)
        return account

    def list_accounts(
        self,
        organization_id: UUID,
        account_type: AccountType | str | None = None,
        include_archived: bool = False,
    ) -> list[Account]:
        """Accounts of the organization ordered by account number."""
        query = select(Account).where(Account.organization_id == organization_id)
        if account_type is not None:
            query = query.where(
                Account.account_type == _coerce_account_type(account_type).value
            )
        if not include_archived:
            query = query.where(Account.is_archived.is_(False))
        return list(
            self.session.execute(query.order_by(Account.account_number)).scalars()
        )

    def find_by_subtype(
        self,
        organization_id: UUID,
        account_type: AccountType | str,
        subtypes: Sequence[str],
    ) -> Account | None:
        """
        First active account of the type whose subtype is in ``subtypes``.

        Subtypes are tried in the given order; within one subtype the lowest
        account number wins.
        """
        account_type = _coerce_account_type(account_type)
        for subtype in subtypes:
            account = self.session.execute(
                select(Account)
                .where(
                    Account.organization_id == organization_id,
                    Account.account_type == account_type.value,
                    Account.subtype == subtype,
                    Account.is_active.is_(True),
                    Account.is_archived.is_(False),
                )
                .order_by(Account.account_number)
                .limit(1)
            ).scalar_one_or_none()
            if account is not None:
                return account
        return None

    def find_by_external_address(
        self, organization_id: UUID, external_address: str
    ) -> Account | None:
        """Active account linked to a wallet address, if any."""
        return self.session.execute(
            select(Account).where(
                Account.organization_id == organization_id,
                Account.external_address == external_address,
                Account.is_active.is_(True),
            )
        ).scalar_one_or_none()

    def has_transactions(self, account_id: UUID) -> bool:
        """True when any journal line (any entry status) targets the account."""
        return (
            self.session.execute(
                select(JournalLine.id).where(JournalLine.account_id == account_id).limit(1)
            ).first()
            is not None
        )

    def child_count(self, account_id: UUID) -> int:
        return self.session.execute(
            select(func.count()).select_from(Account).where(Account.parent_id == account_id)
        ).scalar_one()

    # =========================================================================
    # Numbering
    # =========================================================================

    def generate_account_number(
        self,
        organization_id: UUID,
        account_type: AccountType | str,
    ) -> str:
        """
        Next unused number in the type's prefix band.

        Postconditions:
            - First account of a band gets ``prefix + "000"``.
            - Otherwise the highest four-digit number in the band plus one.
              Explicit numbers of another length (``"15000"``) are ignored.

        Raises:
            ValidationError: the band is exhausted (next number would leave
                the prefix).
        """
        prefix = ACCOUNT_NUMBER_PREFIX.get(
            _coerce_account_type(account_type), OTHER_ACCOUNT_NUMBER_PREFIX
        )
        existing = self.session.execute(
            select(Account.account_number).where(
                Account.organization_id == organization_id,
                Account.account_number.like(f"{prefix}___"),
            )
        ).scalars()
        numbers = [int(n) for n in existing if n.isdigit()]
        if not numbers:
            return f"{prefix}000"

        candidate = str(max(numbers) + 1)
        if len(candidate) != 4 or not candidate.startswith(prefix):
            raise ValidationError(
                f"Account number band {prefix}xxx is exhausted",
                field="account_number",
            )
        return candidate

    # =========================================================================
    # Mutations
    # =========================================================================

    def create_account(
        self,
        organization_id: UUID,
        *,
        name: str,
        account_type: AccountType | str,
        actor_id: UUID,
        account_number: str | None = None,
        subtype: str | None = None,
        description: str | None = None,
        parent_id: UUID | None = None,
        external_address: str | None = None,
        is_cash_equivalent: bool = False,
        cash_flow_category: CashFlowCategory | str | None = None,
        is_reconcilable: bool = False,
    ) -> Account:
        """
        Create an account, auto-numbering it when no number is given.

        Raises:
            ValidationError: blank name or unknown type/category.
            DuplicateAccountNumberError: number already used in organization.
            DuplicateExternalAddressError: address already linked.
            AccountNotFoundError: parent absent or in another organization.
            ParentTypeMismatchError: parent has a different type.
        """
        if not name or not name.strip():
            raise ValidationError("Account name is required", field="name")
        account_type = _coerce_account_type(account_type)
        category = _coerce_category(cash_flow_category)

        if account_number is None:
            account_number = self.generate_account_number(organization_id, account_type)
        else:
            account_number = account_number.strip()
            if not account_number:
                raise ValidationError(
                    "Account number cannot be blank", field="account_number"
                )
            self._ensure_number_free(organization_id, account_number)

        if parent_id is not None:
            parent = self.get_account(organization_id, parent_id)
            self._ensure_parent_type(parent, account_type)

        if external_address is not None:
            self._ensure_address_free(organization_id, external_address)

        account = Account(
            organization_id=organization_id,
            account_number=account_number,
            name=name.strip(),
            account_type=account_type,
            subtype=subtype,
            description=description,
            parent_id=parent_id,
            external_address=external_address,
            is_cash_equivalent=is_cash_equivalent,
            cash_flow_category=category,
            is_reconcilable=is_reconcilable,
            balance=Decimal("0"),
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()

        self._audit.record(
            organization_id,
            "account",
            account.id,
            AuditAction.ACCOUNT_CREATED,
            actor_id,
            payload={
                "account_number": account_number,
                "account_type": account_type.value,
            },
        )
        logger.info(
            "account_created",
            extra={
                "organization_id": str(organization_id),
                "account_id": str(account.id),
                "account_number": account_number,
                "account_type": account_type.value,
            },
        )
        return account

    def update_account(
        self,
        organization_id: UUID,
        account_id: UUID,
        *,
        actor_id: UUID,
        name: str | None = None,
        description: str | None = None,
        subtype: str | None | object = _UNSET,
        parent_id: UUID | None | object = _UNSET,
        is_active: bool | None = None,
        cash_flow_category: CashFlowCategory | str | None | object = _UNSET,
        is_cash_equivalent: bool | None = None,
    ) -> Account:
        """
        Edit descriptive fields and the hierarchy position.

        Arguments left at their default are unchanged; ``parent_id=None``
        detaches the account from its parent.

        Raises:
            ParentTypeMismatchError / AccountCycleError on re-parenting.
        """
        account = self.get_account(organization_id, account_id)

        if name is not None:
            if not name.strip():
                raise ValidationError("Account name is required", field="name")
            account.name = name.strip()
        if description is not None:
            account.description = description
        if subtype is not _UNSET:
            account.subtype = subtype
        if is_active is not None:
            account.is_active = is_active
        if is_cash_equivalent is not None:
            account.is_cash_equivalent = is_cash_equivalent
        if cash_flow_category is not _UNSET:
            account.cash_flow_category = _coerce_category(cash_flow_category)
        if parent_id is not _UNSET:
            if parent_id is not None:
                self._ensure_no_cycle(organization_id, account, parent_id)
            account.parent_id = parent_id

        account.mark_updated(actor_id)
        self.session.flush()
        logger.info(
            "account_updated",
            extra={"organization_id": str(organization_id), "account_id": str(account_id)},
        )
        return account

    def archive(self, organization_id: UUID, account_id: UUID, actor_id: UUID) -> Account:
        """
        Soft-delete an account.

        Raises:
            AccountHasTransactionsError: the account has journal lines.
        """
        account = self.get_account(organization_id, account_id)
        if self.has_transactions(account.id):
            raise AccountHasTransactionsError(str(account_id), "archive")

        account.is_archived = True
        account.is_active = False
        account.mark_updated(actor_id)
        self.session.flush()

        self._audit.record(
            organization_id, "account", account.id, AuditAction.ACCOUNT_ARCHIVED, actor_id
        )
        logger.info(
            "account_archived",
            extra={"organization_id": str(organization_id), "account_id": str(account_id)},
        )
        return account

    def delete_account(self, organization_id: UUID, account_id: UUID, actor_id: UUID) -> None:
        """
        Hard-delete an untouched account.

        Raises:
            AccountHasTransactionsError: the account has journal lines.
            AccountHasChildrenError: the account has sub-accounts.
        """
        account = self.get_account(organization_id, account_id)
        if self.has_transactions(account.id):
            raise AccountHasTransactionsError(str(account_id), "delete")
        children = self.child_count(account.id)
        if children:
            raise AccountHasChildrenError(str(account_id), children)

        number = account.account_number
        self.session.delete(account)
        self.session.flush()

        self._audit.record(
            organization_id,
            "account",
            account_id,
            AuditAction.ACCOUNT_DELETED,
            actor_id,
            payload={"account_number": number},
        )
        logger.info(
            "account_deleted",
            extra={"organization_id": str(organization_id), "account_id": str(account_id)},
        )

    def adjust_balance(
        self,
        organization_id: UUID,
        account_id: UUID,
        signed_delta: Decimal,
    ) -> None:
        """
        Add a signed delta to the cached balance.

        Reserved for the PostingEngine; collaborators never call this.

        Raises:
            AccountNotFoundError: no such account in the organization.
        """
        result = self.session.execute(
            update(Account)
            .where(Account.id == account_id, Account.organization_id == organization_id)
            .values(
                balance=Account.balance + signed_delta,
                balance_updated_at=self._clock.now(),
            )
        )
        if result.rowcount == 0:
            raise AccountNotFoundError(str(account_id))
        logger.debug(
            "account_balance_adjusted",
            extra={"account_id": str(account_id), "delta": str(signed_delta)},
        )

    # =========================================================================
    # Internal checks
    # =========================================================================

    def _ensure_number_free(self, organization_id: UUID, account_number: str) -> None:
        taken = self.session.execute(
            select(Account.id).where(
                Account.organization_id == organization_id,
                Account.account_number == account_number,
            )
        ).first()
        if taken is not None:
            raise DuplicateAccountNumberError(account_number)

    def _ensure_address_free(self, organization_id: UUID, external_address: str) -> None:
        taken = self.session.execute(
            select(Account.id).where(
                Account.organization_id == organization_id,
                Account.external_address == external_address,
            )
        ).first()
        if taken is not None:
            raise DuplicateExternalAddressError(external_address)

    @staticmethod
    def _ensure_parent_type(parent: Account, account_type: AccountType | str) -> None:
        if AccountType(parent.account_type) != AccountType(account_type):
            raise ParentTypeMismatchError(
                str(parent.id),
                AccountType(parent.account_type).value,
                AccountType(account_type).value,
            )

    def _ensure_no_cycle(
        self,
        organization_id: UUID,
        account: Account,
        new_parent_id: UUID,
    ) -> None:
        """Walk up from the new parent; meeting the account means a cycle."""
        if new_parent_id == account.id:
            raise AccountCycleError(str(account.id), str(new_parent_id))
        parent = self.get_account(organization_id, new_parent_id)
        self._ensure_parent_type(parent, account.account_type)

        seen: set[UUID] = set()
        current: Account | None = parent
        while current is not None and current.id not in seen:
            if current.id == account.id:
                raise AccountCycleError(str(account.id), str(new_parent_id))
            seen.add(current.id)
            current = (
                self.session.get(Account, current.parent_id)
                if current.parent_id is not None
                else None
            )

"""
Reporting Configuration Schema.

Defines the cash flow classification table and report formatting options.
Classification is keyed by account type, then subtype, with ``"*"`` as the
type-level fallback.  An account's own ``cash_flow_category`` always wins
over this table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Self

from ledger_kernel.db.types import BALANCE_TOLERANCE, DISPLAY_DECIMAL_PLACES
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountType, CashFlowCategory

logger = get_logger("modules.reporting.config")

WILDCARD = "*"


def default_classification_table() -> dict[str, dict[str, str]]:
    return {
        "revenue": {WILDCARD: "operating"},
        "expense": {WILDCARD: "operating"},
        "asset": {
            "cash": "operating",
            "cash-equivalents": "operating",
            "accounts-receivable": "operating",
            "inventory": "operating",
            "fixed-assets": "investing",
            "investments": "investing",
            "intangible-assets": "investing",
        },
        "liability": {
            "accounts-payable": "operating",
            "accrued-expenses": "operating",
            "loans": "financing",
            "bonds-payable": "financing",
            "notes-payable": "financing",
        },
        "equity": {WILDCARD: "financing"},
    }


@dataclass
class CashFlowClassification:
    """
    Default cash flow section per (account type, subtype).

    Lookup order: exact subtype, then the type's ``"*"`` entry, then
    ``fallback``.
    """

    table: dict[str, dict[str, str]] = field(default_factory=default_classification_table)
    fallback: CashFlowCategory = CashFlowCategory.OPERATING

    def __post_init__(self):
        for account_type, subtypes in self.table.items():
            AccountType(account_type)
            for category in subtypes.values():
                CashFlowCategory(category)
        self.fallback = CashFlowCategory(self.fallback)

    def classify(
        self,
        account_type: AccountType | str,
        subtype: str | None,
    ) -> CashFlowCategory:
        by_subtype = self.table.get(AccountType(account_type).value, {})
        if subtype is not None and subtype in by_subtype:
            return CashFlowCategory(by_subtype[subtype])
        if WILDCARD in by_subtype:
            return CashFlowCategory(by_subtype[WILDCARD])
        return self.fallback


@dataclass
class ReportingConfig:
    """
    Configuration schema for the reporting module.

    Controls cash account detection, classification, formatting and the
    balancing tolerance shown on reports.
    """

    classification: CashFlowClassification = field(
        default_factory=CashFlowClassification,
    )

    # Entity name and currency shown on reports
    entity_name: str = "Company"
    default_currency: str = "USD"

    # Rounding precision for percentages and apportioned shares
    display_precision: int = DISPLAY_DECIMAL_PLACES

    # |left - right| strictly below this is "balanced"
    balance_tolerance: Decimal = BALANCE_TOLERANCE

    # Asset subtypes auto-detected as cash when no explicit list is given
    cash_subtypes: tuple[str, ...] = ("cash", "cash-equivalents")

    def __post_init__(self):
        if self.display_precision < 0:
            raise ValueError("display_precision cannot be negative")
        if len(self.default_currency) != 3:
            raise ValueError("default_currency must be a 3-letter ISO 4217 code")
        self.balance_tolerance = Decimal(str(self.balance_tolerance))
        if self.balance_tolerance < 0:
            raise ValueError("balance_tolerance cannot be negative")
        self.cash_subtypes = tuple(self.cash_subtypes)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        data = dict(data)
        if "classification" in data and isinstance(data["classification"], dict):
            data["classification"] = CashFlowClassification(
                table=data["classification"],
            )
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

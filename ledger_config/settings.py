"""
Ledger settings schema.

Frozen dataclass produced by ``ledger_config.loader``.  Every field has a
default, so an empty YAML document yields a usable in-process setup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from ledger_kernel.db.types import BALANCE_TOLERANCE, DISPLAY_DECIMAL_PLACES
from ledger_modules.reporting.config import (
    CashFlowClassification,
    ReportingConfig,
    default_classification_table,
)


@dataclass(frozen=True)
class LedgerSettings:
    """Runtime settings for one ledger deployment."""

    database_url: str = "sqlite:///ledger.db"
    echo_sql: bool = False
    log_level: str = "INFO"
    balance_tolerance: Decimal = BALANCE_TOLERANCE
    money_places: int = DISPLAY_DECIMAL_PLACES
    entity_name: str = "Company"
    default_currency: str = "USD"
    cash_subtypes: tuple[str, ...] = ("cash", "cash-equivalents")
    cash_flow_defaults: dict[str, Any] = field(default_factory=default_classification_table)

    def reporting_config(self) -> ReportingConfig:
        """Reporting options derived from these settings."""
        return ReportingConfig(
            classification=CashFlowClassification(
                table={k: dict(v) for k, v in self.cash_flow_defaults.items()},
            ),
            entity_name=self.entity_name,
            default_currency=self.default_currency,
            display_precision=self.money_places,
            balance_tolerance=self.balance_tolerance,
            cash_subtypes=self.cash_subtypes,
        )

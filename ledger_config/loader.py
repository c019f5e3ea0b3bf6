"""
Settings loader (``ledger_config.loader``).

Responsibility
--------------
Reads a YAML settings document, applies environment overrides and parses
the result into a ``LedgerSettings`` instance.  This module is the only
place that touches configuration files or environment variables.

Invariants enforced
-------------------
* Every value is validated while loading; an invalid value raises
  ``ValueError`` naming the offending key, never a silent default.
* ``LEDGER_DATABASE_URL`` and ``LEDGER_LOG_LEVEL`` win over the file.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.settings import LedgerSettings
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountType, CashFlowCategory

logger = get_logger("config.loader")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_DATABASE_URL = "LEDGER_DATABASE_URL"
ENV_LOG_LEVEL = "LEDGER_LOG_LEVEL"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file; an empty document is an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, Mapping):
        raise ValueError(f"'{name}' must be a mapping")
    return value


def parse_tolerance(value: Any) -> Decimal:
    if isinstance(value, float):
        value = str(value)
    try:
        tolerance = Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"ledger.balance_tolerance is not a number: {value!r}") from exc
    if not tolerance.is_finite() or tolerance < 0:
        raise ValueError("ledger.balance_tolerance must be a non-negative number")
    return tolerance


def parse_log_level(value: Any) -> str:
    level = str(value).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {', '.join(_LOG_LEVELS)}")
    return level


def parse_cash_flow_defaults(table: Any) -> dict[str, dict[str, str]]:
    """Validate the account type -> subtype -> category table."""
    if not isinstance(table, Mapping):
        raise ValueError("reporting.cash_flow_defaults must be a mapping")
    parsed: dict[str, dict[str, str]] = {}
    for account_type, subtypes in table.items():
        try:
            AccountType(account_type)
        except ValueError as exc:
            raise ValueError(
                f"reporting.cash_flow_defaults: unknown account type {account_type!r}"
            ) from exc
        if not isinstance(subtypes, Mapping):
            raise ValueError(
                f"reporting.cash_flow_defaults.{account_type} must be a mapping"
            )
        row: dict[str, str] = {}
        for subtype, category in subtypes.items():
            try:
                row[str(subtype)] = CashFlowCategory(category).value
            except ValueError as exc:
                raise ValueError(
                    f"reporting.cash_flow_defaults.{account_type}.{subtype}: "
                    f"unknown category {category!r}"
                ) from exc
        parsed[account_type] = row
    return parsed


def parse_settings(data: Mapping[str, Any]) -> LedgerSettings:
    """Build ``LedgerSettings`` from an already-loaded document."""
    database = _section(data, "database")
    logging_section = _section(data, "logging")
    ledger = _section(data, "ledger")
    reporting = _section(data, "reporting")
    defaults = LedgerSettings()

    money_places = ledger.get("money_places", defaults.money_places)
    if isinstance(money_places, bool) or not isinstance(money_places, int) or money_places < 0:
        raise ValueError("ledger.money_places must be a non-negative integer")

    currency = str(reporting.get("default_currency", defaults.default_currency))
    if len(currency) != 3 or not currency.isalpha():
        raise ValueError("reporting.default_currency must be a 3-letter code")

    cash_subtypes = reporting.get("cash_subtypes", list(defaults.cash_subtypes))
    if not isinstance(cash_subtypes, list) or not all(
        isinstance(s, str) for s in cash_subtypes
    ):
        raise ValueError("reporting.cash_subtypes must be a list of strings")

    table = reporting.get("cash_flow_defaults")
    cash_flow_defaults = (
        parse_cash_flow_defaults(table) if table is not None
        else defaults.cash_flow_defaults
    )
    return LedgerSettings(
        database_url=str(database.get("url", defaults.database_url)),
        echo_sql=bool(database.get("echo_sql", defaults.echo_sql)),
        log_level=parse_log_level(logging_section.get("level", defaults.log_level)),
        balance_tolerance=parse_tolerance(
            ledger.get("balance_tolerance", defaults.balance_tolerance)
        ),
        money_places=money_places,
        entity_name=str(reporting.get("entity_name", defaults.entity_name)),
        default_currency=currency.upper(),
        cash_subtypes=tuple(cash_subtypes),
        cash_flow_defaults=cash_flow_defaults,
    )


def apply_environment(
    data: Mapping[str, Any],
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Copy of ``data`` with environment overrides applied."""
    environ = os.environ if environ is None else environ
    result = dict(data)
    if environ.get(ENV_DATABASE_URL):
        result["database"] = {**(result.get("database") or {}), "url": environ[ENV_DATABASE_URL]}
    if environ.get(ENV_LOG_LEVEL):
        result["logging"] = {**(result.get("logging") or {}), "level": environ[ENV_LOG_LEVEL]}
    return result


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Load settings from ``path`` (the bundled defaults when omitted).

    Raises:
        FileNotFoundError: ``path`` does not exist.
        ValueError: a value fails validation.
    """
    source = path or DEFAULTS_PATH
    data = apply_environment(load_yaml_file(source), environ)
    settings = parse_settings(data)
    logger.info(
        "settings_loaded",
        extra={
            "source": str(source),
            "log_level": settings.log_level,
            "dialect": settings.database_url.split(":", 1)[0],
        },
    )
    return settings

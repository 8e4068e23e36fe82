"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a chart configuration YAML file and parses it into typed
``ledger_config.schema`` dataclass instances.  The single public entry
point for callers is ``ledger_config.get_active_config()``.

Invariants enforced
-------------------
* Missing required keys raise ``KeyError``; no silent defaults for
  required fields.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
* Non-decimal opening balance  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    AccountDef,
    ChartConfiguration,
    CompanyDef,
    PartyDef,
    RoleBinding,
    VoucherTypeDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any) -> Decimal:
    """Parse an amount from YAML.  Floats go through str() so 0.1 stays 0.1."""
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Cannot parse amount from {value!r}") from exc


def parse_company(data: dict[str, Any]) -> CompanyDef:
    return CompanyDef(
        code=data["code"],
        name=data["name"],
        base_currency=data.get("base_currency", "INR"),
        fiscal_year_start_month=int(data.get("fiscal_year_start_month", 4)),
    )


def parse_account(data: dict[str, Any]) -> AccountDef:
    return AccountDef(
        code=str(data["code"]),
        name=data["name"],
        account_type=str(data["type"]).upper(),
    )


def parse_role_bindings(data: dict[str, Any] | list[dict[str, Any]]) -> tuple[RoleBinding, ...]:
    """
    Parse role bindings.

    Accepts the mapping form ``{CASH: CASH, AR: ACCOUNTS_RECEIVABLE}`` or
    the list form ``[{role: CASH, account_code: CASH}]``.  Only the list
    form can express a duplicate binding, which the validator then reports.
    """
    if isinstance(data, dict):
        return tuple(
            RoleBinding(role=str(role).upper(), account_code=str(code))
            for role, code in data.items()
        )
    return tuple(
        RoleBinding(role=str(item["role"]).upper(), account_code=str(item["account_code"]))
        for item in data
    )


def parse_voucher_type(data: dict[str, Any]) -> VoucherTypeDef:
    return VoucherTypeDef(code=str(data["code"]).upper(), name=data["name"])


def parse_party(data: dict[str, Any]) -> PartyDef:
    return PartyDef(
        code=str(data["code"]),
        name=data["name"],
        party_type=str(data["type"]).upper(),
        opening_balance=parse_decimal(data.get("opening_balance", 0)),
        opening_side=str(data.get("opening_side", "DR")).upper(),
        phone=data.get("phone"),
        email=data.get("email"),
        address=data.get("address"),
    )


def parse_chart(data: dict[str, Any]) -> ChartConfiguration:
    """Parse a full chart configuration from a dict (one YAML document)."""
    return ChartConfiguration(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        company=parse_company(data["company"]),
        accounts=tuple(parse_account(a) for a in data.get("accounts", [])),
        role_bindings=parse_role_bindings(data.get("role_bindings", {})),
        voucher_types=tuple(parse_voucher_type(v) for v in data.get("voucher_types", [])),
        parties=tuple(parse_party(p) for p in data.get("parties", [])),
        checksum=compute_checksum(data),
    )


def load_chart(path: Path) -> ChartConfiguration:
    return parse_chart(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()

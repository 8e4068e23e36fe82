"""
Configuration Validator (``ledger_config.validator``).

Responsibility
--------------
Validates a ``ChartConfiguration`` before it is provisioned, collecting
every problem instead of stopping at the first.

Invariants enforced
-------------------
* Account codes, party codes and voucher type codes are unique.
* Account types, party types, opening sides and voucher type codes are
  known values.
* Role coverage -- every template role (CASH, BANK, SALES, PURCHASE, AR,
  AP, OWNER) is bound to exactly one chart account, and no account carries
  two roles.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> configuration
  MUST NOT be provisioned.
* Validation warnings  -> configuration may be provisioned but should be
  reviewed (e.g. a chart without a JOURNAL voucher type).
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal

from ledger_config.schema import ChartConfiguration

ACCOUNT_TYPES = frozenset({"ASSET", "LIABILITY", "EQUITY", "INCOME", "EXPENSE"})
TEMPLATE_ROLES = ("CASH", "BANK", "SALES", "PURCHASE", "AR", "AP", "OWNER")
VOUCHER_KINDS = ("SALE", "PURCHASE", "RECEIPT", "PAYMENT", "CONTRA", "JOURNAL")
PARTY_TYPES = frozenset({"CUSTOMER", "SUPPLIER", "BOTH"})
BALANCE_SIDES = frozenset({"DR", "CR"})


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def _duplicates(values) -> list[str]:
    return sorted(v for v, n in Counter(values).items() if n > 1)


def validate_configuration(config: ChartConfiguration) -> ConfigValidationResult:
    """Validate a chart configuration.  Never raises."""
    result = ConfigValidationResult()

    month = config.company.fiscal_year_start_month
    if not 1 <= month <= 12:
        result.add_error(f"fiscal_year_start_month must be 1-12, got {month}")
    if len(config.company.base_currency) != 3:
        result.add_error(f"base_currency must be an ISO 4217 code, got {config.company.base_currency!r}")

    _validate_accounts(config, result)
    _validate_role_bindings(config, result)
    _validate_voucher_types(config, result)
    _validate_parties(config, result)
    return result


def _validate_accounts(config: ChartConfiguration, result: ConfigValidationResult) -> None:
    for code in _duplicates(a.code for a in config.accounts):
        result.add_error(f"Duplicate account code: {code}")
    for account in config.accounts:
        if account.account_type not in ACCOUNT_TYPES:
            result.add_error(f"Account {account.code}: unknown type {account.account_type}")


def _validate_role_bindings(config: ChartConfiguration, result: ConfigValidationResult) -> None:
    account_codes = {a.code for a in config.accounts}
    bound: dict[str, list[str]] = {}
    for binding in config.role_bindings:
        if binding.role not in TEMPLATE_ROLES:
            result.add_error(f"Unknown role in binding: {binding.role}")
            continue
        if binding.account_code not in account_codes:
            result.add_error(
                f"Role {binding.role} bound to unknown account {binding.account_code}"
            )
        bound.setdefault(binding.role, []).append(binding.account_code)

    for role in TEMPLATE_ROLES:
        codes = bound.get(role, [])
        if not codes:
            result.add_error(f"Role {role} is not bound to any account")
        elif len(codes) > 1:
            result.add_error(f"Role {role} is bound to {len(codes)} accounts: {', '.join(codes)}")

    for code in _duplicates(b.account_code for b in config.role_bindings):
        result.add_error(f"Account {code} is bound to more than one role")


def _validate_voucher_types(config: ChartConfiguration, result: ConfigValidationResult) -> None:
    codes = [v.code for v in config.voucher_types]
    for code in _duplicates(codes):
        result.add_error(f"Duplicate voucher type: {code}")
    for code in codes:
        if code not in VOUCHER_KINDS:
            result.add_error(f"Unknown voucher type: {code}")
    for kind in VOUCHER_KINDS:
        if kind not in codes:
            result.add_warning(f"No voucher type for {kind}; such vouchers cannot be created")


def _validate_parties(config: ChartConfiguration, result: ConfigValidationResult) -> None:
    for code in _duplicates(p.code for p in config.parties):
        result.add_error(f"Duplicate party code: {code}")
    for party in config.parties:
        if party.party_type not in PARTY_TYPES:
            result.add_error(f"Party {party.code}: unknown type {party.party_type}")
        if party.opening_side not in BALANCE_SIDES:
            result.add_error(f"Party {party.code}: opening side must be DR or CR")
        if party.opening_balance < 0:
            result.add_error(f"Party {party.code}: opening balance must not be negative")
        elif party.opening_balance != party.opening_balance.quantize(Decimal("0.01")):
            result.add_error(f"Party {party.code}: opening balance has more than two decimals")

"""
Chart configuration tests: YAML loading, validation, and the
get_active_config() entrypoint.

These never touch the database.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from textwrap import dedent

import pytest

from ledger_config import (
    AccountDef,
    PartyDef,
    RoleBinding,
    VoucherTypeDef,
    get_active_config,
    validate_configuration,
)
from ledger_config.loader import compute_checksum, parse_chart, parse_party, parse_role_bindings

MINIMAL_CHART = dedent(
    """
    config_id: minimal
    version: 3
    company: {code: ACME, name: Acme Traders}
    accounts:
      - {code: CASH, name: Cash, type: asset}
      - {code: BANK, name: Bank, type: ASSET}
      - {code: AR, name: Debtors, type: ASSET}
      - {code: AP, name: Creditors, type: LIABILITY}
      - {code: CAPITAL, name: Capital, type: EQUITY}
      - {code: SALES, name: Sales, type: INCOME}
      - {code: PURCHASES, name: Purchases, type: EXPENSE}
    role_bindings:
      CASH: CASH
      BANK: BANK
      SALES: SALES
      PURCHASE: PURCHASES
      AR: AR
      AP: AP
      OWNER: CAPITAL
    voucher_types:
      - {code: SALE, name: Sales}
      - {code: PURCHASE, name: Purchases}
      - {code: RECEIPT, name: Receipts}
      - {code: PAYMENT, name: Payments}
      - {code: CONTRA, name: Contra}
      - {code: JOURNAL, name: Journal}
    parties:
      - {code: C1, name: First Customer, type: customer, opening_balance: 125.50}
    """
)


@pytest.fixture
def sets_dir(tmp_path):
    (tmp_path / "minimal.yaml").write_text(MINIMAL_CHART)
    return tmp_path


class TestLoader:

    def test_default_set(self):
        config = get_active_config()
        assert config.config_id == "default"
        assert config.company.code == "DEFAULT_COMPANY"
        assert config.company.fiscal_year_start_month == 4
        assert len(config.accounts) == 12
        assert config.binding_for("AR").account_code == "ACCOUNTS_RECEIVABLE"
        assert [v.code for v in config.voucher_types] == [
            "SALE", "PURCHASE", "RECEIPT", "PAYMENT", "CONTRA", "JOURNAL",
        ]
        assert config.parties == ()

    def test_custom_set(self, sets_dir):
        config = get_active_config("minimal", config_dir=sets_dir)

        assert config.version == 3
        assert config.company.base_currency == "INR"
        assert config.accounts[0] == AccountDef("CASH", "Cash", "ASSET")
        assert config.parties == (
            PartyDef("C1", "First Customer", "CUSTOMER", Decimal("125.5"), "DR"),
        )

    def test_role_bindings_list_form(self):
        bindings = parse_role_bindings(
            [{"role": "cash", "account_code": "CASH"}, {"role": "CASH", "account_code": "BANK"}]
        )
        assert bindings == (RoleBinding("CASH", "CASH"), RoleBinding("CASH", "BANK"))

    def test_party_amount_is_parsed_as_decimal(self):
        party = parse_party({"code": "S1", "name": "Supplier", "type": "supplier",
                             "opening_balance": 0.1, "opening_side": "cr"})
        assert party.opening_balance == Decimal("0.1")
        assert party.opening_side == "CR"

    def test_unparseable_amount(self):
        with pytest.raises(ValueError):
            parse_party({"code": "S1", "name": "S", "type": "SUPPLIER", "opening_balance": "lots"})

    def test_missing_required_key(self):
        with pytest.raises(KeyError):
            parse_chart({"config_id": "broken"})

    def test_checksum_is_deterministic(self):
        a = {"config_id": "x", "accounts": [{"code": "CASH"}], "version": 1}
        b = {"version": 1, "accounts": [{"code": "CASH"}], "config_id": "x"}
        assert compute_checksum(a) == compute_checksum(b)
        assert compute_checksum(a) != compute_checksum({**a, "version": 2})

    def test_missing_set(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config("nope", config_dir=tmp_path)

    def test_invalid_set(self, tmp_path):
        (tmp_path / "bad.yaml").write_text(MINIMAL_CHART.replace("OWNER: CAPITAL", ""))
        with pytest.raises(ValueError, match="Role OWNER is not bound"):
            get_active_config("bad", config_dir=tmp_path)

    def test_load_is_logged(self, sets_dir, captured_logs):
        config = get_active_config("minimal", config_dir=sets_dir)
        events = [r for r in captured_logs() if r["message"] == "ledger_config_loaded"]
        assert events[0]["config_id"] == "minimal"
        assert events[0]["checksum"] == config.checksum


class TestValidator:

    @pytest.fixture
    def config(self):
        return get_active_config()

    def test_default_is_valid(self, config):
        result = validate_configuration(config)
        assert result.is_valid
        assert result.warnings == []

    def test_errors_are_collected(self, config):
        bad = replace(
            config,
            accounts=config.accounts + (AccountDef("CASH", "Cash again", "ASSET"),
                                        AccountDef("SUSPENSE", "Suspense", "LIMBO")),
            role_bindings=tuple(b for b in config.role_bindings if b.role != "BANK"),
        )
        errors = validate_configuration(bad).errors
        assert "Duplicate account code: CASH" in errors
        assert "Account SUSPENSE: unknown type LIMBO" in errors
        assert "Role BANK is not bound to any account" in errors

    def test_role_binding_errors(self, config):
        bad = replace(
            config,
            role_bindings=config.role_bindings + (
                RoleBinding("CASH", "MISC_EXPENSE"),
                RoleBinding("TREASURY", "BANK"),
                RoleBinding("SALES", "NOWHERE"),
            ),
        )
        errors = validate_configuration(bad).errors
        assert "Role CASH is bound to 2 accounts: CASH, MISC_EXPENSE" in errors
        assert "Unknown role in binding: TREASURY" in errors
        assert "Role SALES bound to unknown account NOWHERE" in errors

    def test_account_with_two_roles(self, config):
        bindings = tuple(
            RoleBinding("BANK", "CASH") if b.role == "BANK" else b for b in config.role_bindings
        )
        errors = validate_configuration(replace(config, role_bindings=bindings)).errors
        assert "Account CASH is bound to more than one role" in errors

    def test_party_errors(self, config):
        bad = replace(
            config,
            parties=(
                PartyDef("P1", "Negative", "CUSTOMER", Decimal("-1")),
                PartyDef("P2", "Precise", "SUPPLIER", Decimal("1.005"), "CR"),
                PartyDef("P3", "Odd", "VENDOR", opening_side="XX"),
                PartyDef("P3", "Twin", "CUSTOMER"),
            ),
        )
        errors = validate_configuration(bad).errors
        assert "Party P1: opening balance must not be negative" in errors
        assert "Party P2: opening balance has more than two decimals" in errors
        assert "Party P3: unknown type VENDOR" in errors
        assert "Party P3: opening side must be DR or CR" in errors
        assert "Duplicate party code: P3" in errors

    def test_company_errors(self, config):
        bad = replace(config, company=replace(config.company, fiscal_year_start_month=13,
                                              base_currency="RUPEE"))
        errors = validate_configuration(bad).errors
        assert "fiscal_year_start_month must be 1-12, got 13" in errors
        assert len(errors) == 2

    def test_missing_voucher_type_is_a_warning(self, config):
        trimmed = replace(
            config,
            voucher_types=tuple(v for v in config.voucher_types if v.code != "JOURNAL"),
        )
        result = validate_configuration(trimmed)
        assert result.is_valid
        assert result.warnings == ["No voucher type for JOURNAL; such vouchers cannot be created"]

    def test_unknown_voucher_type(self, config):
        bad = replace(config, voucher_types=config.voucher_types + (VoucherTypeDef("MEMO", "Memo"),))
        assert "Unknown voucher type: MEMO" in validate_configuration(bad).errors

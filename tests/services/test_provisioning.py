"""
ProvisioningService tests.

A chart is provisioned only when every role is bound to exactly one of its
accounts; a bad chart writes nothing.
"""

from dataclasses import replace

import pytest
from sqlalchemy import func, select

from ledger_config import AccountDef, RoleBinding
from ledger_kernel.db.engine import session_scope
from ledger_kernel.exceptions import ConfigurationError, RoleBindingError
from ledger_kernel.models.account import Account, AccountRole, NormalBalance
from ledger_kernel.models.company import Company
from ledger_kernel.models.party import BalanceSide, Party, PartyType
from ledger_kernel.models.sequence_counter import SequenceCounter
from ledger_kernel.models.voucher import VoucherType
from ledger_kernel.services.provisioning_service import (
    ProvisioningService,
    validate_role_bindings,
)


def _count(session, model) -> int:
    return session.execute(select(func.count()).select_from(model)).scalar_one()


def _rebind(chart, role, account_code):
    bindings = tuple(
        RoleBinding(b.role, account_code) if b.role == role else b
        for b in chart.role_bindings
    )
    return replace(chart, role_bindings=bindings)


class TestProvisioning:

    def test_default_chart(self, company_id, chart):
        with session_scope() as session:
            company = session.get(Company, company_id)
            assert company.code == "DEFAULT_COMPANY"
            assert company.base_currency == "INR"
            assert company.fiscal_year_start_month == 4
            assert _count(session, Account) == len(chart.accounts)
            assert _count(session, VoucherType) == 6
            assert _count(session, SequenceCounter) == 6
            assert _count(session, Party) == 4

    def test_roles_and_normal_balances(self, company_id):
        with session_scope() as session:
            accounts = {
                a.code: a
                for a in session.execute(select(Account)).scalars()
            }
        assert accounts["ACCOUNTS_RECEIVABLE"].role == AccountRole.AR
        assert accounts["ACCOUNTS_RECEIVABLE"].normal_balance == NormalBalance.DEBIT
        assert accounts["SALES"].normal_balance == NormalBalance.CREDIT
        assert accounts["RENT_EXPENSE"].role is None
        assert accounts["RENT_EXPENSE"].normal_balance == NormalBalance.DEBIT

    def test_parties(self, company_id):
        with session_scope() as session:
            supplier = session.execute(
                select(Party).where(Party.code == "SUPP001")
            ).scalar_one()
            assert supplier.party_type == PartyType.SUPPLIER
            assert str(supplier.opening_balance) == "200.00"
            assert supplier.opening_side == BalanceSide.CR

    def test_rerun_is_a_no_op(self, company_id, chart):
        with session_scope() as session:
            again = ProvisioningService(session).provision(chart)
            assert again.id == company_id
        with session_scope() as session:
            assert _count(session, Company) == 1
            assert _count(session, Account) == len(chart.accounts)
            assert _count(session, SequenceCounter) == 6

    def test_provisioning_is_logged(self, db_engine, chart, captured_logs):
        with session_scope() as session:
            ProvisioningService(session).provision(chart)
        events = [r for r in captured_logs() if r["message"] == "company_provisioned"]
        assert len(events) == 1
        assert events[0]["company_code"] == "DEFAULT_COMPANY"

    def test_account_type_change_is_rejected(self, company_id, chart):
        accounts = tuple(
            replace(a, account_type="LIABILITY") if a.code == "CASH" else a
            for a in chart.accounts
        )
        with pytest.raises(ConfigurationError):
            with session_scope() as session:
                ProvisioningService(session).provision(replace(chart, accounts=accounts))


class TestRoleBindingRejection:

    def test_unbound_role_writes_nothing(self, db_engine, chart):
        bad = replace(
            chart,
            role_bindings=tuple(b for b in chart.role_bindings if b.role != "OWNER"),
        )
        with pytest.raises(RoleBindingError) as exc_info:
            with session_scope() as session:
                ProvisioningService(session).provision(bad)
        assert exc_info.value.role == "OWNER"

        with session_scope() as session:
            assert _count(session, Company) == 0
            assert _count(session, Account) == 0

    def test_role_bound_twice(self, db_engine, chart):
        bad = replace(
            chart,
            role_bindings=chart.role_bindings + (RoleBinding("CASH", "BANK"),),
        )
        with pytest.raises(RoleBindingError, match="bound to 2 accounts"):
            with session_scope() as session:
                ProvisioningService(session).provision(bad)

    def test_binding_to_unknown_account(self, db_engine, chart):
        with pytest.raises(RoleBindingError, match="not in the chart"):
            with session_scope() as session:
                ProvisioningService(session).provision(_rebind(chart, "BANK", "VAULT"))

    def test_account_with_two_roles(self, db_engine, chart):
        with pytest.raises(RoleBindingError, match="already carries role"):
            with session_scope() as session:
                ProvisioningService(session).provision(_rebind(chart, "BANK", "CASH"))

    def test_unknown_role(self):
        accounts = [AccountDef("CASH", "Cash", "ASSET")]
        with pytest.raises(RoleBindingError, match="unknown role"):
            validate_role_bindings(
                [a.code for a in accounts], [RoleBinding("TREASURY", "CASH")]
            )

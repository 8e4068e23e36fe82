"""
AccountDirectory tests.

Roles and codes resolve to exactly one account of the company; ambiguity
and absence are provisioning errors, never silently resolved.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from ledger_kernel.domain.dtos import JournalLinePayload, PaymentMode, VoucherPayload
from ledger_kernel.domain.templates import (
    JournalVoucherInput,
    Slot,
    TemplatedVoucherInput,
    generate_entries,
)
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    InvalidTemplateInputError,
    NotFoundError,
    PartyNotFoundError,
    RoleBindingError,
)
from ledger_kernel.models.account import Account, AccountRole, AccountType, NormalBalance
from ledger_kernel.models.voucher import EntrySide
from ledger_kernel.services.account_directory import AccountDirectory

TEST_DATE = date(2024, 4, 1)


def _account_id(session, company_id, code):
    return session.execute(
        select(Account.id).where(Account.company_id == company_id, Account.code == code)
    ).scalar_one()


class TestRoleResolution:

    @pytest.mark.parametrize(
        "role,code",
        [
            (AccountRole.CASH, "CASH"),
            (AccountRole.BANK, "BANK"),
            (AccountRole.SALES, "SALES"),
            (AccountRole.PURCHASE, "PURCHASE_EXPENSE"),
            (AccountRole.AR, "ACCOUNTS_RECEIVABLE"),
            (AccountRole.AP, "ACCOUNTS_PAYABLE"),
            (AccountRole.OWNER, "OWNER_CAPITAL"),
        ],
    )
    def test_role_resolves_to_bound_account(self, session, company_id, role, code):
        account = AccountDirectory(session).account_for_role(company_id, role)
        assert account.code == code

    def test_duplicate_role_is_rejected(self, session, company_id, captured_logs):
        session.add(
            Account(
                company_id=company_id,
                code="PETTY_CASH",
                name="Petty Cash",
                account_type=AccountType.ASSET,
                normal_balance=NormalBalance.DEBIT,
                role=AccountRole.CASH,
            )
        )
        session.flush()

        with pytest.raises(RoleBindingError) as exc_info:
            AccountDirectory(session).resolve_by_role(company_id, AccountRole.CASH)
        assert exc_info.value.role == "CASH"
        assert "PETTY_CASH" in exc_info.value.reason
        assert any(r["message"] == "role_binding_invalid" for r in captured_logs())

    def test_missing_role_is_not_found(self, session, company_id):
        account = AccountDirectory(session).account_for_role(company_id, AccountRole.OWNER)
        account.role = None
        session.flush()

        with pytest.raises(AccountNotFoundError) as exc_info:
            AccountDirectory(session).resolve_by_role(company_id, AccountRole.OWNER)
        assert isinstance(exc_info.value, NotFoundError)

    def test_inactive_account_does_not_resolve(self, session, company_id):
        account = AccountDirectory(session).account_for_role(company_id, AccountRole.BANK)
        account.is_active = False
        session.flush()

        with pytest.raises(AccountNotFoundError):
            AccountDirectory(session).resolve_by_role(company_id, AccountRole.BANK)

    def test_other_company_is_isolated(self, session, company_id):
        with pytest.raises(AccountNotFoundError):
            AccountDirectory(session).resolve_by_role(uuid4(), AccountRole.CASH)


class TestCodeResolution:

    def test_code_resolves(self, session, company_id):
        directory = AccountDirectory(session)
        assert directory.resolve_by_code(company_id, "RENT_EXPENSE") == _account_id(
            session, company_id, "RENT_EXPENSE"
        )

    def test_unknown_code(self, session, company_id):
        with pytest.raises(AccountNotFoundError):
            AccountDirectory(session).resolve_by_code(company_id, "NO_SUCH_ACCOUNT")

    def test_payment_mode_maps_to_cash_or_bank(self, session, company_id):
        directory = AccountDirectory(session)
        assert directory.payment_account(company_id, PaymentMode.CASH) == _account_id(
            session, company_id, "CASH"
        )
        assert directory.payment_account(company_id, PaymentMode.BANK) == _account_id(
            session, company_id, "BANK"
        )


class TestPayloadResolution:

    def test_template_accounts_resolve_every_role(self, session, company_id):
        accounts = AccountDirectory(session).template_accounts(company_id)
        assert accounts.receivable == _account_id(session, company_id, "ACCOUNTS_RECEIVABLE")
        assert accounts.payment is None
        assert accounts.expense is None

    def test_only_needed_slots_are_resolved(self, session, company_id):
        accounts = AccountDirectory(session).template_accounts(
            company_id, {Slot.SALES, Slot.PAYMENT}
        )
        assert accounts.sales is not None
        assert accounts.cash is None

    def test_cash_sale_payload(self, session, company_id, make_payload):
        payload = make_payload("SALE", "CASH_SALE", "5000.00", payment_mode=PaymentMode.BANK)
        resolved = AccountDirectory(session).resolve_voucher_input(company_id, payload)

        assert isinstance(resolved, TemplatedVoucherInput)
        assert resolved.amount == Decimal("5000.00")
        assert resolved.accounts.payment == _account_id(session, company_id, "BANK")
        assert resolved.accounts.sales == _account_id(session, company_id, "SALES")

    def test_expense_payment_payload(self, session, company_id, make_payload):
        payload = make_payload(
            "PAYMENT", "EXPENSE_PAYMENT", "800.00",
            payment_mode=PaymentMode.CASH, expense_account_code="RENT_EXPENSE",
        )
        resolved = AccountDirectory(session).resolve_voucher_input(company_id, payload)
        assert resolved.accounts.expense == _account_id(session, company_id, "RENT_EXPENSE")

    def test_missing_payment_mode(self, session, company_id, make_payload):
        payload = make_payload("SALE", "CASH_SALE", "10.00")
        with pytest.raises(InvalidTemplateInputError):
            AccountDirectory(session).resolve_voucher_input(company_id, payload)

    def test_missing_expense_account(self, session, company_id, make_payload):
        payload = make_payload("PAYMENT", "EXPENSE_PAYMENT", "10.00", payment_mode=PaymentMode.CASH)
        with pytest.raises(InvalidTemplateInputError):
            AccountDirectory(session).resolve_voucher_input(company_id, payload)

    def test_unknown_sub_kind(self, session, company_id, make_payload):
        payload = make_payload("CONTRA", "BANK_TO_BANK", "10.00")
        with pytest.raises(InvalidTemplateInputError):
            AccountDirectory(session).resolve_voucher_input(company_id, payload)

    def test_journal_payload(self, session, company_id, make_payload):
        payload = make_payload(
            "JOURNAL",
            amount=None,
            lines=(
                JournalLinePayload("RENT_EXPENSE", EntrySide.DEBIT, Decimal("50.00")),
                JournalLinePayload("CASH", EntrySide.CREDIT, Decimal("50.00")),
            ),
        )
        resolved = AccountDirectory(session).resolve_voucher_input(company_id, payload)

        assert isinstance(resolved, JournalVoucherInput)
        assert [line.account_id for line in resolved.lines] == [
            _account_id(session, company_id, "RENT_EXPENSE"),
            _account_id(session, company_id, "CASH"),
        ]

    def test_party_code_is_resolved(self, session, company_id, party_ids, make_payload):
        payload = make_payload("SALE", "CREDIT_SALE", "10.00", party_code="CUST001")
        resolved = AccountDirectory(session).resolve_voucher_input(company_id, payload)
        assert resolved.party_id == party_ids["CUST001"]

    def test_unknown_party_code(self, session, company_id, make_payload):
        payload = make_payload("SALE", "CREDIT_SALE", "10.00", party_code="NOBODY")
        with pytest.raises(PartyNotFoundError):
            AccountDirectory(session).resolve_voucher_input(company_id, payload)

    def test_unknown_kind(self, session, company_id):
        payload = VoucherPayload(kind="REFUND", voucher_date=TEST_DATE, amount=Decimal("10.00"))
        with pytest.raises(InvalidTemplateInputError) as exc_info:
            AccountDirectory(session).resolve_voucher_input(company_id, payload)
        assert exc_info.value.kind == "REFUND"
        assert exc_info.value.reason == "unknown voucher kind"

    @pytest.mark.parametrize("debit,credit", [("DEBIT", "CREDIT"), ("debit", "credit")])
    def test_journal_sides_as_strings(self, session, company_id, debit, credit):
        payload = VoucherPayload(
            kind="JOURNAL",
            voucher_date=TEST_DATE,
            lines=(
                JournalLinePayload("RENT_EXPENSE", debit, Decimal("10.00")),
                JournalLinePayload("CASH", credit, Decimal("10.00")),
            ),
        )
        resolved = AccountDirectory(session).resolve_voucher_input(company_id, payload)
        entries = generate_entries(resolved)
        assert [e.side for e in entries] == [EntrySide.DEBIT, EntrySide.CREDIT]

"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the Chart of Accounts -- the target of
    every entry.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - code is unique within a company (uq_account_company_code).
    - normal_balance is derived from account_type (assets and expenses are
      debit-normal, everything else credit-normal).
    - Role-to-account resolution requires exactly one active account per
      role (validated at provisioning, re-checked by AccountDirectory).

Failure modes:
    - AccountNotFoundError when a role or code has no account.
    - RoleBindingError when a role matches more than one account.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString, enum_type


class AccountType(str, Enum):
    """Accounting classification; governs the normal balance side."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


class AccountRole(str, Enum):
    """Coarse business role used to pick template accounts."""

    CASH = "CASH"
    BANK = "BANK"
    SALES = "SALES"
    PURCHASE = "PURCHASE"
    AR = "AR"
    AP = "AP"
    OWNER = "OWNER"


DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})


def normal_balance_for(account_type: AccountType) -> NormalBalance:
    """Normal side implied by the account type."""
    if AccountType(account_type) in DEBIT_NORMAL_TYPES:
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


class Account(TrackedBase):
    """
    Chart of Accounts entry.

    Contract:
        Account.code is unique per company.  ``role`` is optional:
        operational expense accounts (rent, salary) carry no template role
        and are addressed by code.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_account_company_code"),
        Index("idx_account_company_role", "company_id", "role"),
        Index("idx_account_type", "account_type"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id"),
        nullable=False,
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(
        enum_type(AccountType),
        nullable=False,
    )

    normal_balance: Mapped[NormalBalance] = mapped_column(
        enum_type(NormalBalance, length=10),
        nullable=False,
    )

    role: Mapped[AccountRole | None] = mapped_column(
        enum_type(AccountRole),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT

    @property
    def is_credit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.CREDIT

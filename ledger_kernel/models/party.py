"""
Module: ledger_kernel.models.party
Responsibility: ORM persistence for customers and suppliers.  A Party carries
    its opening balance as of ledger inception; everything after that is
    derived from posted entries that reference it.
Architecture position: Kernel > Models.  May import from db/ only.

Non-goals:
    Party CRUD lives outside the kernel.  The kernel only reads parties
    (party ledger, receivables, payables) and stamps party_id on vouchers.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString, enum_type
from ledger_kernel.db.types import Money
from ledger_kernel.models.account import AccountRole


class PartyType(str, Enum):
    """Which side of the business the party trades on."""

    CUSTOMER = "CUSTOMER"
    SUPPLIER = "SUPPLIER"
    BOTH = "BOTH"


class BalanceSide(str, Enum):
    """Presentation side of a balance."""

    DR = "DR"
    CR = "CR"


_LEDGER_ROLES = {
    PartyType.CUSTOMER: (AccountRole.AR,),
    PartyType.SUPPLIER: (AccountRole.AP,),
    PartyType.BOTH: (AccountRole.AR, AccountRole.AP),
}


class Party(TrackedBase):
    """
    External counterparty.

    Guarantees:
        - code is unique within a company.
        - opening_balance is non-negative; opening_side says which side it
          sits on.
    """

    __tablename__ = "parties"

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_party_company_code"),
        Index("idx_party_type", "party_type"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id"),
        nullable=False,
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    party_type: Mapped[PartyType] = mapped_column(enum_type(PartyType), nullable=False)

    opening_balance: Mapped[Decimal] = mapped_column(
        Money(),
        nullable=False,
        default=Decimal("0"),
    )

    opening_side: Mapped[BalanceSide] = mapped_column(
        enum_type(BalanceSide, length=2),
        nullable=False,
        default=BalanceSide.DR,
    )

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    @property
    def ledger_roles(self) -> tuple[AccountRole, ...]:
        """Control-account roles whose entries make up this party's ledger."""
        return _LEDGER_ROLES[PartyType(self.party_type)]

    @property
    def signed_opening_balance(self) -> Decimal:
        """Opening balance as a debit-positive signed amount."""
        if self.opening_side == BalanceSide.CR:
            return -self.opening_balance
        return self.opening_balance

    def __repr__(self) -> str:
        return f"<Party {self.code}: {self.name} ({self.party_type.value})>"

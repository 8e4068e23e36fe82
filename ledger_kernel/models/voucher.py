"""
Module: ledger_kernel.models.voucher
Responsibility: ORM persistence for voucher types, vouchers and their entries
    -- the single source of financial truth in this system.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - voucher_number is non-null iff status = POSTED
      (ck_voucher_number_iff_posted).
    - voucher_number is unique per (company, voucher type)
      (uq_voucher_company_type_number).
    - Every entry amount is strictly positive (ck_entry_amount_positive).
    - Debits equal credits per voucher (checked by the draft and posting
      services; is_balanced property for read-side assertions).
    - Immutability after POSTED (ORM listeners in db/immutability.py).

Failure modes:
    - IntegrityError on a duplicate voucher number or a non-positive amount.
    - ImmutabilityViolationError on UPDATE/DELETE of a posted voucher or of
      its entries.

Audit relevance:
    Entries of POSTED vouchers are the authoritative financial record.  Every
    book and report derives from these rows; no balance is stored anywhere.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString, enum_type
from ledger_kernel.db.types import Money

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.party import Party


class VoucherKind(str, Enum):
    """Transaction category; one VoucherType row per kind per company."""

    SALE = "SALE"
    PURCHASE = "PURCHASE"
    RECEIPT = "RECEIPT"
    PAYMENT = "PAYMENT"
    CONTRA = "CONTRA"
    JOURNAL = "JOURNAL"


class VoucherStatus(str, Enum):
    """Lifecycle status of a voucher.

    Contract: Transitions are one-way: DRAFT -> POSTED.  CANCELLED is
    recognised by reports but no kernel operation produces it.
    """

    DRAFT = "draft"
    POSTED = "posted"
    CANCELLED = "cancelled"


class EntrySide(str, Enum):
    """Which side of the voucher this entry is on.

    Guarantees: Amount is always positive; side determines sign convention.
    """

    DEBIT = "debit"
    CREDIT = "credit"

    @classmethod
    def _missing_(cls, value):
        # API callers send "DEBIT" / "CREDIT"
        if isinstance(value, str):
            for member in cls:
                if member.value == value.lower():
                    return member
        return None


class VoucherType(TrackedBase):
    """Per-company voucher category.  Sequence numbers run per voucher type."""

    __tablename__ = "voucher_types"

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_voucher_type_company_code"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id"),
        nullable=False,
    )

    code: Mapped[VoucherKind] = mapped_column(enum_type(VoucherKind), nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<VoucherType {self.code.value}>"


class Voucher(TrackedBase):
    """
    Transaction header grouping a balanced set of entries.

    Contract:
        Created DRAFT; its entries may be regenerated wholesale while DRAFT.
        Posting assigns voucher_number and posted_at and freezes the row.
    """

    __tablename__ = "vouchers"

    __table_args__ = (
        UniqueConstraint(
            "company_id",
            "voucher_type_id",
            "voucher_number",
            name="uq_voucher_company_type_number",
        ),
        CheckConstraint(
            "(status = 'posted' AND voucher_number IS NOT NULL) OR "
            "(status <> 'posted' AND voucher_number IS NULL)",
            name="ck_voucher_number_iff_posted",
        ),
        Index("idx_voucher_company_status", "company_id", "status"),
        Index("idx_voucher_date", "voucher_date"),
        Index("idx_voucher_party", "party_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id"),
        nullable=False,
    )

    voucher_type_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("voucher_types.id"),
        nullable=False,
    )

    # Template selector inside the kind (CASH_SALE, EXPENSE_PAYMENT, ...)
    sub_kind: Mapped[str | None] = mapped_column(String(50), nullable=True)

    status: Mapped[VoucherStatus] = mapped_column(
        enum_type(VoucherStatus),
        nullable=False,
        default=VoucherStatus.DRAFT,
    )

    voucher_date: Mapped[date] = mapped_column(Date, nullable=False)

    narration: Mapped[str | None] = mapped_column(String(500), nullable=True)

    party_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("parties.id"),
        nullable=True,
    )

    voucher_number: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    entries: Mapped[list["Entry"]] = relationship(
        back_populates="voucher",
        cascade="all, delete-orphan",
        order_by="Entry.line_no",
        lazy="selectin",
    )

    voucher_type: Mapped[VoucherType] = relationship(lazy="joined", innerjoin=True)

    party: Mapped["Party | None"] = relationship()

    def __repr__(self) -> str:
        number = self.voucher_number if self.voucher_number is not None else "-"
        return f"<Voucher {self.id} #{number} [{self.status.value}]>"

    @property
    def kind(self) -> VoucherKind:
        return self.voucher_type.code

    @property
    def is_draft(self) -> bool:
        return self.status == VoucherStatus.DRAFT

    @property
    def is_posted(self) -> bool:
        return self.status == VoucherStatus.POSTED

    @property
    def total_debits(self) -> Decimal:
        return sum(
            (e.amount for e in self.entries if e.side == EntrySide.DEBIT),
            Decimal("0"),
        )

    @property
    def total_credits(self) -> Decimal:
        return sum(
            (e.amount for e in self.entries if e.side == EntrySide.CREDIT),
            Decimal("0"),
        )

    @property
    def is_balanced(self) -> bool:
        """Exact debit/credit equality over the loaded entries."""
        return self.total_debits == self.total_credits


class Entry(TrackedBase):
    """
    One debit or credit leg of a voucher.

    Guarantees:
        - amount > 0; side carries the sign.
        - party_id mirrors the voucher's party so AR/AP lines can be
          selected per counterparty without joining the header.
    """

    __tablename__ = "entries"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_entry_amount_positive"),
        Index("idx_entry_voucher", "voucher_id"),
        Index("idx_entry_account", "account_id"),
        Index("idx_entry_party", "party_id"),
    )

    voucher_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("vouchers.id", ondelete="CASCADE"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    side: Mapped[EntrySide] = mapped_column(enum_type(EntrySide, length=10), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Money(), nullable=False)

    party_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("parties.id"),
        nullable=True,
    )

    # Generation order inside the voucher
    line_no: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    voucher: Mapped[Voucher] = relationship(back_populates="entries")

    account: Mapped["Account"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<Entry {self.side.value} {self.amount}>"

    @property
    def is_debit(self) -> bool:
        return self.side == EntrySide.DEBIT

    @property
    def is_credit(self) -> bool:
        return self.side == EntrySide.CREDIT

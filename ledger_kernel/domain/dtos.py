"""
DTOs -- Immutable data structures crossing the kernel boundary.

Responsibility:
    Business payloads accepted from the outer layer (VoucherPayload,
    JournalLinePayload) and the read models returned by the selectors
    (LedgerView, TrialBalance, ProfitAndLoss, PartyBalance) and by posting
    (PostingResult).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Selectors build these from ORM rows;
    callers never receive ORM entities from a report.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.models.account import AccountType, NormalBalance
from ledger_kernel.models.party import BalanceSide, PartyType
from ledger_kernel.models.voucher import EntrySide, VoucherKind, VoucherStatus


class PaymentMode(str, Enum):
    """How a templated voucher is settled; selects the payment account."""

    CASH = "CASH"
    BANK = "BANK"


# ---------------------------------------------------------------------------
# Inbound payloads (account codes and party codes, not identities)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JournalLinePayload:
    account_code: str
    side: EntrySide
    amount: Decimal


@dataclass(frozen=True)
class VoucherPayload:
    """
    Business-level voucher request, before account resolution.

    ``amount``, ``payment_mode`` and ``expense_account_code`` apply to
    templated kinds; ``lines`` applies to JOURNAL only.
    """

    kind: VoucherKind
    voucher_date: date
    sub_kind: str | None = None
    amount: Decimal | None = None
    payment_mode: PaymentMode | None = None
    expense_account_code: str | None = None
    lines: tuple[JournalLinePayload, ...] = ()
    narration: str | None = None
    party_code: str | None = None
    party_id: UUID | None = None


# ---------------------------------------------------------------------------
# Posting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PostingResult:
    voucher_id: UUID
    voucher_number: int
    status: VoucherStatus
    posted_at: datetime
    attempts: int = 1


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerRow:
    """
    One voucher's effect on a book.

    ``balance`` is the running balance after this row, signed so that
    positive means the book's normal side; ``side`` labels where it sits.
    """

    voucher_date: date
    voucher_id: UUID
    voucher_number: int | None
    voucher_kind: VoucherKind
    narration: str | None
    debit: Decimal
    credit: Decimal
    balance: Decimal
    side: BalanceSide


@dataclass(frozen=True)
class AccountHeader:
    account_id: UUID
    code: str
    name: str
    account_type: AccountType
    normal_balance: NormalBalance


@dataclass(frozen=True)
class PartyHeader:
    party_id: UUID
    code: str
    name: str
    party_type: PartyType


@dataclass(frozen=True)
class LedgerView:
    """Account book or party ledger over an optional date window."""

    from_date: date | None
    to_date: date | None
    opening_balance: Decimal
    opening_side: BalanceSide
    rows: tuple[LedgerRow, ...]
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal
    closing_side: BalanceSide
    account: AccountHeader | None = None
    party: PartyHeader | None = None


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrialBalanceRow:
    account_id: UUID
    code: str
    name: str
    account_type: AccountType
    debit: Decimal
    credit: Decimal

    @property
    def net(self) -> Decimal:
        return self.debit - self.credit


@dataclass(frozen=True)
class TrialBalance:
    rows: tuple[TrialBalanceRow, ...]
    total_debit: Decimal
    total_credit: Decimal
    from_date: date | None = None
    to_date: date | None = None

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit


@dataclass(frozen=True)
class ProfitAndLossLine:
    account_id: UUID
    code: str
    name: str
    amount: Decimal


@dataclass(frozen=True)
class ProfitAndLoss:
    from_date: date
    to_date: date
    income: tuple[ProfitAndLossLine, ...] = field(default_factory=tuple)
    expenses: tuple[ProfitAndLossLine, ...] = field(default_factory=tuple)
    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")

    @property
    def net_profit(self) -> Decimal:
        return self.total_income - self.total_expenses


@dataclass(frozen=True)
class PartyBalance:
    """Outstanding balance of one party (receivables or payables report)."""

    party_id: UUID
    code: str
    name: str
    balance: Decimal
    side: BalanceSide

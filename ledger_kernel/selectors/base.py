"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    form the read side of the kernel: books and reports derived from posted
    entries, without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - No stored balances: every figure is summed from POSTED entries at query
      time.  DRAFT and CANCELLED vouchers never contribute.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC
from datetime import date

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from ledger_kernel.db.types import Money
from ledger_kernel.models.voucher import Entry, EntrySide, Voucher


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Guarantees:
        - session is stored as a public attribute for subclass query use.
        - No commit, flush, add, or delete operations are performed.
    """

    def __init__(self, session: Session):
        self.session = session


def debit_sum(label: str = "debit_total"):
    """SUM of debit amounts, typed as Money so it comes back as Decimal."""
    return func.sum(
        case((Entry.side == EntrySide.DEBIT, Entry.amount), else_=0),
        type_=Money(),
    ).label(label)


def credit_sum(label: str = "credit_total"):
    return func.sum(
        case((Entry.side == EntrySide.CREDIT, Entry.amount), else_=0),
        type_=Money(),
    ).label(label)


def within_window(query, from_date: date | None, to_date: date | None):
    """Restrict a Voucher-joined query to an inclusive date window."""
    if from_date is not None:
        query = query.where(Voucher.voucher_date >= from_date)
    if to_date is not None:
        query = query.where(Voucher.voucher_date <= to_date)
    return query

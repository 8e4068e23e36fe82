"""
Module: ledger_kernel.models.sequence_counter
Responsibility: ORM persistence for named monotonic counters.  Voucher
    numbering keeps one row per (company, voucher type).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - name is unique; current_value only ever increases.
    - Increments happen under a row lock (SELECT ... FOR UPDATE) taken by
      SequenceService inside the posting transaction.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with the last value issued.
    """

    __tablename__ = "sequence_counters"

    # e.g. "voucher:<company_id>:<voucher_type_id>"
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.current_value}>"

"""
SequenceService -- locked-counter voucher numbering.

Responsibility:
    Allocates strictly monotonic, gap-free voucher numbers per
    (company, voucher type) using a locked counter row.

Architecture position:
    Kernel > Services -- imperative shell.
    Called only by VoucherPostingService inside the posting transaction.

Invariants enforced:
    - Monotonic numbering via ``SELECT ... FOR UPDATE`` on the counter row;
      the increment commits or rolls back with the posting itself, so a
      failed post never consumes a number.
    - A counter created lazily starts from the highest number already
      posted for its (company, voucher type), so numbering stays contiguous
      with any vouchers that predate the counter.

Failure modes:
    - Under SERIALIZABLE isolation a racing allocation surfaces as a
      serialization failure from the driver; VoucherPostingService maps and
      retries it.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence_counter import SequenceCounter
from ledger_kernel.models.voucher import Voucher, VoucherStatus

logger = get_logger("services.sequence")


def voucher_sequence_name(company_id: UUID, voucher_type_id: UUID) -> str:
    return f"voucher:{company_id}:{voucher_type_id}"


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Returns the next strictly-monotonic integer for a named sequence.
        The increment is only committed when the caller's transaction
        commits.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        with session_scope(get_serializable_session_factory()) as session:
            number = SequenceService(session).next_voucher_number(cid, vtid)
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _max_posted_number(self, company_id: UUID, voucher_type_id: UUID) -> int:
        value = self._session.execute(
            select(func.max(Voucher.voucher_number)).where(
                Voucher.company_id == company_id,
                Voucher.voucher_type_id == voucher_type_id,
                Voucher.status == VoucherStatus.POSTED,
            )
        ).scalar_one_or_none()
        return int(value or 0)

    def ensure_counter(self, sequence_name: str, start_at: int = 0) -> SequenceCounter:
        """Return the locked counter row, creating it at ``start_at`` if absent."""
        counter = self._locked_counter(sequence_name)
        if counter is None:
            counter = self._create_counter(sequence_name, start_at)
        return counter

    def _create_counter(self, sequence_name: str, start_at: int) -> SequenceCounter:
        # A concurrent creator wins the unique name; the loser rolls back to
        # the savepoint and locks the winner's row instead.
        savepoint = self._session.begin_nested()
        try:
            counter = SequenceCounter(name=sequence_name, current_value=start_at)
            self._session.add(counter)
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            logger.debug(
                "sequence_counter_race_retry",
                extra={"sequence_name": sequence_name},
            )
            savepoint.rollback()
            return self._locked_counter(sequence_name)

        logger.debug(
            "sequence_counter_created",
            extra={"sequence_name": sequence_name, "start_at": start_at},
        )
        return counter

    def _increment(self, counter: SequenceCounter) -> int:
        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": counter.name, "value": counter.current_value},
        )
        return counter.current_value

    def next_value(self, sequence_name: str, start_at: int = 0) -> int:
        """
        Lock, increment and return the named counter.

        Postconditions:
            Returns an integer > 0 strictly greater than any previously
            committed value for this sequence.  The counter row stays locked
            until the transaction completes.
        """
        return self._increment(self.ensure_counter(sequence_name, start_at))

    def next_voucher_number(self, company_id: UUID, voucher_type_id: UUID) -> int:
        """
        Next voucher number for (company, voucher type), starting at 1.

        A missing counter is created at the highest number already posted,
        so numbering continues where it left off.
        """
        name = voucher_sequence_name(company_id, voucher_type_id)
        counter = self._locked_counter(name)
        if counter is None:
            counter = self._create_counter(
                name, self._max_posted_number(company_id, voucher_type_id)
            )
        return self._increment(counter)

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing (no lock)."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.name == sequence_name
            )
        ).scalar_one_or_none()

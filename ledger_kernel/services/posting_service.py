"""
VoucherPostingService -- the DRAFT -> POSTED transition.

Responsibility:
    Re-validates a draft voucher, assigns its voucher number, stamps
    posted_at and commits, all as one serializable unit.  Serialization
    failures raised by the database are retried with bounded exponential
    backoff; every other failure is terminal.

Architecture position:
    Kernel > Services -- imperative shell.  Unlike the flush-only services,
    this one OWNS its transactions: a retry needs a fresh transaction, so
    each attempt runs in its own session_scope on the serializable factory.

Invariants enforced:
    - Only DRAFT vouchers post (InvalidStateError otherwise, including the
      second of two posts of the same voucher).
    - At least two entries, every amount positive, debits == credits
      exactly (no tolerance at post time).
    - Voucher numbers per (company, voucher type) are unique, contiguous and
      increasing: SequenceService increments a locked counter row inside
      the same transaction that flips the status.

Failure modes:
    - VoucherNotFoundError, InvalidStateError, UnbalancedEntriesError:
      terminal, never retried.
    - SerializationConflictError: raised after max_attempts conflicting
      attempts.

Audit relevance:
    voucher_posted is logged once per successful post with the number and
    attempt count; posting_conflict_retry once per retried conflict.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.db.engine import get_serializable_session_factory, session_scope
from ledger_kernel.domain.balance import validate_for_posting
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import PostingResult
from ledger_kernel.exceptions import (
    InvalidStateError,
    SerializationConflictError,
    VoucherNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.voucher import Voucher, VoucherStatus
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.posting")

# SQLSTATEs PostgreSQL uses for serialization failure and deadlock
SERIALIZATION_SQLSTATES = frozenset({"40001", "40P01"})

_CONFLICT_MESSAGES = (
    "could not serialize access",
    "deadlock detected",
    "database is locked",
)


def is_serialization_failure(exc: BaseException) -> bool:
    """True if a DBAPI error means "another transaction won; try again"."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in SERIALIZATION_SQLSTATES:
        return True
    message = str(orig if orig is not None else exc).lower()
    return any(fragment in message for fragment in _CONFLICT_MESSAGES)


@dataclass(frozen=True)
class PostingRetryPolicy:
    """
    Bounded exponential backoff for serialization conflicts.

    Attempt n (1-based) that fails waits min(base_delay * 2**(n-1), max_delay)
    before attempt n+1.
    """

    max_attempts: int = 5
    base_delay: float = 0.05
    max_delay: float = 1.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


class VoucherPostingService:
    """
    Posts vouchers with retry on serialization conflicts.

    Usage:
        service = VoucherPostingService(clock=SystemClock())
        result = service.post(voucher_id)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
        retry_policy: PostingRetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._retry_policy = retry_policy or PostingRetryPolicy()
        self._sleep = sleep

    def post(self, voucher_id: UUID) -> PostingResult:
        """
        Post a DRAFT voucher.

        Postconditions:
            The voucher is POSTED with a voucher number one above the
            previous number for its (company, voucher type), or nothing
            changed at all.

        Raises:
            VoucherNotFoundError, InvalidStateError, UnbalancedEntriesError,
            SerializationConflictError.
        """
        with LogContext.bind(voucher_id=voucher_id):
            return self._post_with_retry(voucher_id)

    def _post_with_retry(self, voucher_id: UUID) -> PostingResult:
        factory = self._session_factory or get_serializable_session_factory()
        policy = self._retry_policy

        attempt = 0
        while True:
            attempt += 1
            try:
                with session_scope(factory) as session:
                    result = self._post_once(session, voucher_id, attempt)
            except DBAPIError as exc:
                if not is_serialization_failure(exc):
                    raise
                if attempt >= policy.max_attempts:
                    logger.error(
                        "posting_conflict_exhausted",
                        extra={"voucher_id": str(voucher_id), "attempts": attempt},
                    )
                    raise SerializationConflictError("post", attempts=attempt) from exc
                delay = policy.delay_for(attempt)
                logger.warning(
                    "posting_conflict_retry",
                    extra={
                        "voucher_id": str(voucher_id),
                        "attempt": attempt,
                        "next_delay": delay,
                    },
                )
                self._sleep(delay)
                continue

            logger.info(
                "voucher_posted",
                extra={
                    "voucher_id": str(voucher_id),
                    "voucher_number": result.voucher_number,
                    "attempts": attempt,
                },
            )
            return result

    def _post_once(self, session: Session, voucher_id: UUID, attempt: int) -> PostingResult:
        voucher = session.execute(
            select(Voucher)
            .where(Voucher.id == voucher_id)
            .with_for_update(of=Voucher)
            .execution_options(populate_existing=True)
        ).unique().scalar_one_or_none()
        if voucher is None:
            raise VoucherNotFoundError(str(voucher_id))

        if voucher.status != VoucherStatus.DRAFT:
            raise InvalidStateError(
                str(voucher_id),
                voucher.status.value,
                f"Only DRAFT vouchers can be posted (status is {voucher.status.value})",
            )

        validate_for_posting(voucher.entries)

        number = SequenceService(session).next_voucher_number(
            voucher.company_id, voucher.voucher_type_id
        )
        posted_at = self._clock.now()

        voucher.status = VoucherStatus.POSTED
        voucher.voucher_number = number
        voucher.posted_at = posted_at
        session.flush()

        return PostingResult(
            voucher_id=voucher.id,
            voucher_number=number,
            status=VoucherStatus.POSTED,
            posted_at=posted_at,
            attempts=attempt,
        )

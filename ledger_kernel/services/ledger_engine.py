"""
LedgerEngine -- the kernel's outward-facing facade for one company.

Responsibility:
    The single entry point an HTTP layer (or script) calls: payload
    resolution, the draft lifecycle, posting, and the books and reports.
    Each call is one atomic unit of work.

Architecture position:
    Kernel > Services.  Owns transaction boundaries: every operation runs in
    its own session_scope (commit on success, rollback on any exception),
    except post(), whose retrying service opens a SERIALIZABLE scope per
    attempt.

Invariants enforced:
    - No partial state is observable: a failure anywhere in create, update,
      delete or post rolls the whole operation back.
    - Immutability listeners are registered before any write.
    - Every lookup is scoped to the engine's company.

Failure modes:
    - Propagates the kernel's typed exceptions unchanged (NotFoundError,
      InvalidStateError, UnbalancedEntriesError, InvalidTemplateInputError,
      SerializationConflictError, RoleBindingError).
"""

from contextlib import contextmanager
from datetime import date
from typing import Iterator
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.db.engine import session_scope
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    LedgerView,
    PartyBalance,
    PostingResult,
    ProfitAndLoss,
    TrialBalance,
    VoucherPayload,
)
from ledger_kernel.domain.templates import ResolvedVoucherInput, TemplateRegistry
from ledger_kernel.exceptions import CompanyNotFoundError
from ledger_kernel.logging_config import LogContext
from ledger_kernel.models.account import AccountRole
from ledger_kernel.models.company import Company
from ledger_kernel.models.voucher import Voucher
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.selectors.party_selector import PartySelector
from ledger_kernel.selectors.voucher_selector import VoucherSelector
from ledger_kernel.services.account_directory import AccountDirectory
from ledger_kernel.services.draft_service import DraftLifecycleService
from ledger_kernel.services.posting_service import (
    PostingRetryPolicy,
    VoucherPostingService,
)

_ROLE_VALUES = frozenset(role.value for role in AccountRole)


def company_id_for_code(code: str, session_factory: sessionmaker[Session] | None = None) -> UUID:
    """Look up a provisioned company by its code."""
    with session_scope(session_factory) as session:
        company_id = session.execute(
            select(Company.id).where(Company.code == code)
        ).scalar_one_or_none()
    if company_id is None:
        raise CompanyNotFoundError(code)
    return company_id


class LedgerEngine:
    """
    Facade over the draft lifecycle, posting and balance derivation.

    Usage:
        engine = LedgerEngine(company_id)
        draft = engine.create_draft(VoucherPayload(
            kind=VoucherKind.SALE, sub_kind="CASH_SALE",
            amount=Decimal("5000.00"), voucher_date=date(2024, 4, 1),
        ))
        result = engine.post(draft.id)
        book = engine.get_account_book(AccountRole.CASH)

    Draft operations accept either a VoucherPayload (codes, resolved here)
    or an already-resolved TemplatedVoucherInput / JournalVoucherInput.
    Vouchers are returned detached with entries and voucher type loaded.
    """

    def __init__(
        self,
        company_id: UUID,
        session_factory: sessionmaker[Session] | None = None,
        posting_session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
        retry_policy: PostingRetryPolicy | None = None,
        registry: TemplateRegistry | None = None,
    ):
        self.company_id = company_id
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._registry = registry
        self._poster = VoucherPostingService(
            session_factory=posting_session_factory,
            clock=self._clock,
            retry_policy=retry_policy,
        )
        register_immutability_listeners()

    @classmethod
    def for_company_code(cls, code: str, **kwargs) -> "LedgerEngine":
        return cls(company_id_for_code(code, kwargs.get("session_factory")), **kwargs)

    @contextmanager
    def _scope(self, **log_fields) -> Iterator[Session]:
        with LogContext.bind(company_id=self.company_id, **log_fields):
            with session_scope(self._session_factory) as session:
                yield session

    def _resolve(self, session: Session, voucher_input) -> ResolvedVoucherInput:
        if isinstance(voucher_input, VoucherPayload):
            return AccountDirectory(session, self._registry).resolve_voucher_input(
                self.company_id, voucher_input
            )
        return voucher_input

    def _require_own_voucher(self, session: Session, voucher_id: UUID) -> None:
        VoucherSelector(session).get_voucher(voucher_id, self.company_id)

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def resolve_voucher_input(self, payload: VoucherPayload) -> ResolvedVoucherInput:
        with self._scope() as session:
            return self._resolve(session, payload)

    def create_draft(self, voucher_input: VoucherPayload | ResolvedVoucherInput) -> Voucher:
        with self._scope() as session:
            resolved = self._resolve(session, voucher_input)
            voucher = DraftLifecycleService(session, self._registry).create_draft(
                self.company_id, resolved
            )
            voucher_id = voucher.id
        return self.get_voucher(voucher_id)

    def update_draft(
        self,
        voucher_id: UUID,
        voucher_input: VoucherPayload | ResolvedVoucherInput,
    ) -> Voucher:
        with self._scope(voucher_id=voucher_id) as session:
            self._require_own_voucher(session, voucher_id)
            resolved = self._resolve(session, voucher_input)
            DraftLifecycleService(session, self._registry).update_draft(voucher_id, resolved)
        return self.get_voucher(voucher_id)

    def delete_draft(self, voucher_id: UUID) -> dict:
        with self._scope(voucher_id=voucher_id) as session:
            self._require_own_voucher(session, voucher_id)
            DraftLifecycleService(session, self._registry).delete_draft(voucher_id)
        return {"deleted": True}

    def post(self, voucher_id: UUID) -> PostingResult:
        with self._scope(voucher_id=voucher_id) as session:
            self._require_own_voucher(session, voucher_id)
        with LogContext.bind(company_id=self.company_id):
            return self._poster.post(voucher_id)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get_voucher(self, voucher_id: UUID) -> Voucher:
        with self._scope() as session:
            return VoucherSelector(session).get_voucher(voucher_id, self.company_id)

    def list_drafts(self) -> list[Voucher]:
        with self._scope() as session:
            return VoucherSelector(session).list_drafts(self.company_id)

    def get_account_book(
        self,
        account: AccountRole | str,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> LedgerView:
        """
        Running balance of an account, given by role or by account code.

        A string that names an AccountRole is treated as the role.
        """
        with self._scope() as session:
            directory = AccountDirectory(session, self._registry)
            if account in _ROLE_VALUES:
                target = directory.account_for_role(self.company_id, AccountRole(account))
            else:
                target = directory.account_for_code(self.company_id, account)
            return LedgerSelector(session).account_book(
                self.company_id, target, from_date, to_date
            )

    def get_party_ledger(
        self,
        party_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> LedgerView:
        with self._scope() as session:
            return PartySelector(session).party_ledger(
                self.company_id, party_id, from_date, to_date
            )

    def get_trial_balance(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> TrialBalance:
        with self._scope() as session:
            return LedgerSelector(session).trial_balance(self.company_id, from_date, to_date)

    def get_profit_and_loss(self, from_date: date, to_date: date) -> ProfitAndLoss:
        with self._scope() as session:
            return LedgerSelector(session).profit_and_loss(self.company_id, from_date, to_date)

    def get_receivables(self) -> list[PartyBalance]:
        with self._scope() as session:
            return PartySelector(session).receivables(self.company_id)

    def get_payables(self) -> list[PartyBalance]:
        with self._scope() as session:
            return PartySelector(session).payables(self.company_id)

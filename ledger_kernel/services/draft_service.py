"""
DraftLifecycleService -- create, regenerate and delete DRAFT vouchers.

Responsibility:
    Persists a voucher header and the entries the Template Engine generates
    for it.  While a voucher is DRAFT its entries may be rebuilt wholesale
    from a new input; the old entry set is deleted, never patched.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes inside the caller's
    transaction (LedgerEngine wraps each call in one session_scope), so
    every operation is one atomic unit.

Invariants enforced:
    - Entries are generated and validated BEFORE anything is written; an
      UnbalancedEntriesError or InvalidTemplateInputError leaves no trace.
    - update/delete require status = DRAFT (InvalidStateError otherwise).
    - The voucher type (kind) is fixed at creation.
    - Every entry account and the party belong to the voucher's company.
    - party_id is copied onto every entry.

Failure modes:
    - CompanyNotFoundError, VoucherTypeNotFoundError, AccountNotFoundError,
      PartyNotFoundError, VoucherNotFoundError.
    - InvalidStateError, InvalidTemplateInputError, UnbalancedEntriesError.
"""

from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.balance import validate_draft_entries
from ledger_kernel.domain.templates import (
    GeneratedEntry,
    ResolvedVoucherInput,
    generate_entries,
    parse_voucher_kind,
)
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    InvalidStateError,
    PartyNotFoundError,
    VoucherNotFoundError,
    VoucherTypeNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.party import Party
from ledger_kernel.models.voucher import (
    Entry,
    Voucher,
    VoucherStatus,
    VoucherType,
)
from ledger_kernel.services.base import BaseService

logger = get_logger("services.draft")


class DraftLifecycleService(BaseService):
    """
    Draft voucher lifecycle.

    Contract:
        create_draft -> DRAFT voucher with validated entries.
        update_draft -> same voucher, header replaced, entries regenerated.
        delete_draft -> voucher and entries gone.

    Non-goals:
        - Does NOT post (VoucherPostingService).
        - Does NOT resolve roles or codes (AccountDirectory).
    """

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_draft(self, company_id: UUID, voucher_input: ResolvedVoucherInput) -> Voucher:
        self._require_company(company_id)
        voucher_type = self._voucher_type(company_id, voucher_input.kind)

        entries = self._generate(company_id, voucher_input)

        voucher = Voucher(
            company_id=company_id,
            voucher_type_id=voucher_type.id,
            voucher_type=voucher_type,
            sub_kind=voucher_input.sub_kind,
            status=VoucherStatus.DRAFT,
            voucher_date=voucher_input.voucher_date,
            narration=voucher_input.narration,
            party_id=voucher_input.party_id,
        )
        voucher.entries = self._build_entries(entries, voucher_input.party_id)
        self.session.add(voucher)
        self.session.flush()

        logger.info(
            "draft_created",
            extra={
                "voucher_id": str(voucher.id),
                "voucher_kind": voucher_type.code.value,
                "sub_kind": voucher.sub_kind,
                "entry_count": len(voucher.entries),
            },
        )
        return voucher

    def update_draft(self, voucher_id: UUID, voucher_input: ResolvedVoucherInput) -> Voucher:
        voucher = self._locked_voucher(voucher_id)
        self._require_draft(voucher, "updated")
        kind = parse_voucher_kind(voucher_input.kind, voucher_input.sub_kind)
        if kind != voucher.voucher_type.code:
            raise InvalidStateError(
                str(voucher_id),
                voucher.status.value,
                f"Voucher kind cannot change from {voucher.voucher_type.code.value} "
                f"to {kind.value}",
            )

        entries = self._generate(voucher.company_id, voucher_input)

        previous_count = len(voucher.entries)
        voucher.entries.clear()
        self.session.flush()

        voucher.sub_kind = voucher_input.sub_kind
        voucher.voucher_date = voucher_input.voucher_date
        voucher.narration = voucher_input.narration
        voucher.party_id = voucher_input.party_id
        voucher.entries.extend(self._build_entries(entries, voucher_input.party_id))
        self.session.flush()

        logger.info(
            "draft_regenerated",
            extra={
                "voucher_id": str(voucher.id),
                "sub_kind": voucher.sub_kind,
                "entries_removed": previous_count,
                "entry_count": len(voucher.entries),
            },
        )
        return voucher

    def delete_draft(self, voucher_id: UUID) -> None:
        voucher = self._locked_voucher(voucher_id)
        self._require_draft(voucher, "deleted")
        entry_count = len(voucher.entries)
        self.session.delete(voucher)
        self.session.flush()

        logger.info(
            "draft_deleted",
            extra={"voucher_id": str(voucher_id), "entries_removed": entry_count},
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _generate(
        self,
        company_id: UUID,
        voucher_input: ResolvedVoucherInput,
    ) -> tuple[GeneratedEntry, ...]:
        entries = generate_entries(voucher_input, self.registry)
        validate_draft_entries(entries)
        self._require_accounts(company_id, {e.account_id for e in entries})
        if voucher_input.party_id is not None:
            self._require_party(company_id, voucher_input.party_id)
        return entries

    @staticmethod
    def _build_entries(entries, party_id: UUID | None) -> list[Entry]:
        return [
            Entry(
                account_id=e.account_id,
                side=e.side,
                amount=e.amount,
                party_id=party_id,
                line_no=line_no,
            )
            for line_no, e in enumerate(entries, start=1)
        ]

    def _locked_voucher(self, voucher_id: UUID) -> Voucher:
        voucher = self.session.execute(
            select(Voucher)
            .where(Voucher.id == voucher_id)
            .with_for_update(of=Voucher)
            .execution_options(populate_existing=True)
        ).unique().scalar_one_or_none()
        if voucher is None:
            raise VoucherNotFoundError(str(voucher_id))
        return voucher

    def _voucher_type(self, company_id: UUID, kind) -> VoucherType:
        kind = parse_voucher_kind(kind)
        voucher_type = self.session.execute(
            select(VoucherType).where(
                VoucherType.company_id == company_id,
                VoucherType.code == kind,
            )
        ).scalar_one_or_none()
        if voucher_type is None:
            raise VoucherTypeNotFoundError(str(company_id), kind.value)
        return voucher_type

    def _require_accounts(self, company_id: UUID, account_ids: set[UUID]) -> None:
        found = set(
            self.session.execute(
                select(Account.id).where(
                    Account.company_id == company_id,
                    Account.id.in_(account_ids),
                )
            ).scalars()
        )
        missing = account_ids - found
        if missing:
            raise AccountNotFoundError(str(company_id), f"id {sorted(map(str, missing))[0]}")

    def _require_party(self, company_id: UUID, party_id: UUID) -> None:
        party = self.session.get(Party, party_id)
        if party is None or party.company_id != company_id:
            raise PartyNotFoundError(str(party_id))

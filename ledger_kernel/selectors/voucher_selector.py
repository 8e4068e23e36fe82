"""
Module: ledger_kernel.selectors.voucher_selector
Responsibility: Voucher lookups and the draft list.
Architecture position: Kernel > Selectors.

Unlike the report selectors this one returns ORM Voucher rows (with entries
and voucher type eagerly loaded) because the draft operations hand the
voucher itself back to their caller.
"""

from uuid import UUID

from sqlalchemy import select

from ledger_kernel.exceptions import VoucherNotFoundError
from ledger_kernel.models.voucher import Voucher, VoucherStatus
from ledger_kernel.selectors.base import BaseSelector


class VoucherSelector(BaseSelector):

    def get_voucher(self, voucher_id: UUID, company_id: UUID | None = None) -> Voucher:
        query = (
            select(Voucher)
            .where(Voucher.id == voucher_id)
            .execution_options(populate_existing=True)
        )
        if company_id is not None:
            query = query.where(Voucher.company_id == company_id)
        voucher = self.session.execute(query).unique().scalar_one_or_none()
        if voucher is None:
            raise VoucherNotFoundError(str(voucher_id))
        return voucher

    def list_drafts(self, company_id: UUID) -> list[Voucher]:
        """DRAFT vouchers, newest first."""
        return list(
            self.session.execute(
                select(Voucher)
                .where(
                    Voucher.company_id == company_id,
                    Voucher.status == VoucherStatus.DRAFT,
                )
                .order_by(Voucher.created_at.desc(), Voucher.id.desc())
            ).unique().scalars()
        )

    def list_posted(self, company_id: UUID, voucher_type_id: UUID | None = None) -> list[Voucher]:
        """POSTED vouchers in number order."""
        query = select(Voucher).where(
            Voucher.company_id == company_id,
            Voucher.status == VoucherStatus.POSTED,
        )
        if voucher_type_id is not None:
            query = query.where(Voucher.voucher_type_id == voucher_type_id)
        return list(
            self.session.execute(
                query.order_by(Voucher.voucher_type_id, Voucher.voucher_number)
            ).unique().scalars()
        )

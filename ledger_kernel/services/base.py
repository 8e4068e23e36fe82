"""
BaseService -- shared constructor and guards for the write-side services.

Responsibility:
    Binds a service to the caller's Session and to the template registry
    it generates or resolves entries with, and holds the guards more than
    one service needs (company existence, DRAFT-only operations).

Architecture position:
    Kernel > Services.

Invariants enforced:
    Services flush; they never commit or roll back.  The LedgerEngine
    facade (or the posting retry loop) owns the transaction, so create,
    update, delete and post are each one atomic unit.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.templates import TemplateRegistry, get_default_registry
from ledger_kernel.exceptions import CompanyNotFoundError, InvalidStateError
from ledger_kernel.models.company import Company
from ledger_kernel.models.voucher import Voucher, VoucherStatus


class BaseService:

    def __init__(self, session: Session, registry: TemplateRegistry | None = None):
        self.session = session
        self.registry = registry or get_default_registry()

    def _require_company(self, company_id: UUID) -> Company:
        company = self.session.get(Company, company_id)
        if company is None:
            raise CompanyNotFoundError(str(company_id))
        return company

    @staticmethod
    def _require_draft(voucher: Voucher, action: str) -> None:
        """Raise InvalidStateError unless the voucher is still a DRAFT."""
        if voucher.status != VoucherStatus.DRAFT:
            raise InvalidStateError(
                str(voucher.id),
                voucher.status.value,
                f"Only DRAFT vouchers can be {action} (status is {voucher.status.value})",
            )

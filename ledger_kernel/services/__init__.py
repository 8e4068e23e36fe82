"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.account_directory import AccountDirectory
from ledger_kernel.services.draft_service import DraftLifecycleService
from ledger_kernel.services.ledger_engine import LedgerEngine, company_id_for_code
from ledger_kernel.services.posting_service import (
    PostingRetryPolicy,
    VoucherPostingService,
    is_serialization_failure,
)
from ledger_kernel.services.provisioning_service import (
    ProvisioningService,
    validate_role_bindings,
)
from ledger_kernel.services.sequence_service import SequenceService

__all__ = [
    "AccountDirectory",
    "DraftLifecycleService",
    "LedgerEngine",
    "PostingRetryPolicy",
    "ProvisioningService",
    "SequenceService",
    "VoucherPostingService",
    "company_id_for_code",
    "is_serialization_failure",
    "validate_role_bindings",
]

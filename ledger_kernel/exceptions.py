"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the HTTP layer, the seed script, tests) must react to failures by
type, never by parsing messages.  Every exception carries:
  1. A TYPED class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA attributes (voucher_id, status, debits, credits, ...)

Example:
    try:
        engine.post(voucher_id)
    except InvalidStateError as e:
        api_response(409, code=e.code, status=e.status)
    except UnbalancedEntriesError as e:
        api_response(422, code=e.code, debits=e.debits, credits=e.credits)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- NotFoundError
    |   +-- CompanyNotFoundError
    |   +-- AccountNotFoundError
    |   +-- PartyNotFoundError
    |   +-- VoucherTypeNotFoundError
    |   +-- VoucherNotFoundError
    |
    +-- InvalidStateError
    |   +-- ImmutabilityViolationError
    |
    +-- UnbalancedEntriesError
    |
    +-- InvalidTemplateInputError
    |
    +-- ConcurrencyError
    |   +-- SerializationConflictError   (transient -- retried by posting)
    |
    +-- ConfigurationError
        +-- RoleBindingError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                      | When Raised
--------------------------|--------------------------------------------------
NOT_FOUND                 | Entity absent (voucher, account, party, ...)
INVALID_STATE             | Operation not legal for the voucher's status
IMMUTABILITY_VIOLATION    | Flush tried to modify/delete a posted voucher
UNBALANCED_ENTRIES        | Debits != credits, < 2 entries, amount <= 0
INVALID_TEMPLATE_INPUT    | Missing template parameter, unknown kind/sub-kind
SERIALIZATION_CONFLICT    | Storage aborted a racing transaction (retryable)
ROLE_BINDING_INVALID      | Role bound to zero or several accounts

===============================================================================
RETRY SEMANTICS
===============================================================================

Only SerializationConflictError is transient.  Everything else is a terminal
business or provisioning failure and must never be retried; use
``is_transient()`` rather than hand-written isinstance checks.
"""

from decimal import Decimal


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Lookup failures


class NotFoundError(LedgerKernelError):
    """Base exception for absent entities."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, key: str):
        self.entity_type = entity_type
        self.key = key
        super().__init__(f"{entity_type} not found: {key}")


class CompanyNotFoundError(NotFoundError):
    """Company does not exist."""

    def __init__(self, company_id: str):
        self.company_id = company_id
        super().__init__("Company", company_id)


class AccountNotFoundError(NotFoundError):
    """
    No account matches the requested role or code within the company.

    Always a provisioning error; never retried.
    """

    def __init__(self, company_id: str, lookup: str):
        self.company_id = company_id
        self.lookup = lookup
        super().__init__("Account", f"{lookup} (company {company_id})")


class PartyNotFoundError(NotFoundError):
    """Party does not exist."""

    def __init__(self, party_ref: str):
        self.party_ref = party_ref
        super().__init__("Party", party_ref)


class VoucherTypeNotFoundError(NotFoundError):
    """Voucher type not provisioned for the company."""

    def __init__(self, company_id: str, voucher_kind: str):
        self.company_id = company_id
        self.voucher_kind = voucher_kind
        super().__init__("VoucherType", f"{voucher_kind} (company {company_id})")


class VoucherNotFoundError(NotFoundError):
    """Voucher does not exist."""

    def __init__(self, voucher_id: str):
        self.voucher_id = voucher_id
        super().__init__("Voucher", voucher_id)


# Lifecycle failures


class InvalidStateError(LedgerKernelError):
    """Operation is not legal for the voucher's current status."""

    code: str = "INVALID_STATE"

    def __init__(self, voucher_id: str, status: str, message: str):
        self.voucher_id = voucher_id
        self.status = status
        super().__init__(message)


class ImmutabilityViolationError(InvalidStateError):
    """
    A flush attempted to modify or delete a POSTED voucher or its entries.

    Raised by the ORM listeners in db/immutability.py; the service layer
    normally rejects such operations earlier with a plain InvalidStateError.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            entity_id,
            "posted",
            f"Immutability violation on {entity_type} {entity_id}: {reason}",
        )


# Entry validation failures


class UnbalancedEntriesError(LedgerKernelError):
    """Debits do not equal credits, or the entry set is malformed."""

    code: str = "UNBALANCED_ENTRIES"

    def __init__(
        self,
        message: str,
        debits: Decimal | None = None,
        credits: Decimal | None = None,
    ):
        self.debits = debits
        self.credits = credits
        super().__init__(message)


class InvalidTemplateInputError(LedgerKernelError):
    """A template parameter is missing or the kind/sub-kind is unknown."""

    code: str = "INVALID_TEMPLATE_INPUT"

    def __init__(self, kind: str, sub_kind: str | None, reason: str):
        self.kind = kind
        self.sub_kind = sub_kind
        self.reason = reason
        label = f"{kind}/{sub_kind}" if sub_kind else kind
        super().__init__(f"Invalid template input for {label}: {reason}")


# Concurrency failures


class ConcurrencyError(LedgerKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class SerializationConflictError(ConcurrencyError):
    """
    The storage engine aborted a transaction racing with another one.

    Transient: the posting service retries it with backoff before letting
    it surface.
    """

    code: str = "SERIALIZATION_CONFLICT"

    def __init__(self, operation: str, attempts: int = 1):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"Serialization conflict during {operation} "
            f"after {attempts} attempt(s)"
        )


# Configuration failures


class ConfigurationError(LedgerKernelError):
    """Base exception for provisioning/configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class RoleBindingError(ConfigurationError):
    """A business role is bound to zero or to more than one account."""

    code: str = "ROLE_BINDING_INVALID"

    def __init__(self, role: str, reason: str):
        self.role = role
        self.reason = reason
        super().__init__(f"Invalid binding for role {role}: {reason}")


def is_transient(exc: BaseException) -> bool:
    """True only for failures a caller may retry."""
    return isinstance(exc, SerializationConflictError)

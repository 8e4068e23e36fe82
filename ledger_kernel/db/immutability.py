"""
ORM-Level Immutability Enforcement for posted vouchers.

===============================================================================
WHY THIS EXISTS
===============================================================================

Once a voucher is POSTED its header and entries are final.  The service layer
already refuses update/delete of posted vouchers with InvalidStateError; these
listeners are the second line, catching any code path that reaches the ORM
without going through the services (scripts, shell sessions, new services).

    session.flush()
         |
         v
    [before_update / before_delete / before_insert]
         |
         +--> _check_*() --> ImmutabilityViolationError (flush aborted)
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity    | When Immutable                  | Allowed change
----------|---------------------------------|--------------------------------
Voucher   | After status = POSTED           | The DRAFT -> POSTED transition
          |                                 | itself, and updated_at
Entry     | When parent voucher is POSTED   | none (no insert/update/delete)
"""

from sqlalchemy import event, inspect, select
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = ("updated_at",)


def _status_value(status) -> str:
    return status.value if hasattr(status, "value") else str(status)


def _blocked(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_voucher_immutability(mapper, connection, target):
    """
    Prevent updates to posted Voucher rows.

    Logic:
        1. status changing FROM posted -> anything: block
        2. status unchanged AND posted: block any other field change
        3. status changing TO posted (the posting itself): allow
    """
    status_history = get_history(target, "status")

    was_posted_before = False
    if status_history.deleted:
        was_posted_before = _status_value(status_history.deleted[0]) == "posted"
    elif not status_history.added:
        was_posted_before = _status_value(target.status) == "posted"

    if not was_posted_before:
        return

    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            raise _blocked(
                "Voucher",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on posted voucher",
            )


def _check_voucher_delete(mapper, connection, target):
    """Prevent deletion of posted Voucher rows."""
    if _status_value(target.status) == "posted":
        raise _blocked("Voucher", target.id, "DELETE", "Posted vouchers cannot be deleted")


def _parent_is_posted(connection, target) -> bool:
    """
    Stored status of the entry's voucher.

    Read through the flush connection rather than target.voucher: an entry
    removed from ``voucher.entries`` has already lost its back-reference.
    """
    from ledger_kernel.models.voucher import Voucher

    voucher_id = target.voucher_id
    if voucher_id is None and target.voucher is not None:
        voucher_id = target.voucher.id
    if voucher_id is None:
        return False
    status = connection.execute(
        select(Voucher.__table__.c.status).where(Voucher.__table__.c.id == voucher_id)
    ).scalar_one_or_none()
    return status is not None and _status_value(status) == "posted"


def _check_entry_insert(mapper, connection, target):
    """Prevent adding entries to an already-posted voucher."""
    if _parent_is_posted(connection, target):
        raise _blocked("Entry", target.id, "INSERT", "Entries cannot be added to a posted voucher")


def _check_entry_immutability(mapper, connection, target):
    """Prevent updates to entries of a posted voucher."""
    if _parent_is_posted(connection, target):
        raise _blocked("Entry", target.id, "UPDATE", "Entries of a posted voucher cannot be modified")


def _check_entry_delete(mapper, connection, target):
    """Prevent deletion of entries of a posted voucher."""
    if _parent_is_posted(connection, target):
        raise _blocked("Entry", target.id, "DELETE", "Entries of a posted voucher cannot be deleted")


_LISTENERS = (
    ("Voucher", "before_update", _check_voucher_immutability),
    ("Voucher", "before_delete", _check_voucher_delete),
    ("Entry", "before_insert", _check_entry_insert),
    ("Entry", "before_update", _check_entry_immutability),
    ("Entry", "before_delete", _check_entry_delete),
)


def _targets():
    from ledger_kernel.models.voucher import Entry, Voucher

    return {"Voucher": Voucher, "Entry": Entry}


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners (idempotent).

    Call during application initialization, after models are importable.
    """
    targets = _targets()
    for name, event_name, fn in _LISTENERS:
        if not event.contains(targets[name], event_name, fn):
            event.listen(targets[name], event_name, fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that deliberately bypass the guards.
    """
    targets = _targets()
    for name, event_name, fn in _LISTENERS:
        if event.contains(targets[name], event_name, fn):
            event.remove(targets[name], event_name, fn)

"""
Posted voucher immutability at the ORM layer.

The draft and posting services refuse to touch posted vouchers; these tests
go around them, straight to the session, and check that the flush listeners
still block every change to a posted voucher or its entries.
"""

from decimal import Decimal

import pytest
from sqlalchemy import event

from ledger_kernel.db.engine import session_scope
from ledger_kernel.db.immutability import (
    _check_voucher_immutability,
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from ledger_kernel.exceptions import ImmutabilityViolationError, InvalidStateError
from ledger_kernel.models.voucher import Entry, EntrySide, Voucher, VoucherStatus


@pytest.fixture
def posted_voucher_id(ledger, make_payload):
    draft = ledger.create_draft(make_payload("SALE", "CREDIT_SALE", "1000.00", party_code="CUST001"))
    ledger.post(draft.id)
    return draft.id


class TestPostedVoucher:

    def test_header_cannot_change(self, posted_voucher_id, captured_logs):
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            with session_scope() as session:
                session.get(Voucher, posted_voucher_id).narration = "rewritten"

        assert exc_info.value.entity_type == "Voucher"
        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"
        assert "narration" in exc_info.value.reason
        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["entity_id"] == str(posted_voucher_id)
        assert blocked[0]["operation"] == "UPDATE"

    def test_cannot_return_to_draft(self, posted_voucher_id):
        with pytest.raises(ImmutabilityViolationError):
            with session_scope() as session:
                voucher = session.get(Voucher, posted_voucher_id)
                voucher.status = VoucherStatus.DRAFT
                voucher.voucher_number = None

    def test_cannot_be_deleted(self, ledger, posted_voucher_id):
        with pytest.raises(ImmutabilityViolationError):
            with session_scope() as session:
                session.delete(session.get(Voucher, posted_voucher_id))
        assert len(ledger.get_voucher(posted_voucher_id).entries) == 2

    def test_entry_amount_cannot_change(self, ledger, posted_voucher_id):
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            with session_scope() as session:
                voucher = session.get(Voucher, posted_voucher_id)
                voucher.entries[0].amount = Decimal("1.00")
        assert exc_info.value.entity_type == "Entry"
        assert ledger.get_voucher(posted_voucher_id).entries[0].amount == Decimal("1000.00")

    def test_entry_cannot_be_removed(self, posted_voucher_id):
        with pytest.raises(ImmutabilityViolationError):
            with session_scope() as session:
                voucher = session.get(Voucher, posted_voucher_id)
                voucher.entries.pop()

    def test_entry_cannot_be_added(self, posted_voucher_id):
        with pytest.raises(ImmutabilityViolationError):
            with session_scope() as session:
                voucher = session.get(Voucher, posted_voucher_id)
                first = voucher.entries[0]
                voucher.entries.append(
                    Entry(
                        line_no=3,
                        account_id=first.account_id,
                        side=EntrySide.DEBIT,
                        amount=Decimal("5.00"),
                    )
                )

    def test_violation_is_an_invalid_state_error(self, posted_voucher_id):
        with pytest.raises(InvalidStateError) as exc_info:
            with session_scope() as session:
                session.get(Voucher, posted_voucher_id).narration = "rewritten"
        assert exc_info.value.status == "posted"


class TestDraftVoucher:

    def test_draft_stays_mutable(self, ledger, make_payload):
        draft = ledger.create_draft(make_payload("SALE", "CREDIT_SALE", "10.00"))
        with session_scope() as session:
            voucher = session.get(Voucher, draft.id)
            voucher.narration = "edited"
            voucher.entries[0].amount = Decimal("11.00")
            voucher.entries[1].amount = Decimal("11.00")

        edited = ledger.get_voucher(draft.id)
        assert edited.narration == "edited"
        assert ledger.post(draft.id).voucher_number == 1


class TestRegistration:

    def test_registration_is_idempotent(self, db_engine):
        register_immutability_listeners()
        register_immutability_listeners()
        assert event.contains(Voucher, "before_update", _check_voucher_immutability)

    def test_services_still_refuse_without_listeners(self, ledger, posted_voucher_id):
        unregister_immutability_listeners()
        try:
            assert not event.contains(Voucher, "before_update", _check_voucher_immutability)
            with pytest.raises(InvalidStateError):
                ledger.delete_draft(posted_voucher_id)
        finally:
            register_immutability_listeners()
        assert ledger.get_voucher(posted_voucher_id).status == VoucherStatus.POSTED

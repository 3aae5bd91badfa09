"""
Tests for TransactionLedger -- transfer requests and their lifecycle.

Covers:
- create(): happy path, check order, amount bounds, id density
- complete(): ownership, Active-only, terminal Completed
- change_status(): transition table guard
- list_for_address() / list_all() / get()
"""

import pytest

from workflow_kernel.domain.events import NotificationKind
from workflow_kernel.domain.lifecycle import TransactionStatus
from workflow_kernel.domain.values import MAX_AMOUNT, ZERO_ADDRESS
from workflow_kernel.exceptions import (
    InvalidAmountError,
    InvalidRecipientError,
    InvalidStateError,
    NotOwnerError,
    NotRegisteredError,
    TransactionNotActiveError,
    TransactionNotFoundError,
)
from workflow_kernel.services.sequence_service import SequenceService


@pytest.fixture
def ledger(seeded_identity, transaction_ledger):
    return transaction_ledger


# Status changes that take a fresh Pending transaction to each status.
STATUS_PATHS = {
    TransactionStatus.PENDING: (),
    TransactionStatus.ACTIVE: (TransactionStatus.ACTIVE,),
    TransactionStatus.COMPLETED: (TransactionStatus.ACTIVE, TransactionStatus.COMPLETED),
    TransactionStatus.REJECTED: (TransactionStatus.REJECTED,),
}


def drive_to(ledger, principals, status):
    """Create a user2 -> user3 transaction and walk it to ``status``."""
    tx_id = ledger.create(principals.user2, principals.user3, 1000, "x").id
    for target in STATUS_PATHS[status]:
        ledger.change_status(principals.approver1, ledger.load(tx_id), target)
    return tx_id


class TestCreate:
    def test_happy_path(self, ledger, principals, deterministic_clock):
        tx = ledger.create(principals.user2, principals.user3, 1000, "Test transaction")
        assert tx.id == 1
        assert tx.sender == principals.user2
        assert tx.recipient == principals.user3
        assert tx.amount == 1000
        assert tx.description == "Test transaction"
        assert tx.status is TransactionStatus.PENDING
        assert tx.approval_id == 0
        assert tx.created_at == deterministic_clock.now()

    def test_emits_created_notification(self, ledger, event_log, principals):
        before = len(event_log.recorded)
        tx = ledger.create(principals.user2, principals.user3, 1000, "Test transaction")
        notification = event_log.recorded[before]
        assert notification.kind is NotificationKind.TRANSACTION_CREATED
        assert notification.transaction_id == tx.id
        assert notification.payload == {
            "from": principals.user2,
            "to": principals.user3,
            "amount": "1000",
        }

    def test_recipient_need_not_be_registered(self, ledger, principals):
        tx = ledger.create(principals.user2, principals.stranger, 5, "")
        assert tx.recipient == principals.stranger

    def test_unregistered_sender(self, ledger, principals):
        with pytest.raises(NotRegisteredError):
            ledger.create(principals.stranger, principals.user3, 1000, "x")

    def test_registration_checked_before_recipient_and_amount(self, ledger, principals):
        with pytest.raises(NotRegisteredError):
            ledger.create(principals.stranger, ZERO_ADDRESS, 0, "x")

    def test_recipient_checked_before_amount(self, ledger, principals):
        with pytest.raises(InvalidRecipientError):
            ledger.create(principals.user2, ZERO_ADDRESS, 0, "x")

    @pytest.mark.parametrize("amount", [0, -5, MAX_AMOUNT + 1, True, 10.0, "1000"])
    def test_invalid_amount(self, ledger, principals, amount):
        with pytest.raises(InvalidAmountError) as exc_info:
            ledger.create(principals.user2, principals.user3, amount, "x")
        assert exc_info.value.code == "INVALID_AMOUNT"

    def test_failed_create_consumes_no_id(self, ledger, session, principals):
        with pytest.raises(InvalidAmountError):
            ledger.create(principals.user2, principals.user3, 0, "x")
        assert SequenceService(session).current_value(SequenceService.TRANSACTION) == 0
        assert ledger.create(principals.user2, principals.user3, 1, "x").id == 1

    def test_ids_are_sequential(self, ledger, principals):
        ids = [ledger.create(principals.user2, principals.user3, n, "").id for n in (1, 2, 3)]
        assert ids == [1, 2, 3]
        assert ledger.count() == 3


class TestComplete:
    @pytest.fixture
    def active_tx(self, ledger, session, principals):
        tx = ledger.create(principals.user2, principals.user3, 1000, "x")
        ledger.change_status(principals.approver1, ledger.load(tx.id), TransactionStatus.ACTIVE)
        return tx.id

    def test_owner_completes_active(self, ledger, active_tx, principals):
        tx = ledger.complete(principals.user2, active_tx)
        assert tx.status is TransactionStatus.COMPLETED

    def test_recipient_is_not_owner(self, ledger, active_tx, principals):
        with pytest.raises(NotOwnerError) as exc_info:
            ledger.complete(principals.user3, active_tx)
        assert exc_info.value.owner == principals.user2

    def test_pending_is_not_active(self, ledger, principals):
        tx = ledger.create(principals.user2, principals.user3, 1000, "x")
        with pytest.raises(TransactionNotActiveError):
            ledger.complete(principals.user2, tx.id)

    def test_completed_is_terminal(self, ledger, active_tx, principals):
        ledger.complete(principals.user2, active_tx)
        with pytest.raises(TransactionNotActiveError):
            ledger.complete(principals.user2, active_tx)

    @pytest.mark.parametrize("transaction_id", [0, 99, -1])
    def test_unknown_transaction(self, ledger, principals, transaction_id):
        with pytest.raises(TransactionNotFoundError):
            ledger.complete(principals.user2, transaction_id)

    def test_existence_checked_before_ownership(self, ledger, principals):
        with pytest.raises(TransactionNotFoundError):
            ledger.complete(principals.stranger, 42)

    @pytest.mark.parametrize("status", list(STATUS_PATHS))
    def test_non_owner_rejected_in_every_status(self, ledger, principals, status):
        tx_id = drive_to(ledger, principals, status)
        with pytest.raises(NotOwnerError):
            ledger.complete(principals.user3, tx_id)
        assert ledger.get(tx_id).status is status

    def test_bool_is_not_a_transaction_id(self, ledger, principals):
        drive_to(ledger, principals, TransactionStatus.ACTIVE)
        with pytest.raises(TransactionNotFoundError):
            ledger.complete(principals.user2, True)
        assert ledger.get(True).id == 0
        assert ledger.get(1).status is TransactionStatus.ACTIVE


class TestChangeStatus:
    def test_rejects_skipped_state(self, ledger, principals):
        tx = ledger.create(principals.user2, principals.user3, 1000, "x")
        with pytest.raises(InvalidStateError):
            ledger.change_status(principals.user2, ledger.load(tx.id), TransactionStatus.COMPLETED)
        assert ledger.get(tx.id).status is TransactionStatus.PENDING

    def test_records_old_and_new_status(self, ledger, event_log, principals):
        tx = ledger.create(principals.user2, principals.user3, 1000, "x")
        ledger.change_status(principals.approver1, ledger.load(tx.id), TransactionStatus.REJECTED)
        notification = event_log.recorded[-1]
        assert notification.kind is NotificationKind.TRANSACTION_STATUS_CHANGED
        assert notification.payload == {"old_status": "pending", "new_status": "rejected"}


class TestQueries:
    def test_get_unknown_is_empty(self, ledger):
        assert not ledger.get(0).exists
        assert ledger.get(7).id == 0

    def test_list_for_address_counts_sent_and_received(self, ledger, principals):
        p = principals
        ledger.create(p.user2, p.user3, 1, "")
        ledger.create(p.user1, p.user2, 2, "")
        ledger.create(p.user1, p.user3, 3, "")
        assert ledger.list_for_address(p.user2) == [1, 2]
        assert ledger.list_for_address(p.user3) == [1, 3]
        assert ledger.list_for_address(p.stranger) == []
        assert ledger.list_all() == [1, 2, 3]

"""
TransactionLedger -- transfer requests and their lifecycle.

Responsibility:
    Creates transactions, applies status transitions, and answers
    transaction queries.  ``create`` is the single entry point into the
    workflow; nothing else inserts a transaction.

Architecture position:
    Kernel > Services.  Called by the WorkflowCoordinator and by the
    ApprovalLedger (approval linkage and outcome cascade).

Invariants enforced:
    - Ids come from SequenceService ("transaction"): dense, from 1.
      Validation runs before allocation, and a rollback returns the value,
      so a rejected create never consumes an id.
    - Every status change is checked against TRANSACTION_TRANSITIONS and
      recorded as a TRANSACTION_STATUS_CHANGED notification.
    - approval_id is written once.

Failure modes:
    - NotRegisteredError, InvalidRecipientError, InvalidAmountError on create.
    - TransactionNotFoundError, NotOwnerError, TransactionNotActiveError on
      complete, checked in that order.
"""

from sqlalchemy import func, or_, select

from workflow_kernel.domain.dtos import EMPTY_TRANSACTION, TransactionInfo
from workflow_kernel.domain.events import NotificationKind
from workflow_kernel.domain.lifecycle import TransactionStatus, can_transition
from workflow_kernel.domain.values import (
    is_null_principal,
    is_record_id,
    is_valid_amount,
)
from workflow_kernel.exceptions import (
    InvalidAmountError,
    InvalidRecipientError,
    InvalidStateError,
    NotOwnerError,
    NotRegisteredError,
    TransactionNotActiveError,
    TransactionNotFoundError,
)
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.transaction import Transaction
from workflow_kernel.services.base import BaseService
from workflow_kernel.services.event_log import WorkflowEventLog
from workflow_kernel.services.identity_service import IdentityService
from workflow_kernel.services.sequence_service import SequenceService

logger = get_logger("services.transaction_ledger")


class TransactionLedger(BaseService[Transaction]):
    """Owns transaction records and their status transitions."""

    def __init__(
        self,
        session,
        identity: IdentityService,
        event_log: WorkflowEventLog,
        clock=None,
    ):
        super().__init__(session, clock)
        self._identity = identity
        self._event_log = event_log
        self._sequence_service = SequenceService(session)

    def load(self, transaction_id: int) -> Transaction:
        """Load a transaction row, raising for the 0 sentinel or unknown ids."""
        transaction = None
        if is_record_id(transaction_id):
            transaction = self.session.execute(
                select(Transaction)
                .where(Transaction.id == transaction_id)
                .with_for_update()
            ).scalar_one_or_none()
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, transaction_id: int) -> TransactionInfo:
        """Return the transaction, or EMPTY_TRANSACTION (id 0) when unknown."""
        if not is_record_id(transaction_id):
            return EMPTY_TRANSACTION
        transaction = self.session.get(Transaction, transaction_id)
        return transaction.to_dto() if transaction is not None else EMPTY_TRANSACTION

    def count(self) -> int:
        return self.session.execute(select(func.count(Transaction.id))).scalar_one()

    def list_for_address(self, address: str) -> list[int]:
        """Ids where ``address`` is sender or recipient, in creation order."""
        stmt = (
            select(Transaction.id)
            .where(or_(Transaction.sender == address, Transaction.recipient == address))
            .order_by(Transaction.id)
        )
        return list(self.session.execute(stmt).scalars())

    def list_all(self) -> list[int]:
        """All transaction ids in creation order."""
        return list(
            self.session.execute(select(Transaction.id).order_by(Transaction.id)).scalars()
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(
        self,
        sender: str,
        recipient: str,
        amount: int,
        description: str,
    ) -> TransactionInfo:
        """
        Create a Pending transaction from ``sender`` (the caller).

        Emits TRANSACTION_CREATED ``(id, from, to, amount)``.
        """
        if not self._identity.is_registered(sender):
            raise NotRegisteredError(sender)
        if is_null_principal(recipient):
            raise InvalidRecipientError(recipient)
        if not is_valid_amount(amount):
            raise InvalidAmountError(amount)

        transaction_id = self._sequence_service.next_value(SequenceService.TRANSACTION)
        transaction = Transaction(
            id=transaction_id,
            sender=sender,
            recipient=recipient,
            amount=amount,
            description=description or "",
            status=TransactionStatus.PENDING.value,
            created_at=self.clock.now(),
            approval_id=0,
        )
        self.session.add(transaction)
        self.session.flush()

        self._event_log.record(
            NotificationKind.TRANSACTION_CREATED,
            sender,
            transaction_id=transaction_id,
            subject=recipient,
            payload={
                "from": sender,
                "to": recipient,
                "amount": str(amount),
            },
        )
        logger.info(
            "transaction_created",
            extra={
                "transaction_id": transaction_id,
                "sender": sender,
                "recipient": recipient,
                "amount": str(amount),
            },
        )
        return transaction.to_dto()

    def complete(self, caller: str, transaction_id: int) -> TransactionInfo:
        """Move an Active transaction owned by ``caller`` to Completed."""
        transaction = self.load(transaction_id)
        if transaction.sender != caller:
            raise NotOwnerError(transaction_id, caller, transaction.sender)
        if transaction.status != TransactionStatus.ACTIVE.value:
            raise TransactionNotActiveError(transaction_id, transaction.status)

        self.change_status(caller, transaction, TransactionStatus.COMPLETED)
        return transaction.to_dto()

    def change_status(
        self,
        actor: str,
        transaction: Transaction,
        target: TransactionStatus,
    ) -> None:
        """
        Apply a validated status transition and record it.

        Callers check the business precondition first and raise the
        specific error; this guard only catches programming mistakes.
        """
        current = TransactionStatus(transaction.status)
        if not can_transition(current, target):
            raise InvalidStateError(
                f"Invalid transaction transition {current.value} -> {target.value} "
                f"for transaction {transaction.id}"
            )

        transaction.status = target.value
        self.session.flush()

        self._event_log.record(
            NotificationKind.TRANSACTION_STATUS_CHANGED,
            actor,
            transaction_id=transaction.id,
            approval_id=transaction.approval_id,
            payload={"old_status": current.value, "new_status": target.value},
        )
        logger.info(
            "transaction_status_changed",
            extra={
                "transaction_id": transaction.id,
                "old_status": current.value,
                "new_status": target.value,
            },
        )

    def link_approval(self, transaction: Transaction, approval_id: int) -> None:
        """Point ``transaction`` at its approval.  Written once."""
        assert transaction.approval_id == 0, "approval_id is write-once"
        transaction.approval_id = approval_id
        self.session.flush()

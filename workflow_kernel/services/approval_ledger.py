"""
ApprovalLedger -- approval requests and their one-time outcome.

Responsibility:
    Opens an approval for a Pending transaction, processes it exactly once,
    and cascades the outcome onto the linked transaction.

Architecture position:
    Kernel > Services.  Called by the WorkflowCoordinator.  Uses the
    TransactionLedger for linkage and status cascade, and the
    IdentityService for the approver check.

Invariants enforced:
    - Ids come from SequenceService ("approval"): dense, from 1.
    - Bidirectional link: Approval.transaction_id == Transaction.id and
      Transaction.approval_id == Approval.id, both written in the same
      database transaction.
    - At most one approval per transaction in its lifetime: requests
      require a Pending transaction with no approval linked yet, and no
      transition ever returns a transaction to Pending.
    - An approval leaves Pending once.  Approved cascades the transaction
      to Active; Rejected cascades it to Rejected (terminal).
    - Notification order on process: APPROVAL_PROCESSED, then
      TRANSACTION_STATUS_CHANGED.

Failure modes:
    - request_approval: TransactionNotFoundError, NotOwnerError,
      TransactionNotPendingError, ApprovalAlreadyRequestedError (in that
      order).
    - process: UnauthorizedApproverError, ApprovalNotFoundError,
      ApprovalAlreadyProcessedError (in that order).
"""

from sqlalchemy import func, select

from workflow_kernel.domain.dtos import EMPTY_APPROVAL, ApprovalInfo
from workflow_kernel.domain.events import NotificationKind
from workflow_kernel.domain.lifecycle import (
    APPROVAL_OUTCOME_CASCADE,
    APPROVAL_TRANSITIONS,
    ApprovalStatus,
    TransactionStatus,
)
from workflow_kernel.domain.values import is_record_id
from workflow_kernel.exceptions import (
    ApprovalAlreadyProcessedError,
    ApprovalAlreadyRequestedError,
    ApprovalNotFoundError,
    NotOwnerError,
    TransactionNotPendingError,
    UnauthorizedApproverError,
)
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.approval import Approval
from workflow_kernel.services.base import BaseService
from workflow_kernel.services.event_log import WorkflowEventLog
from workflow_kernel.services.identity_service import IdentityService
from workflow_kernel.services.sequence_service import SequenceService
from workflow_kernel.services.transaction_ledger import TransactionLedger

logger = get_logger("services.approval_ledger")


class ApprovalLedger(BaseService[Approval]):
    """Manages approval request/outcome lifecycle."""

    def __init__(
        self,
        session,
        identity: IdentityService,
        transactions: TransactionLedger,
        event_log: WorkflowEventLog,
        clock=None,
    ):
        super().__init__(session, clock)
        self._identity = identity
        self._transactions = transactions
        self._event_log = event_log
        self._sequence_service = SequenceService(session)

    def load(self, approval_id: int) -> Approval:
        """Load an approval row, raising for the 0 sentinel or unknown ids."""
        approval = None
        if is_record_id(approval_id):
            approval = self.session.execute(
                select(Approval)
                .where(Approval.id == approval_id)
                .with_for_update()
            ).scalar_one_or_none()
        if approval is None:
            raise ApprovalNotFoundError(approval_id)
        return approval

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, approval_id: int) -> ApprovalInfo:
        """Return the approval, or EMPTY_APPROVAL (id 0) when unknown."""
        if not is_record_id(approval_id):
            return EMPTY_APPROVAL
        approval = self.session.get(Approval, approval_id)
        return approval.to_dto() if approval is not None else EMPTY_APPROVAL

    def count(self) -> int:
        return self.session.execute(select(func.count(Approval.id))).scalar_one()

    def list_pending(self) -> list[int]:
        """Ids of Pending approvals in ascending order."""
        stmt = (
            select(Approval.id)
            .where(Approval.status == ApprovalStatus.PENDING.value)
            .order_by(Approval.id)
        )
        return list(self.session.execute(stmt).scalars())

    def transaction_id_for(self, approval_id: int) -> int:
        """The transaction an approval belongs to, 0 when unknown."""
        return self.get(approval_id).transaction_id

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def request_approval(
        self,
        caller: str,
        transaction_id: int,
        reason: str,
    ) -> ApprovalInfo:
        """
        Open an approval for a Pending transaction owned by ``caller``.

        Emits APPROVAL_REQUESTED ``(approval_id, transaction_id, requester)``.
        """
        transaction = self._transactions.load(transaction_id)
        if transaction.sender != caller:
            raise NotOwnerError(transaction_id, caller, transaction.sender)
        if transaction.status != TransactionStatus.PENDING.value:
            raise TransactionNotPendingError(transaction_id, transaction.status)
        if transaction.approval_id != 0:
            raise ApprovalAlreadyRequestedError(transaction_id, transaction.approval_id)

        approval_id = self._sequence_service.next_value(SequenceService.APPROVAL)
        approval = Approval(
            id=approval_id,
            transaction_id=transaction_id,
            requester=caller,
            approver=None,
            status=ApprovalStatus.PENDING.value,
            reason=reason or "",
            created_at=self.clock.now(),
        )
        self.session.add(approval)
        self.session.flush()
        self._transactions.link_approval(transaction, approval_id)

        self._event_log.record(
            NotificationKind.APPROVAL_REQUESTED,
            caller,
            transaction_id=transaction_id,
            approval_id=approval_id,
            payload={"requester": caller, "reason": approval.reason},
        )
        logger.info(
            "approval_requested",
            extra={
                "approval_id": approval_id,
                "transaction_id": transaction_id,
                "requester": caller,
            },
        )
        return approval.to_dto()

    def process(
        self,
        caller: str,
        approval_id: int,
        approve: bool,
        reason: str,
    ) -> ApprovalInfo:
        """
        Record the outcome of a Pending approval and cascade it.

        ``caller`` must hold the Approver capability (Manager or Admin).
        """
        if not self._identity.is_approver(caller):
            raise UnauthorizedApproverError(caller, approval_id)

        approval = self.load(approval_id)
        current = ApprovalStatus(approval.status)
        if current != ApprovalStatus.PENDING:
            raise ApprovalAlreadyProcessedError(approval_id, current.value)

        outcome = ApprovalStatus.APPROVED if approve else ApprovalStatus.REJECTED
        assert outcome in APPROVAL_TRANSITIONS[current]

        approval.approver = caller
        approval.status = outcome.value
        approval.reason = reason or ""
        self.session.flush()

        self._event_log.record(
            NotificationKind.APPROVAL_PROCESSED,
            caller,
            transaction_id=approval.transaction_id,
            approval_id=approval_id,
            payload={
                "approver": caller,
                "status": outcome.value,
                "reason": approval.reason,
            },
        )

        transaction = self._transactions.load(approval.transaction_id)
        self._transactions.change_status(
            caller, transaction, APPROVAL_OUTCOME_CASCADE[outcome],
        )

        logger.info(
            "approval_processed",
            extra={
                "approval_id": approval_id,
                "transaction_id": approval.transaction_id,
                "approver": caller,
                "outcome": outcome.value,
            },
        )
        return approval.to_dto()

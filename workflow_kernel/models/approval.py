"""
Module: workflow_kernel.models.approval
Responsibility: ORM persistence for approval requests and their outcome.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - id is allocated by SequenceService ("approval"), dense from 1.
    - transaction_id references an existing transaction, and that
      transaction's approval_id points back at this row.
    - At most one approval per transaction (uq_approvals_transaction).
    - approver, final status and reason are written once, when processed.
    - Approvals are never deleted (before_delete listener).
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base
from workflow_kernel.domain.dtos import ApprovalInfo
from workflow_kernel.domain.lifecycle import ApprovalStatus
from workflow_kernel.exceptions import ImmutabilityViolationError


class Approval(Base):
    """An approval request for one transaction."""

    __tablename__ = "approvals"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_approvals_valid_status",
        ),
        Index("uq_approvals_transaction", "transaction_id", unique=True),
        Index("idx_approvals_status", "status", "id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"),
        nullable=False,
    )

    requester: Mapped[str] = mapped_column(String(128), nullable=False)

    approver: Mapped[str | None] = mapped_column(String(128), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ApprovalStatus.PENDING.value,
    )

    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<Approval {self.id} transaction={self.transaction_id} "
            f"status={self.status}>"
        )

    def to_dto(self) -> ApprovalInfo:
        """Convert ORM model to frozen domain DTO."""
        return ApprovalInfo(
            id=self.id,
            transaction_id=self.transaction_id,
            requester=self.requester,
            approver=self.approver,
            status=ApprovalStatus(self.status),
            reason=self.reason,
            created_at=self.created_at,
        )


@event.listens_for(Approval, "before_delete")
def prevent_approval_delete(mapper, connection, target):
    """Approvals are never physically deleted."""
    raise ImmutabilityViolationError(
        entity_type="Approval",
        entity_id=str(target.id),
        reason="Approvals cannot be deleted",
    )

"""
Module: workflow_kernel.models.transaction
Responsibility: ORM persistence for transfer requests.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - id is allocated by SequenceService ("transaction"); ids are dense and
      start at 1.  0 is the "does not exist" sentinel and is never stored.
    - amount > 0 (service-level check; the column holds uint256 values).
    - approval_id is 0 until an approval is requested, then set once.
    - Transactions are never deleted (before_delete listener).
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, Index, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base
from workflow_kernel.db.types import TokenAmount
from workflow_kernel.domain.dtos import TransactionInfo
from workflow_kernel.domain.lifecycle import TransactionStatus
from workflow_kernel.exceptions import ImmutabilityViolationError


class Transaction(Base):
    """A transfer request from ``sender`` to ``recipient``."""

    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'active', 'completed', 'rejected')",
            name="ck_transactions_valid_status",
        ),
        Index("idx_transactions_sender", "sender"),
        Index("idx_transactions_recipient", "recipient"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)

    sender: Mapped[str] = mapped_column(String(128), nullable=False)

    recipient: Mapped[str] = mapped_column(String(128), nullable=False)

    amount: Mapped[int] = mapped_column(TokenAmount(), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TransactionStatus.PENDING.value,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    # 0 = no approval requested yet
    approval_id: Mapped[int] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Transaction {self.id} {self.sender}->{self.recipient} status={self.status}>"

    def to_dto(self) -> TransactionInfo:
        """Convert ORM model to frozen domain DTO."""
        return TransactionInfo(
            id=self.id,
            sender=self.sender,
            recipient=self.recipient,
            amount=self.amount,
            description=self.description,
            status=TransactionStatus(self.status),
            created_at=self.created_at,
            approval_id=self.approval_id,
        )


@event.listens_for(Transaction, "before_delete")
def prevent_transaction_delete(mapper, connection, target):
    """Transactions are never physically deleted."""
    raise ImmutabilityViolationError(
        entity_type="Transaction",
        entity_id=str(target.id),
        reason="Transactions cannot be deleted",
    )

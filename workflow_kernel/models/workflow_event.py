"""
Module: workflow_kernel.models.workflow_event
Responsibility: ORM persistence for the notification log.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - seq is unique and monotonically increasing, allocated by
      SequenceService ("workflow_event").
    - Rows are append-only: no UPDATE, no DELETE (ORM listeners).
    - A row is written in the same database transaction as the state change
      it describes, so the log never disagrees with the ledgers.

Audit relevance:
    Replaying rows in seq order rebuilds the full history of users,
    transactions and approvals.
"""

from datetime import datetime

from sqlalchemy import JSON, Index, String, event
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base
from workflow_kernel.domain.events import NotificationKind, WorkflowNotification
from workflow_kernel.exceptions import ImmutabilityViolationError


class WorkflowEvent(Base):
    """One persisted notification."""

    __tablename__ = "workflow_events"

    __table_args__ = (
        Index("idx_workflow_events_transaction", "transaction_id", "seq"),
        Index("idx_workflow_events_kind", "kind"),
    )

    seq: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)

    kind: Mapped[str] = mapped_column(String(50), nullable=False)

    actor: Mapped[str] = mapped_column(String(128), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    transaction_id: Mapped[int] = mapped_column(nullable=False, default=0)

    approval_id: Mapped[int] = mapped_column(nullable=False, default=0)

    subject: Mapped[str | None] = mapped_column(String(128), nullable=True)

    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<WorkflowEvent {self.seq} {self.kind}>"

    def to_dto(self) -> WorkflowNotification:
        """Convert ORM model to frozen domain notification."""
        return WorkflowNotification(
            seq=self.seq,
            kind=NotificationKind(self.kind),
            actor=self.actor,
            occurred_at=self.occurred_at,
            transaction_id=self.transaction_id,
            approval_id=self.approval_id,
            subject=self.subject,
            payload=dict(self.payload or {}),
        )


@event.listens_for(WorkflowEvent, "before_update")
def prevent_workflow_event_update(mapper, connection, target):
    """Prevent updates to logged notifications."""
    raise ImmutabilityViolationError(
        entity_type="WorkflowEvent",
        entity_id=str(target.seq),
        reason="Workflow events are append-only -- cannot modify",
    )


@event.listens_for(WorkflowEvent, "before_delete")
def prevent_workflow_event_delete(mapper, connection, target):
    """Prevent deletion of logged notifications."""
    raise ImmutabilityViolationError(
        entity_type="WorkflowEvent",
        entity_id=str(target.seq),
        reason="Workflow events are append-only -- cannot delete",
    )

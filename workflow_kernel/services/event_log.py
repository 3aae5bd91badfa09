"""
WorkflowEventLog -- durable, replayable notification log.

Responsibility:
    Appends one ``WorkflowEvent`` row per state change, inside the caller's
    database transaction, and keeps the notifications recorded during the
    current operation so the coordinator can hand them to event sinks
    after commit.  Provides history queries for replay.

Architecture position:
    Kernel > Services -- called by the identity, transaction and approval
    ledgers.

Invariants enforced:
    - seq comes from SequenceService ("workflow_event"); never max+1.
    - Append-only: WorkflowEvent rows are protected by ORM listeners.
    - Recording order is emission order.  For process_approval that is
      APPROVAL_PROCESSED, then TRANSACTION_STATUS_CHANGED.

Failure modes:
    - If the surrounding transaction rolls back, the rows vanish with it
      and the coordinator discards ``recorded`` without dispatching.
"""

from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.events import NotificationKind, WorkflowNotification
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.workflow_event import WorkflowEvent
from workflow_kernel.services.sequence_service import SequenceService

logger = get_logger("services.event_log")


class WorkflowEventLog:
    """Persists and replays workflow notifications."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)
        self._recorded: list[WorkflowNotification] = []

    @property
    def recorded(self) -> tuple[WorkflowNotification, ...]:
        """Notifications recorded through this instance, in emission order."""
        return tuple(self._recorded)

    def record(
        self,
        kind: NotificationKind,
        actor: str,
        *,
        transaction_id: int = 0,
        approval_id: int = 0,
        subject: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> WorkflowNotification:
        """
        Append a notification to the log.

        Args:
            kind: What changed.
            actor: Principal whose call caused the change.
            transaction_id: Affected transaction id, 0 if none.
            approval_id: Affected approval id, 0 if none.
            subject: Affected user address, if any.
            payload: JSON-serializable details.

        Returns:
            The recorded notification.
        """
        seq = self._sequence_service.next_value(SequenceService.WORKFLOW_EVENT)
        row = WorkflowEvent(
            seq=seq,
            kind=kind.value,
            actor=actor,
            occurred_at=self._clock.now(),
            transaction_id=transaction_id,
            approval_id=approval_id,
            subject=subject,
            payload=payload or {},
        )
        self._session.add(row)
        self._session.flush()

        notification = row.to_dto()
        self._recorded.append(notification)
        logger.debug(
            "notification_recorded",
            extra={"seq": seq, "kind": kind.value},
        )
        return notification

    def history(
        self,
        transaction_id: int | None = None,
        subject: str | None = None,
    ) -> list[WorkflowNotification]:
        """
        Return logged notifications in ``seq`` order.

        Args:
            transaction_id: Restrict to one transaction.
            subject: Restrict to notifications about one address, either as
                the subject or as the actor.
        """
        stmt = select(WorkflowEvent)
        if transaction_id is not None:
            stmt = stmt.where(WorkflowEvent.transaction_id == transaction_id)
        if subject is not None:
            stmt = stmt.where(
                or_(WorkflowEvent.subject == subject, WorkflowEvent.actor == subject)
            )
        rows = self._session.execute(stmt.order_by(WorkflowEvent.seq)).scalars().all()
        return [row.to_dto() for row in rows]

    def last_seq(self) -> int:
        """Highest logged seq, 0 when the log is empty."""
        value = self._session.execute(select(func.max(WorkflowEvent.seq))).scalar()
        return value or 0

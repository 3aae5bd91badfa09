"""
Workflow notifications (``workflow_kernel.domain.events``).

Responsibility
--------------
The after-the-fact notification emitted for every successful state change,
and the ``EventSink`` protocol that downstream observers (UIs, audit logs)
implement to receive them.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* One notification per state change.  ``process_approval`` emits
  APPROVAL_PROCESSED and then TRANSACTION_STATUS_CHANGED, in that order.
* ``seq`` is strictly increasing across all notifications, so replaying
  them in ``seq`` order rebuilds history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


class NotificationKind(str, Enum):
    """Kinds of state change a notification describes."""

    USER_REGISTERED = "user_registered"
    USER_ROLE_UPDATED = "user_role_updated"
    TRANSACTION_CREATED = "transaction_created"
    APPROVAL_REQUESTED = "approval_requested"
    APPROVAL_PROCESSED = "approval_processed"
    TRANSACTION_STATUS_CHANGED = "transaction_status_changed"


@dataclass(frozen=True)
class WorkflowNotification:
    """A structured record of one completed state change."""

    seq: int
    kind: NotificationKind
    actor: str
    occurred_at: datetime
    transaction_id: int = 0
    approval_id: int = 0
    subject: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "seq": self.seq,
            "kind": self.kind.value,
            "actor": self.actor,
            "occurred_at": self.occurred_at.isoformat(),
            "transaction_id": self.transaction_id,
            "approval_id": self.approval_id,
            "subject": self.subject,
            "payload": dict(self.payload),
        }


class EventSink(Protocol):
    """Receives notifications after the operation that produced them commits."""

    def publish(self, notification: WorkflowNotification) -> None:
        ...

"""
Lifecycle state machines (``workflow_kernel.domain.lifecycle``).

Responsibility
--------------
Defines the transaction and approval status enums, the only valid status
transitions, and the terminal states.  Ledger services consult these
tables before persisting any status change.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Transaction state machine::

    PENDING --(approval approved)--> ACTIVE --(complete)--> COMPLETED
    PENDING --(approval rejected)--> REJECTED

COMPLETED and REJECTED are terminal.  There is no cancellation path; a
PENDING transaction without an approval request stays PENDING.
"""

from __future__ import annotations

from enum import Enum


class TransactionStatus(str, Enum):
    """Transaction lifecycle states."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    REJECTED = "rejected"

    @property
    def code(self) -> int:
        """Numeric code (Pending=0, Active=1, Completed=2, Rejected=3)."""
        return list(TransactionStatus).index(self)


class ApprovalStatus(str, Enum):
    """Approval lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def code(self) -> int:
        """Numeric code (Pending=0, Approved=1, Rejected=2)."""
        return list(ApprovalStatus).index(self)


TRANSACTION_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.PENDING: frozenset({
        TransactionStatus.ACTIVE,
        TransactionStatus.REJECTED,
    }),
    TransactionStatus.ACTIVE: frozenset({TransactionStatus.COMPLETED}),
    TransactionStatus.COMPLETED: frozenset(),
    TransactionStatus.REJECTED: frozenset(),
}

TERMINAL_TRANSACTION_STATUSES: frozenset[TransactionStatus] = frozenset({
    TransactionStatus.COMPLETED,
    TransactionStatus.REJECTED,
})

APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset({
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
    }),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
}

# Outcome of an approval cascades onto its transaction.
APPROVAL_OUTCOME_CASCADE: dict[ApprovalStatus, TransactionStatus] = {
    ApprovalStatus.APPROVED: TransactionStatus.ACTIVE,
    ApprovalStatus.REJECTED: TransactionStatus.REJECTED,
}


def can_transition(
    current: TransactionStatus,
    target: TransactionStatus,
) -> bool:
    """True iff ``current -> target`` is a valid transaction transition."""
    return target in TRANSACTION_TRANSITIONS.get(current, frozenset())

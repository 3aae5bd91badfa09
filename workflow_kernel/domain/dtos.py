"""
Frozen DTOs returned by the ledgers and the coordinator.

Services never hand ORM rows to callers.  Unknown ids and addresses map to
the ``EMPTY_*`` records, whose ``id`` is the 0 sentinel and whose
``exists`` is False.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from workflow_kernel.domain.lifecycle import ApprovalStatus, TransactionStatus
from workflow_kernel.domain.roles import Capability, Role, capabilities_for


@dataclass(frozen=True)
class UserInfo:
    """A registered user."""

    id: int
    address: str
    name: str
    email: str
    role: Role
    active: bool
    created_at: datetime | None

    @property
    def exists(self) -> bool:
        return self.id != 0

    @property
    def capabilities(self) -> frozenset[Capability]:
        if not self.exists:
            return frozenset()
        return capabilities_for(self.role)

    @property
    def is_admin(self) -> bool:
        return Capability.ADMIN in self.capabilities

    @property
    def is_approver(self) -> bool:
        return Capability.APPROVER in self.capabilities


@dataclass(frozen=True)
class TransactionInfo:
    """A transfer request."""

    id: int
    sender: str
    recipient: str
    amount: int
    description: str
    status: TransactionStatus
    created_at: datetime | None
    approval_id: int

    @property
    def exists(self) -> bool:
        return self.id != 0


@dataclass(frozen=True)
class ApprovalInfo:
    """An approval request and, once processed, its outcome."""

    id: int
    transaction_id: int
    requester: str
    approver: str | None
    status: ApprovalStatus
    reason: str
    created_at: datetime | None

    @property
    def exists(self) -> bool:
        return self.id != 0


EMPTY_USER = UserInfo(
    id=0,
    address="",
    name="",
    email="",
    role=Role.REGULAR,
    active=False,
    created_at=None,
)

EMPTY_TRANSACTION = TransactionInfo(
    id=0,
    sender="",
    recipient="",
    amount=0,
    description="",
    status=TransactionStatus.PENDING,
    created_at=None,
    approval_id=0,
)

EMPTY_APPROVAL = ApprovalInfo(
    id=0,
    transaction_id=0,
    requester="",
    approver=None,
    status=ApprovalStatus.PENDING,
    reason="",
    created_at=None,
)

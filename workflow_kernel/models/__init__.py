"""ORM models for the workflow kernel."""

from workflow_kernel.models.approval import Approval
from workflow_kernel.models.transaction import Transaction
from workflow_kernel.models.user import User
from workflow_kernel.models.workflow_event import WorkflowEvent

__all__ = [
    "User",
    "Transaction",
    "Approval",
    "WorkflowEvent",
]

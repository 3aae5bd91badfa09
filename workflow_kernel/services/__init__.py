"""Services for the workflow kernel."""

from workflow_kernel.services.aggregate_guard import AggregateGuard
from workflow_kernel.services.approval_ledger import ApprovalLedger
from workflow_kernel.services.event_log import WorkflowEventLog
from workflow_kernel.services.event_sinks import InMemoryEventSink, LoggingEventSink
from workflow_kernel.services.identity_service import IdentityService
from workflow_kernel.services.sequence_service import SequenceService
from workflow_kernel.services.transaction_ledger import TransactionLedger
from workflow_kernel.services.workflow_coordinator import (
    WorkflowCoordinator,
    build_coordinator,
)

__all__ = [
    "AggregateGuard",
    "ApprovalLedger",
    "IdentityService",
    "InMemoryEventSink",
    "LoggingEventSink",
    "SequenceService",
    "TransactionLedger",
    "WorkflowCoordinator",
    "WorkflowEventLog",
    "build_coordinator",
]

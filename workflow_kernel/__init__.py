"""
Workflow Kernel - permissioned transfer approval workflow.

A role-gated state machine over three ledgers:
- Identity & role store (registered users, derived capabilities)
- Transaction ledger (transfer requests and their lifecycle)
- Approval ledger (one approval per transaction, processed once)

All mutation flows through WorkflowCoordinator, which runs every operation
as one atomic unit and emits one notification per state change.
"""

__version__ = "0.1.0"

"""
Pytest fixtures for the workflow kernel test suite.

Provides:
- A private in-memory SQLite database per test (tables + sequence counters)
- Ledger services bound to one session, for service-level tests
- A bootstrapped WorkflowCoordinator with an in-memory event sink
- The scenario principals (admin, managers, regular users, strangers)
- Structured log capture
"""

import json
import logging
from dataclasses import dataclass
from io import StringIO

import pytest
from workflow_kernel.db.engine import build_engine, create_session_factory, create_tables
from workflow_kernel.domain.clock import DeterministicClock
from workflow_kernel.domain.roles import Role
from workflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from workflow_kernel.services.approval_ledger import ApprovalLedger
from workflow_kernel.services.event_log import WorkflowEventLog
from workflow_kernel.services.event_sinks import InMemoryEventSink
from workflow_kernel.services.identity_service import IdentityService
from workflow_kernel.services.transaction_ledger import TransactionLedger
from workflow_kernel.services.workflow_coordinator import WorkflowCoordinator


@dataclass(frozen=True)
class Principals:
    """Caller identities used across the suite."""

    admin: str = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
    user1: str = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
    user2: str = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
    user3: str = "0x90F79bf6EB2c4f870365E785982E1f101E93b906"
    approver1: str = "0x15d34AAf54267DB7D7c367839AAf71A00a2C6A65"
    stranger: str = "0x9965507D1a55bcC2695C58ba16FB37d819B0A4dc"


PRINCIPALS = Principals()


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture workflow_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, coordinator):
            coordinator.create_transaction(...)
            logs = captured_logs()
            assert any(r["message"] == "transaction_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("workflow_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """A private in-memory SQLite database with all tables created."""
    eng = build_engine("sqlite://")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory):
    """A session for service-level tests.  Rolled back at teardown."""
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


# =============================================================================
# Service-level fixtures (one shared session, no coordinator)
# =============================================================================


@pytest.fixture
def principals() -> Principals:
    return PRINCIPALS


@pytest.fixture
def event_log(session, deterministic_clock):
    return WorkflowEventLog(session, deterministic_clock)


@pytest.fixture
def identity(session, event_log, deterministic_clock):
    return IdentityService(session, event_log, deterministic_clock)


@pytest.fixture
def transaction_ledger(session, identity, event_log, deterministic_clock):
    return TransactionLedger(session, identity, event_log, deterministic_clock)


@pytest.fixture
def approval_ledger(session, identity, transaction_ledger, event_log, deterministic_clock):
    return ApprovalLedger(
        session, identity, transaction_ledger, event_log, deterministic_clock,
    )


@pytest.fixture
def seeded_identity(identity, principals):
    """Identity store holding the scenario users.

    admin (Admin), user1 (Manager), user2 (Regular), user3 (Regular),
    approver1 (Manager).
    """
    p = principals
    identity.register(p.admin, p.admin, "Platform Admin", "", Role.ADMIN)
    identity.register(p.admin, p.user1, "User One", "user1@example.com", Role.MANAGER)
    identity.register(p.admin, p.user2, "User Two", "user2@example.com", Role.REGULAR)
    identity.register(p.admin, p.user3, "User Three", "user3@example.com", Role.REGULAR)
    identity.register(p.admin, p.approver1, "Approver One", "approver1@example.com", Role.MANAGER)
    return identity


# =============================================================================
# Coordinator fixtures
# =============================================================================


@pytest.fixture
def event_sink():
    return InMemoryEventSink()


@pytest.fixture
def coordinator(session_factory, deterministic_clock, event_sink, principals):
    """A coordinator whose directory holds only the bootstrapped admin.

    The sink is cleared after bootstrap, so tests see only their own
    notifications.
    """
    coord = WorkflowCoordinator(
        session_factory, clock=deterministic_clock, sinks=[event_sink],
    )
    coord.bootstrap(principals.admin)
    event_sink.clear()
    return coord


@pytest.fixture
def registered(coordinator, event_sink, principals):
    """Coordinator with every scenario user registered by the admin."""
    p = principals
    coordinator.register_user(p.admin, p.user1, "User One", "user1@example.com", Role.MANAGER)
    coordinator.register_user(p.admin, p.user2, "User Two", "user2@example.com", Role.REGULAR)
    coordinator.register_user(p.admin, p.user3, "User Three", "user3@example.com", Role.REGULAR)
    coordinator.register_user(
        p.admin, p.approver1, "Approver One", "approver1@example.com", Role.MANAGER,
    )
    event_sink.clear()
    return coordinator


@pytest.fixture
def pending_transaction(registered, principals):
    """Id of a Pending transaction user2 -> user3, amount 1000."""
    return registered.create_transaction(
        principals.user2, principals.user3, 1000, "Test transaction",
    )


@pytest.fixture
def pending_approval(registered, pending_transaction, principals):
    """(transaction_id, approval_id) with the approval still Pending."""
    approval_id = registered.request_approval(
        principals.user2, pending_transaction, "Need approval",
    )
    return pending_transaction, approval_id


@pytest.fixture
def active_transaction(registered, pending_approval, principals):
    """Id of a transaction approved by approver1, now Active."""
    transaction_id, approval_id = pending_approval
    registered.process_approval(principals.approver1, approval_id, True, "Approved")
    return transaction_id

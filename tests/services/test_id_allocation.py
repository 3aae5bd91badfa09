"""
Property tests: ids stay dense from 1 whatever mix of valid and invalid
operations precedes them.
"""

from hypothesis import given, settings
from hypothesis import strategies as st
from workflow_kernel.db.engine import build_engine, create_session_factory, create_tables
from workflow_kernel.domain.clock import DeterministicClock
from workflow_kernel.domain.roles import Role
from workflow_kernel.domain.values import MAX_AMOUNT
from workflow_kernel.exceptions import InvalidAmountError, WorkflowKernelError
from workflow_kernel.services.workflow_coordinator import WorkflowCoordinator

ADMIN = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
ALICE = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
BOB = "0x90F79bf6EB2c4f870365E785982E1f101E93b906"
MANAGER = "0x15d34AAf54267DB7D7c367839AAf71A00a2C6A65"

valid_amounts = st.integers(min_value=1, max_value=MAX_AMOUNT)
invalid_amounts = st.one_of(
    st.integers(max_value=0),
    st.integers(min_value=MAX_AMOUNT + 1),
    st.booleans(),
    st.floats(allow_nan=False),
    st.text(max_size=5),
)


def _fresh_coordinator() -> WorkflowCoordinator:
    engine = build_engine("sqlite://")
    create_tables(engine)
    coordinator = WorkflowCoordinator(
        create_session_factory(engine),
        clock=DeterministicClock(),
    )
    coordinator.bootstrap(ADMIN)
    coordinator.register_user(ADMIN, ALICE, "Alice", "", Role.REGULAR)
    coordinator.register_user(ADMIN, MANAGER, "Manager", "", Role.MANAGER)
    return coordinator


@settings(max_examples=25, deadline=None)
@given(st.lists(st.one_of(valid_amounts, invalid_amounts), min_size=1, max_size=12))
def test_transaction_ids_dense_despite_failures(amounts):
    coordinator = _fresh_coordinator()
    created = []
    for amount in amounts:
        try:
            created.append(coordinator.create_transaction(ALICE, BOB, amount, ""))
        except InvalidAmountError:
            pass
    assert created == list(range(1, len(created) + 1))
    assert coordinator.get_transaction_count(ADMIN) == len(created)
    for tx_id, amount in zip(created, [a for a in amounts if _is_valid(a)]):
        assert coordinator.get_transaction(ADMIN, tx_id).amount == amount


def _is_valid(amount) -> bool:
    return isinstance(amount, int) and not isinstance(amount, bool) and 0 < amount <= MAX_AMOUNT


@settings(max_examples=20, deadline=None)
@given(st.lists(st.sampled_from(["request", "bad_request", "process", "bad_process"]), max_size=10))
def test_approval_ids_dense_despite_failures(steps):
    coordinator = _fresh_coordinator()
    approvals = []
    pending = []
    for step in steps:
        try:
            if step == "request":
                tx_id = coordinator.create_transaction(ALICE, BOB, 1, "")
                approvals.append(coordinator.request_approval(ALICE, tx_id, ""))
                pending.append(approvals[-1])
            elif step == "bad_request":
                coordinator.request_approval(BOB, 999, "")
            elif step == "process" and pending:
                coordinator.process_approval(MANAGER, pending.pop(0), True, "")
            elif step == "bad_process":
                coordinator.process_approval(ALICE, 1, True, "")
        except WorkflowKernelError:
            pass
    assert approvals == list(range(1, len(approvals) + 1))
    assert coordinator.get_pending_approvals(ADMIN) == pending

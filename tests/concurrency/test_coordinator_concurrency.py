"""
Thread-level concurrency tests for the WorkflowCoordinator.

Every operation is serialized by the coordinator's writer lock, so racing
callers must observe exactly one winner per state change and dense ids.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from workflow_kernel.domain.events import NotificationKind
from workflow_kernel.domain.lifecycle import TransactionStatus
from workflow_kernel.domain.roles import Role
from workflow_kernel.exceptions import (
    ApprovalAlreadyProcessedError,
    ApprovalAlreadyRequestedError,
    WorkflowKernelError,
)

THREADS = 8


def _race(fn, args_list):
    """Run ``fn(*args)`` for each args tuple, released together by a barrier.

    Returns (results, errors) in submission order.
    """
    barrier = Barrier(len(args_list))

    def _call(args):
        barrier.wait()
        try:
            return fn(*args), None
        except WorkflowKernelError as exc:
            return None, exc

    with ThreadPoolExecutor(max_workers=len(args_list)) as pool:
        outcomes = list(pool.map(_call, args_list))
    return [r for r, _ in outcomes], [e for _, e in outcomes]


class TestConcurrentCreates:
    def test_ids_are_dense_and_unique(self, registered, principals):
        per_thread = 10

        def _burst(sender):
            return [
                registered.create_transaction(sender, principals.user3, n + 1, "burst")
                for n in range(per_thread)
            ]

        senders = [(principals.user2,), (principals.user1,)] * (THREADS // 2)
        results, errors = _race(_burst, senders)

        assert errors == [None] * THREADS
        ids = sorted(i for batch in results for i in batch)
        assert ids == list(range(1, THREADS * per_thread + 1))
        assert registered.get_transaction_count(principals.admin) == THREADS * per_thread


class TestSingleWinner:
    def test_one_process_wins(self, registered, pending_approval, event_sink, principals):
        tx_id, approval_id = pending_approval
        event_sink.clear()
        callers = [(principals.approver1,), (principals.user1,), (principals.admin,)] * 2

        def _process(caller):
            registered.process_approval(caller, approval_id, True, "race")
            return caller

        results, errors = _race(_process, callers)

        winners = [r for r in results if r is not None]
        assert len(winners) == 1
        assert all(isinstance(e, ApprovalAlreadyProcessedError) for e in errors if e)
        assert registered.get_approval(principals.admin, approval_id).approver == winners[0]
        assert registered.get_transaction(principals.admin, tx_id).status is TransactionStatus.ACTIVE
        assert len(event_sink.of_kind(NotificationKind.APPROVAL_PROCESSED)) == 1

    def test_one_request_wins(self, registered, pending_transaction, principals):
        results, errors = _race(
            lambda reason: registered.request_approval(principals.user2, pending_transaction, reason),
            [(f"request {n}",) for n in range(THREADS)],
        )
        assert [r for r in results if r is not None] == [1]
        assert all(isinstance(e, ApprovalAlreadyRequestedError) for e in errors if e)
        assert registered.get_approval_count(principals.admin) == 1

    def test_duplicate_registration_race(self, registered, principals):
        results, errors = _race(
            lambda name: registered.register_user(
                principals.admin, principals.stranger, name, "", Role.REGULAR,
            ),
            [(f"name {n}",) for n in range(THREADS)],
        )
        assert len([r for r in results if r is not None]) == 1
        assert registered.get_user_count(principals.admin) == 6


class TestReentrancy:
    def test_sink_reentering_same_transaction_is_rejected(
        self, registered, pending_approval, principals,
    ):
        tx_id, approval_id = pending_approval
        seen = []

        class CompletingSink:
            def publish(self, notification):
                if notification.kind is NotificationKind.TRANSACTION_STATUS_CHANGED:
                    try:
                        registered.complete_transaction(principals.user2, tx_id)
                    except WorkflowKernelError as exc:
                        seen.append(exc.code)

        registered.add_sink(CompletingSink())
        registered.process_approval(principals.approver1, approval_id, True, "ok")

        assert seen == ["REENTRANT_CALL"]
        assert registered.get_transaction(principals.admin, tx_id).status is TransactionStatus.ACTIVE

    def test_sink_creating_for_same_sender_is_rejected(
        self, registered, event_sink, principals,
    ):
        seen = []

        class EchoSink:
            def publish(self, notification):
                if notification.kind is NotificationKind.TRANSACTION_CREATED:
                    try:
                        registered.create_transaction(principals.user2, principals.user3, 1, "nested")
                    except WorkflowKernelError as exc:
                        seen.append(exc.code)

        registered.add_sink(EchoSink())
        tx_id = registered.create_transaction(principals.user2, principals.user3, 5, "x")

        assert tx_id == 1
        assert seen == ["REENTRANT_CALL"]
        assert registered.get_transaction_count(principals.admin) == 1
        assert len(event_sink.of_kind(NotificationKind.TRANSACTION_CREATED)) == 1

    def test_sink_may_read_committed_state(self, registered, principals):
        seen = []

        class ReadingSink:
            def publish(self, notification):
                if notification.kind is NotificationKind.TRANSACTION_CREATED:
                    seen.append(
                        registered.get_transaction(principals.admin, notification.transaction_id)
                    )

        registered.add_sink(ReadingSink())
        tx_id = registered.create_transaction(principals.user2, principals.user3, 5, "x")
        assert [tx.id for tx in seen] == [tx_id]
        assert seen[0].status is TransactionStatus.PENDING

    def test_sink_may_touch_other_aggregates(self, registered, principals):
        started = []
        created = []

        class FollowUpSink:
            def publish(self, notification):
                if notification.kind is NotificationKind.TRANSACTION_CREATED and not started:
                    started.append(notification.seq)
                    created.append(
                        registered.create_transaction(principals.user3, principals.user2, 1, "echo")
                    )

        registered.add_sink(FollowUpSink())
        first = registered.create_transaction(principals.user2, principals.user3, 5, "x")
        assert (first, created) == (1, [2])

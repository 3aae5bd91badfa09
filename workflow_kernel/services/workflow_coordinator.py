"""
WorkflowCoordinator -- the operation surface external callers invoke.

Responsibility:
    Composes the identity store, the transaction and approval ledgers and
    the workflow event log for each operation.  Gates Admin-only
    operations, runs every operation as one atomic database transaction,
    and hands the resulting notifications to the registered event sinks
    after commit.

Architecture position:
    Kernel > Services.  Top of the kernel; nothing in the kernel imports it.
    The only place where ledger services are constructed and composed
    (see ``_OperationServices``).

Invariants enforced:
    - Atomicity: each operation runs in ``session_scope`` -- commit on
      success, rollback on any error.  A failed operation leaves no row,
      consumes no id and emits no notification.
    - Serialization: one writer lock covers every operation's database
      work, reads included, so no caller observes a half-applied mutation.
    - Reentrancy: every mutation holds the aggregates it touches in an
      ``AggregateGuard`` until its notifications have been dispatched (a
      create holds its sender).  A sink callback re-entering a held
      aggregate fails with ReentrancyError; another thread waits.
    - Sinks see notifications in emission order, after commit and outside
      the writer lock.  Every sink receives every notification.

Failure modes:
    - Every WorkflowKernelError propagates unchanged, after one WARNING
      log line carrying its code.
    - An exception raised by a sink is logged as "sink_publish_failed"
      and dispatch moves on to the next sink.  The operation has already
      committed, so the caller still gets its result.

Usage:
    coordinator = WorkflowCoordinator(session_factory, clock=clock)
    coordinator.bootstrap("0xadmin...")
    tx_id = coordinator.create_transaction("0xuser...", "0xpeer...", 1000, "rent")
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, TypeVar
from uuid import uuid4

from sqlalchemy.orm import Session, sessionmaker

from workflow_kernel.db.engine import (
    build_engine,
    create_session_factory,
    create_tables,
    session_scope,
)
from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.dtos import ApprovalInfo, TransactionInfo, UserInfo
from workflow_kernel.domain.events import EventSink, WorkflowNotification
from workflow_kernel.domain.roles import Role
from workflow_kernel.exceptions import AdminRequiredError, WorkflowKernelError
from workflow_kernel.logging_config import LogContext, configure_logging, get_logger
from workflow_kernel.services.aggregate_guard import AggregateGuard, AggregateKey
from workflow_kernel.services.approval_ledger import ApprovalLedger
from workflow_kernel.services.event_log import WorkflowEventLog
from workflow_kernel.services.event_sinks import LoggingEventSink
from workflow_kernel.services.identity_service import IdentityService
from workflow_kernel.services.transaction_ledger import TransactionLedger

if TYPE_CHECKING:
    from workflow_config.schema import WorkflowSettings

logger = get_logger("services.coordinator")

T = TypeVar("T")

DEFAULT_ADMIN_NAME = "Platform Admin"


class _OperationServices:
    """Ledger services bound to one operation's session.

    Construction order is the dependency graph: the event log first, then
    the identity store, then the two ledgers.
    """

    def __init__(self, session: Session, clock: Clock):
        self.event_log = WorkflowEventLog(session, clock)
        self.identity = IdentityService(session, self.event_log, clock)
        self.transactions = TransactionLedger(
            session, self.identity, self.event_log, clock,
        )
        self.approvals = ApprovalLedger(
            session, self.identity, self.transactions, self.event_log, clock,
        )

    def require_admin(self, caller: str, operation: str) -> None:
        if not self.identity.is_admin(caller):
            raise AdminRequiredError(caller, operation)


class WorkflowCoordinator:
    """
    Facade over the transfer-approval workflow.

    Contract:
        Every public operation takes the authenticated ``caller`` principal
        first.  Mutations return the id they allocate (or None); queries
        return frozen DTOs, id lists or counts.

    Non-goals:
        - Does NOT authenticate callers; the caller string is trusted.
        - Does NOT retry.  Every failure is immediate.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        sinks: Iterable[EventSink] = (),
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._sinks: list[EventSink] = list(sinks)
        self._lock = threading.Lock()
        self._guard = AggregateGuard()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def add_sink(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    @contextmanager
    def _logged(self, operation: str, caller: str, **fields: Any):
        with LogContext.bind(
            correlation_id=uuid4().hex,
            actor_id=caller,
            operation=operation,
            **fields,
        ):
            try:
                yield
            except WorkflowKernelError as exc:
                logger.warning(
                    "operation_rejected",
                    exc_info=True,
                    extra={"error_code": exc.code},
                )
                raise

    def _run(
        self,
        work: Callable[[_OperationServices], T],
    ) -> tuple[T, Sequence[WorkflowNotification]]:
        with self._lock:
            with session_scope(self._session_factory) as session:
                services = _OperationServices(session, self._clock)
                result = work(services)
                notifications = services.event_log.recorded
        return result, notifications

    def _dispatch(self, notifications: Sequence[WorkflowNotification]) -> None:
        for notification in notifications:
            for sink in list(self._sinks):
                try:
                    sink.publish(notification)
                except Exception:
                    logger.error(
                        "sink_publish_failed",
                        exc_info=True,
                        extra={
                            "seq": notification.seq,
                            "kind": notification.kind.value,
                            "sink": type(sink).__name__,
                        },
                    )

    def _mutate(
        self,
        keys: Sequence[AggregateKey],
        work: Callable[[_OperationServices], T],
    ) -> T:
        with self._guard.hold(*keys):
            result, notifications = self._run(work)
            self._dispatch(notifications)
        return result

    def _query(self, work: Callable[[_OperationServices], T]) -> T:
        result, _ = self._run(work)
        return result

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    def bootstrap(
        self,
        admin_address: str,
        name: str = DEFAULT_ADMIN_NAME,
        email: str = "",
    ) -> UserInfo:
        """
        Register ``admin_address`` as the first Admin if no user exists yet.

        A no-op on a non-empty directory.  Returns the record for
        ``admin_address`` (EMPTY_USER if the directory belongs to another
        admin and this address was never registered).
        """

        def work(s: _OperationServices) -> UserInfo:
            if s.identity.count() == 0:
                s.identity.register(admin_address, admin_address, name, email, Role.ADMIN)
                logger.info("directory_bootstrapped", extra={"admin": admin_address})
            return s.identity.get(admin_address)

        with self._logged("bootstrap", admin_address):
            return self._mutate([("user", admin_address)], work)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def register_user(
        self,
        caller: str,
        address: str,
        name: str,
        email: str,
        role: Role | str | int,
    ) -> int:
        """Register a new user (Admin only).  Returns the new user id."""

        def work(s: _OperationServices) -> int:
            s.require_admin(caller, "register_user")
            return s.identity.register(caller, address, name, email, role).id

        with self._logged("register_user", caller):
            return self._mutate([("user", address)], work)

    def update_user_role(
        self,
        caller: str,
        address: str,
        new_role: Role | str | int,
    ) -> None:
        """Replace a registered user's role (Admin only)."""

        def work(s: _OperationServices) -> None:
            s.require_admin(caller, "update_user_role")
            s.identity.update_role(caller, address, new_role)

        with self._logged("update_user_role", caller):
            self._mutate([("user", address)], work)

    def get_user(self, caller: str, address: str) -> UserInfo:
        """The user record for ``address``; EMPTY_USER when unknown."""
        return self._query(lambda s: s.identity.get(address))

    def get_all_users(self, caller: str) -> list[str]:
        """Every registered address in registration order (Admin only)."""

        def work(s: _OperationServices) -> list[str]:
            s.require_admin(caller, "get_all_users")
            return s.identity.list_all()

        with self._logged("get_all_users", caller):
            return self._query(work)

    def get_user_count(self, caller: str) -> int:
        return self._query(lambda s: s.identity.count())

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def create_transaction(
        self,
        caller: str,
        recipient: str,
        amount: int,
        description: str,
    ) -> int:
        """Create a Pending transaction from ``caller``.  Returns its id."""

        def work(s: _OperationServices) -> int:
            return s.transactions.create(caller, recipient, amount, description).id

        with self._logged("create_transaction", caller):
            return self._mutate([("user", caller)], work)

    def complete_transaction(self, caller: str, transaction_id: int) -> None:
        """Move the caller's Active transaction to Completed."""

        def work(s: _OperationServices) -> None:
            s.transactions.complete(caller, transaction_id)

        with self._logged("complete_transaction", caller, transaction_id=transaction_id):
            self._mutate([("transaction", transaction_id)], work)

    def get_transaction(self, caller: str, transaction_id: int) -> TransactionInfo:
        """The transaction record; EMPTY_TRANSACTION for unknown ids."""
        return self._query(lambda s: s.transactions.get(transaction_id))

    def get_user_transactions(self, caller: str, address: str) -> list[int]:
        """Ids of transactions ``address`` sent or received, in creation order."""
        return self._query(lambda s: s.transactions.list_for_address(address))

    def get_all_transactions(self, caller: str) -> list[int]:
        """Every transaction id in creation order (Admin only)."""

        def work(s: _OperationServices) -> list[int]:
            s.require_admin(caller, "get_all_transactions")
            return s.transactions.list_all()

        with self._logged("get_all_transactions", caller):
            return self._query(work)

    def get_transaction_count(self, caller: str) -> int:
        return self._query(lambda s: s.transactions.count())

    # ------------------------------------------------------------------
    # Approvals
    # ------------------------------------------------------------------

    def request_approval(self, caller: str, transaction_id: int, reason: str) -> int:
        """Open an approval for the caller's Pending transaction.  Returns its id."""

        def work(s: _OperationServices) -> int:
            return s.approvals.request_approval(caller, transaction_id, reason).id

        with self._logged("request_approval", caller, transaction_id=transaction_id):
            return self._mutate([("transaction", transaction_id)], work)

    def process_approval(
        self,
        caller: str,
        approval_id: int,
        approve: bool,
        reason: str,
    ) -> None:
        """Approve or reject a Pending approval (Manager or Admin)."""
        # approval -> transaction linkage never changes once written
        transaction_id = self._query(lambda s: s.approvals.transaction_id_for(approval_id))
        keys: list[AggregateKey] = [("approval", approval_id)]
        if transaction_id:
            keys.append(("transaction", transaction_id))

        def work(s: _OperationServices) -> None:
            s.approvals.process(caller, approval_id, approve, reason)

        with self._logged(
            "process_approval",
            caller,
            approval_id=approval_id,
            transaction_id=transaction_id or None,
        ):
            self._mutate(keys, work)

    def get_approval(self, caller: str, approval_id: int) -> ApprovalInfo:
        """The approval record; EMPTY_APPROVAL for unknown ids."""
        return self._query(lambda s: s.approvals.get(approval_id))

    def get_pending_approvals(self, caller: str) -> list[int]:
        """Ids of Pending approvals in ascending order."""
        return self._query(lambda s: s.approvals.list_pending())

    def get_approval_count(self, caller: str) -> int:
        return self._query(lambda s: s.approvals.count())

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    def history(
        self,
        transaction_id: int | None = None,
        subject: str | None = None,
    ) -> list[WorkflowNotification]:
        """Logged notifications in ``seq`` order, optionally filtered."""
        return self._query(lambda s: s.event_log.history(transaction_id, subject))


def build_coordinator(
    settings: WorkflowSettings,
    clock: Clock | None = None,
    sinks: Iterable[EventSink] = (),
) -> WorkflowCoordinator:
    """
    Wire a coordinator from settings: logging, engine, tables, sinks and
    the bootstrap admin.
    """
    configure_logging(level=settings.logging.level)

    db = settings.database
    engine = build_engine(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_pre_ping=db.pool_pre_ping,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
    create_tables(engine)
    factory = create_session_factory(engine)

    all_sinks: list[EventSink] = list(sinks)
    if settings.logging.log_notifications:
        all_sinks.append(LoggingEventSink())

    coordinator = WorkflowCoordinator(factory, clock=clock, sinks=all_sinks)
    admin = settings.bootstrap
    if admin.admin_address:
        coordinator.bootstrap(admin.admin_address, admin.name, admin.email)
    return coordinator


__all__ = [
    "DEFAULT_ADMIN_NAME",
    "WorkflowCoordinator",
    "build_coordinator",
]

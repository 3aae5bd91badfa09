"""
BaseService -- abstract base for the ledger services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every ledger service.  Services receive a SQLAlchemy ``Session`` and
    use ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback themselves.  The WorkflowCoordinator owns
    commit/rollback, which is what makes each operation atomic.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from workflow_kernel.db.base import Base
from workflow_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for ledger services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Clock for ``created_at`` stamps. Defaults to SystemClock.
        """
        self.session = session
        self.clock = clock or SystemClock()

"""
SequenceService -- monotonic id allocation via locked counter rows.

Responsibility:
    Provides strictly increasing, dense ids for users, transactions,
    approvals and logged notifications.  Uses a dedicated counter table
    with row-level locking (``SELECT ... FOR UPDATE`` where the backend
    supports it) so the counter row is the sole source of truth.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by the identity, transaction and approval ledgers and by the
    workflow event log.

Invariants enforced:
    - Ids are strictly monotonic and start at 1.  The aggregate-max-plus-one
      pattern is never used.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the value, so a failed
      operation never burns an id.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from workflow_kernel.db.base import Base
from workflow_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.  The increment is committed with the caller's
        transaction.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Exposes no way to write a counter except ``next_value``.

    Usage:
        with session_scope(factory) as session:
            seq = SequenceService(session).next_value(SequenceService.TRANSACTION)
    """

    USER = "user"
    TRANSACTION = "transaction"
    APPROVAL = "approval"
    WORKFLOW_EVENT = "workflow_event"

    WELL_KNOWN = (USER, TRANSACTION, APPROVAL, WORKFLOW_EVENT)

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Postconditions:
            - Returns an integer > 0 that is exactly one greater than the
              previously committed value for this sequence.

        Args:
            sequence_name: Name of the sequence.

        Returns:
            The next sequence value (always > 0).
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=0)
            self._session.add(counter)

        counter.current_value += 1
        assert counter.current_value > 0, "sequence value must be strictly positive"
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int:
        """
        Get the current value of a sequence without incrementing.

        Returns:
            Current value, or 0 if the sequence has never been used.
        """
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else 0

    def initialize_sequences(self) -> None:
        """
        Initialize all well-known sequences.

        Called during schema setup so every counter row exists before the
        first concurrent allocation.
        """
        for name in self.WELL_KNOWN:
            existing = self._session.execute(
                select(SequenceCounter)
                .where(SequenceCounter.name == name)
            ).scalar_one_or_none()

            if existing is None:
                self._session.add(SequenceCounter(name=name, current_value=0))

        self._session.flush()

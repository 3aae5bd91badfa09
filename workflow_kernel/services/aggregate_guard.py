"""
AggregateGuard -- per-aggregate in-flight tracking.

Responsibility:
    Marks the aggregates an operation touches (``("transaction", 7)``,
    ``("approval", 3)``, ``("user", "0xabc...")``) as in flight for the
    duration of the operation, including after-commit notification
    dispatch.

Invariants enforced:
    - A key is held by at most one thread at a time.
    - Re-entry on a key already held by the current thread raises
      ReentrancyError immediately (an event-sink callback calling back into
      the operation that notified it).  Another thread blocks until the
      key is released.
    - Keys are acquired all-or-nothing, so a waiting thread never holds a
      partial set.
"""

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager

from workflow_kernel.exceptions import ReentrancyError
from workflow_kernel.logging_config import get_logger

logger = get_logger("services.aggregate_guard")

AggregateKey = tuple[str, Hashable]


class AggregateGuard:
    """Thread-aware in-flight registry for aggregate keys."""

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._holders: dict[AggregateKey, int] = {}

    def held_by_current_thread(self, key: AggregateKey) -> bool:
        with self._condition:
            return self._holders.get(key) == threading.get_ident()

    @contextmanager
    def hold(self, *keys: AggregateKey) -> Iterator[None]:
        """
        Hold ``keys`` for the body of the ``with`` block.

        Raises:
            ReentrancyError: If the current thread already holds any key.
        """
        me = threading.get_ident()
        wanted = tuple(dict.fromkeys(keys))

        with self._condition:
            for key in wanted:
                if self._holders.get(key) == me:
                    logger.warning(
                        "reentrant_call_rejected",
                        extra={"aggregate": key[0], "key": str(key[1])},
                    )
                    raise ReentrancyError(key[0], key[1])
            while any(key in self._holders for key in wanted):
                self._condition.wait()
            for key in wanted:
                self._holders[key] = me

        try:
            yield
        finally:
            with self._condition:
                for key in wanted:
                    self._holders.pop(key, None)
                self._condition.notify_all()

"""
Module: workflow_kernel.db.types
Responsibility: Column types shared by every ledger model.  Centralizes how
    amounts and timestamps are stored so each model uses identical
    definitions.
Architecture position: Kernel > DB.  May be imported by models/ and
    services/.  MUST NOT import from either.

Invariants enforced:
    - Amounts are exact integers over the full uint256 range.  They are
      stored as decimal digit strings because no portable SQL integer type
      holds 256 bits.
    - Timestamps are always returned timezone-aware (UTC), including on
      backends such as SQLite that drop the offset on write.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.types import TypeDecorator


class TokenAmount(TypeDecorator):
    """
    Arbitrary-size non-negative integer stored as String(78).

    78 digits covers 2**256 - 1.
    """

    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(int(value))
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return int(value)
        return None


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime that is normalized to UTC on the way in and
    re-tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


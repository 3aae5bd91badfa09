"""Database layer - engine, base class, column types."""

from workflow_kernel.db.base import Base
from workflow_kernel.db.engine import (
    build_engine,
    create_session_factory,
    create_tables,
    session_scope,
)
from workflow_kernel.db.types import TokenAmount, UTCDateTime

__all__ = [
    "build_engine",
    "create_session_factory",
    "create_tables",
    "session_scope",
    "Base",
    "TokenAmount",
    "UTCDateTime",
]

"""
Module: workflow_kernel.db.base
Responsibility: Declarative base class for all SQLAlchemy ORM models.
    Provides the type annotation map for consistent column types.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, or domain/.

Invariants enforced:
    - Sequential primary keys: ledger ids are allocated by SequenceService
      and assigned explicitly.  Database autoincrement is never used, so an
      aborted operation cannot burn an id.
    - Timestamps are timezone-aware (UTCDateTime).
"""

from datetime import datetime
from typing import ClassVar

from sqlalchemy import BigInteger
from sqlalchemy.orm import DeclarativeBase

from workflow_kernel.db.types import UTCDateTime


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - datetime maps to UTCDateTime -- always timezone-aware.
        - int maps to BigInteger -- safe for monotonic sequences.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        int: BigInteger,
    }

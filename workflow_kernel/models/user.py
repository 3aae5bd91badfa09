"""
Module: workflow_kernel.models.user
Responsibility: ORM persistence for the registered-user directory.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - address is a unique key (uq_users_address); registration never
      overwrites an existing row.
    - id is allocated once by SequenceService ("user") and never reused.
    - role is the only stored access-control fact.  Capabilities are
      derived from it (domain/roles.py).
    - Users are never deleted (before_delete listener).

Audit relevance:
    The user id order is the administrative enumeration order returned by
    list_all().
"""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, String, event
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base
from workflow_kernel.domain.dtos import UserInfo
from workflow_kernel.domain.roles import Role
from workflow_kernel.exceptions import ImmutabilityViolationError


class User(Base):
    """
    A registered principal.

    Guarantees:
        - ``active`` is True at creation and is not toggled by any operation.
    """

    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint(
            "role IN ('regular', 'manager', 'admin')",
            name="ck_users_valid_role",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)

    address: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        unique=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Role.REGULAR.value,
    )

    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<User {self.id} {self.address} role={self.role}>"

    def to_dto(self) -> UserInfo:
        """Convert ORM model to frozen domain DTO."""
        return UserInfo(
            id=self.id,
            address=self.address,
            name=self.name,
            email=self.email,
            role=Role(self.role),
            active=self.active,
            created_at=self.created_at,
        )


@event.listens_for(User, "before_delete")
def prevent_user_delete(mapper, connection, target):
    """Users are never physically deleted."""
    raise ImmutabilityViolationError(
        entity_type="User",
        entity_id=str(target.id),
        reason="Users cannot be deleted",
    )

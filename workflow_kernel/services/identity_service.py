"""
IdentityService -- the registered-user directory and role store.

Responsibility:
    Registers users, updates roles, and answers "is X registered" and
    "does X hold capability Y".  Capabilities are derived from the stored
    role on every check, so a role change takes effect completely and
    immediately (Admin -> Regular revokes both Admin and Approver).

Architecture position:
    Kernel > Services.  Called by the WorkflowCoordinator (registration,
    role updates, admin gating) and by the ledgers (registration and
    approver checks).

Invariants enforced:
    - Addresses are unique; a second registration fails and never
      overwrites the first.
    - User ids come from SequenceService ("user"): dense, from 1, never
      reused.
    - The null principal can never be registered.

Failure modes:
    - AlreadyRegisteredError, InvalidAddressError on register().
    - UserNotFoundError on update_role() for an unknown address.
    - InvalidRoleError for role values that name no role.
"""

from sqlalchemy import func, select

from workflow_kernel.domain.dtos import EMPTY_USER, UserInfo
from workflow_kernel.domain.events import NotificationKind
from workflow_kernel.domain.roles import Capability, Role, has_capability
from workflow_kernel.domain.values import is_null_principal
from workflow_kernel.exceptions import (
    AlreadyRegisteredError,
    InvalidAddressError,
    UserNotFoundError,
)
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.user import User
from workflow_kernel.services.base import BaseService
from workflow_kernel.services.event_log import WorkflowEventLog
from workflow_kernel.services.sequence_service import SequenceService

logger = get_logger("services.identity")


class IdentityService(BaseService[User]):
    """Registered-user directory with role-derived capabilities."""

    def __init__(self, session, event_log: WorkflowEventLog, clock=None):
        super().__init__(session, clock)
        self._event_log = event_log
        self._sequence_service = SequenceService(session)

    def _find(self, address: str | None) -> User | None:
        if is_null_principal(address):
            return None
        return self.session.execute(
            select(User).where(User.address == address)
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, address: str | None) -> UserInfo:
        """Return the user, or EMPTY_USER (id 0) when unknown."""
        user = self._find(address)
        return user.to_dto() if user is not None else EMPTY_USER

    def is_registered(self, address: str | None) -> bool:
        return self._find(address) is not None

    def role_of(self, address: str | None) -> Role | None:
        """The user's role, or None for unregistered addresses."""
        user = self._find(address)
        return Role(user.role) if user is not None else None

    def has_capability(self, address: str | None, capability: Capability) -> bool:
        return has_capability(self.role_of(address), capability)

    def is_admin(self, address: str | None) -> bool:
        return self.has_capability(address, Capability.ADMIN)

    def is_approver(self, address: str | None) -> bool:
        return self.has_capability(address, Capability.APPROVER)

    def count(self) -> int:
        return self.session.execute(select(func.count(User.id))).scalar_one()

    def list_all(self) -> list[str]:
        """All registered addresses in registration order."""
        return list(
            self.session.execute(select(User.address).order_by(User.id)).scalars()
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def register(
        self,
        actor: str,
        address: str,
        name: str,
        email: str,
        role: Role | str | int,
    ) -> UserInfo:
        """
        Register ``address`` with ``role``.

        The caller's Admin capability is checked by the coordinator.

        Returns:
            The new user's DTO.
        """
        role = Role.parse(role)
        if is_null_principal(address):
            raise InvalidAddressError(address)
        if self._find(address) is not None:
            raise AlreadyRegisteredError(address)

        user_id = self._sequence_service.next_value(SequenceService.USER)
        user = User(
            id=user_id,
            address=address,
            name=name or "",
            email=email or "",
            role=role.value,
            active=True,
            created_at=self.clock.now(),
        )
        self.session.add(user)
        self.session.flush()

        self._event_log.record(
            NotificationKind.USER_REGISTERED,
            actor,
            subject=address,
            payload={"user_id": user_id, "name": user.name, "role": role.value},
        )
        logger.info(
            "user_registered",
            extra={"user_id": user_id, "address": address, "role": role.value},
        )
        return user.to_dto()

    def update_role(
        self,
        actor: str,
        address: str,
        new_role: Role | str | int,
    ) -> UserInfo:
        """
        Replace the role of ``address``.  Setting the current role again is
        a successful no-op on capabilities but is still recorded.
        """
        new_role = Role.parse(new_role)
        user = self._find(address)
        if user is None:
            raise UserNotFoundError(address)

        old_role = Role(user.role)
        user.role = new_role.value
        self.session.flush()

        self._event_log.record(
            NotificationKind.USER_ROLE_UPDATED,
            actor,
            subject=address,
            payload={
                "user_id": user.id,
                "old_role": old_role.value,
                "new_role": new_role.value,
            },
        )
        logger.info(
            "user_role_updated",
            extra={
                "address": address,
                "old_role": old_role.value,
                "new_role": new_role.value,
            },
        )
        return user.to_dto()

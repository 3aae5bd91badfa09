"""
Role and capability types (``workflow_kernel.domain.roles``).

Responsibility
--------------
Pure value objects for access control.  A user's ``Role`` is the single
source of truth; ``Capability`` grants are derived from it by
``capabilities_for``.  Nothing stores capabilities separately, so the two
can never drift apart.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Admin entails {ADMIN, APPROVER}; Manager entails {APPROVER};
  Regular entails nothing.
"""

from __future__ import annotations

from enum import Enum

from workflow_kernel.exceptions import InvalidRoleError


class Role(str, Enum):
    """User roles, ordered by their numeric code."""

    REGULAR = "regular"
    MANAGER = "manager"
    ADMIN = "admin"

    @property
    def code(self) -> int:
        """Numeric code (Regular=0, Manager=1, Admin=2)."""
        return _ROLE_ORDER.index(self)

    @classmethod
    def parse(cls, value: Role | str | int) -> Role:
        """Accept a Role, its value or name, or its numeric code."""
        if isinstance(value, Role):
            return value
        if isinstance(value, bool):
            raise InvalidRoleError(value)
        if isinstance(value, int):
            if 0 <= value < len(_ROLE_ORDER):
                return _ROLE_ORDER[value]
            raise InvalidRoleError(value)
        if isinstance(value, str):
            normalized = value.strip().lower()
            for role in _ROLE_ORDER:
                if role.value == normalized:
                    return role
        raise InvalidRoleError(value)


_ROLE_ORDER: tuple[Role, ...] = (Role.REGULAR, Role.MANAGER, Role.ADMIN)


class Capability(str, Enum):
    """Named permissions derived from a role."""

    ADMIN = "admin"
    APPROVER = "approver"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.REGULAR: frozenset(),
    Role.MANAGER: frozenset({Capability.APPROVER}),
    Role.ADMIN: frozenset({Capability.ADMIN, Capability.APPROVER}),
}


def capabilities_for(role: Role) -> frozenset[Capability]:
    """Return the capability set implied by ``role``."""
    return ROLE_CAPABILITIES[role]


def has_capability(role: Role | None, capability: Capability) -> bool:
    """True iff ``role`` entails ``capability``.  ``None`` means unregistered."""
    if role is None:
        return False
    return capability in ROLE_CAPABILITIES[role]

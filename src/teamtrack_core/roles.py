"""Team role hierarchy.

The hierarchy is an immutable, ordered configuration value. It is built once
(DEFAULT_ROLE_HIERARCHY) and handed to the PermissionEvaluator; nothing
mutates it at runtime.

Default order, lowest to highest:
    stakeholder (1) < member (2) < assistant (3) < manager (4)
"""
from dataclasses import dataclass, field
from typing import Union

from .exceptions import ValidationError
from .models import TeamRole

RoleLike = Union[TeamRole, str]


@dataclass(frozen=True)
class RoleHierarchy:
    """Strict total order over team roles.

    Args:
        order: Roles from lowest to highest privilege. Each role appears once.
    """

    order: tuple[TeamRole, ...]
    _levels: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if len(set(self.order)) != len(self.order):
            raise ValueError("Role hierarchy must not repeat roles")
        levels = {role: index + 1 for index, role in enumerate(self.order)}
        object.__setattr__(self, "_levels", levels)

    def coerce(self, role: RoleLike) -> TeamRole:
        """Resolve a role name or enum member to a TeamRole.

        Raises:
            ValidationError: If the role is not part of this hierarchy
        """
        try:
            resolved = TeamRole(role)
        except ValueError:
            raise ValidationError(
                f"Unknown team role: {role}",
                details={"role": f"must be one of {[r.value for r in self.order]}"},
            )
        if resolved not in self._levels:
            raise ValidationError(f"Role not part of hierarchy: {resolved.value}")
        return resolved

    def level(self, role: RoleLike) -> int:
        """Numeric level of a role (1 = lowest)."""
        return self._levels[self.coerce(role)]

    def satisfies(self, held: RoleLike, required: RoleLike) -> bool:
        """True if ``held`` is at or above ``required``."""
        return self.level(held) >= self.level(required)

    def roles_at_least(self, required: RoleLike) -> list[TeamRole]:
        """All roles that satisfy ``required``, lowest first."""
        floor = self.level(required)
        return [role for role in self.order if self._levels[role] >= floor]


DEFAULT_ROLE_HIERARCHY = RoleHierarchy(
    order=(
        TeamRole.STAKEHOLDER,
        TeamRole.MEMBER,
        TeamRole.ASSISTANT,
        TeamRole.MANAGER,
    )
)

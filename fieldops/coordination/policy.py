"""Capability checks shared by the REST and socket entry points."""

from __future__ import annotations

from dataclasses import dataclass

from fieldops.models.user import MemberRole
from fieldops.utils.errors import ForbiddenError

# Roles allowed to act on any resource of their tournament
SUPERVISOR_ROLES = frozenset([MemberRole.FIELD_DIRECTOR.value, MemberRole.ADMIN.value])


@dataclass(frozen=True)
class Caller:
    """Authenticated actor resolved from a token and an active membership."""

    user_id: str
    tournament_id: str
    role: str

    @property
    def is_supervisor(self) -> bool:
        return self.role in SUPERVISOR_ROLES


def check_capability(role: str, caller_id: str, owner_id: str | None = None) -> bool:
    """Allow supervisors everywhere and owners on their own resources.

    Args:
        role: Caller's tournament role
        caller_id: Caller's user id
        owner_id: Owner of the target resource, or None for supervisor-only actions

    Returns:
        True if the caller may act
    """
    if role in SUPERVISOR_ROLES:
        return True
    return owner_id is not None and caller_id == owner_id


def require_capability(caller: Caller, owner_id: str | None = None, action: str = "perform this action") -> None:
    """Raise ForbiddenError unless check_capability() allows the caller."""
    if not check_capability(caller.role, caller.user_id, owner_id):
        raise ForbiddenError(
            message=f"Not authorized to {action}",
            details={"role": caller.role},
        )

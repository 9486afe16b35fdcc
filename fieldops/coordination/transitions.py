"""State machines for emergency status and production mode.

Emergency status moves forward only:

    ACTIVE -> IN_PROGRESS -> RESOLVED | CANCELLED
    ACTIVE -> RESOLVED | CANCELLED

Production mode changes only through the named transition functions below,
each of which mutates the ProductionStatus row in place and returns a
ModeTransition describing what happened.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from fieldops.models.emergency import Emergency, EmergencySeverity, EmergencyStatus
from fieldops.models.production import ProductionMode, ProductionStatus
from fieldops.utils.errors import InvalidTransitionError

EMERGENCY_TRANSITIONS: dict[EmergencyStatus, frozenset[EmergencyStatus]] = {
    EmergencyStatus.ACTIVE: frozenset([
        EmergencyStatus.IN_PROGRESS,
        EmergencyStatus.RESOLVED,
        EmergencyStatus.CANCELLED,
    ]),
    EmergencyStatus.IN_PROGRESS: frozenset([
        EmergencyStatus.RESOLVED,
        EmergencyStatus.CANCELLED,
    ]),
    EmergencyStatus.RESOLVED: frozenset(),
    EmergencyStatus.CANCELLED: frozenset(),
}

RECOVERY_REASON = "All emergencies resolved"


def can_transition(current: EmergencyStatus, target: EmergencyStatus) -> bool:
    return target in EMERGENCY_TRANSITIONS[current]


def transition_emergency(emergency: Emergency, target: EmergencyStatus, now: datetime) -> bool:
    """Move an emergency to ``target``.

    Returns:
        True if the status changed, False for a same-status no-op

    Raises:
        InvalidTransitionError: If the move breaks the lifecycle order
    """
    current = EmergencyStatus(emergency.status)
    if target == current:
        return False
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)

    emergency.status = target.value
    # resolved_at is set iff status is RESOLVED
    emergency.resolved_at = now if target == EmergencyStatus.RESOLVED else None
    return True


@dataclass(frozen=True)
class ModeTransition:
    """Outcome of a named production-mode transition."""

    cause: str
    from_mode: ProductionMode
    to_mode: ProductionMode
    reason: str | None
    emergency_id: str | None = None

    @property
    def changed(self) -> bool:
        return self.from_mode != self.to_mode


def enter_emergency_mode(status: ProductionStatus, emergency: Emergency) -> ModeTransition:
    """A HIGH/CRITICAL emergency puts the tournament into EMERGENCY mode."""
    previous = ProductionMode(status.mode)
    status.mode = ProductionMode.EMERGENCY.value
    status.current_issues = emergency.title
    return ModeTransition(
        cause="enter_emergency_mode",
        from_mode=previous,
        to_mode=ProductionMode.EMERGENCY,
        reason=f"Auto-activated due to {emergency.severity} emergency: {emergency.title}",
        emergency_id=emergency.id,
    )


def recover_normal_mode(
    status: ProductionStatus,
    remaining_qualifying: int,
    emergency_id: str | None = None,
) -> ModeTransition | None:
    """Leave EMERGENCY mode once no HIGH/CRITICAL emergency is open.

    Modes set directly by an operator (NORMAL, PRODUCTION) are left alone.
    """
    if status.mode != ProductionMode.EMERGENCY.value or remaining_qualifying > 0:
        return None

    status.mode = ProductionMode.NORMAL.value
    status.current_issues = None
    return ModeTransition(
        cause="recover_normal_mode",
        from_mode=ProductionMode.EMERGENCY,
        to_mode=ProductionMode.NORMAL,
        reason=RECOVERY_REASON,
        emergency_id=emergency_id,
    )


def set_mode_manually(
    status: ProductionStatus,
    mode: ProductionMode,
    reason: str | None,
) -> ModeTransition:
    """Operator override from PATCH /production/mode or a status update."""
    previous = ProductionMode(status.mode)
    status.mode = mode.value
    if reason:
        status.current_issues = reason
    elif mode == ProductionMode.NORMAL:
        status.current_issues = None
    return ModeTransition(
        cause="set_mode_manually",
        from_mode=previous,
        to_mode=mode,
        reason=reason,
    )


def qualifies_for_emergency_mode(severity: EmergencySeverity, status: EmergencyStatus) -> bool:
    return severity.drives_emergency_mode and status.is_open

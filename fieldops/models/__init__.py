"""Database models."""

from fieldops.models.base import Base, TimestampMixin, UUIDMixin
from fieldops.models.emergency import (
    Emergency,
    EmergencySeverity,
    EmergencySource,
    EmergencyStatus,
    EmergencyType,
)
from fieldops.models.production import ProductionMode, ProductionStatus
from fieldops.models.team import Team, TeamMember, TeamMemberStatus
from fieldops.models.user import (
    MemberRole,
    Tournament,
    TournamentMember,
    TournamentStatus,
    User,
    UserStatus,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    # Emergency
    "Emergency",
    "EmergencySeverity",
    "EmergencySource",
    "EmergencyStatus",
    "EmergencyType",
    # Production
    "ProductionMode",
    "ProductionStatus",
    # Team
    "Team",
    "TeamMember",
    "TeamMemberStatus",
    # Identity
    "MemberRole",
    "Tournament",
    "TournamentMember",
    "TournamentStatus",
    "User",
    "UserStatus",
]

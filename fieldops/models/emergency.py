"""Emergency model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fieldops.models.base import Base, TimestampMixin, UUIDMixin


class EmergencyType(str, Enum):
    """Incident category."""

    TECHNICAL = "TECHNICAL"
    EQUIPMENT = "EQUIPMENT"
    NETWORK = "NETWORK"
    PERSONNEL = "PERSONNEL"
    SAFETY = "SAFETY"
    OTHER = "OTHER"


class EmergencySeverity(str, Enum):
    """Incident severity; HIGH and CRITICAL drive production mode."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @property
    def drives_emergency_mode(self) -> bool:
        return self in (EmergencySeverity.HIGH, EmergencySeverity.CRITICAL)


_SEVERITY_RANK = {
    EmergencySeverity.LOW: 0,
    EmergencySeverity.MEDIUM: 1,
    EmergencySeverity.HIGH: 2,
    EmergencySeverity.CRITICAL: 3,
}


class EmergencyStatus(str, Enum):
    """Lifecycle: ACTIVE -> IN_PROGRESS -> RESOLVED | CANCELLED."""

    ACTIVE = "ACTIVE"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"

    @property
    def is_open(self) -> bool:
        return self in (EmergencyStatus.ACTIVE, EmergencyStatus.IN_PROGRESS)


class EmergencySource(str, Enum):
    """Where the record came from."""

    REPORT = "REPORT"  # reported by a field member
    MODE_SWITCH = "MODE_SWITCH"  # created by a manual switch to EMERGENCY mode


OPEN_STATUSES = (EmergencyStatus.ACTIVE.value, EmergencyStatus.IN_PROGRESS.value)
MODE_DRIVING_SEVERITIES = (EmergencySeverity.HIGH.value, EmergencySeverity.CRITICAL.value)


class Emergency(Base, UUIDMixin, TimestampMixin):
    """Tracked incident inside a tournament."""

    __tablename__ = "emergencies"
    __table_args__ = (
        Index("ix_emergencies_tournament_status", "tournament_id", "status"),
    )

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_by: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False)
    severity: Mapped[str] = mapped_column(
        String(20),
        default=EmergencySeverity.MEDIUM.value,
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=EmergencyStatus.ACTIVE.value,
        nullable=False,
    )
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    source: Mapped[str] = mapped_column(
        String(20),
        default=EmergencySource.REPORT.value,
        nullable=False,
    )

    @property
    def is_open(self) -> bool:
        return EmergencyStatus(self.status).is_open

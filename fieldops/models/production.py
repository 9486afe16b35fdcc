"""Production status model (one row per tournament)."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fieldops.models.base import Base, TimestampMixin, UUIDMixin


class ProductionMode(str, Enum):
    """Operational posture broadcast to all field staff."""

    NORMAL = "NORMAL"
    PRODUCTION = "PRODUCTION"
    EMERGENCY = "EMERGENCY"


DEFAULT_FEATURE_TABLE = "Not Set"
DEFAULT_STREAM_QUALITY = "HD"


def default_team_status() -> dict[str, int]:
    return {"total": 0, "active": 0, "break": 0, "offline": 0}


class ProductionStatus(Base, UUIDMixin, TimestampMixin):
    """Singleton production snapshot per tournament."""

    __tablename__ = "production_status"

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    mode: Mapped[str] = mapped_column(
        String(20),
        default=ProductionMode.NORMAL.value,
        nullable=False,
    )
    current_issues: Mapped[str | None] = mapped_column(Text, nullable=True)
    feature_table: Mapped[str] = mapped_column(
        String(100),
        default=DEFAULT_FEATURE_TABLE,
        nullable=False,
    )
    stream_quality: Mapped[str] = mapped_column(
        String(50),
        default=DEFAULT_STREAM_QUALITY,
        nullable=False,
    )
    upload_speed: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    team_status: Mapped[dict] = mapped_column(
        JSON,
        default=default_team_status,
        nullable=False,
    )
    next_schedule: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    updated_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

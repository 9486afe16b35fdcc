"""Team and team-member status models."""

from enum import Enum

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from fieldops.models.base import Base, TimestampMixin, UUIDMixin


class TeamMemberStatus(str, Enum):
    """Self-reported availability of a field member."""

    ACTIVE = "ACTIVE"
    BREAK = "BREAK"
    OFFLINE = "OFFLINE"
    EMERGENCY = "EMERGENCY"


class Team(Base, UUIDMixin, TimestampMixin):
    """Field crew inside a tournament."""

    __tablename__ = "teams"

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class TeamMember(Base, UUIDMixin, TimestampMixin):
    """Membership of a user in a team with their current status."""

    __tablename__ = "team_members"

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Denormalized from the team for tournament-scoped lookups
    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=TeamMemberStatus.ACTIVE.value,
        nullable=False,
    )

"""Identity collaborators: users, tournaments and memberships.

These tables back the token/membership contract only; their CRUD lives in the
identity service.
"""

from enum import Enum

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fieldops.models.base import Base, TimestampMixin, UUIDMixin


class UserStatus(str, Enum):
    """User account status."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class TournamentStatus(str, Enum):
    """Tournament lifecycle."""

    PLANNING = "PLANNING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class MemberRole(str, Enum):
    """Role a user holds inside one tournament."""

    ADMIN = "ADMIN"
    FIELD_DIRECTOR = "FIELD_DIRECTOR"
    FIELD_MEMBER = "FIELD_MEMBER"


class User(Base, UUIDMixin, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=UserStatus.ACTIVE.value,
        nullable=False,
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value


class Tournament(Base, UUIDMixin, TimestampMixin):
    """Top-level operational unit; all coordination state is scoped to one."""

    __tablename__ = "tournaments"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=TournamentStatus.PLANNING.value,
        nullable=False,
        index=True,
    )


class TournamentMember(Base, UUIDMixin, TimestampMixin):
    """Membership of a user in a tournament, carrying their role."""

    __tablename__ = "tournament_members"
    __table_args__ = (
        UniqueConstraint("tournament_id", "user_id", name="uq_tournament_member"),
    )

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        default=MemberRole.FIELD_MEMBER.value,
        nullable=False,
    )

"""Relational store access for the coordination engine."""

from datetime import datetime
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.models.emergency import (
    MODE_DRIVING_SEVERITIES,
    OPEN_STATUSES,
    Emergency,
    EmergencySeverity,
    EmergencySource,
    EmergencyStatus,
)
from fieldops.models.production import ProductionStatus
from fieldops.models.team import TeamMember

# CRITICAL > HIGH > MEDIUM > LOW
SEVERITY_ORDER = case(
    {severity.value: severity.rank for severity in EmergencySeverity},
    value=Emergency.severity,
    else_=-1,
)

# Lifecycle order: ACTIVE, IN_PROGRESS, RESOLVED, CANCELLED
STATUS_ORDER = case(
    {status.value: position for position, status in enumerate(EmergencyStatus)},
    value=Emergency.status,
    else_=len(EmergencyStatus),
)


class CoordinationStore:
    """Repository over Emergency, ProductionStatus and TeamMember rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def commit(self) -> None:
        await self.db.commit()

    async def flush(self) -> None:
        await self.db.flush()

    # =========================================================================
    # Emergencies
    # =========================================================================

    async def get_emergency(self, tournament_id: str, emergency_id: str) -> Emergency | None:
        """Fetch an emergency scoped to a tournament."""
        result = await self.db.execute(
            select(Emergency).where(
                Emergency.id == emergency_id,
                Emergency.tournament_id == tournament_id,
            )
        )
        return result.scalar_one_or_none()

    async def add_emergency(self, emergency: Emergency) -> Emergency:
        self.db.add(emergency)
        await self.db.flush()
        return emergency

    async def delete_emergency(self, emergency: Emergency) -> None:
        await self.db.delete(emergency)
        await self.db.flush()

    async def count_open_qualifying(self, tournament_id: str) -> int:
        """Count ACTIVE/IN_PROGRESS emergencies of severity HIGH or CRITICAL."""
        result = await self.db.execute(
            select(func.count()).select_from(Emergency).where(
                Emergency.tournament_id == tournament_id,
                Emergency.status.in_(OPEN_STATUSES),
                Emergency.severity.in_(MODE_DRIVING_SEVERITIES),
            )
        )
        return result.scalar() or 0

    async def list_open_emergencies(self, tournament_id: str) -> list[Emergency]:
        """Open emergencies ordered by severity, then newest first."""
        result = await self.db.execute(
            select(Emergency)
            .where(
                Emergency.tournament_id == tournament_id,
                Emergency.status.in_(OPEN_STATUSES),
            )
            .order_by(SEVERITY_ORDER.desc(), Emergency.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_open_mode_switch_emergencies(self, tournament_id: str) -> list[Emergency]:
        result = await self.db.execute(
            select(Emergency).where(
                Emergency.tournament_id == tournament_id,
                Emergency.status.in_(OPEN_STATUSES),
                Emergency.source == EmergencySource.MODE_SWITCH.value,
            )
        )
        return list(result.scalars().all())

    async def list_emergencies(
        self,
        tournament_id: str,
        status: str | None = None,
        type_: str | None = None,
        severity: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Emergency], int]:
        """Filtered, paginated emergencies.

        Returns:
            Tuple of (emergencies, total count)
        """
        conditions = [Emergency.tournament_id == tournament_id]
        if status:
            conditions.append(Emergency.status == status)
        if type_:
            conditions.append(Emergency.type == type_)
        if severity:
            conditions.append(Emergency.severity == severity)

        total_result = await self.db.execute(
            select(func.count()).select_from(Emergency).where(*conditions)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Emergency)
            .where(*conditions)
            .order_by(
                STATUS_ORDER.asc(),
                SEVERITY_ORDER.desc(),
                Emergency.created_at.desc(),
            )
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_closed_since(
        self,
        tournament_id: str,
        since: datetime,
        status: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Emergency], int]:
        """RESOLVED/CANCELLED emergencies created after ``since``."""
        closed = (EmergencyStatus.RESOLVED.value, EmergencyStatus.CANCELLED.value)
        conditions = [
            Emergency.tournament_id == tournament_id,
            Emergency.status == status if status else Emergency.status.in_(closed),
            Emergency.created_at >= since,
        ]
        total_result = await self.db.execute(
            select(func.count()).select_from(Emergency).where(*conditions)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Emergency)
            .where(*conditions)
            .order_by(Emergency.resolved_at.desc(), Emergency.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def count_by(self, column: Any, tournament_id: str, since: datetime) -> dict[str, int]:
        """Group emergencies created after ``since`` by one column."""
        result = await self.db.execute(
            select(column, func.count())
            .where(
                Emergency.tournament_id == tournament_id,
                Emergency.created_at >= since,
            )
            .group_by(column)
        )
        return {key: count for key, count in result.all()}

    async def resolved_since(self, tournament_id: str, since: datetime) -> list[Emergency]:
        result = await self.db.execute(
            select(Emergency).where(
                Emergency.tournament_id == tournament_id,
                Emergency.status == EmergencyStatus.RESOLVED.value,
                Emergency.created_at >= since,
                Emergency.resolved_at.is_not(None),
            )
        )
        return list(result.scalars().all())

    # =========================================================================
    # Production status
    # =========================================================================

    async def get_production_status(self, tournament_id: str) -> ProductionStatus | None:
        result = await self.db.execute(
            select(ProductionStatus).where(ProductionStatus.tournament_id == tournament_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create_production_status(self, tournament_id: str) -> ProductionStatus:
        """Return the tournament's status row, creating the default lazily.

        A concurrent creator losing the unique-key race re-reads the winner's
        row inside a savepoint instead of failing the request.
        """
        status = await self.get_production_status(tournament_id)
        if status is not None:
            return status

        status = ProductionStatus(tournament_id=tournament_id)
        try:
            async with self.db.begin_nested():
                self.db.add(status)
        except IntegrityError:
            existing = await self.get_production_status(tournament_id)
            if existing is None:
                raise
            return existing
        return status

    # =========================================================================
    # Team members
    # =========================================================================

    async def get_team_member(self, tournament_id: str, member_id: str) -> TeamMember | None:
        result = await self.db.execute(
            select(TeamMember).where(
                TeamMember.id == member_id,
                TeamMember.tournament_id == tournament_id,
            )
        )
        return result.scalar_one_or_none()

    async def team_members_for_user(self, tournament_id: str, user_id: str) -> list[TeamMember]:
        result = await self.db.execute(
            select(TeamMember).where(
                TeamMember.tournament_id == tournament_id,
                TeamMember.user_id == user_id,
            )
        )
        return list(result.scalars().all())

    async def team_members_in(self, tournament_id: str, user_ids: list[str]) -> list[TeamMember]:
        if not user_ids:
            return []
        result = await self.db.execute(
            select(TeamMember).where(
                TeamMember.tournament_id == tournament_id,
                TeamMember.user_id.in_(user_ids),
            )
        )
        return list(result.scalars().all())

    async def team_status_counts(self, tournament_id: str) -> dict[str, int]:
        result = await self.db.execute(
            select(TeamMember.status, func.count())
            .where(TeamMember.tournament_id == tournament_id)
            .group_by(TeamMember.status)
        )
        return {status: count for status, count in result.all()}

"""Coordination engine.

Links the emergency lifecycle to production mode. Every mutating call:

1. validates and authorizes before touching any row,
2. mutates the store and applies the named mode transitions,
3. commits,
4. invalidates affected cache keys (best-effort),
5. returns an EngineResult whose events the transport dispatches.

The engine never talks to sockets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.config import Settings, get_settings
from fieldops.coordination.events import CoordinationEvent, EngineResult, EventName
from fieldops.coordination.policy import Caller, require_capability
from fieldops.coordination.store import CoordinationStore
from fieldops.coordination.transitions import (
    ModeTransition,
    enter_emergency_mode,
    qualifies_for_emergency_mode,
    recover_normal_mode,
    set_mode_manually,
    transition_emergency,
)
from fieldops.logging_config import get_emergency_logger
from fieldops.middleware.prometheus import record_emergency_created, record_mode_transition
from fieldops.models.emergency import (
    Emergency,
    EmergencySeverity,
    EmergencySource,
    EmergencyStatus,
    EmergencyType,
)
from fieldops.models.production import ProductionMode, ProductionStatus
from fieldops.models.team import TeamMember, TeamMemberStatus
from fieldops.schemas.common import PaginationMeta
from fieldops.schemas.emergency import (
    EmergencyCreate,
    EmergencyHistoryItem,
    EmergencyResponse,
    EmergencyStatsResponse,
    EmergencyUpdate,
)
from fieldops.schemas.production import (
    ProductionModeUpdate,
    ProductionStatusResponse,
    ProductionStatusUpdate,
    RealtimeMetricsResponse,
)
from fieldops.schemas.team import TeamMemberResponse, TeamMemberStatusUpdate, TeamStatsResponse
from fieldops.utils.clock import Clock, ensure_utc, utcnow
from fieldops.utils.errors import (
    EmergencyNotFoundError,
    TeamMemberNotFoundError,
    ValidationError,
)
from fieldops.utils.redis_client import CacheService

logger = logging.getLogger(__name__)
audit_logger = get_emergency_logger()

MODE_SWITCH_TITLE = "Emergency Mode Activated"
MODE_SWITCH_DESCRIPTION = "Emergency mode activated by field director"
MODE_SWITCH_RESOLUTION = "Emergency mode cleared by {role}"
# Same bounds as a reported description
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 1000

STATS_MIN_DAYS = 1
STATS_MAX_DAYS = 90


# =============================================================================
# Cache keys
# =============================================================================


def active_emergencies_key(tournament_id: str) -> str:
    return f"active_emergencies:{tournament_id}"


def production_status_key(tournament_id: str) -> str:
    return f"production_status:{tournament_id}"


def emergency_stats_key(tournament_id: str, days: int) -> str:
    return f"emergency_stats:{tournament_id}:{days}days"


def team_stats_key(tournament_id: str) -> str:
    return f"team_stats:{tournament_id}"


def teams_key(tournament_id: str) -> str:
    return f"teams:{tournament_id}"


def realtime_metrics_key(tournament_id: str) -> str:
    return f"realtime_metrics:{tournament_id}"


def emergency_payload(emergency: Emergency) -> dict[str, Any]:
    return EmergencyResponse.model_validate(emergency).to_payload()


def production_payload(status: ProductionStatus) -> dict[str, Any]:
    return ProductionStatusResponse.model_validate(status).to_payload()


def duration_minutes(emergency: Emergency) -> int | None:
    if emergency.resolved_at is None:
        return None
    elapsed = ensure_utc(emergency.resolved_at) - ensure_utc(emergency.created_at)
    return round(elapsed.total_seconds() / 60)


def _mode_switch_description(reason: str | None) -> str:
    """The operator's reason when it fits a description, the stock text otherwise."""
    text = (reason or "").strip()
    if DESCRIPTION_MIN_LENGTH <= len(text) <= DESCRIPTION_MAX_LENGTH:
        return text
    return MODE_SWITCH_DESCRIPTION


@dataclass
class _ManualModeOutcome:
    """Transition plus the emergency events a manual mode switch produced."""

    transition: ModeTransition
    events: list[CoordinationEvent] = field(default_factory=list)


class CoordinationEngine:
    """Emergency / production-mode rules for one request's unit of work."""

    def __init__(
        self,
        db: AsyncSession,
        cache: CacheService | None = None,
        settings: Settings | None = None,
        clock: Clock = utcnow,
    ):
        self.store = CoordinationStore(db)
        self.cache = cache or CacheService(None)
        self.settings = settings or get_settings()
        self.clock = clock

    # =========================================================================
    # Emergencies
    # =========================================================================

    async def create_emergency(
        self,
        caller: Caller,
        data: EmergencyCreate,
    ) -> EngineResult[Emergency]:
        """Report an emergency.

        HIGH and CRITICAL reports switch the tournament into EMERGENCY mode.

        Args:
            caller: Reporting member (any role)
            data: Validated report

        Returns:
            EngineResult with emergencyAlert, then productionModeChanged when
            the severity drives the mode
        """
        tournament_id = caller.tournament_id
        now = self.clock()

        emergency = Emergency(
            tournament_id=tournament_id,
            created_by=caller.user_id,
            type=data.type.value,
            severity=data.severity.value,
            title=data.title,
            description=data.description,
            status=EmergencyStatus.ACTIVE.value,
            source=EmergencySource.REPORT.value,
            created_at=now,
            updated_at=now,
        )
        await self.store.add_emergency(emergency)

        result = EngineResult(emergency)
        result.emit(CoordinationEvent.for_tournament(
            tournament_id,
            EventName.EMERGENCY_ALERT,
            {**emergency_payload(emergency), "action": "created"},
        ))

        transition: ModeTransition | None = None
        if qualifies_for_emergency_mode(data.severity, EmergencyStatus(emergency.status)):
            status = await self.store.get_or_create_production_status(tournament_id)
            transition = enter_emergency_mode(status, emergency)
            status.updated_by = caller.user_id
            result.emit(self._mode_event(tournament_id, transition, caller.user_id))

        marked: list[TeamMember] = []
        if data.severity == EmergencySeverity.CRITICAL and self.settings.critical_marks_members:
            marked = await self.store.team_members_for_user(tournament_id, caller.user_id)
            for member in marked:
                member.status = TeamMemberStatus.EMERGENCY.value
                result.emit(self._member_event(member, caller.user_id))

        await self.store.commit()

        await self._invalidate(
            tournament_id,
            active_emergencies_key(tournament_id),
            realtime_metrics_key(tournament_id),
            *([production_status_key(tournament_id)] if transition else []),
            *([team_stats_key(tournament_id), teams_key(tournament_id)] if marked else []),
            stats=True,
        )

        record_emergency_created(emergency.severity)
        if transition:
            record_mode_transition(transition.from_mode.value, transition.to_mode.value, transition.cause)

        audit_logger.info(
            "emergency_created",
            emergency_id=emergency.id,
            tournament_id=tournament_id,
            type=emergency.type,
            severity=emergency.severity,
            title=emergency.title,
            created_by=caller.user_id,
        )
        return result

    async def update_emergency(
        self,
        caller: Caller,
        emergency_id: str,
        patch: EmergencyUpdate,
    ) -> EngineResult[Emergency]:
        """Apply a patch and run auto-recovery.

        Raises:
            EmergencyNotFoundError: If the emergency is not in the caller's tournament
            ForbiddenError: If the caller is neither creator nor supervisor
            InvalidTransitionError: If the status change breaks the lifecycle
        """
        tournament_id = caller.tournament_id
        emergency = await self.store.get_emergency(tournament_id, emergency_id)
        if emergency is None:
            raise EmergencyNotFoundError(emergency_id)

        require_capability(caller, emergency.created_by, "update this emergency")

        now = self.clock()
        resolved_now = False
        if patch.status is not None:
            changed = transition_emergency(emergency, patch.status, now)
            resolved_now = changed and patch.status == EmergencyStatus.RESOLVED

        provided = patch.model_fields_set
        if patch.title is not None:
            emergency.title = patch.title
        if patch.description is not None:
            emergency.description = patch.description
        if "resolution" in provided:
            emergency.resolution = patch.resolution
        emergency.updated_at = now
        await self.store.flush()

        # Auto-recovery: existence check only, no ordering requirement
        transition: ModeTransition | None = None
        status = await self.store.get_production_status(tournament_id)
        if status is not None:
            remaining = await self.store.count_open_qualifying(tournament_id)
            transition = recover_normal_mode(status, remaining, emergency.id)
            if transition:
                status.updated_by = caller.user_id

        await self.store.commit()

        result = EngineResult(emergency)
        result.emit(CoordinationEvent.for_tournament(
            tournament_id,
            EventName.EMERGENCY_UPDATED,
            {**emergency_payload(emergency), "action": "updated", "updatedBy": caller.user_id},
        ))
        if transition:
            result.emit(self._mode_event(tournament_id, transition, caller.user_id))

        await self._invalidate(
            tournament_id,
            active_emergencies_key(tournament_id),
            realtime_metrics_key(tournament_id),
            *([production_status_key(tournament_id)] if transition else []),
            stats=True,
        )

        if transition:
            record_mode_transition(transition.from_mode.value, transition.to_mode.value, transition.cause)

        if resolved_now:
            elapsed = ensure_utc(emergency.resolved_at) - ensure_utc(emergency.created_at)
            audit_logger.info(
                "emergency_resolved",
                emergency_id=emergency.id,
                tournament_id=tournament_id,
                resolved_by=caller.user_id,
                duration_seconds=int(elapsed.total_seconds()),
                resolution=emergency.resolution,
            )
        return result

    async def delete_emergency(self, caller: Caller, emergency_id: str) -> EngineResult[None]:
        """Remove an emergency record (operator cleanup).

        Deletion is out-of-band: it emits no events and does not run
        auto-recovery.
        """
        require_capability(caller, None, "delete emergencies")

        tournament_id = caller.tournament_id
        emergency = await self.store.get_emergency(tournament_id, emergency_id)
        if emergency is None:
            raise EmergencyNotFoundError(emergency_id)

        snapshot = {
            "type": emergency.type,
            "severity": emergency.severity,
            "status": emergency.status,
            "title": emergency.title,
        }
        await self.store.delete_emergency(emergency)
        await self.store.commit()

        await self._invalidate(
            tournament_id,
            active_emergencies_key(tournament_id),
            realtime_metrics_key(tournament_id),
            stats=True,
        )

        audit_logger.warning(
            "emergency_deleted",
            emergency_id=emergency_id,
            tournament_id=tournament_id,
            deleted_by=caller.user_id,
            **snapshot,
        )
        return EngineResult(None)

    # =========================================================================
    # Production mode / status
    # =========================================================================

    async def set_production_mode(
        self,
        caller: Caller,
        data: ProductionModeUpdate,
    ) -> EngineResult[ProductionStatus]:
        """Operator mode switch.

        EMERGENCY creates a tracked MODE_SWITCH emergency so auto-recovery has
        a cause to resolve; NORMAL/PRODUCTION resolve any such open record.
        """
        require_capability(caller, None, "change production mode")

        tournament_id = caller.tournament_id
        status = await self.store.get_or_create_production_status(tournament_id)

        result: EngineResult[ProductionStatus] = EngineResult(status)
        follow_up = await self._apply_manual_mode(caller, status, data.mode, data.reason)
        await self.store.commit()

        result.emit(self._mode_event(tournament_id, follow_up.transition, caller.user_id))
        result.events.extend(follow_up.events)

        await self._invalidate(
            tournament_id,
            production_status_key(tournament_id),
            active_emergencies_key(tournament_id),
            realtime_metrics_key(tournament_id),
            stats=bool(follow_up.events),
        )
        record_mode_transition(
            follow_up.transition.from_mode.value,
            follow_up.transition.to_mode.value,
            follow_up.transition.cause,
        )
        logger.info(
            f"Production mode set to {data.mode.value} for tournament {tournament_id} "
            f"by {caller.user_id} (was {follow_up.transition.from_mode.value})"
        )
        return result

    async def update_production_status(
        self,
        caller: Caller,
        patch: ProductionStatusUpdate,
    ) -> EngineResult[ProductionStatus]:
        """Replace parts of the production snapshot."""
        require_capability(caller, None, "update production status")

        tournament_id = caller.tournament_id
        status = await self.store.get_or_create_production_status(tournament_id)

        fields = patch.model_dump(exclude_unset=True)
        mode = fields.pop("mode", None)

        follow_up: _ManualModeOutcome | None = None
        if mode is not None and mode.value != status.mode:
            follow_up = await self._apply_manual_mode(caller, status, mode, patch.current_issues)

        for name, value in fields.items():
            setattr(status, name, value)
        status.updated_by = caller.user_id
        status.updated_at = self.clock()

        await self.store.commit()

        result: EngineResult[ProductionStatus] = EngineResult(status)
        result.emit(CoordinationEvent.for_tournament(
            tournament_id,
            EventName.PRODUCTION_STATUS_CHANGED,
            {**production_payload(status), "updatedBy": caller.user_id},
        ))
        if follow_up:
            result.emit(self._mode_event(tournament_id, follow_up.transition, caller.user_id))
            result.events.extend(follow_up.events)
            record_mode_transition(
                follow_up.transition.from_mode.value,
                follow_up.transition.to_mode.value,
                follow_up.transition.cause,
            )

        await self._invalidate(
            tournament_id,
            production_status_key(tournament_id),
            realtime_metrics_key(tournament_id),
            *([active_emergencies_key(tournament_id)] if follow_up and follow_up.events else []),
            stats=bool(follow_up and follow_up.events),
        )
        return result

    async def _apply_manual_mode(
        self,
        caller: Caller,
        status: ProductionStatus,
        mode: ProductionMode,
        reason: str | None,
    ) -> _ManualModeOutcome:
        transition = set_mode_manually(status, mode, reason)
        status.updated_by = caller.user_id
        now = self.clock()
        tournament_id = caller.tournament_id
        events: list[CoordinationEvent] = []
        open_switches = await self.store.list_open_mode_switch_emergencies(tournament_id)

        if mode == ProductionMode.EMERGENCY:
            if open_switches:
                return _ManualModeOutcome(transition, events)
            synthetic = Emergency(
                tournament_id=tournament_id,
                created_by=caller.user_id,
                type=EmergencyType.OTHER.value,
                severity=EmergencySeverity.HIGH.value,
                title=MODE_SWITCH_TITLE,
                description=_mode_switch_description(reason),
                status=EmergencyStatus.ACTIVE.value,
                source=EmergencySource.MODE_SWITCH.value,
                created_at=now,
                updated_at=now,
            )
            await self.store.add_emergency(synthetic)
            transition = ModeTransition(
                cause=transition.cause,
                from_mode=transition.from_mode,
                to_mode=transition.to_mode,
                reason=transition.reason,
                emergency_id=synthetic.id,
            )
            events.append(CoordinationEvent.for_tournament(
                tournament_id,
                EventName.EMERGENCY_ALERT,
                {**emergency_payload(synthetic), "action": "created"},
            ))
            audit_logger.info(
                "emergency_created",
                emergency_id=synthetic.id,
                tournament_id=tournament_id,
                type=synthetic.type,
                severity=synthetic.severity,
                title=synthetic.title,
                created_by=caller.user_id,
                source=synthetic.source,
            )
            return _ManualModeOutcome(transition, events)

        # Leaving EMERGENCY by hand closes the record that tracked the switch
        for emergency in open_switches:
            transition_emergency(emergency, EmergencyStatus.RESOLVED, now)
            emergency.resolution = MODE_SWITCH_RESOLUTION.format(role=caller.role)
            emergency.updated_at = now
            events.append(CoordinationEvent.for_tournament(
                tournament_id,
                EventName.EMERGENCY_UPDATED,
                {**emergency_payload(emergency), "action": "updated", "updatedBy": caller.user_id},
            ))
            audit_logger.info(
                "emergency_resolved",
                emergency_id=emergency.id,
                tournament_id=tournament_id,
                resolved_by=caller.user_id,
                duration_seconds=int(
                    (ensure_utc(now) - ensure_utc(emergency.created_at)).total_seconds()
                ),
                resolution=emergency.resolution,
            )
        if open_switches:
            await self.store.flush()
        return _ManualModeOutcome(transition, events)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_active_emergencies(self, tournament_id: str) -> list[dict[str, Any]]:
        """Open emergencies, CRITICAL first then newest first (cached)."""
        key = active_emergencies_key(tournament_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        rows = await self.store.list_open_emergencies(tournament_id)
        data = [emergency_payload(row) for row in rows]
        await self.cache.set(key, data, self.settings.cache_active_emergencies_ttl)
        return data

    async def get_production_status(self, tournament_id: str) -> dict[str, Any]:
        """Production snapshot, created with defaults on first read (cached)."""
        key = production_status_key(tournament_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        status = await self.store.get_or_create_production_status(tournament_id)
        await self.store.commit()
        data = production_payload(status)
        await self.cache.set(key, data, self.settings.cache_production_status_ttl)
        return data

    async def get_emergency_stats(self, tournament_id: str, days: int = 30) -> dict[str, Any]:
        """Aggregate counts and resolution metrics over the last ``days`` days."""
        if not STATS_MIN_DAYS <= days <= STATS_MAX_DAYS:
            raise ValidationError([{
                "field": "days",
                "message": f"days must be between {STATS_MIN_DAYS} and {STATS_MAX_DAYS}",
            }])

        key = emergency_stats_key(tournament_id, days)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        now = self.clock()
        since = now - timedelta(days=days)

        by_type = await self.store.count_by(Emergency.type, tournament_id, since)
        by_severity = await self.store.count_by(Emergency.severity, tournament_id, since)
        by_status = await self.store.count_by(Emergency.status, tournament_id, since)

        total = sum(by_status.values())
        active = by_status.get(EmergencyStatus.ACTIVE.value, 0) + by_status.get(
            EmergencyStatus.IN_PROGRESS.value, 0
        )
        resolved = by_status.get(EmergencyStatus.RESOLVED.value, 0)
        cancelled = by_status.get(EmergencyStatus.CANCELLED.value, 0)

        durations = [duration_minutes(row) for row in await self.store.resolved_since(tournament_id, since)]
        durations = [d for d in durations if d is not None]
        average = round(sum(durations) / len(durations)) if durations else 0

        stats = EmergencyStatsResponse.model_validate({
            "period": {"days": days, "start_date": since, "end_date": now},
            "totals": {"total": total, "active": active, "resolved": resolved, "cancelled": cancelled},
            "distribution": {"by_type": by_type, "by_severity": by_severity, "by_status": by_status},
            "metrics": {
                "average_resolution_time_minutes": average,
                "resolution_rate": round(resolved / total * 100) if total else 0,
            },
        }).to_payload()

        await self.cache.set(key, stats, self.settings.cache_emergency_stats_ttl)
        return stats

    async def list_emergencies(
        self,
        tournament_id: str,
        status: EmergencyStatus | None = None,
        type_: EmergencyType | None = None,
        severity: EmergencySeverity | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[dict[str, Any]], PaginationMeta]:
        rows, total = await self.store.list_emergencies(
            tournament_id,
            status=status.value if status else None,
            type_=type_.value if type_ else None,
            severity=severity.value if severity else None,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return [emergency_payload(row) for row in rows], PaginationMeta.build(page, limit, total)

    async def get_emergency_history(
        self,
        tournament_id: str,
        days: int = 30,
        status: EmergencyStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[dict[str, Any]], PaginationMeta]:
        """Closed emergencies of the last ``days`` days with their duration."""
        if status is not None and status.is_open:
            raise ValidationError([{
                "field": "status",
                "message": "History only holds RESOLVED or CANCELLED emergencies",
            }])
        since = self.clock() - timedelta(days=days)
        rows, total = await self.store.list_closed_since(
            tournament_id,
            since,
            status=status.value if status else None,
            offset=(page - 1) * limit,
            limit=limit,
        )
        history = [
            EmergencyHistoryItem.model_validate({
                **EmergencyResponse.model_validate(row).model_dump(),
                "duration_minutes": duration_minutes(row),
            }).to_payload()
            for row in rows
        ]
        return history, PaginationMeta.build(page, limit, total)

    async def get_realtime_metrics(self, tournament_id: str, online_count: int) -> dict[str, Any]:
        """Dashboard snapshot.

        The store-derived part is cached briefly; ``online_count`` comes from
        live presence and is merged in on every read.
        """
        key = realtime_metrics_key(tournament_id)
        snapshot = await self.cache.get(key)
        if snapshot is None:
            snapshot = await self._build_realtime_snapshot(tournament_id)
            await self.cache.set(key, snapshot, self.settings.cache_realtime_metrics_ttl)
        return {**snapshot, "teamStatus": {**snapshot["teamStatus"], "online": online_count}}

    async def _build_realtime_snapshot(self, tournament_id: str) -> dict[str, Any]:
        status = await self.store.get_production_status(tournament_id)
        by_status = await self.store.team_status_counts(tournament_id)
        active = await self.store.list_open_emergencies(tournament_id)

        return RealtimeMetricsResponse.model_validate({
            "timestamp": self.clock(),
            "production_mode": status.mode if status else ProductionMode.NORMAL.value,
            "stream_quality": status.stream_quality if status else "Unknown",
            "upload_speed": status.upload_speed if status else 0,
            "feature_table": status.feature_table if status else "Not Set",
            "team_status": {
                "total": sum(by_status.values()),
                "by_status": by_status,
                "online": 0,
            },
            "active_emergencies": len(active),
            "last_update": status.updated_at if status else None,
        }).to_payload()

    # =========================================================================
    # Team members
    # =========================================================================

    async def update_team_member_status(
        self,
        caller: Caller,
        member_id: str,
        data: TeamMemberStatusUpdate,
    ) -> EngineResult[TeamMember]:
        """Change a member's availability (self, or any member for supervisors)."""
        tournament_id = caller.tournament_id
        member = await self.store.get_team_member(tournament_id, member_id)
        if member is None:
            raise TeamMemberNotFoundError(member_id)

        require_capability(caller, member.user_id, "update this member status")

        previous = member.status
        member.status = data.status.value
        await self.store.commit()

        result = EngineResult(member)
        result.emit(self._member_event(member, caller.user_id))

        await self._invalidate(
            tournament_id,
            teams_key(tournament_id),
            team_stats_key(tournament_id),
            realtime_metrics_key(tournament_id),
        )
        logger.info(
            f"Team member {member_id} status {previous} -> {member.status} "
            f"(by {caller.user_id})"
        )
        return result

    async def get_team_stats(self, tournament_id: str) -> dict[str, Any]:
        key = team_stats_key(tournament_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        by_status = await self.store.team_status_counts(tournament_id)
        stats = TeamStatsResponse(total=sum(by_status.values()), by_status=by_status).to_payload()
        await self.cache.set(key, stats, self.settings.cache_team_stats_ttl)
        return stats

    async def get_online_members(self, tournament_id: str, user_ids: list[str]) -> list[dict[str, Any]]:
        members = await self.store.team_members_in(tournament_id, user_ids)
        return [TeamMemberResponse.model_validate(member).to_payload() for member in members]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _mode_event(
        self,
        tournament_id: str,
        transition: ModeTransition,
        changed_by: str,
    ) -> CoordinationEvent:
        payload: dict[str, Any] = {
            "mode": transition.to_mode.value,
            "previousMode": transition.from_mode.value,
            "reason": transition.reason,
            "changedBy": changed_by,
        }
        if transition.emergency_id:
            payload["emergencyId"] = transition.emergency_id
        return CoordinationEvent.for_tournament(
            tournament_id, EventName.PRODUCTION_MODE_CHANGED, payload
        )

    @staticmethod
    def _member_event(member: TeamMember, updated_by: str) -> CoordinationEvent:
        return CoordinationEvent.for_tournament(
            member.tournament_id,
            EventName.TEAM_MEMBER_STATUS_CHANGED,
            {
                "memberId": member.id,
                "userId": member.user_id,
                "status": member.status,
                "updatedBy": updated_by,
            },
        )

    async def _invalidate(self, tournament_id: str, *keys: str, stats: bool = False) -> None:
        """Drop cache entries after commit. Failures are logged by the cache."""
        await self.cache.delete(*keys)
        if stats:
            await self.cache.delete_pattern(f"emergency_stats:{tournament_id}:*")


def severity_stats(emergencies: list[dict[str, Any]]) -> dict[str, int]:
    """Count emergencies per severity for the active list summary."""
    stats: dict[str, int] = {}
    for emergency in emergencies:
        stats[emergency["severity"]] = stats.get(emergency["severity"], 0) + 1
    return stats

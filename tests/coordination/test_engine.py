"""Tests for the coordination engine (emergency lifecycle and production mode)."""

from datetime import datetime, timedelta, timezone

import pytest

from fieldops.coordination.engine import (
    MODE_SWITCH_DESCRIPTION,
    MODE_SWITCH_TITLE,
    CoordinationEngine,
    active_emergencies_key,
    emergency_stats_key,
    production_status_key,
    realtime_metrics_key,
)
from fieldops.coordination.events import EventName
from fieldops.coordination.transitions import RECOVERY_REASON
from fieldops.models.emergency import EmergencySeverity, EmergencySource, EmergencyStatus, EmergencyType
from fieldops.models.production import ProductionMode
from fieldops.models.team import TeamMemberStatus
from fieldops.schemas.emergency import EmergencyCreate, EmergencyUpdate
from fieldops.schemas.production import ProductionModeUpdate, ProductionStatusUpdate
from fieldops.schemas.team import TeamMemberStatusUpdate
from fieldops.utils.errors import (
    EmergencyNotFoundError,
    ForbiddenError,
    InvalidTransitionError,
    TeamMemberNotFoundError,
    ValidationError,
)
from fieldops.utils.redis_client import CacheService
from tests.ws.conftest import MockRedis


class FakeClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def report(
    severity: EmergencySeverity = EmergencySeverity.HIGH,
    title: str = "Feature table camera down",
    type_: EmergencyType = EmergencyType.EQUIPMENT,
) -> EmergencyCreate:
    return EmergencyCreate(
        type=type_,
        severity=severity,
        title=title,
        description="Camera 2 lost signal during the final table",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(test_db, clock) -> CoordinationEngine:
    return CoordinationEngine(test_db, clock=clock)


@pytest.fixture
def redis() -> MockRedis:
    return MockRedis()


@pytest.fixture
def cached_engine(test_db, clock, redis) -> CoordinationEngine:
    return CoordinationEngine(test_db, cache=CacheService(redis), clock=clock)


class TestCreateEmergency:
    """Reporting emergencies."""

    @pytest.mark.asyncio
    async def test_high_severity_enters_emergency_mode(self, engine, crew):
        """HIGH report emits the alert, then the mode change."""
        result = await engine.create_emergency(crew.member, report(EmergencySeverity.HIGH))

        assert result.event_names == [
            EventName.EMERGENCY_ALERT.value,
            EventName.PRODUCTION_MODE_CHANGED.value,
        ]
        alert, mode_change = result.events
        assert alert.channel == f"tournament:{crew.tournament_id}"
        assert alert.payload["action"] == "created"
        assert alert.payload["status"] == EmergencyStatus.ACTIVE.value
        assert mode_change.payload["mode"] == ProductionMode.EMERGENCY.value
        assert mode_change.payload["previousMode"] == ProductionMode.NORMAL.value
        assert mode_change.payload["emergencyId"] == result.value.id
        assert mode_change.payload["changedBy"] == crew.member.user_id

    @pytest.mark.asyncio
    async def test_encoder_offline_names_the_cause(self, engine, crew):
        result = await engine.create_emergency(
            crew.member, report(EmergencySeverity.HIGH, "Encoder offline", EmergencyType.NETWORK)
        )

        alert, mode_change = result.events
        assert alert.payload["type"] == EmergencyType.NETWORK.value
        assert "Encoder offline" in mode_change.payload["reason"]
        status = await engine.get_production_status(crew.tournament_id)
        assert status["mode"] == ProductionMode.EMERGENCY.value
        assert status["currentIssues"] == "Encoder offline"

        status = await engine.get_production_status(crew.tournament_id)
        assert status["mode"] == ProductionMode.EMERGENCY.value
        assert status["currentIssues"] == "Feature table camera down"

    @pytest.mark.asyncio
    async def test_low_severity_leaves_mode_alone(self, engine, crew):
        result = await engine.create_emergency(crew.member, report(EmergencySeverity.LOW))

        assert result.event_names == [EventName.EMERGENCY_ALERT.value]
        status = await engine.get_production_status(crew.tournament_id)
        assert status["mode"] == ProductionMode.NORMAL.value

    @pytest.mark.asyncio
    async def test_critical_marks_reporter_when_enabled(self, test_db, clock, crew):
        """CRITICAL reports flip the reporter's team status when configured."""
        from fieldops.config import get_settings

        settings = get_settings().model_copy(update={"critical_marks_members": True})
        engine = CoordinationEngine(test_db, settings=settings, clock=clock)

        result = await engine.create_emergency(crew.member, report(EmergencySeverity.CRITICAL))

        assert result.event_names == [
            EventName.EMERGENCY_ALERT.value,
            EventName.PRODUCTION_MODE_CHANGED.value,
            EventName.TEAM_MEMBER_STATUS_CHANGED.value,
        ]
        assert result.events[-1].payload["status"] == TeamMemberStatus.EMERGENCY.value


class TestUpdateEmergency:
    """Lifecycle updates and auto-recovery."""

    @pytest.mark.asyncio
    async def test_resolving_last_qualifying_emergency_recovers_normal(self, engine, crew, clock):
        created = await engine.create_emergency(crew.member, report())
        clock.advance(minutes=15)

        result = await engine.update_emergency(
            crew.member,
            created.value.id,
            EmergencyUpdate(status=EmergencyStatus.RESOLVED, resolution="Swapped camera body"),
        )

        assert result.event_names == [
            EventName.EMERGENCY_UPDATED.value,
            EventName.PRODUCTION_MODE_CHANGED.value,
        ]
        updated, recovery = result.events
        assert updated.payload["status"] == EmergencyStatus.RESOLVED.value
        assert updated.payload["resolution"] == "Swapped camera body"
        assert updated.payload["resolvedAt"] is not None
        assert recovery.payload["mode"] == ProductionMode.NORMAL.value
        assert recovery.payload["previousMode"] == ProductionMode.EMERGENCY.value
        assert recovery.payload["reason"] == RECOVERY_REASON

        status = await engine.get_production_status(crew.tournament_id)
        assert status["mode"] == ProductionMode.NORMAL.value
        assert status["currentIssues"] is None

    @pytest.mark.asyncio
    async def test_other_open_qualifying_emergency_keeps_emergency_mode(self, engine, crew):
        first = await engine.create_emergency(crew.member, report(title="Stage lights out"))
        await engine.create_emergency(crew.director, report(EmergencySeverity.CRITICAL, "Fire alarm"))

        result = await engine.update_emergency(
            crew.member, first.value.id, EmergencyUpdate(status=EmergencyStatus.RESOLVED)
        )

        assert result.event_names == [EventName.EMERGENCY_UPDATED.value]
        status = await engine.get_production_status(crew.tournament_id)
        assert status["mode"] == ProductionMode.EMERGENCY.value

    @pytest.mark.asyncio
    async def test_already_resolved_sibling_does_not_block_recovery(self, engine, crew):
        first = await engine.create_emergency(crew.member, report(title="Stage lights out"))
        second = await engine.create_emergency(crew.member, report(title="Encoder offline"))
        await engine.update_emergency(
            crew.member, second.value.id, EmergencyUpdate(status=EmergencyStatus.RESOLVED)
        )

        result = await engine.update_emergency(
            crew.member, first.value.id, EmergencyUpdate(status=EmergencyStatus.RESOLVED)
        )

        assert result.event_names == [
            EventName.EMERGENCY_UPDATED.value,
            EventName.PRODUCTION_MODE_CHANGED.value,
        ]
        assert result.events[1].payload["mode"] == ProductionMode.NORMAL.value

    @pytest.mark.asyncio
    async def test_resolving_twice_keeps_first_resolution_time(self, engine, crew, clock):
        created = await engine.create_emergency(crew.member, report(EmergencySeverity.MEDIUM))
        clock.advance(minutes=5)
        first = await engine.update_emergency(
            crew.member, created.value.id, EmergencyUpdate(status=EmergencyStatus.RESOLVED)
        )
        resolved_at = first.events[0].payload["resolvedAt"]
        clock.advance(minutes=20)

        again = await engine.update_emergency(
            crew.member, created.value.id, EmergencyUpdate(status=EmergencyStatus.RESOLVED)
        )

        assert again.event_names == [EventName.EMERGENCY_UPDATED.value]
        assert again.events[0].payload["status"] == EmergencyStatus.RESOLVED.value
        assert again.events[0].payload["resolvedAt"] == resolved_at

    @pytest.mark.asyncio
    async def test_recovery_does_not_override_manual_production_mode(self, engine, crew):
        """Auto-recovery only leaves EMERGENCY, never a mode set by hand."""
        created = await engine.create_emergency(crew.member, report())
        await engine.set_production_mode(crew.director, ProductionModeUpdate(mode=ProductionMode.PRODUCTION))

        result = await engine.update_emergency(
            crew.member, created.value.id, EmergencyUpdate(status=EmergencyStatus.RESOLVED)
        )

        assert result.event_names == [EventName.EMERGENCY_UPDATED.value]
        status = await engine.get_production_status(crew.tournament_id)
        assert status["mode"] == ProductionMode.PRODUCTION.value

    @pytest.mark.asyncio
    async def test_in_progress_then_resolved(self, engine, crew):
        created = await engine.create_emergency(crew.member, report(EmergencySeverity.MEDIUM))

        await engine.update_emergency(
            crew.member, created.value.id, EmergencyUpdate(status=EmergencyStatus.IN_PROGRESS)
        )
        result = await engine.update_emergency(
            crew.member, created.value.id, EmergencyUpdate(status=EmergencyStatus.RESOLVED)
        )

        assert result.value.status == EmergencyStatus.RESOLVED.value
        assert result.value.resolved_at is not None

    @pytest.mark.asyncio
    async def test_closed_emergency_cannot_reopen(self, engine, crew):
        created = await engine.create_emergency(crew.member, report(EmergencySeverity.LOW))
        await engine.update_emergency(
            crew.member, created.value.id, EmergencyUpdate(status=EmergencyStatus.CANCELLED)
        )

        with pytest.raises(InvalidTransitionError) as exc_info:
            await engine.update_emergency(
                crew.member, created.value.id, EmergencyUpdate(status=EmergencyStatus.ACTIVE)
            )
        assert exc_info.value.code == "INVALID_STATUS_TRANSITION"

    @pytest.mark.asyncio
    async def test_member_cannot_update_someone_elses_emergency(self, engine, crew):
        created = await engine.create_emergency(crew.member, report(EmergencySeverity.LOW))

        with pytest.raises(ForbiddenError):
            await engine.update_emergency(
                crew.other_member, created.value.id, EmergencyUpdate(title="Hijacked")
            )

    @pytest.mark.asyncio
    async def test_forbidden_update_changes_nothing(self, engine, crew):
        created = await engine.create_emergency(crew.member, report(EmergencySeverity.LOW))

        with pytest.raises(ForbiddenError):
            await engine.update_emergency(
                crew.other_member,
                created.value.id,
                EmergencyUpdate(title="Hijacked", status=EmergencyStatus.CANCELLED, resolution="Not mine"),
            )

        [stored] = await engine.get_active_emergencies(crew.tournament_id)
        assert stored["title"] == "Feature table camera down"
        assert stored["status"] == EmergencyStatus.ACTIVE.value
        assert stored["resolution"] is None

    @pytest.mark.asyncio
    async def test_director_can_update_any_emergency(self, engine, crew):
        created = await engine.create_emergency(crew.member, report(EmergencySeverity.LOW))

        result = await engine.update_emergency(
            crew.director, created.value.id, EmergencyUpdate(title="Camera 2 replaced")
        )

        assert result.value.title == "Camera 2 replaced"
        assert result.events[0].payload["updatedBy"] == crew.director.user_id

    @pytest.mark.asyncio
    async def test_unknown_emergency_is_not_found(self, engine, crew):
        with pytest.raises(EmergencyNotFoundError):
            await engine.update_emergency(crew.director, "missing-id", EmergencyUpdate(title="x"))


class TestDeleteEmergency:
    """Operator cleanup."""

    @pytest.mark.asyncio
    async def test_delete_emits_nothing_and_skips_recovery(self, engine, crew):
        created = await engine.create_emergency(crew.member, report())

        result = await engine.delete_emergency(crew.director, created.value.id)

        assert result.events == []
        assert await engine.get_active_emergencies(crew.tournament_id) == []
        status = await engine.get_production_status(crew.tournament_id)
        assert status["mode"] == ProductionMode.EMERGENCY.value

    @pytest.mark.asyncio
    async def test_member_cannot_delete(self, engine, crew):
        created = await engine.create_emergency(crew.member, report(EmergencySeverity.LOW))

        with pytest.raises(ForbiddenError):
            await engine.delete_emergency(crew.member, created.value.id)

    @pytest.mark.asyncio
    async def test_delete_unknown_is_not_found(self, engine, crew):
        with pytest.raises(EmergencyNotFoundError):
            await engine.delete_emergency(crew.director, "missing-id")


class TestProductionMode:
    """Manual mode switches and status updates."""

    @pytest.mark.asyncio
    async def test_manual_emergency_creates_tracked_emergency(self, engine, crew):
        result = await engine.set_production_mode(
            crew.director,
            ProductionModeUpdate(mode=ProductionMode.EMERGENCY, reason="Venue evacuation drill"),
        )

        assert result.event_names == [
            EventName.PRODUCTION_MODE_CHANGED.value,
            EventName.EMERGENCY_ALERT.value,
        ]
        mode_change, alert = result.events
        assert mode_change.payload["emergencyId"] == alert.payload["id"]
        assert alert.payload["source"] == EmergencySource.MODE_SWITCH.value
        assert alert.payload["title"] == MODE_SWITCH_TITLE
        assert alert.payload["description"] == "Venue evacuation drill"
        assert result.value.mode == ProductionMode.EMERGENCY.value

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", [None, "Rain", "   "])
    async def test_short_reason_falls_back_to_stock_description(self, engine, crew, reason):
        result = await engine.set_production_mode(
            crew.director, ProductionModeUpdate(mode=ProductionMode.EMERGENCY, reason=reason)
        )

        alert = result.events[1].payload
        assert alert["description"] == MODE_SWITCH_DESCRIPTION
        [stored] = await engine.get_active_emergencies(crew.tournament_id)
        assert stored["description"] == MODE_SWITCH_DESCRIPTION

    @pytest.mark.asyncio
    async def test_repeated_manual_emergency_is_idempotent(self, engine, crew):
        await engine.set_production_mode(crew.director, ProductionModeUpdate(mode=ProductionMode.EMERGENCY))
        result = await engine.set_production_mode(
            crew.director, ProductionModeUpdate(mode=ProductionMode.EMERGENCY)
        )

        assert result.event_names == [EventName.PRODUCTION_MODE_CHANGED.value]
        assert len(await engine.get_active_emergencies(crew.tournament_id)) == 1

    @pytest.mark.asyncio
    async def test_manual_normal_resolves_mode_switch_emergency(self, engine, crew):
        await engine.set_production_mode(crew.director, ProductionModeUpdate(mode=ProductionMode.EMERGENCY))

        result = await engine.set_production_mode(
            crew.director, ProductionModeUpdate(mode=ProductionMode.NORMAL)
        )

        assert result.event_names == [
            EventName.PRODUCTION_MODE_CHANGED.value,
            EventName.EMERGENCY_UPDATED.value,
        ]
        resolved = result.events[1].payload
        assert resolved["status"] == EmergencyStatus.RESOLVED.value
        assert resolved["resolution"] == "Emergency mode cleared by FIELD_DIRECTOR"
        assert await engine.get_active_emergencies(crew.tournament_id) == []

    @pytest.mark.asyncio
    async def test_resolving_mode_switch_emergency_recovers_normal(self, engine, crew):
        """The tracked record gives auto-recovery something to resolve."""
        switched = await engine.set_production_mode(
            crew.director, ProductionModeUpdate(mode=ProductionMode.EMERGENCY)
        )
        emergency_id = switched.events[1].payload["id"]

        result = await engine.update_emergency(
            crew.director, emergency_id, EmergencyUpdate(status=EmergencyStatus.RESOLVED)
        )

        assert result.event_names[-1] == EventName.PRODUCTION_MODE_CHANGED.value
        assert result.events[-1].payload["mode"] == ProductionMode.NORMAL.value

    @pytest.mark.asyncio
    async def test_member_cannot_change_mode(self, engine, crew):
        with pytest.raises(ForbiddenError):
            await engine.set_production_mode(crew.member, ProductionModeUpdate(mode=ProductionMode.EMERGENCY))

    @pytest.mark.asyncio
    async def test_status_update_with_mode_change(self, engine, crew):
        result = await engine.update_production_status(
            crew.director,
            ProductionStatusUpdate(mode=ProductionMode.PRODUCTION, feature_table="Table 7", upload_speed=42.5),
        )

        assert result.event_names == [
            EventName.PRODUCTION_STATUS_CHANGED.value,
            EventName.PRODUCTION_MODE_CHANGED.value,
        ]
        snapshot = result.events[0].payload
        assert snapshot["featureTable"] == "Table 7"
        assert snapshot["uploadSpeed"] == 42.5
        assert snapshot["mode"] == ProductionMode.PRODUCTION.value
        assert snapshot["updatedBy"] == crew.director.user_id

    @pytest.mark.asyncio
    async def test_status_update_without_mode_emits_single_event(self, engine, crew):
        result = await engine.update_production_status(
            crew.director, ProductionStatusUpdate(stream_quality="4K")
        )

        assert result.event_names == [EventName.PRODUCTION_STATUS_CHANGED.value]
        assert result.value.stream_quality == "4K"
        assert result.value.mode == ProductionMode.NORMAL.value

    @pytest.mark.asyncio
    async def test_first_read_creates_default_status(self, engine, crew):
        status = await engine.get_production_status(crew.tournament_id)

        assert status["mode"] == ProductionMode.NORMAL.value
        assert status["featureTable"] == "Not Set"
        assert status["streamQuality"] == "HD"
        assert status["teamStatus"] == {"total": 0, "active": 0, "break": 0, "offline": 0}


class TestReads:
    """Lists, stats and history."""

    @pytest.mark.asyncio
    async def test_active_emergencies_most_severe_first(self, engine, crew, clock):
        await engine.create_emergency(crew.member, report(EmergencySeverity.LOW, "Loose cable"))
        clock.advance(minutes=1)
        await engine.create_emergency(crew.member, report(EmergencySeverity.CRITICAL, "Fire alarm"))
        clock.advance(minutes=1)
        await engine.create_emergency(crew.member, report(EmergencySeverity.MEDIUM, "Mic feedback"))

        active = await engine.get_active_emergencies(crew.tournament_id)

        assert [e["severity"] for e in active] == ["CRITICAL", "MEDIUM", "LOW"]

    @pytest.mark.asyncio
    async def test_list_emergencies_filters_and_paginates(self, engine, crew):
        for index in range(3):
            await engine.create_emergency(crew.member, report(EmergencySeverity.LOW, f"Issue {index}"))
        await engine.create_emergency(crew.member, report(EmergencySeverity.HIGH, "Power"))

        items, pagination = await engine.list_emergencies(
            crew.tournament_id, severity=EmergencySeverity.LOW, page=1, limit=2
        )

        assert len(items) == 2
        assert pagination.total == 3
        assert pagination.pages == 2

    @pytest.mark.asyncio
    async def test_list_emergencies_in_lifecycle_order(self, engine, crew, clock):
        """Open work first, then resolved, then cancelled; severity breaks ties."""
        targets = [
            (EmergencyStatus.CANCELLED, EmergencySeverity.CRITICAL),
            (EmergencyStatus.RESOLVED, EmergencySeverity.HIGH),
            (EmergencyStatus.IN_PROGRESS, EmergencySeverity.LOW),
            (None, EmergencySeverity.LOW),
            (None, EmergencySeverity.MEDIUM),
        ]
        for index, (target, severity) in enumerate(targets):
            created = await engine.create_emergency(crew.member, report(severity, f"Issue {index}"))
            if target is not None:
                await engine.update_emergency(crew.member, created.value.id, EmergencyUpdate(status=target))
            clock.advance(minutes=1)

        items, _ = await engine.list_emergencies(crew.tournament_id)

        assert [(e["status"], e["severity"]) for e in items] == [
            ("ACTIVE", "MEDIUM"),
            ("ACTIVE", "LOW"),
            ("IN_PROGRESS", "LOW"),
            ("RESOLVED", "HIGH"),
            ("CANCELLED", "CRITICAL"),
        ]

    @pytest.mark.asyncio
    async def test_stats_window_is_validated(self, engine, crew):
        with pytest.raises(ValidationError):
            await engine.get_emergency_stats(crew.tournament_id, days=0)
        with pytest.raises(ValidationError):
            await engine.get_emergency_stats(crew.tournament_id, days=91)

    @pytest.mark.asyncio
    async def test_stats_totals_and_resolution_time(self, engine, crew, clock):
        first = await engine.create_emergency(crew.member, report(EmergencySeverity.HIGH))
        await engine.create_emergency(crew.member, report(EmergencySeverity.LOW, "Loose cable"))
        clock.advance(minutes=30)
        await engine.update_emergency(
            crew.member, first.value.id, EmergencyUpdate(status=EmergencyStatus.RESOLVED)
        )

        stats = await engine.get_emergency_stats(crew.tournament_id, days=7)

        assert stats["period"]["days"] == 7
        assert stats["totals"] == {"total": 2, "active": 1, "resolved": 1, "cancelled": 0}
        assert stats["distribution"]["bySeverity"] == {"HIGH": 1, "LOW": 1}
        assert stats["metrics"]["averageResolutionTimeMinutes"] == 30
        assert stats["metrics"]["resolutionRate"] == 50

    @pytest.mark.asyncio
    async def test_history_lists_closed_with_duration(self, engine, crew, clock):
        created = await engine.create_emergency(crew.member, report(EmergencySeverity.MEDIUM))
        await engine.create_emergency(crew.member, report(EmergencySeverity.LOW, "Still open"))
        clock.advance(minutes=12)
        await engine.update_emergency(
            crew.member, created.value.id, EmergencyUpdate(status=EmergencyStatus.RESOLVED)
        )

        history, pagination = await engine.get_emergency_history(crew.tournament_id, days=30)

        assert pagination.total == 1
        assert history[0]["id"] == created.value.id
        assert history[0]["durationMinutes"] == 12

    @pytest.mark.asyncio
    async def test_history_rejects_open_status_filter(self, engine, crew):
        with pytest.raises(ValidationError):
            await engine.get_emergency_history(crew.tournament_id, status=EmergencyStatus.ACTIVE)

    @pytest.mark.asyncio
    async def test_realtime_metrics(self, engine, crew):
        await engine.create_emergency(crew.member, report())

        metrics = await engine.get_realtime_metrics(crew.tournament_id, online_count=2)

        assert metrics["productionMode"] == ProductionMode.EMERGENCY.value
        assert metrics["activeEmergencies"] == 1
        assert metrics["teamStatus"]["total"] == 2
        assert metrics["teamStatus"]["online"] == 2

    @pytest.mark.asyncio
    async def test_realtime_online_count_is_live_over_cached_snapshot(self, cached_engine, crew):
        first = await cached_engine.get_realtime_metrics(crew.tournament_id, online_count=1)
        second = await cached_engine.get_realtime_metrics(crew.tournament_id, online_count=3)

        assert first["teamStatus"]["online"] == 1
        assert second["teamStatus"]["online"] == 3
        assert second["timestamp"] == first["timestamp"]
        cached = await cached_engine.cache.get(realtime_metrics_key(crew.tournament_id))
        assert cached["teamStatus"]["online"] == 0


class TestCacheInvalidation:
    """Cached reads are dropped by the write that makes them stale."""

    @pytest.mark.asyncio
    async def test_report_drops_active_list(self, cached_engine, crew, redis):
        key = active_emergencies_key(crew.tournament_id)
        assert await cached_engine.get_active_emergencies(crew.tournament_id) == []
        assert key in redis.strings

        await cached_engine.create_emergency(crew.member, report(EmergencySeverity.LOW))

        assert key not in redis.strings
        [fresh] = await cached_engine.get_active_emergencies(crew.tournament_id)
        assert fresh["title"] == "Feature table camera down"

    @pytest.mark.asyncio
    async def test_qualifying_report_drops_production_status(self, cached_engine, crew, redis):
        key = production_status_key(crew.tournament_id)
        assert (await cached_engine.get_production_status(crew.tournament_id))["mode"] == "NORMAL"
        assert key in redis.strings

        await cached_engine.create_emergency(crew.member, report(EmergencySeverity.HIGH))

        assert key not in redis.strings
        status = await cached_engine.get_production_status(crew.tournament_id)
        assert status["mode"] == ProductionMode.EMERGENCY.value

    @pytest.mark.asyncio
    async def test_resolve_drops_active_list_and_status(self, cached_engine, crew):
        created = await cached_engine.create_emergency(crew.member, report())
        assert len(await cached_engine.get_active_emergencies(crew.tournament_id)) == 1
        assert (await cached_engine.get_production_status(crew.tournament_id))["mode"] == "EMERGENCY"

        await cached_engine.update_emergency(
            crew.member, created.value.id, EmergencyUpdate(status=EmergencyStatus.RESOLVED)
        )

        assert await cached_engine.get_active_emergencies(crew.tournament_id) == []
        status = await cached_engine.get_production_status(crew.tournament_id)
        assert status["mode"] == ProductionMode.NORMAL.value

    @pytest.mark.asyncio
    async def test_title_edit_drops_active_list(self, cached_engine, crew):
        created = await cached_engine.create_emergency(crew.member, report(EmergencySeverity.LOW))
        await cached_engine.get_active_emergencies(crew.tournament_id)

        await cached_engine.update_emergency(
            crew.member, created.value.id, EmergencyUpdate(title="Camera 2 back on a spare body")
        )

        [fresh] = await cached_engine.get_active_emergencies(crew.tournament_id)
        assert fresh["title"] == "Camera 2 back on a spare body"

    @pytest.mark.asyncio
    async def test_delete_drops_active_list(self, cached_engine, crew):
        created = await cached_engine.create_emergency(crew.member, report(EmergencySeverity.LOW))
        assert len(await cached_engine.get_active_emergencies(crew.tournament_id)) == 1

        await cached_engine.delete_emergency(crew.director, created.value.id)

        assert await cached_engine.get_active_emergencies(crew.tournament_id) == []

    @pytest.mark.asyncio
    async def test_manual_mode_drops_status_and_active_list(self, cached_engine, crew):
        await cached_engine.get_production_status(crew.tournament_id)
        await cached_engine.get_active_emergencies(crew.tournament_id)

        await cached_engine.set_production_mode(
            crew.director, ProductionModeUpdate(mode=ProductionMode.EMERGENCY)
        )

        status = await cached_engine.get_production_status(crew.tournament_id)
        assert status["mode"] == ProductionMode.EMERGENCY.value
        [tracked] = await cached_engine.get_active_emergencies(crew.tournament_id)
        assert tracked["source"] == EmergencySource.MODE_SWITCH.value

    @pytest.mark.asyncio
    async def test_status_update_drops_production_status(self, cached_engine, crew):
        await cached_engine.get_production_status(crew.tournament_id)

        await cached_engine.update_production_status(
            crew.director, ProductionStatusUpdate(feature_table="Table 3")
        )

        status = await cached_engine.get_production_status(crew.tournament_id)
        assert status["featureTable"] == "Table 3"

    @pytest.mark.asyncio
    async def test_emergency_writes_drop_every_stats_window(self, cached_engine, crew, redis):
        for days in (7, 30):
            stats = await cached_engine.get_emergency_stats(crew.tournament_id, days=days)
            assert stats["totals"]["total"] == 0
            assert emergency_stats_key(crew.tournament_id, days) in redis.strings

        created = await cached_engine.create_emergency(crew.member, report(EmergencySeverity.LOW))

        assert not [key for key in redis.strings if key.startswith("emergency_stats:")]
        assert (await cached_engine.get_emergency_stats(crew.tournament_id, days=7))["totals"]["total"] == 1

        await cached_engine.update_emergency(
            crew.member, created.value.id, EmergencyUpdate(status=EmergencyStatus.RESOLVED)
        )

        stats = await cached_engine.get_emergency_stats(crew.tournament_id, days=7)
        assert stats["totals"]["resolved"] == 1
        assert stats["totals"]["active"] == 0

    @pytest.mark.asyncio
    async def test_report_drops_realtime_snapshot(self, cached_engine, crew):
        before = await cached_engine.get_realtime_metrics(crew.tournament_id, online_count=0)
        assert before["activeEmergencies"] == 0

        await cached_engine.create_emergency(crew.member, report(EmergencySeverity.LOW))

        after = await cached_engine.get_realtime_metrics(crew.tournament_id, online_count=0)
        assert after["activeEmergencies"] == 1

    @pytest.mark.asyncio
    async def test_other_tournament_entries_survive(self, cached_engine, crew, redis):
        foreign_key = active_emergencies_key("another-tournament")
        redis.strings[foreign_key] = "[]"

        await cached_engine.create_emergency(crew.member, report(EmergencySeverity.LOW))

        assert foreign_key in redis.strings


class TestTeamMemberStatus:
    """Availability updates."""

    @pytest.mark.asyncio
    async def test_member_updates_own_status(self, engine, crew):
        result = await engine.update_team_member_status(
            crew.member,
            crew.member_team_member_id,
            TeamMemberStatusUpdate(status=TeamMemberStatus.BREAK),
        )

        assert result.event_names == [EventName.TEAM_MEMBER_STATUS_CHANGED.value]
        payload = result.events[0].payload
        assert payload["memberId"] == crew.member_team_member_id
        assert payload["status"] == TeamMemberStatus.BREAK.value

        stats = await engine.get_team_stats(crew.tournament_id)
        assert stats == {"total": 2, "byStatus": {"ACTIVE": 1, "BREAK": 1}}

    @pytest.mark.asyncio
    async def test_member_cannot_update_teammate(self, engine, crew):
        with pytest.raises(ForbiddenError):
            await engine.update_team_member_status(
                crew.member,
                crew.other_team_member_id,
                TeamMemberStatusUpdate(status=TeamMemberStatus.OFFLINE),
            )

    @pytest.mark.asyncio
    async def test_director_updates_any_member(self, engine, crew):
        result = await engine.update_team_member_status(
            crew.director,
            crew.other_team_member_id,
            TeamMemberStatusUpdate(status=TeamMemberStatus.OFFLINE),
        )
        assert result.value.status == TeamMemberStatus.OFFLINE.value

    @pytest.mark.asyncio
    async def test_unknown_member_is_not_found(self, engine, crew):
        with pytest.raises(TeamMemberNotFoundError):
            await engine.update_team_member_status(
                crew.director, "missing-id", TeamMemberStatusUpdate(status=TeamMemberStatus.BREAK)
            )

    @pytest.mark.asyncio
    async def test_online_members_by_user_id(self, engine, crew):
        members = await engine.get_online_members(crew.tournament_id, [crew.member.user_id])

        assert [m["userId"] for m in members] == [crew.member.user_id]
        assert await engine.get_online_members(crew.tournament_id, []) == []

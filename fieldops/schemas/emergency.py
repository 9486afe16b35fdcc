"""Emergency request/response schemas."""

from datetime import datetime

from pydantic import Field, field_validator

from fieldops.models.emergency import (
    EmergencySeverity,
    EmergencySource,
    EmergencyStatus,
    EmergencyType,
)
from fieldops.schemas.common import BaseSchema, PaginationMeta, utc_or_none


class EmergencyCreate(BaseSchema):
    """Emergency report."""

    type: EmergencyType
    severity: EmergencySeverity = EmergencySeverity.MEDIUM
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=10, max_length=1000)


class EmergencyUpdate(BaseSchema):
    """Partial update; omitted fields are left untouched."""

    status: EmergencyStatus | None = None
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=10, max_length=1000)
    resolution: str | None = Field(default=None, max_length=1000)


class EmergencyResponse(BaseSchema):
    id: str
    tournament_id: str
    created_by: str | None
    type: EmergencyType
    severity: EmergencySeverity
    title: str
    description: str
    status: EmergencyStatus
    resolution: str | None = None
    source: EmergencySource = EmergencySource.REPORT
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None = None

    @field_validator("created_at", "updated_at", "resolved_at")
    @classmethod
    def normalize_timestamps(cls, v: datetime | None) -> datetime | None:
        return utc_or_none(v)


class EmergencyHistoryItem(EmergencyResponse):
    duration_minutes: int | None = None


class ActiveEmergenciesResponse(BaseSchema):
    emergencies: list[EmergencyResponse]
    count: int
    severity_stats: dict[str, int]


class EmergencyListResponse(BaseSchema):
    emergencies: list[EmergencyResponse]
    pagination: PaginationMeta


class EmergencyHistoryResponse(BaseSchema):
    emergencies: list[EmergencyHistoryItem]
    pagination: PaginationMeta


class StatsPeriod(BaseSchema):
    days: int
    start_date: datetime
    end_date: datetime


class StatsTotals(BaseSchema):
    total: int
    active: int
    resolved: int
    cancelled: int


class StatsDistribution(BaseSchema):
    by_type: dict[str, int]
    by_severity: dict[str, int]
    by_status: dict[str, int]


class StatsMetrics(BaseSchema):
    average_resolution_time_minutes: int
    resolution_rate: int


class EmergencyStatsResponse(BaseSchema):
    period: StatsPeriod
    totals: StatsTotals
    distribution: StatsDistribution
    metrics: StatsMetrics

"""Production status request/response schemas."""

from datetime import datetime
from typing import Any

from pydantic import Field, field_validator

from fieldops.models.production import ProductionMode
from fieldops.schemas.common import BaseSchema, utc_or_none


class ProductionModeUpdate(BaseSchema):
    mode: ProductionMode
    reason: str | None = Field(default=None, max_length=200)


class ProductionStatusUpdate(BaseSchema):
    """Partial production snapshot update."""

    mode: ProductionMode | None = None
    feature_table: str | None = Field(default=None, max_length=100)
    stream_quality: str | None = Field(default=None, max_length=50)
    upload_speed: float | None = Field(default=None, ge=0)
    team_status: dict[str, Any] | None = None
    current_issues: str | None = Field(default=None, max_length=500)
    next_schedule: datetime | None = None

    @field_validator("feature_table", "stream_quality", "upload_speed", "team_status", mode="before")
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        # These columns always hold a value; omit the field to leave it as is
        if v is None:
            raise ValueError("must not be null")
        return v


class ProductionStatusResponse(BaseSchema):
    id: str
    tournament_id: str
    mode: ProductionMode
    current_issues: str | None = None
    feature_table: str
    stream_quality: str
    upload_speed: float
    team_status: dict[str, Any]
    next_schedule: datetime | None = None
    updated_by: str | None = None
    updated_at: datetime

    @field_validator("next_schedule", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v: datetime | None) -> datetime | None:
        return utc_or_none(v)


class TeamStatusMetrics(BaseSchema):
    total: int
    by_status: dict[str, int]
    online: int


class RealtimeMetricsResponse(BaseSchema):
    timestamp: datetime
    production_mode: ProductionMode
    stream_quality: str
    upload_speed: float
    feature_table: str
    team_status: TeamStatusMetrics
    active_emergencies: int
    last_update: datetime | None = None

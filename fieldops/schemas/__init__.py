"""Pydantic schemas for API requests and responses."""

from fieldops.schemas.common import (
    BaseSchema,
    ErrorDetail,
    ErrorResponse,
    MessageResponse,
    PaginationMeta,
)
from fieldops.schemas.emergency import (
    ActiveEmergenciesResponse,
    EmergencyCreate,
    EmergencyHistoryItem,
    EmergencyHistoryResponse,
    EmergencyListResponse,
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
from fieldops.schemas.team import (
    OnlineMembersResponse,
    TeamMemberResponse,
    TeamMemberStatusUpdate,
    TeamStatsResponse,
)

__all__ = [
    # Common
    "BaseSchema",
    "ErrorDetail",
    "ErrorResponse",
    "MessageResponse",
    "PaginationMeta",
    # Emergency
    "ActiveEmergenciesResponse",
    "EmergencyCreate",
    "EmergencyHistoryItem",
    "EmergencyHistoryResponse",
    "EmergencyListResponse",
    "EmergencyResponse",
    "EmergencyStatsResponse",
    "EmergencyUpdate",
    # Production
    "ProductionModeUpdate",
    "ProductionStatusResponse",
    "ProductionStatusUpdate",
    "RealtimeMetricsResponse",
    # Team
    "OnlineMembersResponse",
    "TeamMemberResponse",
    "TeamMemberStatusUpdate",
    "TeamStatsResponse",
]

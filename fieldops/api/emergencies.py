"""Emergency API endpoints."""

from fastapi import APIRouter, Query, status

from fieldops.api.deps import Broadcaster, CurrentCaller, Engine
from fieldops.coordination.engine import emergency_payload, severity_stats
from fieldops.models.emergency import EmergencySeverity, EmergencyStatus, EmergencyType
from fieldops.schemas.common import ErrorResponse, MessageResponse
from fieldops.schemas.emergency import (
    ActiveEmergenciesResponse,
    EmergencyCreate,
    EmergencyHistoryResponse,
    EmergencyListResponse,
    EmergencyUpdate,
)

router = APIRouter(prefix="/emergencies", tags=["Emergencies"])

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Validation error"},
    401: {"model": ErrorResponse, "description": "Not authenticated"},
    403: {"model": ErrorResponse, "description": "Not permitted"},
}


@router.get(
    "",
    response_model=EmergencyListResponse,
    response_model_by_alias=True,
    responses=_ERRORS,
)
async def list_emergencies(
    caller: CurrentCaller,
    engine: Engine,
    status_filter: EmergencyStatus | None = Query(default=None, alias="status"),
    type_filter: EmergencyType | None = Query(default=None, alias="type"),
    severity: EmergencySeverity | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
):
    """List the tournament's emergencies, most pressing first."""
    emergencies, pagination = await engine.list_emergencies(
        caller.tournament_id,
        status=status_filter,
        type_=type_filter,
        severity=severity,
        page=page,
        limit=limit,
    )
    return EmergencyListResponse(emergencies=emergencies, pagination=pagination)


@router.get(
    "/active",
    response_model=ActiveEmergenciesResponse,
    response_model_by_alias=True,
    responses=_ERRORS,
)
async def get_active_emergencies(caller: CurrentCaller, engine: Engine):
    """Open emergencies ordered CRITICAL first, then newest first."""
    emergencies = await engine.get_active_emergencies(caller.tournament_id)
    return ActiveEmergenciesResponse(
        emergencies=emergencies,
        count=len(emergencies),
        severity_stats=severity_stats(emergencies),
    )


@router.get("/stats/overview", responses=_ERRORS)
async def get_emergency_stats(
    caller: CurrentCaller,
    engine: Engine,
    days: int = Query(default=30, ge=1, le=90),
):
    """Counts and resolution metrics over the last ``days`` days."""
    stats = await engine.get_emergency_stats(caller.tournament_id, days)
    return {"stats": stats}


@router.get(
    "/history",
    response_model=EmergencyHistoryResponse,
    response_model_by_alias=True,
    responses=_ERRORS,
)
async def get_emergency_history(
    caller: CurrentCaller,
    engine: Engine,
    days: int = Query(default=30, ge=1, le=90),
    status_filter: EmergencyStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
):
    """Closed emergencies with their resolution time."""
    emergencies, pagination = await engine.get_emergency_history(
        caller.tournament_id,
        days=days,
        status=status_filter,
        page=page,
        limit=limit,
    )
    return EmergencyHistoryResponse(emergencies=emergencies, pagination=pagination)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
)
async def create_emergency(
    data: EmergencyCreate,
    caller: CurrentCaller,
    engine: Engine,
    broadcaster: Broadcaster,
):
    """Report an emergency.

    HIGH and CRITICAL reports switch the tournament to EMERGENCY mode.
    """
    result = await engine.create_emergency(caller, data)
    await broadcaster.dispatch(result.events)
    return {
        "message": "Emergency created successfully",
        "emergency": emergency_payload(result.value),
    }


@router.put(
    "/{emergency_id}",
    responses={**_ERRORS, 404: {"model": ErrorResponse, "description": "Emergency not found"}},
)
async def update_emergency(
    emergency_id: str,
    data: EmergencyUpdate,
    caller: CurrentCaller,
    engine: Engine,
    broadcaster: Broadcaster,
):
    """Update an emergency (creator, field director or admin).

    Resolving the last HIGH/CRITICAL emergency returns the tournament to NORMAL.
    """
    result = await engine.update_emergency(caller, emergency_id, data)
    await broadcaster.dispatch(result.events)
    return {
        "message": "Emergency updated successfully",
        "emergency": emergency_payload(result.value),
    }


@router.delete(
    "/{emergency_id}",
    response_model=MessageResponse,
    responses={**_ERRORS, 404: {"model": ErrorResponse, "description": "Emergency not found"}},
)
async def delete_emergency(
    emergency_id: str,
    caller: CurrentCaller,
    engine: Engine,
):
    """Delete an emergency record (field director or admin)."""
    await engine.delete_emergency(caller, emergency_id)
    return MessageResponse(message="Emergency deleted successfully")

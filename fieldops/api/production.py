"""Production status API endpoints."""

from fastapi import APIRouter

from fieldops.api.deps import Broadcaster, CurrentCaller, Engine, Presence
from fieldops.coordination.engine import production_payload
from fieldops.schemas.common import ErrorResponse
from fieldops.schemas.production import ProductionModeUpdate, ProductionStatusUpdate

router = APIRouter(prefix="/production", tags=["Production"])

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Validation error"},
    401: {"model": ErrorResponse, "description": "Not authenticated"},
    403: {"model": ErrorResponse, "description": "Not permitted"},
}


@router.get("/status", responses=_ERRORS)
async def get_production_status(caller: CurrentCaller, engine: Engine):
    """Current production snapshot (created with defaults on first read)."""
    snapshot = await engine.get_production_status(caller.tournament_id)
    return {"status": snapshot}


@router.put("/status", responses=_ERRORS)
async def update_production_status(
    data: ProductionStatusUpdate,
    caller: CurrentCaller,
    engine: Engine,
    broadcaster: Broadcaster,
):
    """Replace parts of the production snapshot (field director or admin)."""
    result = await engine.update_production_status(caller, data)
    await broadcaster.dispatch(result.events)
    return {
        "message": "Production status updated successfully",
        "status": production_payload(result.value),
    }


@router.patch("/mode", responses=_ERRORS)
async def set_production_mode(
    data: ProductionModeUpdate,
    caller: CurrentCaller,
    engine: Engine,
    broadcaster: Broadcaster,
):
    """Quick mode switch (field director or admin)."""
    result = await engine.set_production_mode(caller, data)
    await broadcaster.dispatch(result.events)
    return {
        "message": f"Production mode changed to {data.mode.value}",
        "status": production_payload(result.value),
    }


@router.get("/metrics/realtime", responses=_ERRORS)
async def get_realtime_metrics(
    caller: CurrentCaller,
    engine: Engine,
    presence: Presence,
):
    """Dashboard snapshot: mode, stream, team and emergency counters."""
    online = await presence.online_user_ids(caller.tournament_id)
    metrics = await engine.get_realtime_metrics(caller.tournament_id, len(online))
    return {"metrics": metrics}

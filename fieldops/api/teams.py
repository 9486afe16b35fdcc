"""Team member status API endpoints."""

from fastapi import APIRouter

from fieldops.api.deps import Broadcaster, CurrentCaller, Engine, Presence
from fieldops.schemas.common import ErrorResponse
from fieldops.schemas.team import (
    OnlineMembersResponse,
    TeamMemberResponse,
    TeamMemberStatusUpdate,
)
from fieldops.utils.clock import utcnow

router = APIRouter(prefix="/teams", tags=["Teams"])


@router.patch(
    "/members/{member_id}/status",
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Not permitted"},
        404: {"model": ErrorResponse, "description": "Team member not found"},
    },
)
async def update_team_member_status(
    member_id: str,
    data: TeamMemberStatusUpdate,
    caller: CurrentCaller,
    engine: Engine,
    broadcaster: Broadcaster,
):
    """Change a member's availability (self, field director or admin)."""
    result = await engine.update_team_member_status(caller, member_id, data)
    await broadcaster.dispatch(result.events)
    return {
        "message": "Team member status updated successfully",
        "member": TeamMemberResponse.model_validate(result.value).to_payload(),
    }


@router.get("/stats/members")
async def get_team_stats(caller: CurrentCaller, engine: Engine):
    stats = await engine.get_team_stats(caller.tournament_id)
    return {"stats": stats}


@router.get(
    "/online/members",
    response_model=OnlineMembersResponse,
    response_model_by_alias=True,
)
async def get_online_members(
    caller: CurrentCaller,
    engine: Engine,
    presence: Presence,
):
    """Team members with a live socket session in this tournament."""
    user_ids = await presence.online_user_ids(caller.tournament_id)
    members = await engine.get_online_members(caller.tournament_id, user_ids)
    return OnlineMembersResponse(
        online_members=members,
        online_user_ids=user_ids,
        total_online=len(members),
        last_updated=utcnow(),
    )

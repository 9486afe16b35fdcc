"""Team member status schemas."""

from datetime import datetime

from fieldops.models.team import TeamMemberStatus
from fieldops.schemas.common import BaseSchema


class TeamMemberStatusUpdate(BaseSchema):
    status: TeamMemberStatus


class TeamMemberResponse(BaseSchema):
    id: str
    team_id: str
    user_id: str
    tournament_id: str
    status: TeamMemberStatus


class TeamStatsResponse(BaseSchema):
    total: int
    by_status: dict[str, int]


class OnlineMembersResponse(BaseSchema):
    online_members: list[TeamMemberResponse]
    online_user_ids: list[str]
    total_online: int
    last_updated: datetime

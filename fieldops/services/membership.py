"""Resolves an authenticated user to their active tournament membership."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.coordination.policy import Caller
from fieldops.models.user import Tournament, TournamentMember, TournamentStatus, User
from fieldops.utils.errors import NoActiveTournamentError

logger = logging.getLogger(__name__)


class MembershipService:
    """Looks up the caller's role in the tournament they are working."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_caller(self, user_id: str) -> Caller:
        """Build a Caller for an active user with an ACTIVE tournament membership.

        When a user belongs to several active tournaments, the most recent
        membership wins.

        Raises:
            NoActiveTournamentError: If the user is unknown, inactive, or has
                no membership in an ACTIVE tournament
        """
        user = await self.db.get(User, user_id)
        if user is None or not user.is_active:
            logger.info(f"Membership lookup rejected: user {user_id} missing or inactive")
            raise NoActiveTournamentError(user_id)

        result = await self.db.execute(
            select(TournamentMember)
            .join(Tournament, Tournament.id == TournamentMember.tournament_id)
            .where(
                TournamentMember.user_id == user_id,
                Tournament.status == TournamentStatus.ACTIVE.value,
            )
            .order_by(TournamentMember.created_at.desc())
            .limit(1)
        )
        membership = result.scalar_one_or_none()
        if membership is None:
            raise NoActiveTournamentError(user_id)

        return Caller(
            user_id=user_id,
            tournament_id=membership.tournament_id,
            role=membership.role,
        )

"""Socket entry points into the coordination engine."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fieldops.config import Settings
from fieldops.coordination.broadcaster import EventBroadcaster
from fieldops.coordination.engine import CoordinationEngine
from fieldops.coordination.events import EngineResult
from fieldops.coordination.policy import Caller
from fieldops.schemas.common import parse_payload
from fieldops.schemas.emergency import EmergencyCreate
from fieldops.schemas.production import ProductionStatusUpdate
from fieldops.schemas.team import TeamMemberStatusUpdate
from fieldops.utils.db import session_scope
from fieldops.utils.errors import ValidationError
from fieldops.utils.redis_client import CacheService
from fieldops.ws.connection import WebSocketConnection
from fieldops.ws.events import EventType
from fieldops.ws.handlers.base import BaseHandler
from fieldops.ws.messages import MessageEnvelope

logger = logging.getLogger(__name__)


class CoordinationHandler(BaseHandler):
    """Runs socket-originated mutations through the engine, one unit of work each.

    The outbox is dispatched only after the session has committed.
    """

    def __init__(
        self,
        broadcaster: EventBroadcaster,
        session_factory: async_sessionmaker[AsyncSession],
        cache: CacheService,
        settings: Settings,
    ):
        self.broadcaster = broadcaster
        self.session_factory = session_factory
        self.cache = cache
        self.settings = settings

    @property
    def handled_events(self) -> tuple[EventType, ...]:
        return (
            EventType.EMERGENCY_ALERT,
            EventType.PRODUCTION_STATUS_UPDATE,
            EventType.TEAM_MEMBER_STATUS_UPDATE,
        )

    async def handle(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None:
        caller = Caller(user_id=conn.user_id, tournament_id=conn.tournament_id, role=conn.role)

        async with session_scope(self.session_factory) as db:
            engine = CoordinationEngine(db, self.cache, self.settings)
            result = await self._run(engine, caller, event)

        await self.broadcaster.dispatch(result.events)
        logger.debug(
            f"{event.type.value} from user={conn.user_id} produced {result.event_names}"
        )
        return None

    async def _run(
        self,
        engine: CoordinationEngine,
        caller: Caller,
        event: MessageEnvelope,
    ) -> EngineResult:
        if event.type == EventType.EMERGENCY_ALERT:
            data = parse_payload(EmergencyCreate, event.payload)
            return await engine.create_emergency(caller, data)

        if event.type == EventType.PRODUCTION_STATUS_UPDATE:
            patch = parse_payload(ProductionStatusUpdate, event.payload)
            return await engine.update_production_status(caller, patch)

        member_id = event.payload.get("memberId")
        if not isinstance(member_id, str) or not member_id:
            raise ValidationError([{"field": "memberId", "message": "Field required"}])
        update = parse_payload(
            TeamMemberStatusUpdate,
            {k: v for k, v in event.payload.items() if k != "memberId"},
        )
        return await engine.update_team_member_status(caller, member_id, update)

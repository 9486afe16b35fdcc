"""Coordination event catalog and the outbox returned by engine calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from fieldops.utils.clock import utcnow
from fieldops.utils.json_utils import isoformat

T = TypeVar("T")


class EventName(str, Enum):
    """Server-to-client coordination events."""

    EMERGENCY_ALERT = "emergencyAlert"
    EMERGENCY_UPDATED = "emergencyUpdated"
    PRODUCTION_STATUS_CHANGED = "productionStatusChanged"
    PRODUCTION_MODE_CHANGED = "productionModeChanged"
    TEAM_MEMBER_STATUS_CHANGED = "teamMemberStatusChanged"
    CHECKLIST_UPDATED = "checklistUpdated"
    NEW_MESSAGE = "newMessage"
    USER_ONLINE = "userOnline"
    USER_OFFLINE = "userOffline"


def tournament_channel(tournament_id: str) -> str:
    return f"tournament:{tournament_id}"


def user_channel(user_id: str) -> str:
    return f"user:{user_id}"


@dataclass(frozen=True)
class CoordinationEvent:
    """One notification addressed to a tournament or user channel."""

    name: EventName
    channel: str
    payload: dict[str, Any]
    exclude_connection: str | None = None

    @classmethod
    def for_tournament(
        cls,
        tournament_id: str,
        name: EventName,
        payload: dict[str, Any],
        exclude_connection: str | None = None,
    ) -> CoordinationEvent:
        """Address an event to every session in the tournament.

        A ``timestamp`` is stamped onto the payload unless one is present.
        """
        payload = {**payload}
        payload.setdefault("timestamp", isoformat(utcnow()))
        return cls(
            name=name,
            channel=tournament_channel(tournament_id),
            payload=payload,
            exclude_connection=exclude_connection,
        )

    @classmethod
    def for_user(cls, user_id: str, name: EventName, payload: dict[str, Any]) -> CoordinationEvent:
        payload = {**payload}
        payload.setdefault("timestamp", isoformat(utcnow()))
        return cls(name=name, channel=user_channel(user_id), payload=payload)


@dataclass
class EngineResult(Generic[T]):
    """Value of an engine call plus the events to dispatch after commit.

    Events are kept in emission order; the transport must dispatch them in
    that order.
    """

    value: T
    events: list[CoordinationEvent] = field(default_factory=list)

    def emit(self, event: CoordinationEvent) -> None:
        self.events.append(event)

    @property
    def event_names(self) -> list[str]:
        return [event.name.value for event in self.events]

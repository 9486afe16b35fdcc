"""Emergency and production-mode coordination."""

from fieldops.coordination.broadcaster import EventBroadcaster
from fieldops.coordination.engine import CoordinationEngine
from fieldops.coordination.events import CoordinationEvent, EngineResult, EventName
from fieldops.coordination.policy import Caller, check_capability, require_capability

__all__ = [
    "Caller",
    "CoordinationEngine",
    "CoordinationEvent",
    "EngineResult",
    "EventBroadcaster",
    "EventName",
    "check_capability",
    "require_capability",
]

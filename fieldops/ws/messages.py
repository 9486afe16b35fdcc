"""Socket frame envelope.

Every frame in either direction is ``{type, ts, traceId, payload, version}``
plus an optional ``requestId`` the client uses to correlate replies.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from fieldops.utils.clock import utcnow
from fieldops.ws.events import EventType

PROTOCOL_VERSION = "v1"


def _epoch_ms() -> int:
    return int(utcnow().timestamp() * 1000)


def _new_trace_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class MessageEnvelope:
    type: EventType
    ts: int
    trace_id: str
    payload: dict[str, Any]
    version: str = PROTOCOL_VERSION
    request_id: str | None = None

    @classmethod
    def create(
        cls,
        event_type: EventType,
        payload: dict[str, Any],
        request_id: str | None = None,
        trace_id: str | None = None,
    ) -> MessageEnvelope:
        return cls(
            type=event_type,
            ts=_epoch_ms(),
            trace_id=trace_id or _new_trace_id(),
            payload=payload,
            request_id=request_id,
        )

    @classmethod
    def from_dict(cls, frame: Any) -> MessageEnvelope:
        """Parse a client frame.

        Missing ``ts`` and ``traceId`` are filled in; ``payload`` defaults to ``{}``.

        Raises:
            ValueError: Not an object, payload not an object, or unknown ``type``
        """
        if not isinstance(frame, dict):
            raise ValueError("Frame must be a JSON object")
        payload = frame.get("payload", {})
        if not isinstance(payload, dict):
            raise ValueError("payload must be an object")
        return cls(
            type=EventType(frame.get("type")),
            ts=frame.get("ts") or _epoch_ms(),
            trace_id=frame.get("traceId") or _new_trace_id(),
            payload=payload,
            version=frame.get("version", PROTOCOL_VERSION),
            request_id=frame.get("requestId"),
        )

    def to_dict(self) -> dict[str, Any]:
        frame: dict[str, Any] = {
            "type": self.type.value,
            "ts": self.ts,
            "traceId": self.trace_id,
            "payload": self.payload,
            "version": self.version,
        }
        if self.request_id:
            frame["requestId"] = self.request_id
        return frame


def create_error_message(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
    trace_id: str | None = None,
) -> MessageEnvelope:
    """Build an ``error`` frame carrying ``{code, message[, details]}``."""
    payload: dict[str, Any] = {"code": code, "message": message}
    if details:
        payload["details"] = details
    return MessageEnvelope.create(EventType.ERROR, payload, request_id=request_id, trace_id=trace_id)

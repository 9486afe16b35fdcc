"""WebSocket event type definitions."""

from enum import Enum


class EventType(str, Enum):
    """All event names that travel over the socket."""

    # Handshake / system
    AUTH = "AUTH"
    HEARTBEAT = "heartbeat"
    CONNECTION_STATE = "connectionState"
    ONLINE_USERS = "onlineUsers"
    ERROR = "error"

    # Coordination catalog (server -> client)
    EMERGENCY_ALERT = "emergencyAlert"
    EMERGENCY_UPDATED = "emergencyUpdated"
    PRODUCTION_STATUS_CHANGED = "productionStatusChanged"
    PRODUCTION_MODE_CHANGED = "productionModeChanged"
    TEAM_MEMBER_STATUS_CHANGED = "teamMemberStatusChanged"
    CHECKLIST_UPDATED = "checklistUpdated"
    NEW_MESSAGE = "newMessage"
    USER_ONLINE = "userOnline"
    USER_OFFLINE = "userOffline"

    # Coordination requests (client -> server)
    PRODUCTION_STATUS_UPDATE = "productionStatusUpdate"
    TEAM_MEMBER_STATUS_UPDATE = "teamMemberStatusUpdate"


# Event direction mapping
# Note: emergencyAlert is a create request inbound and a notification outbound
CLIENT_TO_SERVER_EVENTS = frozenset([
    EventType.HEARTBEAT,
    EventType.EMERGENCY_ALERT,
    EventType.PRODUCTION_STATUS_UPDATE,
    EventType.TEAM_MEMBER_STATUS_UPDATE,
])

SERVER_TO_CLIENT_EVENTS = frozenset([
    EventType.HEARTBEAT,
    EventType.CONNECTION_STATE,
    EventType.ONLINE_USERS,
    EventType.ERROR,
    EventType.EMERGENCY_ALERT,
    EventType.EMERGENCY_UPDATED,
    EventType.PRODUCTION_STATUS_CHANGED,
    EventType.PRODUCTION_MODE_CHANGED,
    EventType.TEAM_MEMBER_STATUS_CHANGED,
    EventType.CHECKLIST_UPDATED,
    EventType.NEW_MESSAGE,
    EventType.USER_ONLINE,
    EventType.USER_OFFLINE,
])

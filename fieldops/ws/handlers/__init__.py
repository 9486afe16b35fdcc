"""WebSocket event handlers."""

from fieldops.ws.handlers.base import BaseHandler
from fieldops.ws.handlers.system import SystemHandler
from fieldops.ws.handlers.coordination import CoordinationHandler

__all__ = [
    "BaseHandler",
    "SystemHandler",
    "CoordinationHandler",
]

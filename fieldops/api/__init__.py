"""API routers."""

from fieldops.api.emergencies import router as emergencies_router
from fieldops.api.production import router as production_router
from fieldops.api.teams import router as teams_router

__all__ = [
    "emergencies_router",
    "production_router",
    "teams_router",
]

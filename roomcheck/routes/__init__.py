"""
API Routes

FastAPI routers for RoomCheck endpoints.
"""

from roomcheck.routes.health import router as health_router
from roomcheck.routes.inspections import router as inspections_router
from roomcheck.routes.settings import router as settings_router

__all__ = ["health_router", "inspections_router", "settings_router"]

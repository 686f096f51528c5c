"""FastAPI API endpoints under /api.

Endpoint groups: health and tools (read-only runtime state), events (bus push
delivery, one endpoint per subscribed queue name).
"""

from fastapi import APIRouter

from .events import router as events_router
from .health import router as health_router

router = APIRouter()
router.include_router(health_router)
router.include_router(events_router)

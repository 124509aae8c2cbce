"""
app/api/routers package marker.
"""

from app.api.routers.documents_router import router as documents_router
from app.api.routers.scheduler_router import router as scheduler_router

__all__ = [
    "documents_router",
    "scheduler_router",
]

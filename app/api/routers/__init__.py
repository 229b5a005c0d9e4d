"""
app/api/routers package marker.
"""

from app.api.routers.discovery_router import router as discovery_router

__all__ = ["discovery_router"]

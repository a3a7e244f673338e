"""
API routers.

Each router groups related endpoints; the application includes all of them.
"""

from .sessions import router as sessions_router
from .strategies import router as strategies_router
from .recommendations import router as recommendations_router
from .health import router as health_router

__all__ = [
    "sessions_router",
    "strategies_router",
    "recommendations_router",
    "health_router",
]

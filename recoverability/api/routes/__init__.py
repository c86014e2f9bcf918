"""API routes module."""

from recoverability.api.routes.posture import router as posture_router

__all__ = [
    "posture_router",
]

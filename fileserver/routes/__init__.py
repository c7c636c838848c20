"""API routes package."""

from fileserver.routes.file_routes import router as file_router
from fileserver.routes.internal_routes import router as internal_router

__all__ = ["file_router", "internal_router"]

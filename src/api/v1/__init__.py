"""
API v1 package.

Contains versioned API routes for the registration approval API.
"""

from src.api.v1.admin import router as admin_router
from src.api.v1.routes import router

router.include_router(admin_router)

__all__ = ["admin_router", "router"]

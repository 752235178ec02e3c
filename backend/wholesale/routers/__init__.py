"""
API routers package.
"""
from wholesale.routers.admin import router as admin_router
from wholesale.routers.health import router as health_router
from wholesale.routers.products import router as products_router
from wholesale.routers.webhooks import router as webhooks_router

__all__ = [
    "admin_router",
    "health_router",
    "products_router",
    "webhooks_router",
]

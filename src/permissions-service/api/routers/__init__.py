"""
API Routers for Permissions Service.
"""

from .health import router as health_router
from .catalog import router as catalog_router
from .permissions import router as permissions_router
from .tenant_users import router as tenant_users_router

__all__ = [
    "health_router",
    "catalog_router",
    "permissions_router",
    "tenant_users_router",
]

"""
Permissions Service API Layer.
"""

from .routers import (
    health_router,
    catalog_router,
    permissions_router,
    tenant_users_router,
)

__all__ = [
    "health_router",
    "catalog_router",
    "permissions_router",
    "tenant_users_router",
]

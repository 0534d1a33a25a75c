"""
Permissions Service Database Layer.

Provides access to:
- user_permissions: materialized per-(user, tenant) permission records
- tenant_users: tenant memberships

Usage:
    from db import get_database

    store = get_database()
    record = store.find_user_permissions(user_id, tenant_id)
"""

from .base import DatabaseBackend, DuplicateRecordError, StoreError
from .database import get_database, reset_database

__all__ = [
    "DatabaseBackend",
    "DuplicateRecordError",
    "StoreError",
    "get_database",
    "reset_database",
]

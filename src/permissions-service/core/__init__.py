"""
Permissions Service Core Logic.

Business logic layer that uses the database layer for data access.
Services take their store and error logger as constructor arguments.

Usage:
    from core import PermissionsService, PermissionSession
    from db import get_database

    service = PermissionsService(get_database())
    session = PermissionSession(service)
    await session.set_identity(user_id, tenant_id, tenant_user)

    if session.has_permission(Permission.CLIENTS_VIEW):
        ...
"""

from .error_logger import ErrorLogger
from .permissions import PermissionsService
from .tenant_users import TenantUserService
from .initialization import initialize_user_permissions, should_initialize_permissions
from .session import PermissionSession, PermissionSessionError, SessionState

__all__ = [
    # Services
    "PermissionsService",
    "TenantUserService",
    "ErrorLogger",
    # Initialization
    "initialize_user_permissions",
    "should_initialize_permissions",
    # Session
    "PermissionSession",
    "PermissionSessionError",
    "SessionState",
]

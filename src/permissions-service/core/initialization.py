"""
Permission initialization / repair.

A tenant owner or admin whose permission record is missing (e.g. the
record write failed during tenant creation) gets it rebuilt from the
membership record the first time their permissions are loaded.
"""

import logging

from core.permissions import PermissionsService
from models.permissions import (
    CreateUserPermissionsData,
    Role,
    TenantUser,
    get_role_permissions,
    parse_role,
)

logger = logging.getLogger("permissions-service")

AUTO_INITIALIZED_ROLES = frozenset({Role.OWNER, Role.ADMIN})


def should_initialize_permissions(role: Role | str | None) -> bool:
    """Only elevated roles are repaired automatically."""
    return parse_role(role) in AUTO_INITIALIZED_ROLES


def initialize_user_permissions(
    service: PermissionsService,
    user_id: str,
    tenant_user: TenantUser,
) -> bool:
    """
    Create the permission record for `user_id` from its membership.

    Explicit membership permissions win; an empty list means role defaults.

    Returns:
        True if the record was created, False on any failure (logged)
    """
    permissions = (
        list(tenant_user.permissions) if tenant_user.permissions
        else get_role_permissions(tenant_user.role)
    )

    try:
        result = service.create_user_permissions(
            CreateUserPermissionsData(
                user_id=user_id,
                tenant_id=tenant_user.tenant_id,
                role=tenant_user.role,
                permissions=permissions,
            )
        )
    except Exception as e:
        logger.error(f"[INIT] Error initializing permissions for {user_id}@{tenant_user.tenant_id}: {e}")
        return False

    if not result.success:
        logger.error(
            f"[INIT] Failed to initialize permissions for {user_id}@{tenant_user.tenant_id}: "
            f"{result.error.message}"
        )
        return False

    logger.info(f"[INIT] Initialized {tenant_user.role} permissions for {user_id}@{tenant_user.tenant_id}")
    return True

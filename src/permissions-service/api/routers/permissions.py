"""
Permission API endpoints.

- /api/permissions/me: the caller's own session (triggers repair)
- /api/permissions/check*: server-truth checks for other services
- /api/tenants/{tenant_id}/permissions: tenant-scoped administration
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import (
    get_permission_session,
    get_permissions_service,
    get_tenant_user_service,
    raise_for_error,
    require_permission,
    require_role,
    require_service_auth,
)
from core import (
    PermissionSession,
    PermissionsService,
    TenantUserService,
    initialize_user_permissions,
)
from models import (
    CreateUserPermissionsData,
    CreateUserPermissionsRequest,
    Permission,
    PermissionCheckRequest,
    PermissionCheckResponse,
    PermissionListCheckRequest,
    Role,
    SessionResponse,
    UpdateUserPermissionsData,
    UpdateUserPermissionsRequest,
    UserPermissions,
    UserPermissionsResponse,
)

logger = logging.getLogger("permissions-service")

router = APIRouter(tags=["permissions"])


def _to_response(record: UserPermissions) -> UserPermissionsResponse:
    return UserPermissionsResponse(
        user_id=record.user_id,
        tenant_id=record.tenant_id,
        role=record.role,
        permissions=record.permissions,
        is_active=record.is_active,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


# =============================================================================
# CALLER SESSION
# =============================================================================

@router.get("/api/permissions/me", response_model=SessionResponse)
async def get_my_permissions(
    session: PermissionSession = Depends(get_permission_session),
):
    """
    Get the caller's permission session.

    Identity comes from X-User-Id / X-Tenant-Id. A missing record for an
    owner or admin is initialized from the tenant membership first.
    """
    record = session.user_permissions
    return SessionResponse(
        user_id=session.user_id,
        tenant_id=session.tenant_id,
        state=session.state.value,
        error=session.error,
        role=session.role,
        role_description=session.get_current_role_description(),
        permissions=record.permissions if record else [],
        is_active=record.is_active if record else False,
        is_owner=session.is_owner(),
        is_admin=session.is_admin(),
        is_manager_or_higher=session.is_manager_or_higher(),
        is_staff_or_higher=session.is_staff_or_higher(),
    )


# =============================================================================
# SERVER-TRUTH CHECKS
# =============================================================================

@router.post("/api/permissions/check", response_model=PermissionCheckResponse)
async def check_permission(
    request: PermissionCheckRequest,
    service: str = Depends(require_service_auth),
    permissions_service: PermissionsService = Depends(get_permissions_service),
):
    """
    Check if a user has a specific permission in a tenant.

    Always reads the live record; "*" grants everything.
    """
    result = await asyncio.to_thread(
        permissions_service.check_user_permission,
        request.user_id, request.tenant_id, request.permission,
    )
    if not result.success:
        raise_for_error(result.error)
    return PermissionCheckResponse(allowed=result.data)


@router.post("/api/permissions/check-any", response_model=PermissionCheckResponse)
async def check_any_permission(
    request: PermissionListCheckRequest,
    service: str = Depends(require_service_auth),
    permissions_service: PermissionsService = Depends(get_permissions_service),
):
    """Check if a user has at least one of the given permissions."""
    result = await asyncio.to_thread(
        permissions_service.check_user_any_permission,
        request.user_id, request.tenant_id, request.permissions,
    )
    if not result.success:
        raise_for_error(result.error)
    return PermissionCheckResponse(allowed=result.data)


@router.post("/api/permissions/check-all", response_model=PermissionCheckResponse)
async def check_all_permissions(
    request: PermissionListCheckRequest,
    service: str = Depends(require_service_auth),
    permissions_service: PermissionsService = Depends(get_permissions_service),
):
    """Check if a user has every one of the given permissions."""
    result = await asyncio.to_thread(
        permissions_service.check_user_all_permissions,
        request.user_id, request.tenant_id, request.permissions,
    )
    if not result.success:
        raise_for_error(result.error)
    return PermissionCheckResponse(allowed=result.data)


# =============================================================================
# TENANT ADMINISTRATION
# =============================================================================

@router.get(
    "/api/tenants/{tenant_id}/permissions",
    response_model=list[UserPermissionsResponse],
)
async def list_tenant_permissions(
    tenant_id: str,
    session: PermissionSession = Depends(require_permission(Permission.USERS_VIEW)),
    permissions_service: PermissionsService = Depends(get_permissions_service),
):
    """All permission records of the tenant, newest first."""
    result = await asyncio.to_thread(permissions_service.get_tenant_users, tenant_id)
    if not result.success:
        raise_for_error(result.error)
    return [_to_response(record) for record in result.data]


@router.get(
    "/api/tenants/{tenant_id}/permissions/{user_id}",
    response_model=UserPermissionsResponse | None,
)
async def get_user_permissions(
    tenant_id: str,
    user_id: str,
    session: PermissionSession = Depends(require_permission(Permission.USERS_VIEW)),
    permissions_service: PermissionsService = Depends(get_permissions_service),
):
    """A user's permission record, or null if not yet initialized."""
    result = await asyncio.to_thread(permissions_service.get_user_permissions, user_id, tenant_id)
    if not result.success:
        raise_for_error(result.error)
    return _to_response(result.data) if result.data else None


@router.post(
    "/api/tenants/{tenant_id}/permissions",
    response_model=UserPermissionsResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_user_permissions(
    tenant_id: str,
    request: CreateUserPermissionsRequest,
    session: PermissionSession = Depends(require_permission(Permission.USERS_PERMISSIONS)),
    permissions_service: PermissionsService = Depends(get_permissions_service),
):
    """
    Create a permission record.

    Omit `permissions` to use the role defaults.
    """
    result = await asyncio.to_thread(
        permissions_service.create_user_permissions,
        CreateUserPermissionsData(
            user_id=request.user_id,
            tenant_id=tenant_id,
            role=request.role,
            permissions=request.permissions,
        ),
    )
    if not result.success:
        raise_for_error(result.error)

    logger.info(f"[PERMISSIONS] {session.user_id} created permissions for {request.user_id}@{tenant_id}")
    return _to_response(result.data)


@router.patch(
    "/api/tenants/{tenant_id}/permissions/{user_id}",
    response_model=UserPermissionsResponse,
)
async def update_user_permissions(
    tenant_id: str,
    user_id: str,
    request: UpdateUserPermissionsRequest,
    session: PermissionSession = Depends(require_permission(Permission.USERS_PERMISSIONS)),
    permissions_service: PermissionsService = Depends(get_permissions_service),
):
    """
    Change a user's role and/or permissions.

    A role change without `permissions` resets to the new role's defaults.
    """
    result = await asyncio.to_thread(
        permissions_service.update_user_permissions,
        user_id,
        tenant_id,
        UpdateUserPermissionsData(role=request.role, permissions=request.permissions),
    )
    if not result.success:
        raise_for_error(result.error)

    logger.info(f"[PERMISSIONS] {session.user_id} updated permissions for {user_id}@{tenant_id}")
    return _to_response(result.data)


@router.delete(
    "/api/tenants/{tenant_id}/permissions/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_user_permissions(
    tenant_id: str,
    user_id: str,
    session: PermissionSession = Depends(require_permission(Permission.USERS_PERMISSIONS)),
    permissions_service: PermissionsService = Depends(get_permissions_service),
):
    """Remove a user's permission record."""
    result = await asyncio.to_thread(permissions_service.delete_user_permissions, user_id, tenant_id)
    if not result.success:
        raise_for_error(result.error)

    logger.info(f"[PERMISSIONS] {session.user_id} deleted permissions for {user_id}@{tenant_id}")


@router.post(
    "/api/tenants/{tenant_id}/permissions/{user_id}/initialize",
    response_model=UserPermissionsResponse,
)
async def initialize_permissions(
    tenant_id: str,
    user_id: str,
    session: PermissionSession = Depends(require_role(Role.ADMIN)),
    permissions_service: PermissionsService = Depends(get_permissions_service),
    tenant_user_service: TenantUserService = Depends(get_tenant_user_service),
):
    """
    Rebuild a user's permission record from their tenant membership.

    Returns the existing record unchanged if one is already present.
    """
    existing = await asyncio.to_thread(permissions_service.get_user_permissions, user_id, tenant_id)
    if not existing.success:
        raise_for_error(existing.error)
    if existing.data is not None:
        return _to_response(existing.data)

    membership = await asyncio.to_thread(tenant_user_service.get_tenant_user, user_id, tenant_id)
    if not membership.success:
        raise_for_error(membership.error)
    if membership.data is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tenant user was not found.",
        )

    initialized = await asyncio.to_thread(
        initialize_user_permissions, permissions_service, user_id, membership.data
    )
    if not initialized:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to initialize permissions",
        )

    created = await asyncio.to_thread(permissions_service.get_user_permissions, user_id, tenant_id)
    if not created.success:
        raise_for_error(created.error)
    if created.data is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to initialize permissions",
        )

    logger.info(f"[PERMISSIONS] {session.user_id} initialized permissions for {user_id}@{tenant_id}")
    return _to_response(created.data)

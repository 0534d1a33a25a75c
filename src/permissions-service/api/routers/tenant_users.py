"""
Tenant membership endpoints.

Called by the tenant creation and invite flows (service auth only).
"""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import get_tenant_user_service, raise_for_error, require_service_auth
from core import TenantUserService
from models import (
    CreateTenantUserData,
    CreateTenantUserRequest,
    TenantUser,
    TenantUserResponse,
    UpdateTenantUserRequest,
)

router = APIRouter(prefix="/api/tenant-users", tags=["tenant-users"])


def _to_response(member: TenantUser) -> TenantUserResponse:
    return TenantUserResponse(
        id=member.id,
        tenant_id=member.tenant_id,
        user_id=member.user_id,
        role=member.role,
        permissions=member.permissions,
        is_active=member.is_active,
        created_at=member.created_at,
        updated_at=member.updated_at,
    )


@router.post("", response_model=TenantUserResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant_user(
    request: CreateTenantUserRequest,
    service: str = Depends(require_service_auth),
    tenant_user_service: TenantUserService = Depends(get_tenant_user_service),
):
    """
    Record a tenant membership.

    Leave `permissions` empty to defer to the role defaults.
    """
    result = await asyncio.to_thread(
        tenant_user_service.create_tenant_user,
        CreateTenantUserData(
            tenant_id=request.tenant_id,
            user_id=request.user_id,
            role=request.role,
            permissions=request.permissions,
        ),
    )
    if not result.success:
        raise_for_error(result.error)
    return _to_response(result.data)


@router.get("/{tenant_id}", response_model=list[TenantUserResponse])
async def list_tenant_users(
    tenant_id: str,
    service: str = Depends(require_service_auth),
    tenant_user_service: TenantUserService = Depends(get_tenant_user_service),
):
    result = await asyncio.to_thread(tenant_user_service.list_tenant_users, tenant_id)
    if not result.success:
        raise_for_error(result.error)
    return [_to_response(member) for member in result.data]


@router.get("/{tenant_id}/{user_id}", response_model=TenantUserResponse)
async def get_tenant_user(
    tenant_id: str,
    user_id: str,
    service: str = Depends(require_service_auth),
    tenant_user_service: TenantUserService = Depends(get_tenant_user_service),
):
    result = await asyncio.to_thread(tenant_user_service.get_tenant_user, user_id, tenant_id)
    if not result.success:
        raise_for_error(result.error)
    if result.data is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tenant user was not found.",
        )
    return _to_response(result.data)


@router.patch("/{tenant_id}/{user_id}", response_model=TenantUserResponse)
async def update_tenant_user(
    tenant_id: str,
    user_id: str,
    request: UpdateTenantUserRequest,
    service: str = Depends(require_service_auth),
    tenant_user_service: TenantUserService = Depends(get_tenant_user_service),
):
    """Change role, permission override or active flag of a membership."""
    result = await asyncio.to_thread(
        tenant_user_service.update_tenant_user,
        user_id,
        tenant_id,
        role=request.role,
        permissions=request.permissions,
        is_active=request.is_active,
    )
    if not result.success:
        raise_for_error(result.error)
    return _to_response(result.data)


@router.delete("/{tenant_id}/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tenant_user(
    tenant_id: str,
    user_id: str,
    service: str = Depends(require_service_auth),
    tenant_user_service: TenantUserService = Depends(get_tenant_user_service),
):
    """Remove a membership. The permission record is left in place."""
    result = await asyncio.to_thread(tenant_user_service.delete_tenant_user, user_id, tenant_id)
    if not result.success:
        raise_for_error(result.error)

"""
Role / permission catalog endpoints.

Static data; no authentication required.
"""

from fastapi import APIRouter

from models import (
    PERMISSION_GROUPS,
    PermissionCatalogResponse,
    RoleInfoResponse,
    get_all_permissions,
    get_all_roles,
    get_role_description,
    get_role_permissions,
)

router = APIRouter(prefix="/api/catalog", tags=["catalog"])


@router.get("/roles", response_model=list[RoleInfoResponse])
async def list_roles():
    """Every role with its default permissions, highest first."""
    return [
        RoleInfoResponse(
            role=role,
            description=get_role_description(role),
            permissions=get_role_permissions(role),
        )
        for role in get_all_roles()
    ]


@router.get("/permissions", response_model=PermissionCatalogResponse)
async def list_permissions():
    """The permission vocabulary and its display groups."""
    return PermissionCatalogResponse(
        permissions=[p.value for p in get_all_permissions()],
        groups={name: list(perms) for name, perms in PERMISSION_GROUPS.items()},
    )

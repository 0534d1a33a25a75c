"""
Permissions Service Models.

Exports all models used by the permissions-service API.
"""

# Permission Models
from .permissions import (
    # Enums
    Permission,
    Role,
    # Constants
    WILDCARD,
    ROLE_HIERARCHY,
    ROLE_PERMISSIONS,
    PERMISSION_GROUPS,
    # Dataclasses
    RolePermissions,
    UserPermissions,
    TenantUser,
    CreateUserPermissionsData,
    UpdateUserPermissionsData,
    CreateTenantUserData,
    # Pydantic
    UserPermissionsResponse,
    CreateUserPermissionsRequest,
    UpdateUserPermissionsRequest,
    TenantUserResponse,
    CreateTenantUserRequest,
    UpdateTenantUserRequest,
    PermissionCheckRequest,
    PermissionListCheckRequest,
    PermissionCheckResponse,
    RoleInfoResponse,
    PermissionCatalogResponse,
    SessionResponse,
    # Functions
    parse_role,
    get_role_permissions,
    get_role_description,
    get_all_roles,
    get_all_permissions,
    role_at_least,
    has_permission,
    has_any_permission,
    has_all_permissions,
)

# Error Models
from .errors import (
    ErrorType,
    ErrorSeverity,
    AppError,
    ServiceResult,
    create_not_found_error,
    create_validation_error,
    create_internal_error,
    create_duplicate_error,
)

__all__ = [
    # Permission Enums
    "Permission",
    "Role",
    # Constants
    "WILDCARD",
    "ROLE_HIERARCHY",
    "ROLE_PERMISSIONS",
    "PERMISSION_GROUPS",
    # Permission Dataclasses
    "RolePermissions",
    "UserPermissions",
    "TenantUser",
    "CreateUserPermissionsData",
    "UpdateUserPermissionsData",
    "CreateTenantUserData",
    # Permission Pydantic
    "UserPermissionsResponse",
    "CreateUserPermissionsRequest",
    "UpdateUserPermissionsRequest",
    "TenantUserResponse",
    "CreateTenantUserRequest",
    "UpdateTenantUserRequest",
    "PermissionCheckRequest",
    "PermissionListCheckRequest",
    "PermissionCheckResponse",
    "RoleInfoResponse",
    "PermissionCatalogResponse",
    "SessionResponse",
    # Catalog Functions
    "parse_role",
    "get_role_permissions",
    "get_role_description",
    "get_all_roles",
    "get_all_permissions",
    "role_at_least",
    "has_permission",
    "has_any_permission",
    "has_all_permissions",
    # Errors
    "ErrorType",
    "ErrorSeverity",
    "AppError",
    "ServiceResult",
    "create_not_found_error",
    "create_validation_error",
    "create_internal_error",
    "create_duplicate_error",
]

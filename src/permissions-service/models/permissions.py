"""
Permission Models and Role Catalog.

Tenant-scoped RBAC:
- Roles: owner > admin > manager > staff > viewer
- Permissions: closed "resource:action" vocabulary
- Wildcard "*": every permission, current and future
- One UserPermissions record per (user, tenant), derived from TenantUser
"""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field


# =============================================================================
# ENUMS
# =============================================================================

class Permission(str, Enum):
    """Closed permission vocabulary (insertion order is significant)."""
    # Clients
    CLIENTS_VIEW = "clients:view"
    CLIENTS_CREATE = "clients:create"
    CLIENTS_EDIT = "clients:edit"
    CLIENTS_DELETE = "clients:delete"

    # Appointments
    APPOINTMENTS_VIEW = "appointments:view"
    APPOINTMENTS_CREATE = "appointments:create"
    APPOINTMENTS_EDIT = "appointments:edit"
    APPOINTMENTS_DELETE = "appointments:delete"
    APPOINTMENTS_CANCEL = "appointments:cancel"

    # Dashboard
    DASHBOARD_VIEW = "dashboard:view"
    DASHBOARD_ANALYTICS = "dashboard:analytics"

    # Platform administration
    ADMIN_TENANTS_VIEW = "admin:tenants:view"
    ADMIN_TENANTS_EDIT = "admin:tenants:edit"
    ADMIN_TENANTS_DELETE = "admin:tenants:delete"
    ADMIN_USERS_VIEW = "admin:users:view"
    ADMIN_USERS_EDIT = "admin:users:edit"
    ADMIN_USERS_DELETE = "admin:users:delete"
    ADMIN_SETTINGS_VIEW = "admin:settings:view"
    ADMIN_SETTINGS_EDIT = "admin:settings:edit"

    # Tenant settings
    SETTINGS_VIEW = "settings:view"
    SETTINGS_EDIT = "settings:edit"
    SETTINGS_BRANDING = "settings:branding"
    SETTINGS_NOTIFICATIONS = "settings:notifications"

    # Reports
    REPORTS_VIEW = "reports:view"
    REPORTS_EXPORT = "reports:export"

    # Tenant users
    USERS_VIEW = "users:view"
    USERS_CREATE = "users:create"
    USERS_EDIT = "users:edit"
    USERS_DELETE = "users:delete"
    USERS_PERMISSIONS = "users:permissions"


class Role(str, Enum):
    """Privilege tiers within a tenant."""
    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    STAFF = "staff"
    VIEWER = "viewer"


WILDCARD = "*"

# Higher level == more privileged
ROLE_HIERARCHY: dict[Role, int] = {
    Role.VIEWER: 10,
    Role.STAFF: 20,
    Role.MANAGER: 30,
    Role.ADMIN: 40,
    Role.OWNER: 50,
}


# =============================================================================
# DATACLASS MODELS (Internal use)
# =============================================================================

@dataclass(frozen=True)
class RolePermissions:
    """Default permission template for a role."""
    role: Role
    permissions: tuple[str, ...]
    description: str


@dataclass
class UserPermissions:
    """
    Materialized permission record consulted at check time.

    Format of `permissions`: either ["*"] or a list of vocabulary tokens.
    """
    user_id: str
    tenant_id: str
    role: str
    permissions: list[str] = field(default_factory=list)
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_record(cls, record: dict) -> "UserPermissions":
        """Build from a store row."""
        return cls(
            user_id=record["user_id"],
            tenant_id=record["tenant_id"],
            role=record["role"],
            permissions=list(record.get("permissions") or []),
            is_active=bool(record.get("is_active", True)),
            created_at=record.get("created_at"),
            updated_at=record.get("updated_at"),
        )


@dataclass
class TenantUser:
    """Membership of a user in a tenant with a role."""
    id: str | None = None
    tenant_id: str = ""
    user_id: str = ""
    role: str = Role.VIEWER.value
    permissions: list[str] = field(default_factory=list)
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_record(cls, record: dict) -> "TenantUser":
        """Build from a store row."""
        return cls(
            id=str(record["id"]) if record.get("id") is not None else None,
            tenant_id=record["tenant_id"],
            user_id=record["user_id"],
            role=record["role"],
            permissions=list(record.get("permissions") or []),
            is_active=bool(record.get("is_active", True)),
            created_at=record.get("created_at"),
            updated_at=record.get("updated_at"),
        )


@dataclass
class CreateUserPermissionsData:
    """Input for creating a UserPermissions record. permissions=None means role defaults."""
    user_id: str
    tenant_id: str
    role: Role | str
    permissions: list[str] | None = None


@dataclass
class UpdateUserPermissionsData:
    """Partial update; None fields are left untouched."""
    role: Role | str | None = None
    permissions: list[str] | None = None


@dataclass
class CreateTenantUserData:
    """Input for recording a tenant membership."""
    tenant_id: str
    user_id: str
    role: Role | str
    permissions: list[str] | None = None


# =============================================================================
# ROLE CATALOG
# =============================================================================

ROLE_PERMISSIONS: dict[Role, RolePermissions] = {
    Role.OWNER: RolePermissions(
        role=Role.OWNER,
        permissions=tuple(p.value for p in Permission),
        description="Owner with full access to the system",
    ),
    Role.ADMIN: RolePermissions(
        role=Role.ADMIN,
        permissions=(
            Permission.CLIENTS_VIEW.value,
            Permission.CLIENTS_CREATE.value,
            Permission.CLIENTS_EDIT.value,
            Permission.CLIENTS_DELETE.value,
            Permission.APPOINTMENTS_VIEW.value,
            Permission.APPOINTMENTS_CREATE.value,
            Permission.APPOINTMENTS_EDIT.value,
            Permission.APPOINTMENTS_DELETE.value,
            Permission.APPOINTMENTS_CANCEL.value,
            Permission.DASHBOARD_VIEW.value,
            Permission.DASHBOARD_ANALYTICS.value,
            Permission.SETTINGS_VIEW.value,
            Permission.SETTINGS_EDIT.value,
            Permission.SETTINGS_BRANDING.value,
            Permission.SETTINGS_NOTIFICATIONS.value,
            Permission.REPORTS_VIEW.value,
            Permission.REPORTS_EXPORT.value,
            Permission.USERS_VIEW.value,
            Permission.USERS_CREATE.value,
            Permission.USERS_EDIT.value,
            Permission.USERS_DELETE.value,
            Permission.USERS_PERMISSIONS.value,
        ),
        description="Administrator with full access to operations",
    ),
    Role.MANAGER: RolePermissions(
        role=Role.MANAGER,
        permissions=(
            Permission.CLIENTS_VIEW.value,
            Permission.CLIENTS_CREATE.value,
            Permission.CLIENTS_EDIT.value,
            Permission.APPOINTMENTS_VIEW.value,
            Permission.APPOINTMENTS_CREATE.value,
            Permission.APPOINTMENTS_EDIT.value,
            Permission.APPOINTMENTS_CANCEL.value,
            Permission.DASHBOARD_VIEW.value,
            Permission.DASHBOARD_ANALYTICS.value,
            Permission.SETTINGS_VIEW.value,
            Permission.REPORTS_VIEW.value,
            Permission.USERS_VIEW.value,
        ),
        description="Manager with access to core operations",
    ),
    Role.STAFF: RolePermissions(
        role=Role.STAFF,
        permissions=(
            Permission.CLIENTS_VIEW.value,
            Permission.CLIENTS_CREATE.value,
            Permission.APPOINTMENTS_VIEW.value,
            Permission.APPOINTMENTS_CREATE.value,
            Permission.APPOINTMENTS_EDIT.value,
            Permission.DASHBOARD_VIEW.value,
        ),
        description="Staff member with basic access to operations",
    ),
    Role.VIEWER: RolePermissions(
        role=Role.VIEWER,
        permissions=(
            Permission.CLIENTS_VIEW.value,
            Permission.APPOINTMENTS_VIEW.value,
            Permission.DASHBOARD_VIEW.value,
        ),
        description="Viewer with read-only access",
    ),
}

UNKNOWN_ROLE_DESCRIPTION = "No description available"

# Groups for permission pickers in the UI
PERMISSION_GROUPS: dict[str, list[str]] = {
    "Clients": [
        Permission.CLIENTS_VIEW.value,
        Permission.CLIENTS_CREATE.value,
        Permission.CLIENTS_EDIT.value,
        Permission.CLIENTS_DELETE.value,
    ],
    "Appointments": [
        Permission.APPOINTMENTS_VIEW.value,
        Permission.APPOINTMENTS_CREATE.value,
        Permission.APPOINTMENTS_EDIT.value,
        Permission.APPOINTMENTS_DELETE.value,
        Permission.APPOINTMENTS_CANCEL.value,
    ],
    "Dashboard": [
        Permission.DASHBOARD_VIEW.value,
        Permission.DASHBOARD_ANALYTICS.value,
    ],
    "Administration": [
        Permission.ADMIN_TENANTS_VIEW.value,
        Permission.ADMIN_TENANTS_EDIT.value,
        Permission.ADMIN_TENANTS_DELETE.value,
        Permission.ADMIN_USERS_VIEW.value,
        Permission.ADMIN_USERS_EDIT.value,
        Permission.ADMIN_USERS_DELETE.value,
        Permission.ADMIN_SETTINGS_VIEW.value,
        Permission.ADMIN_SETTINGS_EDIT.value,
    ],
    "Settings": [
        Permission.SETTINGS_VIEW.value,
        Permission.SETTINGS_EDIT.value,
        Permission.SETTINGS_BRANDING.value,
        Permission.SETTINGS_NOTIFICATIONS.value,
    ],
    "Reports": [
        Permission.REPORTS_VIEW.value,
        Permission.REPORTS_EXPORT.value,
    ],
    "Users": [
        Permission.USERS_VIEW.value,
        Permission.USERS_CREATE.value,
        Permission.USERS_EDIT.value,
        Permission.USERS_DELETE.value,
        Permission.USERS_PERMISSIONS.value,
    ],
}


def parse_role(role: Role | str | None) -> Role | None:
    """Resolve a role value, or None if it is not a known role."""
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def get_role_permissions(role: Role | str | None) -> list[str]:
    """Default permissions for a role; empty for unknown roles."""
    resolved = parse_role(role)
    if resolved is None:
        return []
    return list(ROLE_PERMISSIONS[resolved].permissions)


def get_role_description(role: Role | str | None) -> str:
    resolved = parse_role(role)
    if resolved is None:
        return UNKNOWN_ROLE_DESCRIPTION
    return ROLE_PERMISSIONS[resolved].description


def get_all_roles() -> list[Role]:
    return list(Role)


def get_all_permissions() -> list[Permission]:
    return list(Permission)


def role_at_least(role: Role | str | None, minimum: Role) -> bool:
    """Check if a role is at or above `minimum` in the hierarchy."""
    resolved = parse_role(role)
    if resolved is None:
        return False
    return ROLE_HIERARCHY[resolved] >= ROLE_HIERARCHY[minimum]


# =============================================================================
# PERMISSION MATCHING FUNCTIONS
# =============================================================================

def _token(permission: Permission | str) -> str:
    return permission.value if isinstance(permission, Permission) else permission


def has_permission(granted: list[str], required: Permission | str) -> bool:
    """Check if a permission set grants `required` (wildcard or direct match)."""
    if WILDCARD in granted:
        return True
    return _token(required) in granted


def has_any_permission(granted: list[str], required: list[Permission | str]) -> bool:
    """Check if a permission set grants any of `required`."""
    if WILDCARD in granted:
        return True
    return any(_token(r) in granted for r in required)


def has_all_permissions(granted: list[str], required: list[Permission | str]) -> bool:
    """Check if a permission set grants all of `required`."""
    if WILDCARD in granted:
        return True
    return all(_token(r) in granted for r in required)


# =============================================================================
# PYDANTIC MODELS (API Request/Response)
# =============================================================================

class UserPermissionsResponse(BaseModel):
    """Permission record returned from API."""
    user_id: str
    tenant_id: str
    role: str
    permissions: list[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None


class CreateUserPermissionsRequest(BaseModel):
    """Create a permission record. Omit permissions to use role defaults."""
    user_id: str = Field(min_length=1)
    role: Role
    permissions: list[str] | None = None


class UpdateUserPermissionsRequest(BaseModel):
    """Change role and/or permissions."""
    role: Role | None = None
    permissions: list[str] | None = None


class TenantUserResponse(BaseModel):
    """Tenant membership returned from API."""
    id: str | None = None
    tenant_id: str
    user_id: str
    role: str
    permissions: list[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None


class CreateTenantUserRequest(BaseModel):
    """Record a tenant membership (tenant creation / invite acceptance)."""
    tenant_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    role: Role
    permissions: list[str] | None = None


class UpdateTenantUserRequest(BaseModel):
    """Change a membership (role change, permission override, deactivation)."""
    role: Role | None = None
    permissions: list[str] | None = None
    is_active: bool | None = None


class PermissionCheckRequest(BaseModel):
    """Server-side check of a single permission."""
    user_id: str = Field(min_length=1)
    tenant_id: str = Field(min_length=1)
    permission: str


class PermissionListCheckRequest(BaseModel):
    """Server-side check of several permissions (any / all)."""
    user_id: str = Field(min_length=1)
    tenant_id: str = Field(min_length=1)
    permissions: list[str] = Field(default_factory=list)


class PermissionCheckResponse(BaseModel):
    """Response from permission check."""
    allowed: bool


class RoleInfoResponse(BaseModel):
    """Catalog entry for a role."""
    role: Role
    description: str
    permissions: list[str] = Field(default_factory=list)


class PermissionCatalogResponse(BaseModel):
    """Full permission vocabulary with display groups."""
    permissions: list[str] = Field(default_factory=list)
    groups: dict[str, list[str]] = Field(default_factory=dict)
    wildcard: str = WILDCARD


class SessionResponse(BaseModel):
    """Snapshot of a caller's permission session."""
    user_id: str | None = None
    tenant_id: str | None = None
    state: str
    error: str | None = None
    role: str | None = None
    role_description: str
    permissions: list[str] = Field(default_factory=list)
    is_active: bool = False
    is_owner: bool = False
    is_admin: bool = False
    is_manager_or_higher: bool = False
    is_staff_or_higher: bool = False

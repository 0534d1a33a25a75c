"""
Permissions Service.

Store-facing operations on UserPermissions records plus the authoritative
(server-truth) permission checks. Every operation returns a ServiceResult;
nothing raises across this boundary.
"""

import logging
from datetime import datetime, timezone

from core.error_logger import ErrorLogger
from db.base import DatabaseBackend, DuplicateRecordError
from models.errors import (
    AppError,
    ErrorSeverity,
    ServiceResult,
    create_duplicate_error,
    create_internal_error,
    create_not_found_error,
    create_validation_error,
)
from models.permissions import (
    CreateUserPermissionsData,
    Permission,
    UpdateUserPermissionsData,
    UserPermissions,
    get_role_permissions,
    has_all_permissions,
    has_any_permission,
    has_permission,
    parse_role,
)

logger = logging.getLogger("permissions-service")

RESOURCE_NAME = "User permissions"


class PermissionsService:
    """
    CRUD and checks for per-(user, tenant) permission records.

    Checks always re-read the live record; nothing is cached here.
    """

    def __init__(self, store: DatabaseBackend, error_logger: ErrorLogger | None = None):
        self._store = store
        self._error_logger = error_logger or ErrorLogger()

    @property
    def store(self) -> DatabaseBackend:
        return self._store

    @property
    def error_logger(self) -> ErrorLogger:
        return self._error_logger

    def _now(self) -> str:
        """Get current timestamp in ISO format."""
        return datetime.now(timezone.utc).isoformat()

    def _fail(self, error: AppError, action: str, **context) -> ServiceResult:
        error.context = {"action": action, **context}
        self._error_logger.log(error)
        return ServiceResult.fail(error)

    def _internal(self, message: str, exc: Exception, action: str, **context) -> ServiceResult:
        return self._fail(create_internal_error(f"{message}: {exc}", exc), action, **context)

    # =========================================================================
    # READ
    # =========================================================================

    def get_user_permissions(
        self,
        user_id: str,
        tenant_id: str,
    ) -> ServiceResult[UserPermissions | None]:
        """
        Get the permission record for a user in a tenant.

        A missing record is a successful result carrying None: "not yet
        initialized" is an expected state, not a failure.
        """
        try:
            record = self._store.find_user_permissions(user_id, tenant_id)
            if record is None:
                logger.debug(f"[PERMISSIONS] No record for {user_id}@{tenant_id}")
                return ServiceResult.ok(None)
            return ServiceResult.ok(UserPermissions.from_record(record))
        except Exception as e:
            return self._internal(
                "Failed to fetch user permissions", e,
                "get_user_permissions", user_id=user_id, tenant_id=tenant_id,
            )

    def get_tenant_users(self, tenant_id: str) -> ServiceResult[list[UserPermissions]]:
        """All permission records of a tenant, newest first."""
        try:
            records = self._store.list_user_permissions(tenant_id)
            return ServiceResult.ok([UserPermissions.from_record(r) for r in records])
        except Exception as e:
            return self._internal(
                "Failed to list tenant users", e,
                "get_tenant_users", tenant_id=tenant_id,
            )

    # =========================================================================
    # WRITE
    # =========================================================================

    def create_user_permissions(
        self,
        data: CreateUserPermissionsData,
    ) -> ServiceResult[UserPermissions]:
        """
        Create a permission record.

        Omitted permissions are filled from the role catalog; explicit
        permissions are stored exactly as given.
        """
        role = parse_role(data.role)
        if role is None:
            return self._fail(
                create_validation_error(f"Unknown role: {data.role}", "role"),
                "create_user_permissions", user_id=data.user_id, tenant_id=data.tenant_id,
            )

        try:
            if self._store.find_user_permissions(data.user_id, data.tenant_id) is not None:
                return self._fail(
                    create_duplicate_error(RESOURCE_NAME),
                    "create_user_permissions", user_id=data.user_id, tenant_id=data.tenant_id,
                )

            now = self._now()
            permissions = (
                list(data.permissions) if data.permissions is not None
                else get_role_permissions(role)
            )
            record_id = self._store.insert_user_permissions({
                "user_id": data.user_id,
                "tenant_id": data.tenant_id,
                "role": role.value,
                "permissions": permissions,
                "is_active": True,
                "created_at": now,
                "updated_at": now,
            })

            created = self._store.get_user_permissions_by_id(record_id)
            if created is None:
                return self._fail(
                    create_not_found_error(RESOURCE_NAME),
                    "create_user_permissions", user_id=data.user_id, tenant_id=data.tenant_id,
                )

            logger.info(
                f"[PERMISSIONS] Created {role.value} permissions for {data.user_id}@{data.tenant_id} "
                f"({len(permissions)} entries)"
            )
            return ServiceResult.ok(UserPermissions.from_record(created))
        except DuplicateRecordError:
            return self._fail(
                create_duplicate_error(RESOURCE_NAME),
                "create_user_permissions", user_id=data.user_id, tenant_id=data.tenant_id,
            )
        except Exception as e:
            return self._internal(
                "Failed to create user permissions", e,
                "create_user_permissions", user_id=data.user_id, tenant_id=data.tenant_id,
            )

    def update_user_permissions(
        self,
        user_id: str,
        tenant_id: str,
        data: UpdateUserPermissionsData,
    ) -> ServiceResult[UserPermissions]:
        """
        Update role and/or permissions of an existing record (never creates).

        A role change without explicit permissions resets the permissions
        to the new role's defaults. The tenant membership, if any, is kept
        in step.
        """
        updates: dict = {"updated_at": self._now()}

        if data.role is not None:
            role = parse_role(data.role)
            if role is None:
                return self._fail(
                    create_validation_error(f"Unknown role: {data.role}", "role"),
                    "update_user_permissions", user_id=user_id, tenant_id=tenant_id,
                )
            updates["role"] = role.value
            updates["permissions"] = (
                list(data.permissions) if data.permissions is not None
                else get_role_permissions(role)
            )
        elif data.permissions is not None:
            updates["permissions"] = list(data.permissions)

        try:
            record = self._store.update_user_permissions(user_id, tenant_id, updates)
        except Exception as e:
            return self._internal(
                "Failed to update user permissions", e,
                "update_user_permissions", user_id=user_id, tenant_id=tenant_id,
            )

        if record is None:
            return self._fail(
                create_not_found_error(RESOURCE_NAME),
                "update_user_permissions", user_id=user_id, tenant_id=tenant_id,
            )

        self._sync_tenant_user(user_id, tenant_id, updates, explicit_permissions=data.permissions)
        logger.info(f"[PERMISSIONS] Updated permissions for {user_id}@{tenant_id}")
        return ServiceResult.ok(UserPermissions.from_record(record))

    def _sync_tenant_user(
        self,
        user_id: str,
        tenant_id: str,
        updates: dict,
        explicit_permissions: list[str] | None,
    ) -> None:
        """Mirror a role/permission change onto the membership record, best effort."""
        membership_updates: dict = {"updated_at": updates["updated_at"]}
        if "role" in updates:
            membership_updates["role"] = updates["role"]
            # Empty list on the membership means "use role defaults"
            membership_updates["permissions"] = (
                list(explicit_permissions) if explicit_permissions is not None else []
            )
        elif "permissions" in updates:
            membership_updates["permissions"] = updates["permissions"]
        else:
            return

        try:
            if self._store.update_tenant_user(user_id, tenant_id, membership_updates) is None:
                logger.debug(f"[PERMISSIONS] No membership to sync for {user_id}@{tenant_id}")
        except Exception as e:
            error = create_internal_error(f"Failed to sync tenant membership: {e}", e)
            error.severity = ErrorSeverity.MEDIUM
            error.context = {"action": "sync_tenant_user", "user_id": user_id, "tenant_id": tenant_id}
            self._error_logger.log(error)

    def delete_user_permissions(self, user_id: str, tenant_id: str) -> ServiceResult[None]:
        """Remove a permission record; tenant membership is left untouched."""
        try:
            deleted = self._store.delete_user_permissions(user_id, tenant_id)
        except Exception as e:
            return self._internal(
                "Failed to delete user permissions", e,
                "delete_user_permissions", user_id=user_id, tenant_id=tenant_id,
            )

        if not deleted:
            return self._fail(
                create_not_found_error(RESOURCE_NAME),
                "delete_user_permissions", user_id=user_id, tenant_id=tenant_id,
            )

        logger.info(f"[PERMISSIONS] Deleted permissions for {user_id}@{tenant_id}")
        return ServiceResult.ok(None)

    # =========================================================================
    # SERVER-TRUTH CHECKS
    # =========================================================================

    def _live_permissions(
        self,
        user_id: str,
        tenant_id: str,
    ) -> ServiceResult[list[str] | None]:
        """Granted permissions from the live record; None when absent or inactive."""
        result = self.get_user_permissions(user_id, tenant_id)
        if not result.success:
            return ServiceResult.fail(result.error)
        if result.data is None or not result.data.is_active:
            return ServiceResult.ok(None)
        return ServiceResult.ok(result.data.permissions)

    def check_user_permission(
        self,
        user_id: str,
        tenant_id: str,
        permission: Permission | str,
    ) -> ServiceResult[bool]:
        """Check a single permission against the live record."""
        granted = self._live_permissions(user_id, tenant_id)
        if not granted.success:
            return ServiceResult.fail(granted.error)
        if granted.data is None:
            return ServiceResult.ok(False)

        allowed = has_permission(granted.data, permission)
        logger.debug(f"[PERMISSIONS] {user_id}@{tenant_id} {permission}: {allowed}")
        return ServiceResult.ok(allowed)

    def check_user_any_permission(
        self,
        user_id: str,
        tenant_id: str,
        permissions: list[Permission | str],
    ) -> ServiceResult[bool]:
        """Check that the live record grants at least one of `permissions`."""
        granted = self._live_permissions(user_id, tenant_id)
        if not granted.success:
            return ServiceResult.fail(granted.error)
        if granted.data is None:
            return ServiceResult.ok(False)
        return ServiceResult.ok(has_any_permission(granted.data, permissions))

    def check_user_all_permissions(
        self,
        user_id: str,
        tenant_id: str,
        permissions: list[Permission | str],
    ) -> ServiceResult[bool]:
        """Check that the live record grants every one of `permissions`."""
        granted = self._live_permissions(user_id, tenant_id)
        if not granted.success:
            return ServiceResult.fail(granted.error)
        if granted.data is None:
            return ServiceResult.ok(False)
        return ServiceResult.ok(has_all_permissions(granted.data, permissions))

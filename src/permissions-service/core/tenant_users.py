"""
Tenant User Service.

Membership records (user ↔ tenant with a role). Written by the tenant
creation and invite flows; read by the initialization procedure.
"""

import logging
from datetime import datetime, timezone

from core.error_logger import ErrorLogger
from db.base import DatabaseBackend, DuplicateRecordError
from models.errors import (
    AppError,
    ServiceResult,
    create_duplicate_error,
    create_internal_error,
    create_not_found_error,
    create_validation_error,
)
from models.permissions import CreateTenantUserData, Role, TenantUser, parse_role

logger = logging.getLogger("permissions-service")

RESOURCE_NAME = "Tenant user"


class TenantUserService:
    """CRUD for tenant memberships."""

    def __init__(self, store: DatabaseBackend, error_logger: ErrorLogger | None = None):
        self._store = store
        self._error_logger = error_logger or ErrorLogger()

    def _fail(self, error: AppError, action: str, **context) -> ServiceResult:
        error.context = {"action": action, **context}
        self._error_logger.log(error)
        return ServiceResult.fail(error)

    def create_tenant_user(self, data: CreateTenantUserData) -> ServiceResult[TenantUser]:
        """Record a membership. Empty or omitted permissions defer to role defaults."""
        role = parse_role(data.role)
        if role is None:
            return self._fail(
                create_validation_error(f"Unknown role: {data.role}", "role"),
                "create_tenant_user", user_id=data.user_id, tenant_id=data.tenant_id,
            )

        try:
            if self._store.find_tenant_user(data.user_id, data.tenant_id) is not None:
                return self._fail(
                    create_duplicate_error(RESOURCE_NAME),
                    "create_tenant_user", user_id=data.user_id, tenant_id=data.tenant_id,
                )

            now = datetime.now(timezone.utc).isoformat()
            record_id = self._store.insert_tenant_user({
                "tenant_id": data.tenant_id,
                "user_id": data.user_id,
                "role": role.value,
                "permissions": list(data.permissions or []),
                "is_active": True,
                "created_at": now,
                "updated_at": now,
            })
            created = self._store.get_tenant_user_by_id(record_id)
            if created is None:
                return self._fail(
                    create_not_found_error(RESOURCE_NAME),
                    "create_tenant_user", user_id=data.user_id, tenant_id=data.tenant_id,
                )

            logger.info(f"[TENANT_USERS] Added {data.user_id} to {data.tenant_id} as {role.value}")
            return ServiceResult.ok(TenantUser.from_record(created))
        except DuplicateRecordError:
            return self._fail(
                create_duplicate_error(RESOURCE_NAME),
                "create_tenant_user", user_id=data.user_id, tenant_id=data.tenant_id,
            )
        except Exception as e:
            return self._fail(
                create_internal_error(f"Failed to create tenant user: {e}", e),
                "create_tenant_user", user_id=data.user_id, tenant_id=data.tenant_id,
            )

    def get_tenant_user(self, user_id: str, tenant_id: str) -> ServiceResult[TenantUser | None]:
        try:
            record = self._store.find_tenant_user(user_id, tenant_id)
            return ServiceResult.ok(TenantUser.from_record(record) if record else None)
        except Exception as e:
            return self._fail(
                create_internal_error(f"Failed to fetch tenant user: {e}", e),
                "get_tenant_user", user_id=user_id, tenant_id=tenant_id,
            )

    def list_tenant_users(self, tenant_id: str) -> ServiceResult[list[TenantUser]]:
        try:
            records = self._store.list_tenant_users(tenant_id)
            return ServiceResult.ok([TenantUser.from_record(r) for r in records])
        except Exception as e:
            return self._fail(
                create_internal_error(f"Failed to list tenant users: {e}", e),
                "list_tenant_users", tenant_id=tenant_id,
            )

    def update_tenant_user(
        self,
        user_id: str,
        tenant_id: str,
        role: Role | str | None = None,
        permissions: list[str] | None = None,
        is_active: bool | None = None,
    ) -> ServiceResult[TenantUser]:
        """Change a membership; None arguments are left untouched."""
        updates: dict = {"updated_at": datetime.now(timezone.utc).isoformat()}
        if role is not None:
            resolved = parse_role(role)
            if resolved is None:
                return self._fail(
                    create_validation_error(f"Unknown role: {role}", "role"),
                    "update_tenant_user", user_id=user_id, tenant_id=tenant_id,
                )
            updates["role"] = resolved.value
        if permissions is not None:
            updates["permissions"] = list(permissions)
        if is_active is not None:
            updates["is_active"] = is_active

        try:
            record = self._store.update_tenant_user(user_id, tenant_id, updates)
        except Exception as e:
            return self._fail(
                create_internal_error(f"Failed to update tenant user: {e}", e),
                "update_tenant_user", user_id=user_id, tenant_id=tenant_id,
            )

        if record is None:
            return self._fail(
                create_not_found_error(RESOURCE_NAME),
                "update_tenant_user", user_id=user_id, tenant_id=tenant_id,
            )
        return ServiceResult.ok(TenantUser.from_record(record))

    def delete_tenant_user(self, user_id: str, tenant_id: str) -> ServiceResult[None]:
        """Remove a membership; the permission record is left untouched."""
        try:
            deleted = self._store.delete_tenant_user(user_id, tenant_id)
        except Exception as e:
            return self._fail(
                create_internal_error(f"Failed to delete tenant user: {e}", e),
                "delete_tenant_user", user_id=user_id, tenant_id=tenant_id,
            )

        if not deleted:
            return self._fail(
                create_not_found_error(RESOURCE_NAME),
                "delete_tenant_user", user_id=user_id, tenant_id=tenant_id,
            )

        logger.info(f"[TENANT_USERS] Removed {user_id} from {tenant_id}")
        return ServiceResult.ok(None)

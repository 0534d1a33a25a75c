"""
Permission Session.

Per-(user, tenant) evaluation façade. Loads the caller's permission record
once, answers synchronous checks from that snapshot, repairs a missing
record for owners/admins, and forwards server-truth checks to the service.

State machine:
    IDLE -> LOADING -> LOADED | LOADED_EMPTY | ERRORED

Anything other than LOADED denies every synchronous check.

Usage:
    session = PermissionSession(service)
    await session.set_identity(user_id, tenant_id, tenant_user)
    if session.has_permission(Permission.CLIENTS_VIEW):
        ...
"""

import asyncio
import logging
from enum import Enum

from core.initialization import initialize_user_permissions, should_initialize_permissions
from core.permissions import PermissionsService
from models.errors import AppError
from models.permissions import (
    CreateUserPermissionsData,
    Permission,
    Role,
    TenantUser,
    UpdateUserPermissionsData,
    UserPermissions,
    get_role_description,
    get_role_permissions,
    has_all_permissions,
    has_any_permission,
    has_permission,
    role_at_least,
)

logger = logging.getLogger("permissions-service")

LOAD_FAILED_MESSAGE = "Could not load permissions"
LOAD_EXCEPTION_MESSAGE = "Error loading permissions"
INITIALIZE_FAILED_MESSAGE = "Failed to initialize permissions"
NO_ROLE_DESCRIPTION = "No role defined"


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    LOADED_EMPTY = "loaded_empty"
    ERRORED = "errored"


class PermissionSessionError(Exception):
    """Raised by session mutations that cannot be carried out."""

    def __init__(self, message: str, error: AppError | None = None):
        super().__init__(message)
        self.error = error


class PermissionSession:
    """
    Permission state for one user in one tenant.

    Store calls run in worker threads so the event loop is never blocked.
    Every load is tagged with a generation; a load that finishes after a
    newer set_identity()/clear()/refresh discards its result.
    """

    def __init__(self, service: PermissionsService, missing_permissions_as_empty: bool = False):
        self._service = service
        self._missing_as_empty = missing_permissions_as_empty

        self._user_id: str | None = None
        self._tenant_id: str | None = None
        self._tenant_user: TenantUser | None = None

        self._state = SessionState.IDLE
        self._user_permissions: UserPermissions | None = None
        self._error: str | None = None
        self._generation = 0

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user_permissions(self) -> UserPermissions | None:
        return self._user_permissions

    @property
    def is_loading(self) -> bool:
        return self._state == SessionState.LOADING

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def tenant_id(self) -> str | None:
        return self._tenant_id

    @property
    def tenant_user(self) -> TenantUser | None:
        return self._tenant_user

    @property
    def role(self) -> str | None:
        return self._user_permissions.role if self._user_permissions else None

    def _set_loaded(self, record: UserPermissions) -> None:
        self._user_permissions = record
        self._state = SessionState.LOADED
        self._error = None

    def _set_errored(self, message: str) -> None:
        self._user_permissions = None
        self._state = SessionState.ERRORED
        self._error = message

    def _reset(self) -> None:
        self._user_permissions = None
        self._state = SessionState.IDLE
        self._error = None

    # =========================================================================
    # LOADING
    # =========================================================================

    async def set_identity(
        self,
        user_id: str | None,
        tenant_id: str | None,
        tenant_user: TenantUser | None = None,
    ) -> None:
        """Switch the session to a (user, tenant) pair and load its permissions."""
        self._generation += 1
        self._user_id = user_id
        self._tenant_id = tenant_id
        self._tenant_user = tenant_user

        if not user_id or not tenant_id:
            self._reset()
            return

        await self.load_user_permissions()

    def clear(self) -> None:
        """Drop identity and snapshot; any in-flight load is discarded."""
        self._generation += 1
        self._user_id = None
        self._tenant_id = None
        self._tenant_user = None
        self._reset()

    async def load_user_permissions(self) -> None:
        """(Re)load the snapshot for the current identity."""
        if not self._user_id or not self._tenant_id:
            self._reset()
            return

        self._generation += 1
        generation = self._generation
        user_id, tenant_id = self._user_id, self._tenant_id

        # No snapshot is trusted until this load confirms one
        self._user_permissions = None
        self._state = SessionState.LOADING
        self._error = None

        try:
            result = await asyncio.to_thread(self._service.get_user_permissions, user_id, tenant_id)
            if generation != self._generation:
                logger.debug(f"[SESSION] Discarding stale load for {user_id}@{tenant_id}")
                return

            if not result.success:
                self._set_errored(result.error.user_message)
                return

            if result.data is not None:
                self._set_loaded(result.data)
                return

            if self._can_repair(tenant_id):
                await self._repair(generation, user_id, tenant_id)
                return

            if self._missing_as_empty:
                self._user_permissions = None
                self._state = SessionState.LOADED_EMPTY
                self._error = None
            else:
                logger.warning(f"[SESSION] No permissions for {user_id}@{tenant_id}")
                self._set_errored(LOAD_FAILED_MESSAGE)
        except Exception as e:
            logger.error(f"[SESSION] Error loading permissions for {user_id}@{tenant_id}: {e}")
            if generation == self._generation:
                self._set_errored(LOAD_EXCEPTION_MESSAGE)

    def _can_repair(self, tenant_id: str) -> bool:
        tenant_user = self._tenant_user
        return (
            tenant_user is not None
            and tenant_user.tenant_id == tenant_id
            and should_initialize_permissions(tenant_user.role)
        )

    async def _repair(self, generation: int, user_id: str, tenant_id: str) -> None:
        """Initialize the missing record from the membership, then reload once."""
        logger.info(f"[SESSION] Repairing permissions for {user_id}@{tenant_id}")

        initialized = await asyncio.to_thread(
            initialize_user_permissions, self._service, user_id, self._tenant_user
        )
        if generation != self._generation:
            return
        if not initialized:
            self._set_errored(INITIALIZE_FAILED_MESSAGE)
            return

        retry = await asyncio.to_thread(self._service.get_user_permissions, user_id, tenant_id)
        if generation != self._generation:
            return

        if not retry.success:
            self._set_errored(retry.error.user_message)
        elif retry.data is None:
            self._set_errored(LOAD_FAILED_MESSAGE)
        else:
            self._set_loaded(retry.data)

    # =========================================================================
    # SYNCHRONOUS CHECKS (snapshot)
    # =========================================================================

    def _granted(self) -> list[str] | None:
        record = self._user_permissions
        if self._state != SessionState.LOADED or record is None or not record.is_active:
            return None
        return record.permissions

    def has_permission(self, permission: Permission | str) -> bool:
        granted = self._granted()
        return granted is not None and has_permission(granted, permission)

    def has_any_permission(self, permissions: list[Permission | str]) -> bool:
        granted = self._granted()
        return granted is not None and has_any_permission(granted, permissions)

    def has_all_permissions(self, permissions: list[Permission | str]) -> bool:
        granted = self._granted()
        return granted is not None and has_all_permissions(granted, permissions)

    def is_owner(self) -> bool:
        return role_at_least(self.role, Role.OWNER)

    def is_admin(self) -> bool:
        return role_at_least(self.role, Role.ADMIN)

    def is_manager_or_higher(self) -> bool:
        return role_at_least(self.role, Role.MANAGER)

    def is_staff_or_higher(self) -> bool:
        return role_at_least(self.role, Role.STAFF)

    def get_current_role_permissions(self) -> list[str]:
        """Catalog defaults for the loaded role (not the stored list)."""
        return get_role_permissions(self.role) if self.role else []

    def get_current_role_description(self) -> str:
        return get_role_description(self.role) if self.role else NO_ROLE_DESCRIPTION

    # =========================================================================
    # ASYNCHRONOUS CHECKS (server truth)
    # =========================================================================

    async def _server_check(self, check, required) -> bool:
        if not self._user_id or not self._tenant_id:
            return False
        try:
            result = await asyncio.to_thread(check, self._user_id, self._tenant_id, required)
        except Exception as e:
            logger.error(f"[SESSION] Server check failed for {self._user_id}@{self._tenant_id}: {e}")
            return False
        return bool(result.success and result.data)

    async def check_permission(self, permission: Permission | str) -> bool:
        return await self._server_check(self._service.check_user_permission, permission)

    async def check_any_permission(self, permissions: list[Permission | str]) -> bool:
        return await self._server_check(self._service.check_user_any_permission, permissions)

    async def check_all_permissions(self, permissions: list[Permission | str]) -> bool:
        return await self._server_check(self._service.check_user_all_permissions, permissions)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def _refresh_if_self(self, user_id: str, record: UserPermissions) -> None:
        """Adopt a mutation result as the snapshot when it is the session's own record."""
        if not self._user_id or not self._tenant_id:
            return
        if user_id == self._user_id and record.tenant_id == self._tenant_id:
            self._generation += 1
            self._set_loaded(record)

    async def create_permissions(
        self,
        user_id: str,
        role: Role | str,
        custom_permissions: list[str] | None = None,
    ) -> UserPermissions:
        """Create a record for `user_id` in the session's tenant."""
        if not self._tenant_id:
            raise PermissionSessionError("No tenant selected")

        result = await asyncio.to_thread(
            self._service.create_user_permissions,
            CreateUserPermissionsData(
                user_id=user_id,
                tenant_id=self._tenant_id,
                role=role,
                permissions=custom_permissions,
            ),
        )
        if not result.success:
            raise PermissionSessionError(result.error.user_message, result.error)

        self._refresh_if_self(user_id, result.data)
        return result.data

    async def update_permissions(
        self,
        user_id: str,
        role: Role | str | None = None,
        permissions: list[str] | None = None,
    ) -> UserPermissions:
        """Update the record of `user_id` in the session's tenant."""
        if not self._tenant_id:
            raise PermissionSessionError("No tenant selected")

        result = await asyncio.to_thread(
            self._service.update_user_permissions,
            user_id,
            self._tenant_id,
            UpdateUserPermissionsData(role=role, permissions=permissions),
        )
        if not result.success:
            raise PermissionSessionError(result.error.user_message, result.error)

        self._refresh_if_self(user_id, result.data)
        return result.data

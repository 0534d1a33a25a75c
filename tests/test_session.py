"""
Tests for PermissionSession.

These tests verify:
- State transitions (idle, loaded, loaded_empty, errored)
- Automatic repair for owners and admins
- Snapshot checks fail closed outside the loaded state
- Server-truth checks and mutation passthroughs
- Stale loads never overwrite a newer identity
"""

import asyncio
import threading

import pytest

from core import PermissionSession, PermissionSessionError, PermissionsService, SessionState
from models import Permission, Role, TenantUser, get_role_permissions

from conftest import TENANT_ID


class GatedService:
    """Wraps a service so loads for one user block until released."""

    def __init__(self, inner: PermissionsService, blocked_user: str):
        self._inner = inner
        self._blocked_user = blocked_user
        self.started = threading.Event()
        self.release = threading.Event()

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def get_user_permissions(self, user_id, tenant_id):
        if user_id == self._blocked_user:
            self.started.set()
            self.release.wait(5)
        return self._inner.get_user_permissions(user_id, tenant_id)


class TestLoading:

    async def test_starts_idle(self, service: PermissionsService):
        session = PermissionSession(service)

        assert session.state == SessionState.IDLE
        assert session.user_permissions is None
        assert not session.is_loading

    async def test_existing_record_loads(self, service: PermissionsService, seed_permissions):
        seed_permissions("staff-1", "staff")
        session = PermissionSession(service)

        await session.set_identity("staff-1", TENANT_ID)

        assert session.state == SessionState.LOADED
        assert session.error is None
        assert session.role == "staff"

    @pytest.mark.parametrize("user_id,tenant_id", [(None, TENANT_ID), ("u1", None), ("", "")])
    async def test_missing_identity_is_idle(self, service: PermissionsService, seed_permissions, user_id, tenant_id):
        seed_permissions("u1", "staff")
        session = PermissionSession(service)
        await session.set_identity("u1", TENANT_ID)

        await session.set_identity(user_id, tenant_id)

        assert session.state == SessionState.IDLE
        assert session.user_permissions is None
        assert session.error is None

    async def test_clear_resets(self, service: PermissionsService, seed_permissions):
        seed_permissions("u1", "staff")
        session = PermissionSession(service)
        await session.set_identity("u1", TENANT_ID)

        session.clear()

        assert session.state == SessionState.IDLE
        assert session.user_id is None
        assert not session.has_permission(Permission.CLIENTS_VIEW)

    async def test_store_failure_errors_with_user_message(self, failing_store):
        session = PermissionSession(PermissionsService(failing_store))

        await session.set_identity("u1", TENANT_ID)

        assert session.state == SessionState.ERRORED
        assert session.error == "Internal system error. Try again later."

    async def test_unexpected_exception_errors(self, service: PermissionsService, monkeypatch):
        def explode(user_id, tenant_id):
            raise RuntimeError("boom")

        monkeypatch.setattr(service, "get_user_permissions", explode)
        session = PermissionSession(service)

        await session.set_identity("u1", TENANT_ID)

        assert session.state == SessionState.ERRORED
        assert session.error == "Error loading permissions"


class TestMissingRecord:

    async def test_low_privilege_role_is_not_repaired(self, service: PermissionsService, seed_tenant_user):
        member = seed_tenant_user("staff-1", "staff")
        session = PermissionSession(service)

        await session.set_identity("staff-1", TENANT_ID, member)

        assert session.state == SessionState.ERRORED
        assert session.error == "Could not load permissions"
        assert service.get_user_permissions("staff-1", TENANT_ID).data is None

    async def test_no_membership_is_not_repaired(self, service: PermissionsService):
        session = PermissionSession(service)

        await session.set_identity("ghost", TENANT_ID)

        assert session.state == SessionState.ERRORED

    async def test_toggle_resolves_to_empty(self, service: PermissionsService, seed_tenant_user):
        member = seed_tenant_user("viewer-1", "viewer")
        session = PermissionSession(service, missing_permissions_as_empty=True)

        await session.set_identity("viewer-1", TENANT_ID, member)

        assert session.state == SessionState.LOADED_EMPTY
        assert session.error is None
        assert not session.has_permission(Permission.CLIENTS_VIEW)

    @pytest.mark.parametrize("role", ["owner", "admin"])
    async def test_elevated_role_is_repaired(self, service: PermissionsService, seed_tenant_user, role):
        member = seed_tenant_user("boss", role)
        session = PermissionSession(service)

        await session.set_identity("boss", TENANT_ID, member)

        assert session.state == SessionState.LOADED
        assert session.user_permissions.permissions == get_role_permissions(role)
        assert service.get_user_permissions("boss", TENANT_ID).data is not None

    async def test_membership_for_another_tenant_is_not_used(self, service: PermissionsService, seed_tenant_user):
        member = seed_tenant_user("boss", "owner", tenant_id="tenant-other")
        session = PermissionSession(service)

        await session.set_identity("boss", TENANT_ID, member)

        assert session.state == SessionState.ERRORED
        assert service.get_user_permissions("boss", "tenant-other").data is None

    async def test_initialization_failure_errors(self, service: PermissionsService, monkeypatch):
        monkeypatch.setattr("core.session.initialize_user_permissions", lambda *args: False)
        member = TenantUser(tenant_id=TENANT_ID, user_id="boss", role="owner")
        session = PermissionSession(service)

        await session.set_identity("boss", TENANT_ID, member)

        assert session.state == SessionState.ERRORED
        assert session.error == "Failed to initialize permissions"

    async def test_retry_still_missing_errors(self, service: PermissionsService, monkeypatch):
        monkeypatch.setattr("core.session.initialize_user_permissions", lambda *args: True)
        member = TenantUser(tenant_id=TENANT_ID, user_id="boss", role="owner")
        session = PermissionSession(service)

        await session.set_identity("boss", TENANT_ID, member)

        assert session.state == SessionState.ERRORED
        assert session.error == "Could not load permissions"


class TestSnapshotChecks:

    async def test_wildcard_owner(self, service: PermissionsService, seed_permissions):
        seed_permissions("owner-1", "owner", permissions=["*"])
        session = PermissionSession(service)
        await session.set_identity("owner-1", TENANT_ID)

        assert session.has_permission(Permission.ADMIN_SETTINGS_EDIT)
        assert session.has_any_permission(["users:delete"])
        assert session.has_all_permissions([p.value for p in Permission])
        assert session.has_permission("future:feature")

    async def test_staff_defaults(self, service: PermissionsService, seed_permissions):
        seed_permissions("staff-1", "staff")
        session = PermissionSession(service)
        await session.set_identity("staff-1", TENANT_ID)

        assert session.has_permission("clients:view")
        assert not session.has_permission("users:delete")
        assert session.has_any_permission(["users:delete", "appointments:edit"])
        assert not session.has_all_permissions(["clients:view", "clients:delete"])

    async def test_inactive_record_denies_everything(self, service: PermissionsService, seed_permissions, store):
        seed_permissions("owner-1", "owner", permissions=["*"])
        store.update_user_permissions("owner-1", TENANT_ID, {"is_active": False})
        session = PermissionSession(service)
        await session.set_identity("owner-1", TENANT_ID)

        assert session.state == SessionState.LOADED
        assert not session.has_permission("clients:view")
        assert not session.has_any_permission(["clients:view"])
        assert not session.has_all_permissions([])

    async def test_errored_session_denies(self, service: PermissionsService):
        session = PermissionSession(service)
        await session.set_identity("ghost", TENANT_ID)

        assert not session.has_permission("clients:view")
        assert not session.has_all_permissions([])


class TestRoleHelpers:

    async def test_manager(self, service: PermissionsService, seed_permissions):
        seed_permissions("m1", "manager")
        session = PermissionSession(service)
        await session.set_identity("m1", TENANT_ID)

        assert session.is_manager_or_higher()
        assert session.is_staff_or_higher()
        assert not session.is_admin()
        assert not session.is_owner()
        assert session.get_current_role_permissions() == get_role_permissions(Role.MANAGER)
        assert session.get_current_role_description() == "Manager with access to core operations"

    async def test_unloaded(self, service: PermissionsService):
        session = PermissionSession(service)

        assert not session.is_staff_or_higher()
        assert session.get_current_role_permissions() == []
        assert session.get_current_role_description() == "No role defined"


class TestServerChecks:

    async def test_checks_use_live_record(self, service: PermissionsService, seed_permissions, store):
        seed_permissions("staff-1", "staff")
        session = PermissionSession(service)
        await session.set_identity("staff-1", TENANT_ID)

        store.update_user_permissions("staff-1", TENANT_ID, {"permissions": ["users:delete"]})

        # Snapshot is stale, server truth is not
        assert session.has_permission("clients:view")
        assert not await session.check_permission("clients:view")
        assert await session.check_any_permission(["users:delete", "clients:view"])
        assert not await session.check_all_permissions(["users:delete", "clients:view"])

    async def test_owner_wildcard_server_check(self, service: PermissionsService, seed_permissions):
        seed_permissions("owner-1", "owner", permissions=["*"])
        session = PermissionSession(service)
        await session.set_identity("owner-1", TENANT_ID)

        assert await session.check_permission(Permission.ADMIN_TENANTS_DELETE)

    async def test_no_identity_is_false(self, service: PermissionsService):
        assert not await PermissionSession(service).check_permission("clients:view")

    async def test_store_failure_is_false(self, failing_store):
        session = PermissionSession(PermissionsService(failing_store))
        await session.set_identity("u1", TENANT_ID)

        assert not await session.check_permission("clients:view")

    async def test_exception_is_false(self, service: PermissionsService, seed_permissions, monkeypatch):
        seed_permissions("u1", "staff")
        session = PermissionSession(service)
        await session.set_identity("u1", TENANT_ID)

        def explode(*args):
            raise RuntimeError("boom")

        monkeypatch.setattr(service, "check_user_any_permission", explode)
        assert not await session.check_any_permission(["clients:view"])


class TestMutations:

    async def test_requires_tenant(self, service: PermissionsService):
        session = PermissionSession(service)

        with pytest.raises(PermissionSessionError):
            await session.create_permissions("u1", Role.STAFF)
        with pytest.raises(PermissionSessionError):
            await session.update_permissions("u1", role=Role.STAFF)

    async def test_update_self_refreshes_snapshot(self, service: PermissionsService, seed_permissions):
        seed_permissions("u1", "viewer")
        session = PermissionSession(service)
        await session.set_identity("u1", TENANT_ID)
        assert not session.has_permission("users:view")

        updated = await session.update_permissions("u1", role=Role.MANAGER)

        assert updated.role == "manager"
        assert session.state == SessionState.LOADED
        assert session.has_permission("users:view")

    async def test_create_for_other_user_leaves_snapshot(self, service: PermissionsService, seed_permissions):
        seed_permissions("admin-1", "admin")
        session = PermissionSession(service)
        await session.set_identity("admin-1", TENANT_ID)

        created = await session.create_permissions("new-hire", Role.STAFF, ["clients:view"])

        assert created.user_id == "new-hire"
        assert created.permissions == ["clients:view"]
        assert session.user_permissions.user_id == "admin-1"

    async def test_mutation_without_identity_leaves_session_idle(self, service: PermissionsService):
        session = PermissionSession(service)
        await session.set_identity("", TENANT_ID)

        created = await session.create_permissions("", Role.OWNER, ["*"])

        assert created.permissions == ["*"]
        assert session.state == SessionState.IDLE
        assert session.user_permissions is None
        assert not session.has_permission("clients:view")

    async def test_create_self_after_error_loads(self, service: PermissionsService):
        session = PermissionSession(service)
        await session.set_identity("u1", TENANT_ID)
        assert session.state == SessionState.ERRORED

        await session.create_permissions("u1", Role.STAFF)

        assert session.state == SessionState.LOADED
        assert session.error is None

    async def test_failure_raises_with_user_message(self, service: PermissionsService, seed_permissions):
        seed_permissions("admin-1", "admin")
        session = PermissionSession(service)
        await session.set_identity("admin-1", TENANT_ID)

        with pytest.raises(PermissionSessionError) as exc_info:
            await session.update_permissions("nobody", role=Role.STAFF)

        assert str(exc_info.value) == "User permissions was not found."
        assert exc_info.value.error is not None


class TestConcurrency:

    async def test_stale_load_is_discarded(self, service: PermissionsService, seed_permissions):
        seed_permissions("slow", "staff")
        seed_permissions("fast", "viewer")
        gated = GatedService(service, blocked_user="slow")
        session = PermissionSession(gated)

        first = asyncio.create_task(session.set_identity("slow", TENANT_ID))
        await asyncio.to_thread(gated.started.wait, 5)

        # Checks while loading see no access
        assert session.is_loading
        assert not session.has_permission("clients:view")
        assert session.role is None
        assert not session.is_staff_or_higher()

        await session.set_identity("fast", TENANT_ID)
        gated.release.set()
        await first

        assert session.user_id == "fast"
        assert session.state == SessionState.LOADED
        assert session.user_permissions.user_id == "fast"
        assert session.role == "viewer"

    async def test_switching_identity_drops_previous_snapshot(
        self, service: PermissionsService, seed_permissions
    ):
        seed_permissions("owner-1", "owner", permissions=["*"])
        seed_permissions("viewer-1", "viewer")
        gated = GatedService(service, blocked_user="viewer-1")
        session = PermissionSession(gated)
        await session.set_identity("owner-1", TENANT_ID)
        assert session.is_owner()

        switch = asyncio.create_task(session.set_identity("viewer-1", TENANT_ID))
        await asyncio.to_thread(gated.started.wait, 5)

        assert session.is_loading
        assert session.user_permissions is None
        assert session.role is None
        assert not session.is_owner()
        assert not session.is_admin()
        assert not session.is_manager_or_higher()
        assert session.get_current_role_permissions() == []
        assert session.get_current_role_description() == "No role defined"
        assert not session.has_permission("clients:view")

        gated.release.set()
        await switch

        assert session.role == "viewer"
        assert not session.is_staff_or_higher()


class TestTenantScenario:
    """Owner with wildcard next to staff on role defaults, in one tenant."""

    async def test_owner_and_staff_in_same_tenant(self, service: PermissionsService, seed_permissions):
        seed_permissions("owner-1", "owner", permissions=["*"])
        seed_permissions("staff-1", "staff")

        owner = PermissionSession(service)
        await owner.set_identity("owner-1", TENANT_ID)
        staff = PermissionSession(service)
        await staff.set_identity("staff-1", TENANT_ID)

        assert owner.has_permission(Permission.ADMIN_TENANTS_EDIT)
        assert owner.has_permission("future:feature")

        stored = service.get_user_permissions("staff-1", TENANT_ID).data
        assert stored.permissions == get_role_permissions(Role.STAFF)
        assert not staff.has_permission(Permission.ADMIN_TENANTS_EDIT)
        assert staff.has_permission(Permission.CLIENTS_VIEW)
        assert service.check_user_permission("staff-1", TENANT_ID, "clients:view").data is True
        assert service.check_user_permission("owner-1", TENANT_ID, "future:feature").data is True

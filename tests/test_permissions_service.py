"""
Tests for PermissionsService.

These tests verify:
- CRUD semantics (role defaults, verbatim permissions, never-create updates)
- Membership mirroring on update
- Server-truth checks against the live record
- Store failures surface as INTERNAL errors, never as exceptions
"""

from core import ErrorLogger, PermissionsService
from models import (
    CreateUserPermissionsData,
    ErrorType,
    Role,
    UpdateUserPermissionsData,
    get_role_permissions,
)

from conftest import TENANT_ID


class TestGetUserPermissions:

    def test_missing_record_is_success_with_none(self, service: PermissionsService):
        result = service.get_user_permissions("nobody", TENANT_ID)

        assert result.success
        assert result.data is None

    def test_existing_record(self, service: PermissionsService, seed_permissions):
        seed_permissions("u1", "staff")

        result = service.get_user_permissions("u1", TENANT_ID)
        assert result.success
        assert result.data.role == "staff"
        assert result.data.is_active is True


class TestCreateUserPermissions:

    def test_omitted_permissions_use_role_defaults(self, service: PermissionsService):
        result = service.create_user_permissions(
            CreateUserPermissionsData(user_id="u1", tenant_id=TENANT_ID, role=Role.MANAGER)
        )

        assert result.success
        assert result.data.permissions == get_role_permissions(Role.MANAGER)
        assert result.data.created_at == result.data.updated_at

    def test_explicit_permissions_are_stored_verbatim(self, service: PermissionsService):
        result = service.create_user_permissions(
            CreateUserPermissionsData(
                user_id="u1",
                tenant_id=TENANT_ID,
                role="viewer",
                permissions=["reports:export", "not-in-vocabulary"],
            )
        )

        assert result.success
        assert result.data.permissions == ["reports:export", "not-in-vocabulary"]

    def test_explicit_empty_list_is_kept(self, service: PermissionsService):
        result = service.create_user_permissions(
            CreateUserPermissionsData(user_id="u1", tenant_id=TENANT_ID, role="staff", permissions=[])
        )

        assert result.success
        assert result.data.permissions == []

    def test_duplicate_pair_is_rejected(self, service: PermissionsService, seed_permissions):
        seed_permissions("u1", "staff")

        result = service.create_user_permissions(
            CreateUserPermissionsData(user_id="u1", tenant_id=TENANT_ID, role="admin")
        )
        assert not result.success
        assert result.error.type == ErrorType.DUPLICATE

    def test_concurrent_insert_of_same_pair_is_duplicate(
        self, service: PermissionsService, seed_permissions, store, monkeypatch
    ):
        seed_permissions("u1", "staff")
        # Another writer inserted between the existence check and the insert
        monkeypatch.setattr(store, "find_user_permissions", lambda user_id, tenant_id: None)

        result = service.create_user_permissions(
            CreateUserPermissionsData(user_id="u1", tenant_id=TENANT_ID, role="admin")
        )

        assert not result.success
        assert result.error.type == ErrorType.DUPLICATE

    def test_unknown_role_is_a_validation_error(self, service: PermissionsService):
        result = service.create_user_permissions(
            CreateUserPermissionsData(user_id="u1", tenant_id=TENANT_ID, role="superuser")
        )

        assert not result.success
        assert result.error.type == ErrorType.VALIDATION


class TestUpdateUserPermissions:

    def test_role_change_resets_to_new_defaults(self, service: PermissionsService, seed_permissions):
        seed_permissions("u1", "staff", permissions=["reports:export"])

        result = service.update_user_permissions("u1", TENANT_ID, UpdateUserPermissionsData(role="viewer"))

        assert result.success
        assert result.data.role == "viewer"
        assert result.data.permissions == get_role_permissions("viewer")

    def test_permissions_alone_keep_role(self, service: PermissionsService, seed_permissions):
        seed_permissions("u1", "staff")

        result = service.update_user_permissions(
            "u1", TENANT_ID, UpdateUserPermissionsData(permissions=["clients:view"])
        )

        assert result.success
        assert result.data.role == "staff"
        assert result.data.permissions == ["clients:view"]

    def test_role_and_permissions_together(self, service: PermissionsService, seed_permissions):
        seed_permissions("u1", "staff")

        result = service.update_user_permissions(
            "u1", TENANT_ID, UpdateUserPermissionsData(role=Role.MANAGER, permissions=["*"])
        )

        assert result.data.role == "manager"
        assert result.data.permissions == ["*"]

    def test_updated_at_is_refreshed(self, service: PermissionsService, seed_permissions):
        created = seed_permissions("u1", "staff")

        result = service.update_user_permissions("u1", TENANT_ID, UpdateUserPermissionsData())

        assert result.success
        assert result.data.updated_at >= created.updated_at
        assert result.data.created_at == created.created_at

    def test_missing_record_is_not_found_and_not_created(self, service: PermissionsService):
        result = service.update_user_permissions("nobody", TENANT_ID, UpdateUserPermissionsData(role="admin"))

        assert not result.success
        assert result.error.type == ErrorType.NOT_FOUND
        assert service.get_user_permissions("nobody", TENANT_ID).data is None


class TestMembershipMirroring:

    def test_role_change_is_mirrored_with_empty_permissions(
        self, service: PermissionsService, seed_permissions, seed_tenant_user, store
    ):
        seed_tenant_user("u1", "staff", permissions=["clients:view"])
        seed_permissions("u1", "staff")

        service.update_user_permissions("u1", TENANT_ID, UpdateUserPermissionsData(role="manager"))

        membership = store.find_tenant_user("u1", TENANT_ID)
        assert membership["role"] == "manager"
        assert membership["permissions"] == []

    def test_permission_change_is_mirrored(
        self, service: PermissionsService, seed_permissions, seed_tenant_user, store
    ):
        seed_tenant_user("u1", "staff")
        seed_permissions("u1", "staff")

        service.update_user_permissions("u1", TENANT_ID, UpdateUserPermissionsData(permissions=["reports:view"]))

        membership = store.find_tenant_user("u1", TENANT_ID)
        assert membership["role"] == "staff"
        assert membership["permissions"] == ["reports:view"]

    def test_update_without_membership_still_succeeds(self, service: PermissionsService, seed_permissions):
        seed_permissions("u1", "staff")

        result = service.update_user_permissions("u1", TENANT_ID, UpdateUserPermissionsData(role="admin"))
        assert result.success


class TestDeleteAndList:

    def test_delete(self, service: PermissionsService, seed_permissions):
        seed_permissions("u1", "staff")

        assert service.delete_user_permissions("u1", TENANT_ID).success
        assert service.get_user_permissions("u1", TENANT_ID).data is None

    def test_delete_missing_is_not_found(self, service: PermissionsService):
        result = service.delete_user_permissions("nobody", TENANT_ID)

        assert not result.success
        assert result.error.type == ErrorType.NOT_FOUND

    def test_tenant_listing_is_scoped(self, service: PermissionsService, seed_permissions):
        seed_permissions("u1", "staff")
        seed_permissions("u2", "viewer")
        seed_permissions("u3", "owner", tenant_id="tenant-other")

        result = service.get_tenant_users(TENANT_ID)
        assert result.success
        assert {record.user_id for record in result.data} == {"u1", "u2"}


class TestServerTruthChecks:

    def test_wildcard_owner_passes_every_check(self, service: PermissionsService, seed_permissions):
        seed_permissions("owner-1", "owner", permissions=["*"])

        assert service.check_user_permission("owner-1", TENANT_ID, "admin:tenants:delete").data is True
        assert service.check_user_any_permission("owner-1", TENANT_ID, ["users:delete"]).data is True
        assert service.check_user_all_permissions("owner-1", TENANT_ID, ["users:delete", "reports:export"]).data

    def test_direct_permission_checks(self, service: PermissionsService, seed_permissions):
        seed_permissions("staff-1", "staff")

        assert service.check_user_permission("staff-1", TENANT_ID, "clients:view").data is True
        assert service.check_user_permission("staff-1", TENANT_ID, "users:delete").data is False
        assert service.check_user_any_permission("staff-1", TENANT_ID, ["users:delete", "clients:view"]).data
        assert service.check_user_all_permissions("staff-1", TENANT_ID, ["clients:view", "users:view"]).data is False

    def test_missing_record_is_false_not_error(self, service: PermissionsService):
        result = service.check_user_permission("nobody", TENANT_ID, "clients:view")

        assert result.success
        assert result.data is False

    def test_inactive_record_denies(self, service: PermissionsService, seed_permissions, store):
        seed_permissions("u1", "admin")
        store.update_user_permissions("u1", TENANT_ID, {"is_active": False})

        assert service.check_user_permission("u1", TENANT_ID, "clients:view").data is False

    def test_checks_see_updates_immediately(self, service: PermissionsService, seed_permissions):
        seed_permissions("u1", "viewer")
        assert service.check_user_permission("u1", TENANT_ID, "users:view").data is False

        service.update_user_permissions("u1", TENANT_ID, UpdateUserPermissionsData(role="manager"))
        assert service.check_user_permission("u1", TENANT_ID, "users:view").data is True


class TestStoreFailures:

    def test_read_failure_is_internal_error(self, failing_store, error_logger: ErrorLogger):
        service = PermissionsService(failing_store, error_logger)

        result = service.get_user_permissions("u1", TENANT_ID)

        assert not result.success
        assert result.error.type == ErrorType.INTERNAL
        assert error_logger.get_errors()[-1] is result.error
        assert result.error.context["action"] == "get_user_permissions"

    def test_check_failure_is_internal_error(self, failing_store):
        service = PermissionsService(failing_store)

        result = service.check_user_permission("u1", TENANT_ID, "clients:view")
        assert not result.success
        assert result.error.type == ErrorType.INTERNAL

    def test_write_failures_are_internal_errors(self, failing_store):
        service = PermissionsService(failing_store)

        created = service.create_user_permissions(
            CreateUserPermissionsData(user_id="u1", tenant_id=TENANT_ID, role="staff")
        )
        updated = service.update_user_permissions("u1", TENANT_ID, UpdateUserPermissionsData(role="staff"))
        deleted = service.delete_user_permissions("u1", TENANT_ID)

        assert [r.error.type for r in (created, updated, deleted)] == [ErrorType.INTERNAL] * 3

    def test_mirroring_failure_does_not_fail_update(
        self, service: PermissionsService, seed_permissions, store, monkeypatch, error_logger
    ):
        from db import StoreError

        seed_permissions("u1", "staff")

        def broken_update(*args, **kwargs):
            raise StoreError("tenant_users unavailable")

        monkeypatch.setattr(store, "update_tenant_user", broken_update)

        result = service.update_user_permissions("u1", TENANT_ID, UpdateUserPermissionsData(role="admin"))

        assert result.success
        assert result.data.role == "admin"
        assert error_logger.get_errors()[-1].context["action"] == "sync_tenant_user"

"""
Pytest configuration and fixtures for testing.

This module provides:
- Isolated SQLite stores and services
- Test client for FastAPI with services bound to the test store
- Helpers for seeding records and building identity headers
"""

import os
import tempfile
from typing import Generator
from unittest.mock import MagicMock

import pytest

# Set test environment before importing app modules
_TEST_DB_DIR = tempfile.mkdtemp(prefix="permissions-service-")
os.environ["ENVIRONMENT"] = "test"
os.environ["DB_BACKEND"] = "sqlite"
os.environ["SQLITE_PATH"] = os.path.join(_TEST_DB_DIR, "permissions_test.db")
os.environ["INTER_SERVICE_SECRET"] = ""
os.environ["MISSING_PERMISSIONS_AS_EMPTY"] = "false"

from fastapi.testclient import TestClient

from api import dependencies
from api.server import app
from core import ErrorLogger, PermissionsService, TenantUserService
from db import DatabaseBackend, StoreError
from db.backends import SQLiteBackend
from models import CreateTenantUserData, CreateUserPermissionsData


TENANT_ID = "tenant-acme"
OTHER_TENANT_ID = "tenant-globex"


# =============================================================================
# STORE / SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def store(tmp_path) -> SQLiteBackend:
    """Fresh SQLite store per test."""
    backend = SQLiteBackend(tmp_path / "permissions.db")
    backend.init_db()
    return backend


@pytest.fixture
def error_logger() -> ErrorLogger:
    return ErrorLogger(max_errors=50)


@pytest.fixture
def service(store: SQLiteBackend, error_logger: ErrorLogger) -> PermissionsService:
    return PermissionsService(store, error_logger)


@pytest.fixture
def tenant_user_service(store: SQLiteBackend, error_logger: ErrorLogger) -> TenantUserService:
    return TenantUserService(store, error_logger)


@pytest.fixture
def failing_store() -> MagicMock:
    """Store whose every call fails as if the database were unreachable."""
    mock = MagicMock(spec=DatabaseBackend)
    failure = StoreError("connection refused")
    for method in (
        "find_user_permissions",
        "get_user_permissions_by_id",
        "insert_user_permissions",
        "update_user_permissions",
        "delete_user_permissions",
        "list_user_permissions",
        "find_tenant_user",
        "get_tenant_user_by_id",
        "insert_tenant_user",
        "update_tenant_user",
        "delete_tenant_user",
        "list_tenant_users",
    ):
        getattr(mock, method).side_effect = failure
    return mock


# =============================================================================
# SEEDING HELPERS
# =============================================================================


@pytest.fixture
def seed_permissions(service: PermissionsService):
    """Create a permission record and return it."""

    def _seed(user_id: str, role: str, permissions: list[str] | None = None, tenant_id: str = TENANT_ID):
        result = service.create_user_permissions(
            CreateUserPermissionsData(
                user_id=user_id,
                tenant_id=tenant_id,
                role=role,
                permissions=permissions,
            )
        )
        assert result.success, result.error
        return result.data

    return _seed


@pytest.fixture
def seed_tenant_user(tenant_user_service: TenantUserService):
    """Create a tenant membership and return it."""

    def _seed(user_id: str, role: str, permissions: list[str] | None = None, tenant_id: str = TENANT_ID):
        result = tenant_user_service.create_tenant_user(
            CreateTenantUserData(
                tenant_id=tenant_id,
                user_id=user_id,
                role=role,
                permissions=permissions,
            )
        )
        assert result.success, result.error
        return result.data

    return _seed


# =============================================================================
# TEST CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def client(
    service: PermissionsService,
    tenant_user_service: TenantUserService,
) -> Generator[TestClient, None, None]:
    """Test client whose services all use the per-test store."""
    app.dependency_overrides[dependencies.get_permissions_service] = lambda: service
    app.dependency_overrides[dependencies.get_tenant_user_service] = lambda: tenant_user_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def identity():
    """Build the identity headers the gateway would inject."""

    def _headers(user_id: str, tenant_id: str | None = TENANT_ID) -> dict[str, str]:
        headers = {"X-User-Id": user_id}
        if tenant_id:
            headers["X-Tenant-Id"] = tenant_id
        return headers

    return _headers


# =============================================================================
# CLEANUP FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def cleanup_after_test():
    """Clean up after each test."""
    yield
    app.dependency_overrides.clear()

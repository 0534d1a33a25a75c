"""
Abstract base class for database backends.

Each backend implements their own storage-specific syntax.
Backends raise StoreError on any storage failure so callers can tell
"record absent" (None / False) apart from "store unreachable".
"""

from abc import ABC, abstractmethod
from typing import Any


class StoreError(Exception):
    """Storage operation failed (connection, query, or SDK error)."""

    def __init__(self, message: str, original: Exception | None = None):
        super().__init__(message)
        self.original = original


class DuplicateRecordError(StoreError):
    """Insert rejected because the (user_id, tenant_id) pair already exists."""


class DatabaseBackend(ABC):
    """
    Abstract base class for permission record stores.

    Two collections, both keyed by (user_id, tenant_id):
    - user_permissions: materialized permission records
    - tenant_users: tenant memberships
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name (e.g., 'sqlite', 'supabase')."""
        pass

    @abstractmethod
    def init_db(self) -> None:
        """Initialize database connections / schema."""
        pass

    # =========================================================================
    # USER PERMISSIONS
    # =========================================================================

    @abstractmethod
    def find_user_permissions(self, user_id: str, tenant_id: str) -> dict[str, Any] | None:
        """Get the permission record for (user, tenant), or None."""
        pass

    @abstractmethod
    def get_user_permissions_by_id(self, record_id: str) -> dict[str, Any] | None:
        """Get a permission record by its storage ID."""
        pass

    @abstractmethod
    def insert_user_permissions(self, record: dict[str, Any]) -> str:
        """
        Insert a permission record.

        Args:
            record: user_id, tenant_id, role, permissions, is_active, created_at, updated_at

        Returns:
            Storage ID of the new record
        """
        pass

    @abstractmethod
    def update_user_permissions(
        self,
        user_id: str,
        tenant_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Apply updates to the (user, tenant) record. Returns None if it does not exist."""
        pass

    @abstractmethod
    def delete_user_permissions(self, user_id: str, tenant_id: str) -> bool:
        """Delete the (user, tenant) record. Returns False if it does not exist."""
        pass

    @abstractmethod
    def list_user_permissions(self, tenant_id: str) -> list[dict[str, Any]]:
        """All permission records of a tenant, newest first (created_at desc)."""
        pass

    # =========================================================================
    # TENANT USERS
    # =========================================================================

    @abstractmethod
    def find_tenant_user(self, user_id: str, tenant_id: str) -> dict[str, Any] | None:
        """Get the membership for (user, tenant), or None."""
        pass

    @abstractmethod
    def get_tenant_user_by_id(self, record_id: str) -> dict[str, Any] | None:
        """Get a membership by its storage ID."""
        pass

    @abstractmethod
    def insert_tenant_user(self, record: dict[str, Any]) -> str:
        """Insert a membership. Returns its storage ID."""
        pass

    @abstractmethod
    def update_tenant_user(
        self,
        user_id: str,
        tenant_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Apply updates to a membership. Returns None if it does not exist."""
        pass

    @abstractmethod
    def delete_tenant_user(self, user_id: str, tenant_id: str) -> bool:
        """Delete a membership. Returns False if it does not exist."""
        pass

    @abstractmethod
    def list_tenant_users(self, tenant_id: str) -> list[dict[str, Any]]:
        """All memberships of a tenant, newest first (created_at desc)."""
        pass

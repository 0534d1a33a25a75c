"""
Supabase database backend implementation for Permissions Service.

Tables:
- user_permissions: materialized permission records
- tenant_users: tenant memberships

Any SDK/postgrest failure is re-raised as StoreError so the service layer
never depends on the SDK's error shape.
"""

import logging
from typing import Any

from supabase import Client, create_client
from supabase.lib.client_options import ClientOptions

from db.base import DatabaseBackend, DuplicateRecordError, StoreError

logger = logging.getLogger("permissions-service")

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"


class SupabaseBackend(DatabaseBackend):
    """
    Supabase database backend implementation.

    The client is created lazily on first use.
    """

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        user_permissions_table: str | None = None,
        tenant_users_table: str | None = None,
    ):
        """Initialize Supabase backend, defaulting to config settings."""
        from config import settings

        self._url = url or settings.supabase_url
        self._key = key or settings.supabase_key
        self._permissions_table = user_permissions_table or settings.USER_PERMISSIONS_TABLE
        self._tenant_users_table = tenant_users_table or settings.TENANT_USERS_TABLE
        self._client: Client | None = None

    @property
    def name(self) -> str:
        return "supabase"

    def _get_client(self) -> Client:
        """Get or create the Supabase client (lazy initialization)."""
        if self._client is not None:
            return self._client

        if not self._url or not self._key:
            raise StoreError(
                "Supabase credentials not configured. "
                "Set PERMISSIONS_DEV_SUPABASE_URL/KEY or PERMISSIONS_PROD_SUPABASE_URL/KEY."
            )

        try:
            # Use longer timeouts (seconds) to handle slow network conditions
            options = ClientOptions(postgrest_client_timeout=30)
            self._client = create_client(self._url, self._key, options=options)
            logger.info("[SUPABASE] Client initialized successfully")
            return self._client
        except Exception as e:
            logger.error(f"[SUPABASE] Failed to initialize: {e}")
            raise StoreError(f"Failed to initialize Supabase client: {e}", e) from e

    def init_db(self) -> None:
        """
        Initialize Supabase connection.

        Note: Schema is managed through SQL migrations, not here.
        """
        self._get_client()
        logger.info(
            f"[SUPABASE] Connected - tables: {self._permissions_table}, {self._tenant_users_table}"
        )

    # =========================================================================
    # GENERIC HELPERS
    # =========================================================================

    def _find(self, table: str, user_id: str, tenant_id: str) -> dict[str, Any] | None:
        client = self._get_client()
        try:
            response = (
                client.table(table)
                .select("*")
                .eq("user_id", user_id)
                .eq("tenant_id", tenant_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"[SUPABASE] Failed to read {table} for {user_id}@{tenant_id}: {e}")
            raise StoreError(f"Failed to read {table}: {e}", e) from e
        return response.data[0] if response.data else None

    def _get_by_id(self, table: str, record_id: str) -> dict[str, Any] | None:
        client = self._get_client()
        try:
            response = client.table(table).select("*").eq("id", record_id).execute()
        except Exception as e:
            logger.error(f"[SUPABASE] Failed to read {table} {record_id}: {e}")
            raise StoreError(f"Failed to read {table}: {e}", e) from e
        return response.data[0] if response.data else None

    def _insert(self, table: str, record: dict[str, Any]) -> str:
        client = self._get_client()
        try:
            response = client.table(table).insert(record).execute()
        except Exception as e:
            if getattr(e, "code", None) == UNIQUE_VIOLATION:
                raise DuplicateRecordError(f"Duplicate record in {table}: {e}", e) from e
            logger.error(f"[SUPABASE] Failed to insert into {table}: {e}")
            raise StoreError(f"Failed to insert into {table}: {e}", e) from e

        if not response.data:
            raise StoreError(f"Insert into {table} returned no data")
        return str(response.data[0]["id"])

    def _update(
        self,
        table: str,
        user_id: str,
        tenant_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        if not updates:
            return self._find(table, user_id, tenant_id)

        client = self._get_client()
        try:
            response = (
                client.table(table)
                .update(updates)
                .eq("user_id", user_id)
                .eq("tenant_id", tenant_id)
                .execute()
            )
        except Exception as e:
            logger.error(f"[SUPABASE] Failed to update {table} for {user_id}@{tenant_id}: {e}")
            raise StoreError(f"Failed to update {table}: {e}", e) from e
        return response.data[0] if response.data else None

    def _delete(self, table: str, user_id: str, tenant_id: str) -> bool:
        client = self._get_client()
        try:
            response = (
                client.table(table)
                .delete()
                .eq("user_id", user_id)
                .eq("tenant_id", tenant_id)
                .execute()
            )
        except Exception as e:
            logger.error(f"[SUPABASE] Failed to delete from {table} for {user_id}@{tenant_id}: {e}")
            raise StoreError(f"Failed to delete from {table}: {e}", e) from e
        return bool(response.data)

    def _list(self, table: str, tenant_id: str) -> list[dict[str, Any]]:
        client = self._get_client()
        try:
            response = (
                client.table(table)
                .select("*")
                .eq("tenant_id", tenant_id)
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error(f"[SUPABASE] Failed to list {table} for tenant {tenant_id}: {e}")
            raise StoreError(f"Failed to list {table}: {e}", e) from e
        return response.data or []

    # =========================================================================
    # USER PERMISSIONS
    # =========================================================================

    def find_user_permissions(self, user_id: str, tenant_id: str) -> dict[str, Any] | None:
        return self._find(self._permissions_table, user_id, tenant_id)

    def get_user_permissions_by_id(self, record_id: str) -> dict[str, Any] | None:
        return self._get_by_id(self._permissions_table, record_id)

    def insert_user_permissions(self, record: dict[str, Any]) -> str:
        return self._insert(self._permissions_table, record)

    def update_user_permissions(
        self,
        user_id: str,
        tenant_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        return self._update(self._permissions_table, user_id, tenant_id, updates)

    def delete_user_permissions(self, user_id: str, tenant_id: str) -> bool:
        return self._delete(self._permissions_table, user_id, tenant_id)

    def list_user_permissions(self, tenant_id: str) -> list[dict[str, Any]]:
        return self._list(self._permissions_table, tenant_id)

    # =========================================================================
    # TENANT USERS
    # =========================================================================

    def find_tenant_user(self, user_id: str, tenant_id: str) -> dict[str, Any] | None:
        return self._find(self._tenant_users_table, user_id, tenant_id)

    def get_tenant_user_by_id(self, record_id: str) -> dict[str, Any] | None:
        return self._get_by_id(self._tenant_users_table, record_id)

    def insert_tenant_user(self, record: dict[str, Any]) -> str:
        return self._insert(self._tenant_users_table, record)

    def update_tenant_user(
        self,
        user_id: str,
        tenant_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        return self._update(self._tenant_users_table, user_id, tenant_id, updates)

    def delete_tenant_user(self, user_id: str, tenant_id: str) -> bool:
        return self._delete(self._tenant_users_table, user_id, tenant_id)

    def list_tenant_users(self, tenant_id: str) -> list[dict[str, Any]]:
        return self._list(self._tenant_users_table, tenant_id)

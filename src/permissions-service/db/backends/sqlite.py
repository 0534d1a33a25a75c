"""
SQLite database backend implementation for Permissions Service.

Note: SQLite backend is primarily for local development and testing.
Production uses Supabase.
"""

import json
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import Any

from db.base import DatabaseBackend, DuplicateRecordError, StoreError

logger = logging.getLogger("permissions-service")


SCHEMA = """
-- Materialized permission records (one per user per tenant)
CREATE TABLE IF NOT EXISTS user_permissions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    tenant_id TEXT NOT NULL,
    role TEXT NOT NULL,
    permissions TEXT NOT NULL DEFAULT '[]',
    is_active INTEGER DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE(user_id, tenant_id)
);

-- Tenant memberships (one per user per tenant)
CREATE TABLE IF NOT EXISTS tenant_users (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    role TEXT NOT NULL,
    permissions TEXT NOT NULL DEFAULT '[]',
    is_active INTEGER DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE(user_id, tenant_id)
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_user_permissions_tenant ON user_permissions(tenant_id, created_at);
CREATE INDEX IF NOT EXISTS idx_tenant_users_tenant ON tenant_users(tenant_id, created_at);
"""

# Columns callers may change through update_*()
_UPDATABLE_COLUMNS = {"role", "permissions", "is_active", "updated_at"}


class SQLiteBackend(DatabaseBackend):
    """SQLite database backend for local development and tests."""

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize SQLite backend.

        Args:
            db_path: Optional path to database file.
        """
        if db_path:
            self._db_path = Path(db_path)
        else:
            from config import settings

            if settings.SQLITE_PATH:
                self._db_path = Path(settings.SQLITE_PATH)
            else:
                base_dir = Path(__file__).parent.parent.parent
                filename = "permissions_test.db" if settings.ENVIRONMENT == "test" else "permissions.db"
                self._db_path = base_dir / filename

        logger.info(f"[SQLITE] Using database at {self._db_path}")

    @property
    def name(self) -> str:
        return "sqlite"

    def _connect(self) -> sqlite3.Connection:
        """Create a database connection."""
        try:
            conn = sqlite3.connect(self._db_path, timeout=5.0, isolation_level=None)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA busy_timeout=5000;")
            conn.execute("PRAGMA synchronous=NORMAL;")
        except sqlite3.Error as e:
            raise StoreError(f"Could not open SQLite database at {self._db_path}: {e}", e) from e
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Initialize database with schema."""
        conn = self._connect()
        try:
            conn.executescript(SCHEMA)
            logger.info("[SQLITE] Database initialized with schema")
        except sqlite3.Error as e:
            raise StoreError(f"Failed to initialize schema: {e}", e) from e
        finally:
            conn.close()

    def _row_to_dict(self, row: sqlite3.Row | None) -> dict[str, Any] | None:
        """Convert a sqlite3.Row to a dict, decoding JSON and boolean columns."""
        if row is None:
            return None
        result = dict(row)
        result["permissions"] = json.loads(result.get("permissions") or "[]")
        result["is_active"] = bool(result.get("is_active"))
        return result

    def _rows_to_list(self, rows: list[sqlite3.Row]) -> list[dict[str, Any]]:
        return [self._row_to_dict(row) for row in rows]

    def _encode_updates(self, updates: dict[str, Any]) -> dict[str, Any]:
        unknown = set(updates) - _UPDATABLE_COLUMNS
        if unknown:
            raise StoreError(f"Cannot update columns: {sorted(unknown)}")
        encoded = dict(updates)
        if "permissions" in encoded:
            encoded["permissions"] = json.dumps(list(encoded["permissions"]))
        if "is_active" in encoded:
            encoded["is_active"] = 1 if encoded["is_active"] else 0
        return encoded

    # =========================================================================
    # GENERIC HELPERS (both tables share the same shape)
    # =========================================================================

    def _find(self, table: str, user_id: str, tenant_id: str) -> dict[str, Any] | None:
        conn = self._connect()
        try:
            cursor = conn.execute(
                f"SELECT * FROM {table} WHERE user_id = ? AND tenant_id = ? LIMIT 1",
                (user_id, tenant_id),
            )
            return self._row_to_dict(cursor.fetchone())
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read {table}: {e}", e) from e
        finally:
            conn.close()

    def _get_by_id(self, table: str, record_id: str) -> dict[str, Any] | None:
        conn = self._connect()
        try:
            cursor = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (record_id,))
            return self._row_to_dict(cursor.fetchone())
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read {table}: {e}", e) from e
        finally:
            conn.close()

    def _insert(self, table: str, record: dict[str, Any]) -> str:
        record_id = uuid.uuid4().hex
        conn = self._connect()
        try:
            conn.execute(
                f"""
                INSERT INTO {table} (id, user_id, tenant_id, role, permissions, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record_id,
                    record["user_id"],
                    record["tenant_id"],
                    record["role"],
                    json.dumps(list(record.get("permissions") or [])),
                    1 if record.get("is_active", True) else 0,
                    record["created_at"],
                    record["updated_at"],
                ),
            )
            return record_id
        except sqlite3.Error as e:
            if isinstance(e, sqlite3.IntegrityError) and "UNIQUE" in str(e):
                raise DuplicateRecordError(f"Duplicate record in {table}: {e}", e) from e
            logger.error(f"[SQLITE] Failed to insert into {table}: {e}")
            raise StoreError(f"Failed to insert into {table}: {e}", e) from e
        finally:
            conn.close()

    def _update(
        self,
        table: str,
        user_id: str,
        tenant_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        if not updates:
            return self._find(table, user_id, tenant_id)

        encoded = self._encode_updates(updates)
        conn = self._connect()
        try:
            set_clause = ", ".join(f"{k} = ?" for k in encoded.keys())
            cursor = conn.execute(
                f"UPDATE {table} SET {set_clause} WHERE user_id = ? AND tenant_id = ?",
                (*encoded.values(), user_id, tenant_id),
            )
            if cursor.rowcount == 0:
                return None
        except sqlite3.Error as e:
            raise StoreError(f"Failed to update {table}: {e}", e) from e
        finally:
            conn.close()

        return self._find(table, user_id, tenant_id)

    def _delete(self, table: str, user_id: str, tenant_id: str) -> bool:
        conn = self._connect()
        try:
            cursor = conn.execute(
                f"DELETE FROM {table} WHERE user_id = ? AND tenant_id = ?",
                (user_id, tenant_id),
            )
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise StoreError(f"Failed to delete from {table}: {e}", e) from e
        finally:
            conn.close()

    def _list(self, table: str, tenant_id: str) -> list[dict[str, Any]]:
        conn = self._connect()
        try:
            # rowid breaks ties between records created in the same instant
            cursor = conn.execute(
                f"SELECT * FROM {table} WHERE tenant_id = ? ORDER BY created_at DESC, rowid DESC",
                (tenant_id,),
            )
            return self._rows_to_list(cursor.fetchall())
        except sqlite3.Error as e:
            raise StoreError(f"Failed to list {table}: {e}", e) from e
        finally:
            conn.close()

    # =========================================================================
    # USER PERMISSIONS
    # =========================================================================

    def find_user_permissions(self, user_id: str, tenant_id: str) -> dict[str, Any] | None:
        return self._find("user_permissions", user_id, tenant_id)

    def get_user_permissions_by_id(self, record_id: str) -> dict[str, Any] | None:
        return self._get_by_id("user_permissions", record_id)

    def insert_user_permissions(self, record: dict[str, Any]) -> str:
        return self._insert("user_permissions", record)

    def update_user_permissions(
        self,
        user_id: str,
        tenant_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        return self._update("user_permissions", user_id, tenant_id, updates)

    def delete_user_permissions(self, user_id: str, tenant_id: str) -> bool:
        return self._delete("user_permissions", user_id, tenant_id)

    def list_user_permissions(self, tenant_id: str) -> list[dict[str, Any]]:
        return self._list("user_permissions", tenant_id)

    # =========================================================================
    # TENANT USERS
    # =========================================================================

    def find_tenant_user(self, user_id: str, tenant_id: str) -> dict[str, Any] | None:
        return self._find("tenant_users", user_id, tenant_id)

    def get_tenant_user_by_id(self, record_id: str) -> dict[str, Any] | None:
        return self._get_by_id("tenant_users", record_id)

    def insert_tenant_user(self, record: dict[str, Any]) -> str:
        return self._insert("tenant_users", record)

    def update_tenant_user(
        self,
        user_id: str,
        tenant_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        return self._update("tenant_users", user_id, tenant_id, updates)

    def delete_tenant_user(self, user_id: str, tenant_id: str) -> bool:
        return self._delete("tenant_users", user_id, tenant_id)

    def list_tenant_users(self, tenant_id: str) -> list[dict[str, Any]]:
        return self._list("tenant_users", tenant_id)

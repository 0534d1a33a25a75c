"""
Database Router - Selects and exposes the appropriate database backend.

Usage:
    from db.database import get_database

    store = get_database()
    store.find_user_permissions(user_id, tenant_id)

Configuration:
    Set DB_BACKEND environment variable:
    - "sqlite" (default): Use local SQLite database (SQLITE_PATH overrides location)
    - "supabase": Use Supabase cloud database

    For Supabase, also set:
    - PERMISSIONS_DEV_SUPABASE_URL / PERMISSIONS_PROD_SUPABASE_URL
    - PERMISSIONS_DEV_SUPABASE_SERVICE_ROLE_KEY / PERMISSIONS_PROD_SUPABASE_SERVICE_ROLE_KEY
"""

import logging

from config import settings
from db.backends.sqlite import SQLiteBackend
from db.base import DatabaseBackend, StoreError

logger = logging.getLogger("permissions-service")

_backend: DatabaseBackend | None = None


def _get_backend() -> DatabaseBackend:
    """
    Build the configured database backend.

    Raises:
        RuntimeError: In production if Supabase is selected but unusable
    """
    backend_name = settings.DB_BACKEND.lower()

    if backend_name == "supabase":
        if not settings.supabase_url or not settings.supabase_key:
            if settings.is_production:
                raise RuntimeError(
                    "[DB] FATAL: Supabase credentials missing in production. "
                    "Set PERMISSIONS_PROD_SUPABASE_URL and PERMISSIONS_PROD_SUPABASE_SERVICE_ROLE_KEY, "
                    "or set DB_BACKEND=sqlite if SQLite is intended."
                )
            logger.warning("[DB] Supabase credentials not set, falling back to SQLite")
            return SQLiteBackend()

        from db.backends.supabase import SupabaseBackend

        logger.info("[DB] Using Supabase backend")
        return SupabaseBackend()

    logger.info("[DB] Using SQLite backend")
    return SQLiteBackend()


def get_database() -> DatabaseBackend:
    """Get the process-wide backend, creating and initializing it on first use."""
    global _backend

    if _backend is None:
        backend = _get_backend()
        try:
            backend.init_db()
        except StoreError as e:
            if settings.is_production:
                raise RuntimeError(f"[DB] FATAL: Failed to initialize {backend.name} backend: {e}") from e
            logger.error(f"[DB] Failed to initialize {backend.name} backend: {e}")
        _backend = backend

    return _backend


def reset_database() -> None:
    """Drop the cached backend (next get_database() rebuilds it)."""
    global _backend
    _backend = None

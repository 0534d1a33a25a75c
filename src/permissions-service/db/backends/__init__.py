"""
Database backends for permissions-service.

Available backends:
- SQLiteBackend: Local development and tests
- SupabaseBackend: Production (imported on demand by db.database)
"""

from .sqlite import SQLiteBackend

__all__ = ["SQLiteBackend"]

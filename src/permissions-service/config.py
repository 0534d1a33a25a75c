"""
Environment configuration for permissions-service.

Tenant-scoped RBAC: role catalog, permission records, and access checks.
All other services communicate with this via REST API.
"""

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings

logger = logging.getLogger("permissions-service")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    # ==========================================================================
    # ENVIRONMENT DETECTION
    # ==========================================================================
    ENVIRONMENT: str = "local"  # 'local', 'development', 'test', 'production'
    HOST: str = "0.0.0.0"
    PORT: int = 8003
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL

    # ==========================================================================
    # SERVICE IDENTIFICATION
    # ==========================================================================
    SERVICE_NAME: str = "permissions-service"
    INTER_SERVICE_SECRET: str | None = None  # Shared secret for inter-service auth

    # ==========================================================================
    # STORAGE
    # ==========================================================================
    DB_BACKEND: str = "sqlite"  # 'sqlite' or 'supabase'
    SQLITE_PATH: str | None = None  # Defaults to permissions.db next to this file

    # Production keys (used when ENVIRONMENT == 'production')
    PERMISSIONS_PROD_SUPABASE_URL: str | None = None
    PERMISSIONS_PROD_SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Development keys (used when ENVIRONMENT != 'production')
    PERMISSIONS_DEV_SUPABASE_URL: str | None = None
    PERMISSIONS_DEV_SUPABASE_SERVICE_ROLE_KEY: str | None = None

    USER_PERMISSIONS_TABLE: str = "user_permissions"
    TENANT_USERS_TABLE: str = "tenant_users"

    # ==========================================================================
    # PERMISSION BEHAVIOUR
    # ==========================================================================
    ERROR_LOG_MAX_ENTRIES: int = 100
    # Missing record for a role that cannot self-provision:
    # False -> session errors out, True -> session loads with zero permissions
    MISSING_PERMISSIONS_AS_EMPTY: bool = False

    # ==========================================================================
    # CORS CONFIGURATION
    # ==========================================================================
    CORS_ORIGINS: str = ""  # Comma-separated list of allowed origins

    class Config:
        env_file = ".env"
        extra = "ignore"

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT == "production"

    @property
    def is_local(self) -> bool:
        """Check if running in local environment."""
        return self.ENVIRONMENT == "local"

    @property
    def supabase_url(self) -> str | None:
        """Get the appropriate Supabase URL based on environment."""
        if self.is_production:
            return self.PERMISSIONS_PROD_SUPABASE_URL
        return self.PERMISSIONS_DEV_SUPABASE_URL

    @property
    def supabase_key(self) -> str | None:
        """Get the appropriate Supabase service key based on environment."""
        if self.is_production:
            return self.PERMISSIONS_PROD_SUPABASE_SERVICE_ROLE_KEY
        return self.PERMISSIONS_DEV_SUPABASE_SERVICE_ROLE_KEY

    @property
    def allowed_origins(self) -> list[str]:
        """Get allowed CORS origins based on environment."""
        if self.is_local:
            return [
                "http://localhost:3000",
                "http://localhost:5173",
                "http://127.0.0.1:3000",
                "http://127.0.0.1:5173",
            ]

        if not self.CORS_ORIGINS:
            return []

        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    def log_config(self) -> None:
        """Log configuration on startup."""
        logger.info(f"[PERMISSIONS] Environment: {self.ENVIRONMENT} (production: {self.is_production})")
        logger.info(f"[PERMISSIONS] Host: {self.HOST}:{self.PORT}")
        logger.info(f"[PERMISSIONS] Storage backend: {self.DB_BACKEND}")

        if self.DB_BACKEND == "supabase" and (not self.supabase_url or not self.supabase_key):
            logger.warning("[PERMISSIONS] WARNING: Supabase credentials not configured.")

        if not self.INTER_SERVICE_SECRET:
            logger.warning("[PERMISSIONS] WARNING: INTER_SERVICE_SECRET not set.")
            logger.warning("[PERMISSIONS] Inter-service authentication will be disabled.")

        mode = "empty permission set" if self.MISSING_PERMISSIONS_AS_EMPTY else "error"
        logger.info(f"[PERMISSIONS] Missing records for low-privilege roles resolve to: {mode}")

        origins_str = ", ".join(self.allowed_origins) if self.allowed_origins else "(none)"
        logger.info(f"[PERMISSIONS] CORS allowed origins: {origins_str}")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ==========================================================================
# LOGGING HELPERS
# ==========================================================================

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Configure root logger
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=LOG_FORMAT,
)

# Quiet down noisy third-party loggers
for _logger_name in [
    "httpx", "httpcore", "httpcore.http2", "httpcore.connection",
    "hpack", "hpack.hpack", "hpack.table", "postgrest",
]:
    logging.getLogger(_logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a configured logger instance."""
    log = logging.getLogger(name)
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)
        log.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    return log

#!/usr/bin/env python3
"""
Standalone uvicorn runner for permissions-service.

Usage:
    python run_service.py

Environment Variables:
    PORT: Server port (default: 8003)
    ENVIRONMENT: 'development' or 'production' (default: development)
    DB_BACKEND: 'sqlite' or 'supabase' (default: sqlite)

In development mode, auto-reload is enabled.
"""
import sys

import uvicorn

from config import get_logger, settings

logger = get_logger("run_service")


def main():
    """Run the permissions-service FastAPI server."""
    reload = not settings.is_production

    logger.info(f"Starting {settings.SERVICE_NAME} on port {settings.PORT}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database backend: {settings.DB_BACKEND}")
    logger.info(f"Auto-reload: {reload}")

    uvicorn.run(
        "api.server:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=reload,
    )


if __name__ == "__main__":
    sys.exit(main() or 0)

"""
Health check endpoints.
"""

import asyncio
import logging

from fastapi import APIRouter

from config import settings
from db import StoreError, get_database

logger = logging.getLogger("permissions-service")

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns service status and basic info.
    """
    return {
        "status": "healthy",
        "service": settings.SERVICE_NAME,
        "environment": settings.ENVIRONMENT,
        "database": get_database().name,
    }


@router.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": settings.SERVICE_NAME,
        "version": "1.0.0",
        "description": "Tenant-scoped roles and permissions",
        "docs": "/docs",
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check for container orchestration.

    Verifies the permission store answers queries.
    """
    store = get_database()
    try:
        await asyncio.to_thread(store.list_user_permissions, "")
        store_ready = True
    except StoreError as e:
        logger.warning(f"[HEALTH] Store not ready: {e}")
        store_ready = False

    return {
        "ready": store_ready,
        "checks": {"permissions_db": store_ready},
    }

"""
FastAPI Server - Permissions Service Entry Point.

Tenant-scoped roles and permissions. Trusted services forward caller
identity (X-User-Id, X-Tenant-Id) together with the service secret and
call the check endpoints directly.
"""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

import config
from api.routers import (
    catalog_router,
    health_router,
    permissions_router,
    tenant_users_router,
)
from db import get_database

logger = config.get_logger("api.server")

# Headers a browser client may send; identity headers are honoured only with X-Service-Secret
FORWARDED_HEADERS = [
    "Content-Type",
    "X-Service-Secret",
    "X-Service-Name",
    "X-Request-ID",
    "X-User-Id",
    "X-Tenant-Id",
]


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Correlates, times and audits every request.

    Sets X-Request-ID / X-Response-Time and the baseline security headers,
    then logs the call with the forwarding service and the caller identity
    so denied gates can be traced back to a request.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        duration_ms = int((time.perf_counter() - started) * 1000)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if config.settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        caller = request.headers.get("X-User-Id", "-")
        tenant = request.headers.get("X-Tenant-Id", "-")
        logger.info(
            f"[HTTP] {request.method} {request.url.path} -> {response.status_code} ({duration_ms}ms) "
            f"service={request.headers.get('X-Service-Name', '-')} caller={caller}@{tenant} "
            f"request_id={request_id}"
        )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration and open the permission store before serving."""
    settings = config.settings
    logger.info(f"[STARTUP] {settings.SERVICE_NAME} starting (env={settings.ENVIRONMENT})")
    settings.log_config()
    logger.info(f"[STARTUP] Permission store: {get_database().name}")
    yield
    logger.info(f"[SHUTDOWN] {settings.SERVICE_NAME} shutting down")


app = FastAPI(
    title="Permissions Service",
    description="Tenant-scoped role catalog, permission records and access checks",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if config.settings.is_production else "/docs",
    redoc_url=None,
)

app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=FORWARDED_HEADERS,
)
logger.info(f"[CORS] Allowed origins: {config.settings.allowed_origins or '(none)'}")

for router in (health_router, catalog_router, permissions_router, tenant_users_router):
    app.include_router(router)

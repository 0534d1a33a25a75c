"""
FastAPI Dependencies for Permissions Service.

Handles authentication of calling services, caller identity, service
construction, and the permission gates used on tenant routes.
"""

import asyncio
import hmac
import logging
from functools import lru_cache
from typing import Callable

from fastapi import Depends, HTTPException, Request, status

from config import settings
from core import ErrorLogger, PermissionSession, PermissionsService, SessionState, TenantUserService
from db import get_database
from models import AppError, ErrorType, Permission, Role, role_at_least

logger = logging.getLogger("permissions-service")


# =============================================================================
# SERVICE AUTHENTICATION
# =============================================================================

async def verify_service_secret(request: Request) -> str:
    """
    Verify that the request comes from an authorized service.

    Checks X-Service-Secret header against INTER_SERVICE_SECRET.

    Returns:
        Service name from X-Service-Name header

    Raises:
        HTTPException: If secret is missing or invalid
    """
    service_secret = request.headers.get("X-Service-Secret")
    service_name = request.headers.get("X-Service-Name", "unknown")

    if not settings.INTER_SERVICE_SECRET:
        # No secret configured - allow (development mode)
        logger.debug(f"[AUTH] No INTER_SERVICE_SECRET configured, allowing {service_name}")
        return service_name

    if not service_secret:
        logger.warning(f"[AUTH] Missing X-Service-Secret from {service_name}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing service secret",
        )

    # Constant-time comparison
    if not hmac.compare_digest(service_secret, settings.INTER_SERVICE_SECRET):
        logger.warning(f"[AUTH] Invalid service secret from {service_name}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid service secret",
        )

    logger.debug(f"[AUTH] Verified service: {service_name}")
    return service_name


async def require_service_auth(
    service: str = Depends(verify_service_secret),
) -> str:
    """
    Require service authentication.

    Use as dependency on internal endpoints.
    """
    return service


# =============================================================================
# SERVICES
# =============================================================================

@lru_cache
def get_error_logger() -> ErrorLogger:
    """Error history shared by the services of this process."""
    return ErrorLogger(max_errors=settings.ERROR_LOG_MAX_ENTRIES)


def get_permissions_service() -> PermissionsService:
    return PermissionsService(get_database(), get_error_logger())


def get_tenant_user_service() -> TenantUserService:
    return TenantUserService(get_database(), get_error_logger())


def raise_for_error(error: AppError) -> None:
    """Translate a failed ServiceResult into an HTTP error."""
    status_code = {
        ErrorType.NOT_FOUND: status.HTTP_404_NOT_FOUND,
        ErrorType.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorType.DUPLICATE: status.HTTP_409_CONFLICT,
        ErrorType.AUTHENTICATION: status.HTTP_401_UNAUTHORIZED,
        ErrorType.AUTHORIZATION: status.HTTP_403_FORBIDDEN,
    }.get(error.type, status.HTTP_500_INTERNAL_SERVER_ERROR)
    raise HTTPException(status_code=status_code, detail=error.user_message)


# =============================================================================
# CALLER IDENTITY
# =============================================================================

def get_caller_user_id(request: Request) -> str:
    """User id injected by the trusted proxy."""
    user_id = request.headers.get("X-User-Id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
        )
    return user_id


def get_caller_tenant_id(request: Request) -> str | None:
    return request.headers.get("X-Tenant-Id")


async def get_permission_session(
    service: str = Depends(require_service_auth),
    user_id: str = Depends(get_caller_user_id),
    tenant_id: str | None = Depends(get_caller_tenant_id),
    permissions_service: PermissionsService = Depends(get_permissions_service),
    tenant_user_service: TenantUserService = Depends(get_tenant_user_service),
) -> PermissionSession:
    """
    Build and load the caller's session.

    Caller identity headers are only trusted from an authenticated service.
    The membership record is looked up so a missing permission record of an
    owner/admin gets repaired during the load.
    """
    session = PermissionSession(
        permissions_service,
        missing_permissions_as_empty=settings.MISSING_PERMISSIONS_AS_EMPTY,
    )

    tenant_user = None
    if tenant_id:
        membership = await asyncio.to_thread(tenant_user_service.get_tenant_user, user_id, tenant_id)
        if membership.success:
            tenant_user = membership.data

    await session.set_identity(user_id, tenant_id, tenant_user)
    return session


# =============================================================================
# GATES
# =============================================================================

def _label(permission: Permission | str) -> str:
    return getattr(permission, "value", permission)


def _check_tenant(request: Request, session: PermissionSession) -> None:
    """Reject callers acting on a tenant other than their own."""
    path_tenant = request.path_params.get("tenant_id")
    if path_tenant is not None and path_tenant != session.tenant_id:
        logger.warning(
            f"[GATE] Tenant mismatch for {session.user_id}: header={session.tenant_id} path={path_tenant}"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access to this tenant is not allowed",
        )


def _deny(session: PermissionSession, requirement: str) -> HTTPException:
    logger.warning(
        f"[GATE] Denied {session.user_id}@{session.tenant_id} "
        f"(state={session.state.value}) requirement={requirement}"
    )
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You do not have permission to perform this action",
    )


def _gate(check: Callable[[PermissionSession], bool], requirement: str) -> Callable:
    async def _require(
        request: Request,
        session: PermissionSession = Depends(get_permission_session),
    ) -> PermissionSession:
        _check_tenant(request, session)
        # Anything other than a loaded snapshot fails closed
        if session.state != SessionState.LOADED or not check(session):
            raise _deny(session, requirement)
        return session

    return _require


def require_permission(permission: Permission | str) -> Callable:
    """
    Factory for requiring a single permission.

    Usage:
        @router.get("/api/tenants/{tenant_id}/permissions")
        async def list_permissions(
            session: PermissionSession = Depends(require_permission(Permission.USERS_VIEW))
        ):
            ...
    """
    return _gate(lambda session: session.has_permission(permission), _label(permission))


def require_any_permission(permissions: list[Permission | str]) -> Callable:
    """Factory for requiring at least one of several permissions."""
    return _gate(
        lambda session: session.has_any_permission(permissions),
        f"any({', '.join(map(_label, permissions))})",
    )


def require_all_permissions(permissions: list[Permission | str]) -> Callable:
    """Factory for requiring every one of several permissions."""
    return _gate(
        lambda session: session.has_all_permissions(permissions),
        f"all({', '.join(map(_label, permissions))})",
    )


def require_role(minimum: Role) -> Callable:
    """Factory for requiring a role at or above `minimum`."""
    return _gate(
        lambda session: session.user_permissions is not None
        and session.user_permissions.is_active
        and role_at_least(session.role, minimum),
        f"role>={minimum.value}",
    )

"""
Error Models.

Service operations never raise across their boundary; they return a
ServiceResult carrying either data or an AppError.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorType(str, Enum):
    """Error taxonomy."""
    AUTHENTICATION = "AUTHENTICATION"
    AUTHORIZATION = "AUTHORIZATION"
    NETWORK = "NETWORK"
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    DUPLICATE = "DUPLICATE"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


class ErrorSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass
class AppError:
    """
    Structured application error.

    `message` is for logs, `user_message` is safe to show to end users.
    """
    type: ErrorType
    message: str
    user_message: str
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    details: dict[str, Any] | None = None
    context: dict[str, Any] | None = None
    original_error: Any = None
    id: str = field(default_factory=lambda: f"error_{uuid.uuid4().hex[:12]}")
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Serializable form (original_error is never exposed)."""
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ServiceResult(Generic[T]):
    """Tagged success/failure result."""
    success: bool
    data: T | None = None
    error: AppError | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> "ServiceResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: AppError) -> "ServiceResult[T]":
        return cls(success=False, error=error)


# =============================================================================
# ERROR CREATORS
# =============================================================================

def create_not_found_error(resource: str) -> AppError:
    return AppError(
        type=ErrorType.NOT_FOUND,
        message=f"{resource} not found",
        user_message=f"{resource} was not found.",
        severity=ErrorSeverity.MEDIUM,
        details={"resource": resource},
    )


def create_validation_error(message: str, field_name: str | None = None) -> AppError:
    return AppError(
        type=ErrorType.VALIDATION,
        message=message,
        user_message="Invalid data. Check the information provided.",
        severity=ErrorSeverity.LOW,
        details={"field": field_name} if field_name else None,
    )


def create_internal_error(message: str, original_error: Any = None) -> AppError:
    return AppError(
        type=ErrorType.INTERNAL,
        message=message,
        user_message="Internal system error. Try again later.",
        severity=ErrorSeverity.HIGH,
        original_error=original_error,
    )


def create_duplicate_error(resource: str) -> AppError:
    return AppError(
        type=ErrorType.DUPLICATE,
        message=f"{resource} already exists",
        user_message=f"{resource} already exists.",
        severity=ErrorSeverity.LOW,
        details={"resource": resource},
    )

"""
Error Logger.

Keeps a bounded in-memory history of AppErrors and routes each one to the
standard logger at a level matching its severity. Construct one per
service (or per test) and inject it; there is no module-level instance.
"""

import logging
from collections import deque

from models.errors import AppError, ErrorSeverity

_SEVERITY_LEVELS = {
    ErrorSeverity.CRITICAL: logging.CRITICAL,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.LOW: logging.INFO,
}


class ErrorLogger:
    """Bounded error history with severity-based logging."""

    def __init__(self, max_errors: int = 100, logger_name: str = "permissions-service"):
        self._errors: deque[AppError] = deque(maxlen=max_errors)
        self._logger = logging.getLogger(logger_name)

    @property
    def max_errors(self) -> int:
        return self._errors.maxlen or 0

    def log(self, error: AppError) -> None:
        """Record an error and emit it to the logger."""
        self._errors.append(error)

        level = _SEVERITY_LEVELS.get(error.severity, logging.WARNING)
        context = f" context={error.context}" if error.context else ""
        self._logger.log(
            level,
            f"[ERROR] {error.severity.value} {error.type.value} {error.id}: {error.message}{context}",
        )

    def get_errors(self) -> list[AppError]:
        """Oldest first."""
        return list(self._errors)

    def clear_errors(self) -> None:
        self._errors.clear()

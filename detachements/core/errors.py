"""
Service-layer exceptions.

These exceptions are raised by the validator, the lifecycle manager and the
auth dependency, and are turned into JSON responses by the handlers
registered in ``detachements.main``.
"""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base exception for all service-layer errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ServiceError):
    """Raised when a submission or an admin action carries invalid input."""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.field = field


class NotFound(ServiceError):
    """Raised when a requested resource does not exist."""

    status_code = 404

    def __init__(self, resource_type: str, identifier: str) -> None:
        super().__init__(f"{resource_type} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier


class InvalidTransition(ServiceError):
    """Raised when a lifecycle action is not allowed from the current status."""

    status_code = 409

    def __init__(self, request_id: str, status: str, action: str) -> None:
        super().__init__(
            f"Cannot {action} request '{request_id}': status is '{status}'",
            {"status": status, "action": action},
        )
        self.request_id = request_id
        self.status = status
        self.action = action


class Unauthorized(ServiceError):
    """Raised when authentication fails."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class NotificationError(ServiceError):
    """Raised by the mail transport. Logged by the sink, never returned to API callers."""

    status_code = 502

"""
Structured errors for the outbound delivery path.

Each error carries a stable code, an HTTP status and optional details. The
FastAPI exception handler in app.main renders them as
{"success": false, "error": {"code", "message", "details"}, "request_id"}.
"""

from __future__ import annotations

from typing import Any, Optional


class ErrorCode:
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    WORKSPACE_MISMATCH = "WORKSPACE_MISMATCH"
    MISSING_CONNECTION = "MISSING_CONNECTION"
    INSTANCE_NOT_RESOLVED = "INSTANCE_NOT_RESOLVED"
    N8N_ROUTING_ERROR = "N8N_ROUTING_ERROR"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class DeliveryError(Exception):
    """Base error for message delivery. Subclasses fix code and status."""

    code: str = ErrorCode.UNEXPECTED_ERROR
    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(DeliveryError):
    code = ErrorCode.VALIDATION_ERROR
    status_code = 400


class NotFoundError(DeliveryError):
    code = ErrorCode.NOT_FOUND
    status_code = 404


class WorkspaceMismatchError(DeliveryError):
    code = ErrorCode.WORKSPACE_MISMATCH
    status_code = 409


class MissingConnectionError(DeliveryError):
    code = ErrorCode.MISSING_CONNECTION
    status_code = 409


class InstanceNotResolvedError(DeliveryError):
    code = ErrorCode.INSTANCE_NOT_RESOLVED
    status_code = 400


class RoutingError(DeliveryError):
    """Automation engine rejected or could not be reached."""

    code = ErrorCode.N8N_ROUTING_ERROR
    status_code = 502


class ProviderError(DeliveryError):
    """Gateway rejected or could not be reached."""

    code = ErrorCode.PROVIDER_ERROR
    status_code = 502


class DatabaseError(DeliveryError):
    code = ErrorCode.DATABASE_ERROR
    status_code = 500

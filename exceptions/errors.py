"""
Custom exception classes for the application.

Every error raised across a service boundary is an AppError so the API layer
can render it with a stable code.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "FIELD_CREATE_FAILED")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConfigurationError(AppError):
    """Required configuration missing (500)."""

    def __init__(self, setting: str, message: Optional[str] = None):
        super().__init__(
            code="CONFIGURATION_ERROR",
            message=message or f"{setting} is not configured",
            status_code=500,
            details={"setting": setting}
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


# ===================
# IMPORT INPUT ERRORS
# ===================

class NoRecordsError(ValidationError):
    """Nothing importable was supplied."""

    def __init__(self, message: str = "No importable records"):
        super().__init__(
            code="NO_RECORDS",
            message=message
        )


class InvalidBaseUrlError(ValidationError):
    """Lark Base URL could not be parsed."""

    def __init__(self, url: str):
        super().__init__(
            code="INVALID_BASE_URL",
            message="Not a valid Lark Base URL (expected /base/<app_token>?table=<table_id>)",
            details={"url": url}
        )


class MissingTargetError(ValidationError):
    """No app token / table id in request or settings."""

    def __init__(self, missing: str):
        super().__init__(
            code="MISSING_TARGET",
            message=f"{missing} is required",
            details={"missing": missing}
        )


# ===================
# LARK ERRORS
# ===================

class LarkTransportError(ExternalServiceError):
    """Request to Lark never produced a response."""

    def __init__(self, operation: str, message: str):
        super().__init__(
            service="lark",
            code="LARK_TRANSPORT_ERROR",
            message=f"Lark {operation} request failed: {message}",
            details={"operation": operation}
        )


class LarkResponseError(ExternalServiceError):
    """Lark answered with a body we cannot interpret."""

    def __init__(self, operation: str, message: str, details: Optional[dict] = None):
        super().__init__(
            service="lark",
            code="LARK_MALFORMED_RESPONSE",
            message=f"Lark {operation} returned a malformed response: {message}",
            details={"operation": operation, **(details or {})}
        )


class LarkAuthError(ExternalServiceError):
    """Credential exchange rejected."""

    def __init__(self, lark_code: int, message: str):
        super().__init__(
            service="lark",
            code="LARK_AUTH_FAILED",
            message=f"Failed to get token: {message}",
            details={"lark_code": lark_code}
        )


# ===================
# SCHEMA ERRORS
# ===================

class SchemaReadError(ExternalServiceError):
    """Could not read the target table's fields."""

    def __init__(self, table_id: str, lark_code: int, message: str):
        super().__init__(
            service="lark",
            code="SCHEMA_READ_FAILED",
            message=f"Failed to read fields of table {table_id}: {message}",
            details={"table_id": table_id, "lark_code": lark_code}
        )


class FieldCreateError(ExternalServiceError):
    """Creating a missing remote field failed. Fatal to the import run."""

    def __init__(self, field_name: str, message: str, lark_code: Optional[int] = None):
        super().__init__(
            service="lark",
            code="FIELD_CREATE_FAILED",
            message=f"Failed to create field '{field_name}': {message}",
            details={"field_name": field_name, "lark_code": lark_code}
        )


class UnauthorizedError(AppError):
    """Missing or wrong API key (401)."""

    def __init__(self):
        super().__init__(
            code="UNAUTHORIZED",
            message="Unauthorized",
            status_code=401
        )

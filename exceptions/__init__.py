"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    ValidationError,
    ConfigurationError,
    ExternalServiceError,
    UnauthorizedError,

    # Import input
    NoRecordsError,
    InvalidBaseUrlError,
    MissingTargetError,

    # Lark transport
    LarkTransportError,
    LarkResponseError,
    LarkAuthError,

    # Schema
    SchemaReadError,
    FieldCreateError,
)

__all__ = [
    # Base
    "AppError",
    "ValidationError",
    "ConfigurationError",
    "ExternalServiceError",
    "UnauthorizedError",

    # Import input
    "NoRecordsError",
    "InvalidBaseUrlError",
    "MissingTargetError",

    # Lark transport
    "LarkTransportError",
    "LarkResponseError",
    "LarkAuthError",

    # Schema
    "SchemaReadError",
    "FieldCreateError",
]

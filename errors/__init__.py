"""Custom exception hierarchy for the ALS progress service."""

from errors.exceptions import (
    AuthorizationError,
    GatewayError,
    IntegrityViolation,
    NotFoundError,
    ProgressError,
    TransientNetworkError,
    ValidationError,
)

__all__ = [
    "AuthorizationError",
    "GatewayError",
    "IntegrityViolation",
    "NotFoundError",
    "ProgressError",
    "TransientNetworkError",
    "ValidationError",
]

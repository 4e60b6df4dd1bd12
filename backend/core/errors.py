"""Service error hierarchy. Each error carries the HTTP status the API layer maps it to."""

from __future__ import annotations

from typing import Any, Optional


class ServiceError(Exception):
    """Base error raised by services and repositories."""

    code = "SERVICE_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ServiceError):
    code = "VALIDATION_ERROR"
    status_code = 400


class AuthenticationError(ServiceError):
    code = "UNAUTHORIZED"
    status_code = 401


class AuthorizationError(ServiceError):
    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(ServiceError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier: Optional[str] = None) -> None:
        suffix = f" with identifier '{identifier}'" if identifier else ""
        super().__init__(f"{resource}{suffix} not found")


class IngestionError(ServiceError):
    """A snapshot file could not be persisted (e.g. a batch transaction failed)."""

    code = "INGESTION_ERROR"
    status_code = 422


class DatabaseError(ServiceError):
    code = "DATABASE_ERROR"
    status_code = 500


class ConfigurationError(Exception):
    """Invalid or missing configuration. Raised at startup, never handled."""

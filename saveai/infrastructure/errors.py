"""Request-level failures that map onto HTTP status codes in the envelope."""

from __future__ import annotations

from fastapi import status


class ApiError(Exception):
    """Base class for failures whose message is safe to show to the caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class RequestValidationFailed(ApiError):
    """Missing or malformed input."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"


class RecordNotFound(ApiError):
    """Owner-scoped record does not exist for the caller."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"


def missing_field(name: str) -> RequestValidationFailed:
    return RequestValidationFailed(f"Missing required field: {name}")


__all__ = ["ApiError", "RecordNotFound", "RequestValidationFailed", "missing_field"]

from __future__ import annotations

from typing import Any, Optional


class ServiceError(Exception):
    """
    Business-rule failure raised by services.

    Carries the HTTP status the API layer should answer with; the global
    exception handler in src.api.main renders it with the standard error envelope.
    """

    status_code: int = 400
    error_type: str = "bad_request"

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationFailed(ServiceError):
    status_code = 400
    error_type = "validation_error"


class AuthenticationFailed(ServiceError):
    status_code = 401
    error_type = "authentication_error"


class ForbiddenError(ServiceError):
    status_code = 403
    error_type = "forbidden"


class NotFoundError(ServiceError):
    status_code = 404
    error_type = "not_found"


class ConflictError(ServiceError):
    status_code = 409
    error_type = "conflict"


class PayloadTooLarge(ServiceError):
    status_code = 413
    error_type = "payload_too_large"

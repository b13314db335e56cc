# erps/utils/errors.py
"""
Typed lifecycle errors.
Services raise these; erps.main maps them to HTTP responses in one exception handler.
Body shape: {"error": CODE, "message": str, "details": [str]}
"""

from typing import Optional


class LifecycleError(Exception):
    code = "INTERNAL"
    status_code = 500

    def __init__(self, message: str, details: Optional[list[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = list(details or [])

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, "details": self.details}


class ValidationError(LifecycleError):
    code = "VALIDATION_ERROR"
    status_code = 400


class InvalidStateError(LifecycleError):
    code = "INVALID_STATE"
    status_code = 409


class TokenInvalidError(LifecycleError):
    code = "TOKEN_INVALID"
    status_code = 404


class ActivationLinkError(TokenInvalidError):
    """Unknown or used customer activation link. The activation page reports these as 400."""
    status_code = 400


class TokenExpiredError(LifecycleError):
    code = "TOKEN_EXPIRED"
    status_code = 400


class NotFoundError(LifecycleError):
    code = "NOT_FOUND"
    status_code = 404


class ForbiddenError(LifecycleError):
    code = "FORBIDDEN"
    status_code = 403


class ConflictError(LifecycleError):
    code = "CONFLICT"
    status_code = 409


class InternalError(LifecycleError):
    code = "INTERNAL"
    status_code = 500

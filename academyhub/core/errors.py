"""Typed application errors.

Every domain failure is raised as an ``AppError``. Each subclass fixes the
HTTP status and a stable ``error`` identifier so clients can tell, for
example, an expired invitation apart from a stale link after an edit.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Base class for errors rendered as ``ErrorResponse`` payloads."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "internal"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(status_code=self.status_code, detail=self.message)


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "bad_request"
    default_message = "Bad request"


class InvalidTokenError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_token"
    default_message = "Invalid token"


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "unauthorized"
    default_message = "Authentication required"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "forbidden"
    default_message = "You do not have permission to perform this action"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    error = "conflict"
    default_message = "Resource conflict"


class VersionMismatchError(AppError):
    status_code = status.HTTP_409_CONFLICT
    error = "version_mismatch"
    default_message = "This link has been replaced by a newer invitation"


class ExpiredError(AppError):
    status_code = status.HTTP_410_GONE
    error = "expired"
    default_message = "This link has expired"


class InternalError(AppError):
    pass


class MailDeliveryFailedError(InternalError):
    error = "mail_delivery_failed"
    default_message = "Failed to send email"

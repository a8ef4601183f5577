"""Error taxonomy rendered by the exception handlers in :mod:`adonai.main`."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from adonai.models import ErrorCode


class ErrorResponse(BaseModel):
    code: str
    error: str


class AppError(Exception):
    status_code = 500
    code = ErrorCode.INTERNAL_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body = ErrorResponse(code=self.code.value, error=self.message).model_dump()
        body.update(self.extra)
        return body


class ValidationError(AppError):
    status_code = 400
    code = ErrorCode.BAD_REQUEST
    default_message = "Invalid request"


class AuthRequiredError(AppError):
    status_code = 401
    code = ErrorCode.UNAUTHORIZED
    default_message = "Authentication required. Please sign in."


class NotFoundOrForbidden(AppError):
    """Raised both for missing rows and rows owned by someone else."""

    status_code = 404
    code = ErrorCode.NOT_FOUND
    default_message = "Not found"


class QuotaExceededError(AppError):
    status_code = 429
    code = ErrorCode.TOO_MANY_REQUESTS
    default_message = (
        "Daily question limit reached. Sign up for a free account or try again tomorrow."
    )

    def __init__(self, limit: int, used: int, reset_at: str = "midnight UTC") -> None:
        self.limit = limit
        self.used = used
        super().__init__(None, limit=limit, used=used, resetAt=reset_at)


class AuthUnavailableError(AppError):
    status_code = 503
    code = ErrorCode.SERVICE_UNAVAILABLE
    default_message = "Authentication service not configured"


class QuotaUnavailableError(AppError):
    status_code = 503
    code = ErrorCode.SERVICE_UNAVAILABLE
    default_message = "Usage limits are temporarily unavailable"


class StorageUnavailableError(AppError):
    status_code = 503
    code = ErrorCode.SERVICE_UNAVAILABLE
    default_message = "Conversation storage not configured"


class UpstreamError(AppError):
    status_code = 500
    code = ErrorCode.UPSTREAM_ERROR
    default_message = "Failed to generate a response"


class InternalError(AppError):
    pass


__all__ = [
    "ErrorResponse",
    "AppError",
    "ValidationError",
    "AuthRequiredError",
    "NotFoundOrForbidden",
    "QuotaExceededError",
    "AuthUnavailableError",
    "QuotaUnavailableError",
    "StorageUnavailableError",
    "UpstreamError",
    "InternalError",
]

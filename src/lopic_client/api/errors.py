from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    TRANSPORT = "transport"
    AUTHORIZATION = "authorization"
    RENEWAL = "renewal"
    DECODE = "decode"
    UNKNOWN_TAG = "unknown_tag"
    PERMISSION = "permission"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    SERVER = "server"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class ApiError(Exception):
    message: str
    category: ErrorCategory = ErrorCategory.UNKNOWN
    status_code: int | None = None
    code: str | None = None
    inner_error: Exception | None = None
    request_method: str | None = None
    request_url: str | None = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message

    @property
    def recovery_suggestion(self) -> str | None:
        if self.category is ErrorCategory.AUTHORIZATION:
            return "The server rejected the credential. Sign in again."
        if self.category is ErrorCategory.RENEWAL:
            return "The session could not be renewed. Sign in again."
        if self.category is ErrorCategory.PERMISSION:
            return "The signed-in account is not allowed to perform this action."
        if self.category is ErrorCategory.RATE_LIMIT:
            return "The server is throttling requests. Wait a moment and retry."
        if self.category is ErrorCategory.TRANSPORT:
            return "Check that the server is reachable and try again."
        if self.category is ErrorCategory.VALIDATION:
            return "The request was rejected as invalid. Review the input and try again."
        if self.category is ErrorCategory.DECODE:
            return "The server returned a response that could not be understood."
        return None

    @property
    def is_retriable(self) -> bool:
        if self.category in {ErrorCategory.RATE_LIMIT, ErrorCategory.TRANSPORT}:
            return True
        if self.status_code and 500 <= self.status_code <= 599:
            return True
        return False


class TransportError(ApiError):
    """No response reached the client."""

    def __init__(
        self,
        message: str = "No response received from server",
        *,
        inner_error: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.TRANSPORT,
            inner_error=inner_error,
        )


class AuthorizationFailure(ApiError):
    """The server rejected the credential attached to a request."""

    def __init__(
        self, message: str = "Unauthorized", *, code: str | None = None
    ) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.AUTHORIZATION,
            status_code=401,
            code=code,
        )


class RenewalFailure(ApiError):
    """The refresh call failed or returned an incomplete payload."""

    def __init__(
        self,
        message: str = "Token refresh failed",
        *,
        status_code: int | None = None,
        inner_error: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.RENEWAL,
            status_code=status_code,
            inner_error=inner_error,
        )


class NoRefreshCredential(RenewalFailure):
    def __init__(self, message: str = "No refresh token available") -> None:
        super().__init__(message)


class DecodeError(ApiError):
    """A response body or event frame could not be decoded."""

    def __init__(
        self, message: str = "Malformed payload", *, inner_error: Exception | None = None
    ) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.DECODE,
            inner_error=inner_error,
        )


class UnknownMessageTag(ApiError):
    def __init__(self, tag: object) -> None:
        super().__init__(
            message=f"Unknown message type: {tag!r}",
            category=ErrorCategory.UNKNOWN_TAG,
        )
        self.tag = tag


class PermissionDenied(ApiError):
    def __init__(
        self, message: str = "Forbidden", *, code: str | None = None
    ) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.PERMISSION,
            status_code=403,
            code=code,
        )


class RateLimitError(ApiError):
    def __init__(
        self, message: str = "Too many requests", *, code: str | None = None
    ) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.RATE_LIMIT,
            status_code=429,
            code=code,
        )


__all__ = [
    "ApiError",
    "AuthorizationFailure",
    "DecodeError",
    "ErrorCategory",
    "NoRefreshCredential",
    "PermissionDenied",
    "RateLimitError",
    "RenewalFailure",
    "TransportError",
    "UnknownMessageTag",
]

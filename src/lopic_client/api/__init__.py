"""HTTP request pipeline for the Lopic API."""

from .errors import (
    ApiError,
    AuthorizationFailure,
    DecodeError,
    ErrorCategory,
    NoRefreshCredential,
    PermissionDenied,
    RateLimitError,
    RenewalFailure,
    TransportError,
    UnknownMessageTag,
)
from .envelope import normalize_envelope
from .client import ApiClient, ApiClientConfig, AuthenticatedAsyncClient
from .auth import AuthApi, User

__all__ = [
    "ApiClient",
    "ApiClientConfig",
    "ApiError",
    "AuthApi",
    "AuthenticatedAsyncClient",
    "AuthorizationFailure",
    "DecodeError",
    "ErrorCategory",
    "NoRefreshCredential",
    "PermissionDenied",
    "RateLimitError",
    "RenewalFailure",
    "TransportError",
    "UnknownMessageTag",
    "User",
    "normalize_envelope",
]

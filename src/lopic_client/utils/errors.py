from __future__ import annotations

import asyncio
import errno
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

import httpx

from lopic_client.api.errors import ApiError, ErrorCategory


class ErrorSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(slots=True)
class ErrorDescriptor:
    headline: str
    detail: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    transient: bool = False
    suggestion: str | None = None


_HEADLINES: dict[ErrorCategory, str] = {
    ErrorCategory.TRANSPORT: "No response received from the Lopic server.",
    ErrorCategory.AUTHORIZATION: "The server rejected your credentials.",
    ErrorCategory.RENEWAL: "Your session has expired.",
    ErrorCategory.PERMISSION: "You do not have permission to do that.",
    ErrorCategory.RATE_LIMIT: "The server is throttling requests.",
    ErrorCategory.NOT_FOUND: "The requested resource was not found.",
    ErrorCategory.CONFLICT: "The requested change conflicts with existing data.",
    ErrorCategory.VALIDATION: "The server rejected the request.",
    ErrorCategory.DECODE: "The server sent a response that could not be read.",
    ErrorCategory.UNKNOWN_TAG: "The server sent a response that could not be read.",
}

_CONNECTIVITY_ERRNOS = frozenset(
    {
        errno.ECONNREFUSED,
        errno.ECONNRESET,
        errno.EHOSTUNREACH,
        errno.ENETUNREACH,
        errno.ETIMEDOUT,
    }
)


def _chain(error: BaseException) -> Iterator[BaseException]:
    """Yield ``error`` and its causes/contexts, outermost first."""
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _transient(headline: str, detail: str, suggestion: str | None) -> ErrorDescriptor:
    return ErrorDescriptor(
        headline=headline,
        detail=detail,
        severity=ErrorSeverity.WARNING,
        transient=True,
        suggestion=suggestion,
    )


def describe_exception(error: Exception) -> ErrorDescriptor:
    """Turn any failure raised by the client into something a user can read."""
    chain = list(_chain(error))

    api_error = next((item for item in chain if isinstance(item, ApiError)), None)
    if api_error is not None:
        retriable = api_error.is_retriable
        return ErrorDescriptor(
            headline=_HEADLINES.get(api_error.category, "Lopic request failed."),
            detail=f"{api_error.code}: {api_error}" if api_error.code else str(api_error),
            severity=ErrorSeverity.WARNING if retriable else ErrorSeverity.ERROR,
            transient=retriable,
            suggestion=api_error.recovery_suggestion,
        )

    root = chain[-1]
    if isinstance(root, httpx.TimeoutException):
        return _transient(
            "Timed out contacting the Lopic server.",
            f"{type(root).__name__}: {root}",
            "Check your network connection and retry shortly.",
        )
    if isinstance(root, asyncio.TimeoutError):
        return _transient(
            "Operation timed out before the server responded.",
            "asyncio.TimeoutError: Operation timed out",
            None,
        )
    if isinstance(root, OSError) and root.errno in _CONNECTIVITY_ERRNOS:
        return _transient(
            "Network connection issue encountered.",
            f"OSError[{root.errno}]: {root.strerror}",
            "Retry once your connection is stable.",
        )

    return ErrorDescriptor(
        headline="Operation failed.",
        detail=f"{type(error).__name__}: {error}",
    )


__all__ = [
    "ErrorDescriptor",
    "ErrorSeverity",
    "describe_exception",
]

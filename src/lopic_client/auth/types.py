"""Authentication type definitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Self

from pydantic import BaseModel, ConfigDict


Clock = Callable[[], float]
"""Time source returning Unix seconds."""


class TokenResponse(BaseModel):
    """Token payload returned by the login and refresh endpoints."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    access_token: str = ""
    refresh_token: str = ""
    expires_in: int | None = None
    """Access token lifetime in seconds."""
    refresh_expires_in: int | None = None
    """Refresh token lifetime in seconds."""

    @property
    def is_complete(self) -> bool:
        return bool(self.access_token and self.refresh_token)


class Credential(BaseModel):
    """Access/refresh token pair with absolute expiry timestamps (Unix seconds).

    An expiry is ``None`` only when the server did not report a lifetime.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    access_token: str
    refresh_token: str
    access_expires_at: float | None = None
    refresh_expires_at: float | None = None

    @classmethod
    def from_token_response(cls, response: TokenResponse, now: float) -> Self:
        return cls(
            access_token=response.access_token,
            refresh_token=response.refresh_token,
            access_expires_at=(
                now + response.expires_in if response.expires_in else None
            ),
            refresh_expires_at=(
                now + response.refresh_expires_in
                if response.refresh_expires_in
                else None
            ),
        )

    def access_expires_within(self, seconds: float, now: float) -> bool:
        if self.access_expires_at is None:
            return False
        return self.access_expires_at - now < seconds

    def refresh_expired(self, now: float) -> bool:
        if self.refresh_expires_at is None:
            return False
        return self.refresh_expires_at <= now

    def __repr__(self) -> str:
        return (
            f"Credential(access_expires_at={self.access_expires_at!r}, "
            f"refresh_expires_at={self.refresh_expires_at!r})"
        )

    __str__ = __repr__


class RenewalState(StrEnum):
    IDLE = "idle"
    RENEWING = "renewing"


@dataclass(frozen=True, slots=True)
class SessionTerminated:
    """Emitted when the session can no longer be renewed."""

    reason: str
    error: Exception | None = None


__all__ = ["Clock", "Credential", "RenewalState", "SessionTerminated", "TokenResponse"]

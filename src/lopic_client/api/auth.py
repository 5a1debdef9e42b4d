from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from lopic_client.api.client import ApiClient
from lopic_client.api.errors import DecodeError
from lopic_client.auth.credential_store import CredentialStore
from lopic_client.auth.types import Clock, Credential, TokenResponse
from lopic_client.utils.logging import get_logger


logger = get_logger(__name__)

LOGIN_PATH = "/api/auth/login"
LOGOUT_PATH = "/api/auth/logout"
REGISTER_PATH = "/api/auth/register"


class Role(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int | None = None
    name: str = ""
    description: str = ""
    max_file_size_mb: int | None = None


class User(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int
    username: str
    email: str = ""
    role: Role | None = None
    role_id: int | None = None
    active: bool = True
    created_at: str | None = None
    image_count: int = 0
    total_size: int = 0

    @property
    def is_admin(self) -> bool:
        return self.role is not None and self.role.name == "admin"


class LoginResponse(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    token_response: TokenResponse
    user: User


class AuthApi:
    """Login/logout endpoints; the only places a credential is created or dropped
    outside of renewal."""

    def __init__(
        self,
        client: ApiClient,
        store: CredentialStore,
        *,
        clock: Clock = time.time,
    ) -> None:
        self._client = client
        self._store = store
        self._clock = clock

    async def login(self, username: str, password: str) -> User:
        envelope = await self._client.post(
            LOGIN_PATH, {"username": username, "password": password}
        )
        try:
            payload = LoginResponse.model_validate(envelope["data"])
        except ValidationError as exc:
            raise DecodeError("Login response is missing tokens or user", inner_error=exc) from exc
        if not payload.token_response.is_complete:
            raise DecodeError("Login response is missing tokens")

        self._store.write(
            Credential.from_token_response(payload.token_response, self._clock())
        )
        logger.info("Signed in", user_id=payload.user.id)
        return payload.user

    async def logout(self) -> None:
        credential = self._store.read()
        try:
            if credential is not None:
                await self._client.post(
                    LOGOUT_PATH, {"refresh_token": credential.refresh_token}
                )
        finally:
            self._store.clear()
            logger.info("Signed out")

    async def register(
        self, username: str, email: str, password: str, locale: str = "en"
    ) -> dict[str, Any]:
        return await self._client.post(
            REGISTER_PATH,
            {
                "username": username,
                "email": email,
                "password": password,
                "locale": locale,
            },
        )


__all__ = ["AuthApi", "LoginResponse", "Role", "User"]

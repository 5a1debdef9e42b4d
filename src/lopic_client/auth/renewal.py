from __future__ import annotations

from typing import Protocol

import httpx
from pydantic import ValidationError

from lopic_client.api.envelope import normalize_envelope
from lopic_client.api.errors import RenewalFailure
from lopic_client.auth.types import TokenResponse
from lopic_client.config.settings import Settings
from lopic_client.utils.logging import get_logger


logger = get_logger(__name__)


class Renewer(Protocol):
    async def renew(self, refresh_token: str) -> TokenResponse: ...


class TokenRenewer:
    """Exchanges a refresh token at the remote refresh endpoint.

    Uses its own plain ``httpx.AsyncClient`` so the call never passes through
    the authenticated request pipeline.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = settings.refresh_url
        self._user_agent = settings.user_agent
        self._http_client = http_client
        self._owns_client = http_client is None

    async def renew(self, refresh_token: str) -> TokenResponse:
        client = self._get_http_client()
        try:
            response = await client.post(
                self._url, json={"refresh_token": refresh_token}
            )
        except httpx.RequestError as exc:
            raise RenewalFailure(
                f"Refresh request failed: {exc}", inner_error=exc
            ) from exc

        if response.status_code >= 400:
            raise RenewalFailure(
                f"Refresh endpoint returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise RenewalFailure(
                "Invalid refresh token response", inner_error=exc
            ) from exc

        data = normalize_envelope(body)["data"]
        if not isinstance(data, dict):
            raise RenewalFailure("Invalid refresh token response")
        try:
            tokens = TokenResponse.model_validate(data)
        except ValidationError as exc:
            raise RenewalFailure(
                "Invalid refresh token response", inner_error=exc
            ) from exc
        if not tokens.is_complete:
            raise RenewalFailure("Missing token in response")
        logger.debug(
            "Refresh endpoint issued new tokens",
            expires_in=tokens.expires_in,
            refresh_expires_in=tokens.refresh_expires_in,
        )
        return tokens

    async def close(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                headers={"User-Agent": self._user_agent},
                timeout=httpx.Timeout(connect=10.0, read=60.0, write=30.0, pool=5.0),
            )
        return self._http_client


__all__ = ["Renewer", "TokenRenewer"]

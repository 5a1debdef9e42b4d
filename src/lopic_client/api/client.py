from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Tuple

import httpx
from httpx import Auth
from httpx._client import USE_CLIENT_DEFAULT, UseClientDefault

from lopic_client.api.envelope import normalize_envelope
from lopic_client.api.errors import (
    ApiError,
    AuthorizationFailure,
    DecodeError,
    ErrorCategory,
    PermissionDenied,
    RateLimitError,
    TransportError,
)
from lopic_client.utils.logging import get_logger

if TYPE_CHECKING:
    from lopic_client.auth.coordinator import TokenRefreshCoordinator
    from lopic_client.auth.credential_store import CredentialStore
    from lopic_client.auth.proactive import ProactiveRenewalTrigger


logger = get_logger(__name__)

RETRIED_EXTENSION = "lopic_retried"
AUTHENTICATED_EXTENSION = "lopic_authenticated"

AuthOption = (
    Tuple[str | bytes, str | bytes]
    | Auth
    | UseClientDefault
    | None
)


def bearer(token: str) -> str:
    return f"Bearer {token}"


class AuthenticatedAsyncClient(httpx.AsyncClient):
    """``httpx.AsyncClient`` that attaches the stored credential and recovers
    from a single 401 by renewing through the shared coordinator.

    A request is replayed at most once: the replay is marked in
    ``request.extensions`` and a second 401 is handed back untouched.
    """

    def __init__(
        self,
        *args: Any,
        store: CredentialStore,
        coordinator: TokenRefreshCoordinator,
        trigger: ProactiveRenewalTrigger | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._store = store
        self._coordinator = coordinator
        self._trigger = trigger

    async def send(
        self,
        request: httpx.Request,
        *,
        stream: bool = False,
        auth: AuthOption = USE_CLIENT_DEFAULT,
        follow_redirects: bool | UseClientDefault = USE_CLIENT_DEFAULT,
        **kwargs: object,
    ) -> httpx.Response:
        credential = self._store.read()
        if credential is not None and not request.extensions.get(RETRIED_EXTENSION):
            request.headers["Authorization"] = bearer(credential.access_token)
            request.extensions[AUTHENTICATED_EXTENSION] = True
            if self._trigger is not None:
                self._trigger.check(credential)

        response = await super().send(
            request,
            stream=stream,
            auth=auth,
            follow_redirects=follow_redirects,
            **kwargs,
        )
        if response.status_code != 401:
            return response
        if not request.extensions.get(AUTHENTICATED_EXTENSION):
            return response
        if request.extensions.get(RETRIED_EXTENSION):
            logger.warning(
                "Request rejected again after token renewal",
                method=request.method,
                url=str(request.url),
            )
            return response

        request.extensions[RETRIED_EXTENSION] = True
        await response.aclose()
        logger.debug(
            "Authorization failed; waiting for token renewal",
            method=request.method,
            url=str(request.url),
        )
        token = await self._coordinator.request_renewal()
        request.headers["Authorization"] = bearer(token)
        return await super().send(
            request,
            stream=stream,
            auth=auth,
            follow_redirects=follow_redirects,
            **kwargs,
        )


def _map_response_to_error(response: httpx.Response) -> ApiError:
    status = response.status_code
    code: str | None = None
    message: str | None = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        raw_code = body.get("code")
        raw_message = body.get("message") or body.get("error")
        code = raw_code if isinstance(raw_code, str) else None
        message = raw_message if isinstance(raw_message, str) else None

    message = message or response.text or f"Request failed with status {status}"

    if status == 401:
        return AuthorizationFailure(message=message, code=code)
    if status == 403:
        return PermissionDenied(message=message, code=code)
    if status == 429:
        return RateLimitError(message=message, code=code)

    category = ErrorCategory.UNKNOWN
    if 500 <= status <= 599:
        category = ErrorCategory.SERVER
    elif status == 404:
        category = ErrorCategory.NOT_FOUND
    elif status == 409:
        category = ErrorCategory.CONFLICT
    elif status in {400, 413, 415, 422}:
        category = ErrorCategory.VALIDATION

    return ApiError(
        message=message,
        category=category,
        status_code=status,
        code=code,
    )


@dataclass(slots=True)
class ApiClientConfig:
    base_url: str
    user_agent: str = "LopicClient-Python"
    timeout: httpx.Timeout = field(
        default_factory=lambda: httpx.Timeout(connect=10.0, read=60.0, write=30.0, pool=5.0)
    )


class ApiClient:
    """Facade over the authenticated pipeline returning normalised envelopes."""

    def __init__(
        self,
        config: ApiClientConfig,
        *,
        store: CredentialStore,
        coordinator: TokenRefreshCoordinator,
        trigger: ProactiveRenewalTrigger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._coordinator = coordinator
        self._trigger = trigger
        self._transport = transport
        self._http_client: AuthenticatedAsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._config.base_url

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
        data: Any | None = None,
        files: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        client = self._get_http_client()
        method_upper = method.upper()
        start = time.perf_counter()
        try:
            response = await client.request(
                method_upper,
                path,
                params=params,
                json=json_body,
                data=data,
                files=files,
                headers=headers,
            )
        except httpx.RequestError as exc:
            logger.error(
                "Network error: no response received from server",
                method=method_upper,
                path=path,
                error=str(exc),
            )
            error = TransportError(
                f"No response received from server: {exc}", inner_error=exc
            )
            error.request_method = method_upper
            error.request_url = str(exc.request.url) if _has_request(exc) else path
            raise error from exc

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.debug(
            "API request",
            method=method_upper,
            url=str(response.request.url),
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        if response.status_code >= 400:
            error = _map_response_to_error(response)
            error.request_method = method_upper
            error.request_url = str(response.request.url)
            logger.warning(
                "API error",
                method=method_upper,
                url=error.request_url,
                status_code=response.status_code,
                code=error.code,
                message=error.message,
            )
            raise error
        return response

    async def request_json(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> Any:
        response = await self.request(method, path, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError(
                f"Response from {path} is not valid JSON", inner_error=exc
            ) from exc

    async def get(
        self, path: str, *, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        return normalize_envelope(await self.request_json("GET", path, params=params))

    async def post(
        self,
        path: str,
        json_body: Any | None = None,
        *,
        params: dict[str, Any] | None = None,
        files: Any | None = None,
        data: Any | None = None,
    ) -> dict[str, Any]:
        return normalize_envelope(
            await self.request_json(
                "POST",
                path,
                json_body=json_body,
                params=params,
                files=files,
                data=data,
            )
        )

    async def put(
        self,
        path: str,
        json_body: Any | None = None,
        *,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return normalize_envelope(
            await self.request_json("PUT", path, json_body=json_body, params=params)
        )

    async def delete(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> dict[str, Any]:
        return normalize_envelope(
            await self.request_json(
                "DELETE", path, params=params, json_body=json_body
            )
        )

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _get_http_client(self) -> AuthenticatedAsyncClient:
        if self._http_client is None:
            self._http_client = AuthenticatedAsyncClient(
                base_url=self._config.base_url,
                headers={"User-Agent": self._config.user_agent},
                timeout=self._config.timeout,
                transport=self._transport,
                store=self._store,
                coordinator=self._coordinator,
                trigger=self._trigger,
            )
        return self._http_client


def _has_request(exc: httpx.RequestError) -> bool:
    try:
        exc.request
    except RuntimeError:
        return False
    return True


__all__ = [
    "ApiClient",
    "ApiClientConfig",
    "AuthenticatedAsyncClient",
    "RETRIED_EXTENSION",
    "bearer",
]

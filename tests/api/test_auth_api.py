from __future__ import annotations

import json

import httpx
import pytest
import respx

from lopic_client.api.auth import AuthApi
from lopic_client.api.client import ApiClient, ApiClientConfig
from lopic_client.api.errors import ApiError, DecodeError
from lopic_client.auth.coordinator import TokenRefreshCoordinator
from lopic_client.auth.credential_store import CredentialStore

from tests.factories import FakeClock, StubRenewer, make_credential, make_store, token_payload


BASE_URL = "http://lopic.test/"


def _auth_api(
    store: CredentialStore, clock: FakeClock
) -> tuple[AuthApi, ApiClient]:
    coordinator = TokenRefreshCoordinator(store, StubRenewer(), clock=clock)
    client = ApiClient(
        ApiClientConfig(base_url=BASE_URL), store=store, coordinator=coordinator
    )
    return AuthApi(client, store, clock=clock), client


@pytest.mark.asyncio
async def test_login_stores_credential_and_returns_user(
    respx_mock: respx.Router, clock: FakeClock
) -> None:
    route = respx_mock.post(f"{BASE_URL}api/auth/login").mock(
        return_value=httpx.Response(
            200,
            json={
                "message": "Login success",
                "data": {
                    "token_response": token_payload("access-1", "refresh-1"),
                    "user": {
                        "id": 4,
                        "username": "alice",
                        "email": "alice@example.com",
                        "role": {"id": 1, "name": "admin"},
                        "total_size": 2048,
                    },
                },
            },
        )
    )
    store = make_store()
    auth, client = _auth_api(store, clock)
    try:
        user = await auth.login("alice", "s3cret")
    finally:
        await client.close()

    assert user.username == "alice"
    assert user.is_admin
    assert user.total_size == 2048
    credential = store.read()
    assert credential.access_token == "access-1"
    assert credential.access_expires_at == clock.now + 3600
    assert json.loads(route.calls.last.request.content) == {
        "username": "alice",
        "password": "s3cret",
    }


@pytest.mark.asyncio
async def test_login_without_tokens_stores_nothing(
    respx_mock: respx.Router, clock: FakeClock
) -> None:
    respx_mock.post(f"{BASE_URL}api/auth/login").mock(
        return_value=httpx.Response(200, json={"data": {"user": {"id": 1}}})
    )
    store = make_store()
    auth, client = _auth_api(store, clock)
    try:
        with pytest.raises(DecodeError):
            await auth.login("alice", "s3cret")
    finally:
        await client.close()

    assert store.read() is None


@pytest.mark.asyncio
async def test_logout_sends_refresh_token_and_clears_store(
    respx_mock: respx.Router, clock: FakeClock
) -> None:
    route = respx_mock.post(f"{BASE_URL}api/auth/logout").mock(
        return_value=httpx.Response(200, json={"message": "Logged out"})
    )
    store = make_store(make_credential())
    auth, client = _auth_api(store, clock)
    try:
        await auth.logout()
    finally:
        await client.close()

    sent = route.calls.last.request
    assert json.loads(sent.content) == {"refresh_token": "refresh-1"}
    assert sent.headers["Authorization"] == "Bearer access-1"
    assert store.read() is None


@pytest.mark.asyncio
async def test_logout_clears_store_even_when_server_fails(
    respx_mock: respx.Router, clock: FakeClock
) -> None:
    respx_mock.post(f"{BASE_URL}api/auth/logout").mock(
        return_value=httpx.Response(500, json={"message": "database down"})
    )
    store = make_store(make_credential())
    auth, client = _auth_api(store, clock)
    try:
        with pytest.raises(ApiError):
            await auth.logout()
    finally:
        await client.close()

    assert store.read() is None


@pytest.mark.asyncio
async def test_register_posts_account_details(
    respx_mock: respx.Router, clock: FakeClock
) -> None:
    route = respx_mock.post(f"{BASE_URL}api/auth/register").mock(
        return_value=httpx.Response(200, json={"message": "Registered"})
    )
    auth, client = _auth_api(make_store(), clock)
    try:
        envelope = await auth.register("bob", "bob@example.com", "pw", "zh")
    finally:
        await client.close()

    assert envelope == {"message": "Success", "data": {"message": "Registered"}}
    assert json.loads(route.calls.last.request.content)["locale"] == "zh"

from __future__ import annotations

import time
from types import TracebackType
from typing import Callable

import httpx

from lopic_client.api.auth import AuthApi
from lopic_client.api.client import ApiClient, ApiClientConfig
from lopic_client.auth.coordinator import TokenRefreshCoordinator
from lopic_client.auth.credential_store import CredentialStore
from lopic_client.auth.proactive import ProactiveRenewalTrigger
from lopic_client.auth.renewal import Renewer, TokenRenewer
from lopic_client.auth.secret_store import SecretStore
from lopic_client.auth.types import Clock, SessionTerminated
from lopic_client.config.settings import Settings
from lopic_client.events.channel import Connector, EventChannel
from lopic_client.utils.logging import get_logger


logger = get_logger(__name__)


class ClientSession:
    """Wires the credential store, renewal, HTTP pipeline and event channel.

    Every component shares one :class:`CredentialStore` and one
    :class:`TokenRefreshCoordinator`, so reactive and proactive renewals
    collapse into a single episode. Use as an async context manager or call
    :meth:`aclose` when done.

    Args:
        settings: Server location and renewal tuning.
        secrets: Keyring wrapper for persisting the credential. Built from
            ``settings.keyring_service`` when omitted and persistence is on.
        renewer: Override for the remote refresh call.
        transport: httpx transport for the API client (tests use
            ``httpx.MockTransport``).
        connector: Async factory for the event channel transport.
        clock: Time source in Unix seconds.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        secrets: SecretStore | None = None,
        renewer: Renewer | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        connector: Connector | None = None,
        clock: Clock = time.time,
    ) -> None:
        self.settings = settings or Settings()
        if secrets is None and self.settings.persist_credentials:
            secrets = SecretStore(self.settings.keyring_service)
        self.store = CredentialStore(secrets)

        self._owned_renewer: TokenRenewer | None = None
        if renewer is None:
            renewer = self._owned_renewer = TokenRenewer(self.settings)
        self.coordinator = TokenRefreshCoordinator(self.store, renewer, clock=clock)
        self.trigger = ProactiveRenewalTrigger(
            self.coordinator,
            buffer_seconds=self.settings.refresh_buffer_seconds,
            clock=clock,
        )
        self.api = ApiClient(
            ApiClientConfig(
                base_url=self.settings.server_url,
                user_agent=self.settings.user_agent,
            ),
            store=self.store,
            coordinator=self.coordinator,
            trigger=self.trigger,
            transport=transport,
        )
        self.auth = AuthApi(self.api, self.store, clock=clock)
        self.events = EventChannel(self.settings, self.store, connector=connector)
        self._closed = False

    @property
    def is_authenticated(self) -> bool:
        return self.store.read() is not None

    def on_session_terminated(
        self, callback: Callable[[SessionTerminated], None]
    ) -> Callable[[], None]:
        """Register for forced sign-outs; returns an unsubscribe callable."""
        return self.coordinator.session_terminated.subscribe(callback)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.events.disconnect()
        await self.coordinator.wait_idle()
        await self.api.close()
        if self._owned_renewer is not None:
            await self._owned_renewer.close()
        logger.debug("Client session closed")

    async def __aenter__(self) -> ClientSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


__all__ = ["ClientSession"]

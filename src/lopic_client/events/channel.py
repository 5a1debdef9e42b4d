"""Persistent WebSocket channel carrying upload and deletion events."""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import AsyncIterator, Awaitable, Callable, Protocol
from urllib.parse import quote, urlencode, urlsplit, urlunsplit

from websockets.asyncio.client import connect as websockets_connect

from lopic_client.api.client import bearer
from lopic_client.api.errors import DecodeError, UnknownMessageTag
from lopic_client.auth.credential_store import CredentialStore
from lopic_client.config.settings import Settings
from lopic_client.events.messages import ChannelEvent, decode_frame, resolve_listener_key
from lopic_client.events.registry import Listener, ListenerRegistry
from lopic_client.utils.logging import get_logger


logger = get_logger(__name__)


class ConnectionState(StrEnum):
    CLOSED = "closed"
    OPEN = "open"


class EventTransport(Protocol):
    def __aiter__(self) -> AsyncIterator[str | bytes]: ...

    async def close(self) -> None: ...


Connector = Callable[[str], Awaitable[EventTransport]]


async def websocket_connector(
    url: str,
    *,
    user_agent: str | None = None,
    open_timeout: float = 10.0,
) -> EventTransport:
    return await websockets_connect(
        url,
        user_agent_header=user_agent,
        open_timeout=open_timeout,
    )


def build_channel_url(settings: Settings, access_token: str) -> str:
    parts = urlsplit(settings.server_url)
    scheme = "wss" if parts.scheme == "https" else "ws"
    query = urlencode({"token": bearer(access_token)}, quote_via=quote)
    path = "/" + settings.events_path.lstrip("/")
    return urlunsplit((scheme, parts.netloc, path, query, ""))


class EventChannel:
    """Single WebSocket connection fanning tagged frames out to listeners.

    The access token is read when :meth:`connect` runs; a token renewed later
    is only picked up by disconnecting and connecting again. Transport
    failures are reported to ``error`` and ``close`` listeners and never
    raised to the caller.
    """

    def __init__(
        self,
        settings: Settings,
        store: CredentialStore,
        *,
        connector: Connector | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._connector = connector or self._default_connector
        self._registry = ListenerRegistry()
        self._state = ConnectionState.CLOSED
        self._transport: EventTransport | None = None
        self._reader: asyncio.Task[None] | None = None
        self._connecting = False
        # Bumped by disconnect() so a connect() still in flight knows to back out.
        self._generation = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.OPEN

    @property
    def registry(self) -> ListenerRegistry:
        return self._registry

    def url(self) -> str:
        credential = self._store.read()
        token = credential.access_token if credential is not None else ""
        return build_channel_url(self._settings, token)

    def add_listener(self, tag: str, callback: Listener) -> None:
        self._registry.add(resolve_listener_key(tag), callback)

    def remove_listener(self, tag: str, callback: Listener) -> bool:
        return self._registry.remove(resolve_listener_key(tag), callback)

    async def connect(self) -> None:
        if self._state is ConnectionState.OPEN or self._connecting:
            logger.debug("Event channel already open")
            return
        if self._store.read() is None:
            logger.warning("Connecting event channel without a credential")

        self._connecting = True
        generation = self._generation
        try:
            transport = await self._connector(self.url())
        except Exception as exc:  # noqa: BLE001 - reported to listeners
            logger.warning("Event channel connection failed", error=str(exc))
            self._registry.dispatch(ChannelEvent.ERROR, exc)
            self._registry.dispatch(ChannelEvent.CLOSE)
            return
        finally:
            self._connecting = False

        if generation != self._generation:
            logger.info("Event channel disconnected while connecting")
            await self._discard(transport)
            return

        self._transport = transport
        self._state = ConnectionState.OPEN
        self._reader = asyncio.get_running_loop().create_task(
            self._read_loop(transport), name="event-channel-reader"
        )
        logger.info("Event channel connected")
        self._registry.dispatch(ChannelEvent.OPEN)

    async def disconnect(self) -> None:
        self._generation += 1
        transport = self._transport
        if transport is None:
            return
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            await asyncio.wait({reader})
        await self._close(transport)

    def handle_frame(self, raw: str | bytes) -> None:
        try:
            message = decode_frame(raw)
        except UnknownMessageTag as exc:
            logger.warning("Dropping event with unknown type", tag=str(exc.tag))
            return
        except DecodeError as exc:
            logger.warning("Dropping malformed event frame", error=exc.message)
            return
        delivered = self._registry.dispatch(message.tag, message.payload)
        logger.debug("Event dispatched", tag=message.wire_tag, listeners=delivered)

    async def _read_loop(self, transport: EventTransport) -> None:
        try:
            async for frame in transport:
                self.handle_frame(frame)
        except Exception as exc:  # noqa: BLE001 - reported to listeners
            logger.warning("Event channel transport failed", error=str(exc))
            self._registry.dispatch(ChannelEvent.ERROR, exc)

        if self._transport is transport:
            logger.info("Event channel closed by server")
            self._reader = None
            await self._close(transport)

    async def _close(self, transport: EventTransport) -> None:
        if self._transport is not transport:
            return
        self._transport = None
        self._state = ConnectionState.CLOSED
        await self._discard(transport)
        logger.info("Event channel disconnected")
        self._registry.dispatch(ChannelEvent.CLOSE)

    async def _discard(self, transport: EventTransport) -> None:
        try:
            await transport.close()
        except Exception as exc:  # noqa: BLE001 - the channel is closed regardless
            logger.warning("Error closing event channel transport", error=str(exc))

    async def _default_connector(self, url: str) -> EventTransport:
        return await websocket_connector(url, user_agent=self._settings.user_agent)


__all__ = [
    "ConnectionState",
    "Connector",
    "EventChannel",
    "EventTransport",
    "build_channel_url",
    "websocket_connector",
]

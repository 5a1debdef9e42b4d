from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from lopic_client.events.channel import ConnectionState, EventChannel, build_channel_url
from lopic_client.events.messages import ChannelEvent, EventTag, UploadComplete, UploadStart

from tests.factories import (
    FakeConnector,
    make_credential,
    make_settings,
    make_store,
    wait_for,
)


def _start_frame(upload_id: str = "u1") -> str:
    return json.dumps(
        {
            "type": "upload_start",
            "payload": {"upload_id": upload_id, "file_name": "cat.png", "file_size": 10},
        }
    )


def _channel(connector: FakeConnector, **settings: Any) -> EventChannel:
    return EventChannel(
        make_settings(**settings),
        make_store(make_credential("abc")),
        connector=connector,
    )


def test_url_matches_server_scheme_and_carries_token() -> None:
    secure = make_settings()
    secure.server_url = "https://img.example.com/"

    assert build_channel_url(secure, "abc") == (
        "wss://img.example.com/ws/upload?token=Bearer%20abc"
    )
    assert build_channel_url(make_settings(), "abc").startswith(
        "ws://lopic.test/ws/upload?"
    )


@pytest.mark.asyncio
async def test_frames_reach_listeners_in_registration_order() -> None:
    connector = FakeConnector()
    channel = _channel(connector)
    seen: list[tuple[str, str]] = []
    channel.add_listener(EventTag.UPLOAD_START, lambda p: seen.append(("a", p.upload_id)))
    channel.add_listener("upload_start", lambda p: seen.append(("b", p.upload_id)))

    await channel.connect()
    transport = connector.transports[0]
    transport.push(_start_frame("u1"))
    transport.push(_start_frame("u2"))
    await wait_for(lambda: len(seen) == 4)
    await channel.disconnect()

    assert seen == [("a", "u1"), ("b", "u1"), ("a", "u2"), ("b", "u2")]
    assert connector.urls == ["ws://lopic.test/ws/upload?token=Bearer%20abc"]


@pytest.mark.asyncio
async def test_bad_frames_are_dropped_and_channel_stays_open() -> None:
    connector = FakeConnector()
    channel = _channel(connector)
    payloads: list[UploadStart] = []
    channel.add_listener(EventTag.UPLOAD_START, payloads.append)

    await channel.connect()
    transport = connector.transports[0]
    transport.push("{broken")
    transport.push(json.dumps({"type": "album_shared", "payload": {}}))
    transport.push(json.dumps({"type": "upload_start", "payload": {"upload_id": 1}}))
    transport.push(_start_frame())
    await wait_for(lambda: len(payloads) == 1)

    assert channel.is_connected
    assert isinstance(payloads[0], UploadStart)
    await channel.disconnect()


def test_failing_listener_does_not_block_others() -> None:
    channel = _channel(FakeConnector())
    seen: list[str] = []

    def broken(_: UploadStart) -> None:
        raise RuntimeError("listener bug")

    channel.add_listener(EventTag.UPLOAD_START, broken)
    channel.add_listener(EventTag.UPLOAD_START, lambda p: seen.append(p.file_name))

    channel.handle_frame(_start_frame())

    assert seen == ["cat.png"]


def test_listener_removed_during_dispatch_still_sees_current_frame() -> None:
    channel = _channel(FakeConnector())
    seen: list[str] = []

    def late(_: UploadStart) -> None:
        seen.append("late")

    def remover(_: UploadStart) -> None:
        seen.append("remover")
        channel.remove_listener(EventTag.UPLOAD_START, late)

    channel.add_listener(EventTag.UPLOAD_START, remover)
    channel.add_listener(EventTag.UPLOAD_START, late)

    channel.handle_frame(_start_frame())
    channel.handle_frame(_start_frame())

    assert seen == ["remover", "late", "remover"]


def test_unknown_listener_tag_is_rejected() -> None:
    channel = _channel(FakeConnector())

    with pytest.raises(ValueError):
        channel.add_listener("wsError", lambda _: None)


@pytest.mark.asyncio
async def test_connect_when_open_is_a_no_op() -> None:
    connector = FakeConnector()
    channel = _channel(connector)
    opened: list[bool] = []
    channel.add_listener(ChannelEvent.OPEN, lambda: opened.append(True))

    await channel.connect()
    await channel.connect()

    assert channel.state is ConnectionState.OPEN
    assert len(connector.urls) == 1
    assert opened == [True]
    await channel.disconnect()


@pytest.mark.asyncio
async def test_disconnect_is_idempotent_and_closes_once() -> None:
    connector = FakeConnector()
    channel = _channel(connector)
    closed: list[bool] = []
    channel.add_listener(ChannelEvent.CLOSE, lambda: closed.append(True))

    await channel.connect()
    await channel.disconnect()
    await channel.disconnect()

    assert closed == [True]
    assert connector.transports[0].close_calls == 1
    assert channel.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_server_close_reports_close() -> None:
    connector = FakeConnector()
    channel = _channel(connector)
    closed = asyncio.Event()
    channel.add_listener(ChannelEvent.CLOSE, closed.set)

    await channel.connect()
    connector.transports[0].end()
    await asyncio.wait_for(closed.wait(), timeout=1)

    assert not channel.is_connected
    await channel.disconnect()
    assert connector.transports[0].close_calls == 1


@pytest.mark.asyncio
async def test_transport_failure_reports_error_then_close() -> None:
    connector = FakeConnector()
    channel = _channel(connector)
    events: list[object] = []
    channel.add_listener(ChannelEvent.ERROR, events.append)
    channel.add_listener(ChannelEvent.CLOSE, lambda: events.append("close"))

    await channel.connect()
    failure = ConnectionResetError("reset by peer")
    connector.transports[0].push(failure)
    await wait_for(lambda: "close" in events)

    assert events == [failure, "close"]
    assert channel.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_failed_connect_is_reported_not_raised() -> None:
    failure = OSError("connection refused")
    channel = _channel(FakeConnector(error=failure))
    events: list[object] = []
    channel.add_listener(ChannelEvent.ERROR, events.append)
    channel.add_listener(ChannelEvent.CLOSE, lambda: events.append("close"))

    await channel.connect()

    assert events == [failure, "close"]
    assert channel.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_reconnect_picks_up_renewed_token() -> None:
    connector = FakeConnector()
    store = make_store(make_credential("first"))
    channel = EventChannel(make_settings(), store, connector=connector)

    await channel.connect()
    store.write(make_credential("second"))
    await channel.disconnect()
    await channel.connect()
    await channel.disconnect()

    assert [url.rsplit("%20", 1)[1] for url in connector.urls] == ["first", "second"]


@pytest.mark.asyncio
async def test_listener_only_sees_its_own_tag() -> None:
    connector = FakeConnector()
    channel = _channel(connector)
    completed: list[UploadComplete] = []
    channel.add_listener(EventTag.UPLOAD_COMPLETE, completed.append)

    await channel.connect()
    transport = connector.transports[0]
    transport.push(
        json.dumps(
            {
                "type": "upload_progress",
                "payload": {
                    "upload_id": "u1",
                    "file_name": "cat.png",
                    "progress": 50.0,
                    "read": 5,
                    "total": 10,
                },
            }
        )
    )
    transport.push(
        json.dumps(
            {
                "type": "upload_complete",
                "payload": {
                    "upload_id": "u1",
                    "file_name": "cat.png",
                    "file_url": "/i/cat.png",
                    "image_id": 7,
                },
            }
        )
    )
    await wait_for(lambda: len(completed) == 1)
    await channel.disconnect()

    assert len(completed) == 1
    assert isinstance(completed[0], UploadComplete)
    assert completed[0].image_id == 7


@pytest.mark.asyncio
async def test_disconnect_while_connecting_keeps_channel_closed() -> None:
    connector = FakeConnector(hold=True)
    channel = _channel(connector)
    events: list[str] = []
    channel.add_listener(ChannelEvent.OPEN, lambda: events.append("open"))
    channel.add_listener(ChannelEvent.CLOSE, lambda: events.append("close"))

    pending = asyncio.create_task(channel.connect())
    await wait_for(lambda: len(connector.transports) == 1)
    await channel.disconnect()
    connector.release.set()
    await pending

    assert channel.state is ConnectionState.CLOSED
    assert events == []
    assert connector.transports[0].close_calls == 1

    connector.hold = False
    await channel.connect()
    assert channel.is_connected
    await channel.disconnect()
    assert events == ["open", "close"]


@pytest.mark.parametrize(
    ("wire_tag", "message"),
    [
        ("delete_success", "Images deleted successfully"),
        ("delete_user_success", "User deleted successfully"),
    ],
)
def test_server_delete_notices_reach_listeners(wire_tag: str, message: str) -> None:
    channel = _channel(FakeConnector())
    seen: list[str] = []
    channel.add_listener(wire_tag, lambda p: seen.append(p.message))

    channel.handle_frame(json.dumps({"type": wire_tag, "payload": {"message": message}}))

    assert seen == [message]

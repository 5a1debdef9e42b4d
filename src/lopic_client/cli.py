"""Command line entry point for signing in and watching the event channel."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import sys
from dataclasses import replace
from typing import Any

from lopic_client.api.errors import ApiError
from lopic_client.auth.types import SessionTerminated
from lopic_client.config.settings import Settings, SettingsManager
from lopic_client.events.messages import ChannelEvent, EventTag
from lopic_client.session import ClientSession
from lopic_client.utils.errors import describe_exception
from lopic_client.utils.logging import LoggingOptions, configure_logging, get_logger


logger = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lopic-client", description=__doc__)
    parser.add_argument("--server", help="Lopic server URL (overrides settings)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Sign in and store the credential")
    login.add_argument("username")
    login.add_argument(
        "--password", help="Password (prompted for when omitted)", default=None
    )

    sub.add_parser("logout", help="Sign out and forget the stored credential")

    get = sub.add_parser("get", help="GET an API path and print the envelope")
    get.add_argument("path", help="API path, e.g. /api/user/info")

    listen = sub.add_parser("listen", help="Print events from the upload channel")
    listen.add_argument(
        "--seconds",
        type=float,
        default=None,
        help="Stop after this many seconds (default: until interrupted)",
    )
    return parser


def _print_json(value: Any) -> None:
    print(json.dumps(value, indent=2, ensure_ascii=False, default=str))  # noqa: T201


async def _login(session: ClientSession, args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    user = await session.auth.login(args.username, password)
    print(f"Signed in as {user.username}")  # noqa: T201
    return 0


async def _logout(session: ClientSession, _: argparse.Namespace) -> int:
    if not session.is_authenticated:
        print("Not signed in")  # noqa: T201
        return 0
    await session.auth.logout()
    print("Signed out")  # noqa: T201
    return 0


async def _get(session: ClientSession, args: argparse.Namespace) -> int:
    _print_json(await session.api.get(args.path))
    return 0


async def _listen(session: ClientSession, args: argparse.Namespace) -> int:
    closed = asyncio.Event()

    def _print_event(tag: EventTag):
        def _handler(payload: Any) -> None:
            _print_json({"type": tag.value, "payload": payload.model_dump()})

        return _handler

    for tag in EventTag:
        session.events.add_listener(tag, _print_event(tag))
    session.events.add_listener(ChannelEvent.CLOSE, closed.set)
    session.events.add_listener(
        ChannelEvent.ERROR,
        lambda exc: print(f"Channel error: {exc}", file=sys.stderr),  # noqa: T201
    )

    await session.events.connect()
    if not session.events.is_connected:
        return 1
    print("Listening for events; press Ctrl+C to stop", file=sys.stderr)  # noqa: T201
    try:
        await asyncio.wait_for(closed.wait(), timeout=args.seconds)
    except TimeoutError:
        logger.debug("Listen window elapsed", seconds=args.seconds)
    return 0


_COMMANDS = {
    "login": _login,
    "logout": _logout,
    "get": _get,
    "listen": _listen,
}


async def _run(settings: Settings, args: argparse.Namespace) -> int:
    async with ClientSession(settings) as session:

        def _on_terminated(event: SessionTerminated) -> None:
            print(f"Session ended: {event.reason}. Sign in again.", file=sys.stderr)  # noqa: T201

        session.on_session_terminated(_on_terminated)
        return await _COMMANDS[args.command](session, args)


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(
        LoggingOptions(level="WARNING", debug=args.debug, file_logging=True)
    )

    settings = SettingsManager().load()
    if args.server:
        settings = replace(settings, server_url=args.server)

    try:
        return asyncio.run(_run(settings, args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except ApiError as exc:
        descriptor = describe_exception(exc)
        print(f"{descriptor.headline}\n{descriptor.detail}", file=sys.stderr)  # noqa: T201
        if descriptor.suggestion:
            print(descriptor.suggestion, file=sys.stderr)  # noqa: T201
        return 1


__all__ = ["main"]

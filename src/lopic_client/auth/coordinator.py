"""Single-flight credential renewal.

Any number of callers may ask for a renewal while one is already running;
they all join the same episode and observe its single outcome. The check for
``IDLE`` and the switch to ``RENEWING`` happen inside one synchronous call so
no other coroutine can interleave between them on the event loop.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque

from lopic_client.api.errors import ApiError, NoRefreshCredential, RenewalFailure
from lopic_client.auth.credential_store import CredentialStore
from lopic_client.auth.renewal import Renewer
from lopic_client.auth.types import (
    Clock,
    Credential,
    RenewalState,
    SessionTerminated,
)
from lopic_client.utils.hooks import EventHook
from lopic_client.utils.logging import get_logger


logger = get_logger(__name__)


class TokenRefreshCoordinator:
    def __init__(
        self,
        store: CredentialStore,
        renewer: Renewer,
        *,
        clock: Clock = time.time,
    ) -> None:
        self._store = store
        self._renewer = renewer
        self._clock = clock
        self._state = RenewalState.IDLE
        self._waiters: deque[asyncio.Future[str]] = deque()
        self._episode: asyncio.Task[None] | None = None
        self._renewal_count = 0
        self.session_terminated: EventHook[SessionTerminated] = EventHook(
            "session_terminated"
        )

    @property
    def state(self) -> RenewalState:
        return self._state

    @property
    def is_renewing(self) -> bool:
        return self._state is RenewalState.RENEWING

    @property
    def pending_waiters(self) -> int:
        return len(self._waiters)

    @property
    def renewal_count(self) -> int:
        """Number of renewal episodes started since construction."""
        return self._renewal_count

    def request_renewal(self) -> asyncio.Future[str]:
        """Join the current renewal episode, starting one when idle.

        The returned future resolves with the new access token or fails with
        :class:`RenewalFailure`. It must not be awaited between the state check
        and the transition, which is why this method is synchronous.
        """
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[str] = loop.create_future()
        self._waiters.append(waiter)
        if self._state is RenewalState.RENEWING:
            logger.debug("Renewal in progress; queued waiter", waiters=len(self._waiters))
            return waiter

        self._state = RenewalState.RENEWING
        self._renewal_count += 1
        self._episode = loop.create_task(
            self._run_episode(), name=f"token-renewal-{self._renewal_count}"
        )
        return waiter

    async def wait_idle(self) -> None:
        """Wait for the running episode, if any, to settle."""
        episode = self._episode
        if episode is not None and not episode.done():
            await asyncio.wait({episode})

    def resolve_all(self, token: str) -> None:
        waiters = self._drain()
        for waiter in waiters:
            try:
                if not waiter.done():
                    waiter.set_result(token)
            except Exception:  # noqa: BLE001 - keep notifying the rest
                logger.exception("Failed to resolve renewal waiter")
        logger.debug("Resolved renewal waiters", count=len(waiters))

    def reject_all(self, error: Exception) -> None:
        waiters = self._drain()
        for waiter in waiters:
            try:
                if not waiter.done():
                    waiter.set_exception(error)
            except Exception:  # noqa: BLE001 - keep notifying the rest
                logger.exception("Failed to reject renewal waiter")
        logger.debug("Rejected renewal waiters", count=len(waiters))

    # Internal --------------------------------------------------------

    def _drain(self) -> list[asyncio.Future[str]]:
        waiters = list(self._waiters)
        self._waiters.clear()
        return waiters

    async def _run_episode(self) -> None:
        # No credential at the start means there is no session left to terminate.
        had_credential = self._store.read() is not None
        try:
            try:
                credential = await self._renew()
            except asyncio.CancelledError:
                self.reject_all(RenewalFailure("Token refresh was cancelled"))
                raise
            except Exception as exc:  # noqa: BLE001 - every failure ends the session
                self._fail(exc, announce=had_credential)
            else:
                served = len(self._waiters)
                self.resolve_all(credential.access_token)
                logger.info("Access token renewed", waiters=served)
        finally:
            self._state = RenewalState.IDLE

    async def _renew(self) -> Credential:
        current = self._store.read()
        if current is None or not current.refresh_token:
            raise NoRefreshCredential()
        if current.refresh_expired(self._clock()):
            raise NoRefreshCredential("Refresh token has expired")

        tokens = await self._renewer.renew(current.refresh_token)
        credential = Credential.from_token_response(tokens, self._clock())
        self._store.write(credential)
        return credential

    def _fail(self, exc: Exception, *, announce: bool = True) -> None:
        if isinstance(exc, RenewalFailure):
            failure = exc
        elif isinstance(exc, ApiError):
            failure = RenewalFailure(
                f"Token refresh failed: {exc}",
                status_code=exc.status_code,
                inner_error=exc,
            )
        else:
            failure = RenewalFailure(f"Token refresh failed: {exc}", inner_error=exc)
        logger.error(
            "Token refresh failed; terminating session",
            error=str(failure),
            waiters=len(self._waiters),
        )
        try:
            self._store.clear()
        except Exception:  # noqa: BLE001 - waiters must still be released
            logger.exception("Failed to clear credential store after refresh failure")
        self.reject_all(failure)
        if not announce:
            logger.debug("Session already terminated; not announcing again")
            return
        self.session_terminated.emit(
            SessionTerminated(reason=failure.message, error=failure)
        )


__all__ = ["TokenRefreshCoordinator"]

from __future__ import annotations

import asyncio
import time

from lopic_client.auth.coordinator import TokenRefreshCoordinator
from lopic_client.auth.types import Clock, Credential
from lopic_client.config.settings import DEFAULT_REFRESH_BUFFER_SECONDS
from lopic_client.utils.background import BackgroundTask, run_background
from lopic_client.utils.logging import get_logger


logger = get_logger(__name__)


class ProactiveRenewalTrigger:
    """Starts a background renewal when the access token is about to expire.

    Never blocks or alters the request that triggered the check. It shares the
    coordinator with the reactive 401 path, so while a renewal is running the
    check only joins it.
    """

    def __init__(
        self,
        coordinator: TokenRefreshCoordinator,
        *,
        buffer_seconds: float = DEFAULT_REFRESH_BUFFER_SECONDS,
        clock: Clock = time.time,
    ) -> None:
        self._coordinator = coordinator
        self._buffer_seconds = buffer_seconds
        self._clock = clock

    @property
    def buffer_seconds(self) -> float:
        return self._buffer_seconds

    def check(self, credential: Credential) -> BackgroundTask | None:
        if not credential.access_expires_within(self._buffer_seconds, self._clock()):
            return None
        waiter = self._coordinator.request_renewal()
        return run_background(self._await_renewal(waiter), name="proactive-renewal")

    async def _await_renewal(self, waiter: asyncio.Future[str]) -> None:
        try:
            await waiter
        except Exception as exc:  # noqa: BLE001 - never surfaced to the request
            logger.warning("Proactive token refresh failed", error=str(exc))
        else:
            logger.debug("Token refreshed proactively")


__all__ = ["ProactiveRenewalTrigger"]

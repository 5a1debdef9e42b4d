from __future__ import annotations

import asyncio

import pytest

from lopic_client.api.errors import NoRefreshCredential, RenewalFailure
from lopic_client.auth.coordinator import TokenRefreshCoordinator
from lopic_client.auth.types import RenewalState, SessionTerminated

from tests.factories import (
    FakeClock,
    StubRenewer,
    failing_renewer,
    make_credential,
    make_store,
)


def _coordinator(
    renewer: StubRenewer, *, credential=None, clock: FakeClock | None = None
) -> TokenRefreshCoordinator:
    store = make_store(credential if credential is not None else make_credential())
    return TokenRefreshCoordinator(store, renewer, clock=clock or FakeClock())


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_renewal() -> None:
    renewer = StubRenewer(hold=True)
    coordinator = _coordinator(renewer)

    waiters = [coordinator.request_renewal() for _ in range(5)]
    assert coordinator.state is RenewalState.RENEWING
    assert coordinator.renewal_count == 1
    assert coordinator.pending_waiters == 5

    renewer.release.set()
    tokens = await asyncio.gather(*waiters)

    assert tokens == ["access-2"] * 5
    assert renewer.calls == ["refresh-1"]
    assert coordinator.state is RenewalState.IDLE
    assert coordinator.pending_waiters == 0


@pytest.mark.asyncio
async def test_waiters_resolve_in_arrival_order() -> None:
    renewer = StubRenewer(hold=True)
    coordinator = _coordinator(renewer)
    order: list[int] = []

    waiters = []
    for index in range(4):
        waiter = coordinator.request_renewal()
        waiter.add_done_callback(lambda _, index=index: order.append(index))
        waiters.append(waiter)

    renewer.release.set()
    await asyncio.gather(*waiters)
    await asyncio.sleep(0)

    assert order == [0, 1, 2, 3]


@pytest.mark.asyncio
async def test_late_joiner_is_served_by_running_episode() -> None:
    renewer = StubRenewer(hold=True)
    coordinator = _coordinator(renewer)

    first = coordinator.request_renewal()
    await asyncio.sleep(0)
    late = coordinator.request_renewal()
    renewer.release.set()

    assert await first == await late == "access-2"
    assert coordinator.renewal_count == 1


@pytest.mark.asyncio
async def test_successful_renewal_replaces_stored_credential(clock: FakeClock) -> None:
    renewer = StubRenewer()
    coordinator = _coordinator(renewer, clock=clock)

    await coordinator.request_renewal()

    stored = coordinator._store.read()
    assert stored is not None
    assert stored.access_token == "access-2"
    assert stored.refresh_token == "refresh-2"
    assert stored.access_expires_at == clock.now + 3600


@pytest.mark.asyncio
async def test_failure_rejects_every_waiter_and_ends_session() -> None:
    renewer = failing_renewer()
    renewer.release.clear()
    coordinator = _coordinator(renewer)
    terminated: list[SessionTerminated] = []
    coordinator.session_terminated.subscribe(terminated.append)

    waiters = [coordinator.request_renewal() for _ in range(3)]
    renewer.release.set()
    results = await asyncio.gather(*waiters, return_exceptions=True)

    assert all(isinstance(result, RenewalFailure) for result in results)
    assert coordinator._store.read() is None
    assert len(terminated) == 1
    assert isinstance(terminated[0].error, RenewalFailure)
    assert coordinator.state is RenewalState.IDLE
    assert coordinator.pending_waiters == 0


@pytest.mark.asyncio
async def test_missing_refresh_token_fails_without_remote_call() -> None:
    renewer = StubRenewer()
    store = make_store()
    coordinator = TokenRefreshCoordinator(store, renewer, clock=FakeClock())

    with pytest.raises(NoRefreshCredential):
        await coordinator.request_renewal()

    assert renewer.calls == []
    assert coordinator.state is RenewalState.IDLE


@pytest.mark.asyncio
async def test_expired_refresh_token_counts_as_absent(clock: FakeClock) -> None:
    renewer = StubRenewer()
    coordinator = _coordinator(
        renewer, credential=make_credential(refresh_ttl=60), clock=clock
    )
    clock.advance(120)

    with pytest.raises(NoRefreshCredential, match="expired"):
        await coordinator.request_renewal()

    assert renewer.calls == []
    assert coordinator._store.read() is None


@pytest.mark.asyncio
async def test_unexpected_error_is_wrapped_as_renewal_failure() -> None:
    boom = RuntimeError("boom")
    coordinator = _coordinator(StubRenewer(error=boom))

    with pytest.raises(RenewalFailure) as excinfo:
        await coordinator.request_renewal()

    assert excinfo.value.inner_error is boom


@pytest.mark.asyncio
async def test_new_episode_starts_after_previous_settles() -> None:
    renewer = StubRenewer()
    coordinator = _coordinator(renewer)

    assert await coordinator.request_renewal() == "access-2"
    await coordinator.wait_idle()
    assert await coordinator.request_renewal() == "access-3"

    assert coordinator.renewal_count == 2
    assert renewer.calls == ["refresh-1", "refresh-2"]


@pytest.mark.asyncio
async def test_cancelled_episode_releases_waiters() -> None:
    renewer = StubRenewer(hold=True)
    coordinator = _coordinator(renewer)

    waiter = coordinator.request_renewal()
    await asyncio.sleep(0)
    coordinator._episode.cancel()

    with pytest.raises(RenewalFailure, match="cancelled"):
        await waiter
    await coordinator.wait_idle()
    assert coordinator.state is RenewalState.IDLE


@pytest.mark.asyncio
async def test_late_renewal_after_termination_is_not_announced_again() -> None:
    coordinator = _coordinator(failing_renewer())
    terminated: list[SessionTerminated] = []
    coordinator.session_terminated.subscribe(terminated.append)

    with pytest.raises(RenewalFailure):
        await coordinator.request_renewal()
    with pytest.raises(NoRefreshCredential):
        await coordinator.request_renewal()

    assert coordinator.renewal_count == 2
    assert len(terminated) == 1
    assert coordinator.state is RenewalState.IDLE

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from lopic_client.config.settings import ENV_PREFIX

from tests.factories import FakeClock, MemoryKeyring


@pytest.fixture(autouse=True)
def _isolated_environment() -> Iterator[None]:
    """Keep ``LOPIC_CLIENT_*`` variables from leaking between tests.

    ``load_dotenv`` writes straight into ``os.environ``, so monkeypatch alone
    cannot undo it.
    """

    saved = os.environ.copy()
    for key in [name for name in os.environ if name.startswith(ENV_PREFIX)]:
        del os.environ[key]
    yield
    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def keyring_backend() -> MemoryKeyring:
    return MemoryKeyring()

from __future__ import annotations

import itertools
from typing import Callable, Generic, TypeVar

from lopic_client.utils.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


class EventHook(Generic[T]):
    """Named notification point; each ``subscribe`` call gets its own handle.

    Subscribing the same callable twice yields two deliveries per ``emit`` and
    two independent unsubscribe handles.
    """

    def __init__(self, name: str = "hook") -> None:
        self.name = name
        self._handles = itertools.count()
        self._callbacks: dict[int, Callable[[T], None]] = {}

    def __len__(self) -> int:
        return len(self._callbacks)

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        handle = next(self._handles)
        self._callbacks[handle] = callback
        return lambda: self._drop(handle)

    def emit(self, payload: T) -> int:
        """Call every subscriber in subscription order; returns how many succeeded."""
        delivered = 0
        for callback in tuple(self._callbacks.values()):
            try:
                callback(payload)
            except Exception:  # noqa: BLE001 - one subscriber must not starve the rest
                logger.exception("Hook subscriber raised", hook=self.name)
            else:
                delivered += 1
        return delivered

    def _drop(self, handle: int) -> None:
        if self._callbacks.pop(handle, None) is None:
            logger.debug("Hook subscription already removed", hook=self.name)


__all__ = ["EventHook"]

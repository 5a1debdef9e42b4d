from __future__ import annotations

import inspect
from typing import Any, Callable

from lopic_client.events.messages import ChannelEvent, EventTag
from lopic_client.utils.logging import get_logger


logger = get_logger(__name__)

ListenerKey = EventTag | ChannelEvent
Listener = Callable[..., Any]


def _same_listener(left: Listener, right: Listener) -> bool:
    if left is right:
        return True
    # Bound methods are recreated on every attribute access.
    return inspect.ismethod(left) and inspect.ismethod(right) and left == right


class ListenerRegistry:
    """Per-tag observer lists invoked in registration order.

    Dispatch runs over a snapshot, so observers added or removed by a callback
    take effect from the next dispatch onwards.
    """

    def __init__(self) -> None:
        self._listeners: dict[ListenerKey, list[Listener]] = {}

    def add(self, key: ListenerKey, callback: Listener) -> None:
        self._listeners.setdefault(key, []).append(callback)

    def remove(self, key: ListenerKey, callback: Listener) -> bool:
        listeners = self._listeners.get(key)
        if not listeners:
            return False
        for index, existing in enumerate(listeners):
            if _same_listener(existing, callback):
                del listeners[index]
                return True
        return False

    def listeners(self, key: ListenerKey) -> tuple[Listener, ...]:
        return tuple(self._listeners.get(key, ()))

    def count(self, key: ListenerKey | None = None) -> int:
        if key is not None:
            return len(self._listeners.get(key, ()))
        return sum(len(items) for items in self._listeners.values())

    def clear(self) -> None:
        self._listeners.clear()

    def dispatch(self, key: ListenerKey, *args: Any) -> int:
        snapshot = self.listeners(key)
        for callback in snapshot:
            try:
                callback(*args)
            except Exception:  # noqa: BLE001 - observers must not break the channel
                logger.exception("Event listener failed", tag=key.value)
        return len(snapshot)


__all__ = ["Listener", "ListenerKey", "ListenerRegistry"]

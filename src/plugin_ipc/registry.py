"""CallbackRegistry — process-wide routing table from handle to callback.

The transport pushes every host-initiated message as ``(handle, payload)``;
the registry hands the payload to whatever local callback owns the handle.

Entries live until they are explicitly removed. A channel that the caller no
longer references still has to be reachable by its handle, so nothing here is
tied to garbage collection or to message flow.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

DeliveryFn = Callable[[Any], None]


class CallbackRegistry:
    """Allocates handles and dispatches raw payloads to their callbacks."""

    def __init__(self) -> None:
        self._entries: dict[int, DeliveryFn] = {}
        self._counter = itertools.count(1)

    def register(self, fn: DeliveryFn) -> int:
        """Store *fn* under a fresh handle and return the handle."""
        handle = next(self._counter)
        self._entries[handle] = fn
        logger.debug("Registered callback handle %d", handle)
        return handle

    def dispatch(self, handle: int, raw: Any) -> None:
        """Call the callback for *handle* with *raw*; unknown handles are ignored."""
        fn = self._entries.get(handle)
        if fn is None:
            logger.debug("Discarding delivery for unknown handle %d", handle)
            return
        fn(raw)

    def remove(self, handle: int) -> bool:
        """Drop the entry for *handle*. Returns whether one existed."""
        removed = self._entries.pop(handle, None) is not None
        if removed:
            logger.debug("Removed callback handle %d", handle)
        return removed

    def __contains__(self, handle: object) -> bool:
        return handle in self._entries

    def __len__(self) -> int:
        return len(self._entries)


_registry: CallbackRegistry | None = None


def get_registry() -> CallbackRegistry:
    """Return the process-wide registry, creating it on first access."""
    global _registry
    if _registry is None:
        _registry = CallbackRegistry()
    return _registry

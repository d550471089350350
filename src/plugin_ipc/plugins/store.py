"""Key-value store bindings.

The host persists the store; this side only issues commands and follows the
``store://change`` event, whose payload is ``{"path", "key", "value"}``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ..events import Unlisten, listen
from ..models import Event, plugin_command
from ..transport import Transport

PLUGIN = "store"
CHANGE_EVENT = "store://change"


class Store:
    """A store file on the host, addressed by *path*."""

    def __init__(self, path: str, transport: Transport) -> None:
        self.path = path
        self._transport = transport

    async def _invoke(self, command: str, **args: Any) -> Any:
        return await self._transport.invoke(
            plugin_command(PLUGIN, command), {"path": self.path, **args}
        )

    async def set(self, key: str, value: Any) -> None:
        await self._invoke("set", key=key, value=value)

    async def get(self, key: str) -> Any:
        return await self._invoke("get", key=key)

    async def has(self, key: str) -> bool:
        return bool(await self._invoke("has", key=key))

    async def delete(self, key: str) -> bool:
        return bool(await self._invoke("delete", key=key))

    async def clear(self) -> None:
        """Remove every key."""
        await self._invoke("clear")

    async def reset(self) -> None:
        """Restore the host's default values, or clear if it has none."""
        await self._invoke("reset")

    async def keys(self) -> list[str]:
        return list(await self._invoke("keys") or [])

    async def values(self) -> list[Any]:
        return list(await self._invoke("values") or [])

    async def entries(self) -> list[tuple[str, Any]]:
        return [(key, value) for key, value in await self._invoke("entries") or []]

    async def length(self) -> int:
        return int(await self._invoke("length") or 0)

    async def load(self) -> None:
        """Reload the store from disk, dropping unsaved changes."""
        await self._invoke("load")

    async def save(self) -> None:
        await self._invoke("save")

    async def on_key_change(
        self, key: str, callback: Callable[[Any], None]
    ) -> Unlisten:
        """Call *callback* with the new value whenever *key* changes."""

        def _on_change(evt: Event) -> None:
            payload = evt.payload or {}
            if payload.get("path") == self.path and payload.get("key") == key:
                callback(payload.get("value"))

        return await listen(self._transport, CHANGE_EVENT, _on_change)

    async def on_change(self, callback: Callable[[str, Any], None]) -> Unlisten:
        """Call *callback* with ``(key, value)`` for every change of this store."""

        def _on_change(evt: Event) -> None:
            payload = evt.payload or {}
            if payload.get("path") == self.path:
                callback(payload.get("key"), payload.get("value"))

        return await listen(self._transport, CHANGE_EVENT, _on_change)

    def __repr__(self) -> str:
        return f"Store(path={self.path!r})"

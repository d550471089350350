"""Shared fixtures: an isolated registry and an in-memory transport."""

from __future__ import annotations

import inspect
from typing import Any

import pytest

from plugin_ipc.channel import CHANNEL_PREFIX
from plugin_ipc.registry import CallbackRegistry
from plugin_ipc.rpc import encode_args
from plugin_ipc.transport import Transport


class RecordingTransport(Transport):
    """Records every invoke and answers from ``results``.

    A result may be a value, an exception instance (raised), or a callable
    taking the encoded args; a callable may return an awaitable.
    """

    def __init__(self, registry: CallbackRegistry) -> None:
        super().__init__(registry=registry)
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.results: dict[str, Any] = {}

    async def invoke(self, command: str, args: dict[str, Any] | None = None) -> Any:
        encoded = encode_args(args or {})
        self.calls.append((command, encoded))
        result = self.results.get(command)
        if isinstance(result, BaseException):
            raise result
        if callable(result):
            result = result(encoded)
            if inspect.isawaitable(result):
                result = await result
        return result

    def commands(self) -> list[str]:
        return [command for command, _ in self.calls]

    def deliver(self, handle: int, payload: Any) -> None:
        self.registry.dispatch(handle, payload)


def channel_handle(ref: str) -> int:
    """Extract the handle from a ``__CHANNEL__:<id>`` reference."""
    assert ref.startswith(CHANNEL_PREFIX)
    return int(ref[len(CHANNEL_PREFIX):])


@pytest.fixture
def registry() -> CallbackRegistry:
    return CallbackRegistry()


@pytest.fixture
def transport(registry: CallbackRegistry) -> RecordingTransport:
    return RecordingTransport(registry)

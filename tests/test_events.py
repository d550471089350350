"""listen / once / emit tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from plugin_ipc.errors import InvokeError
from plugin_ipc.events import BuiltinEvent, emit, listen, once
from plugin_ipc.models import Event

from .conftest import RecordingTransport, channel_handle

pytestmark = pytest.mark.asyncio


def _event(index: int, name: str = "app://ready", payload: Any = None) -> dict[str, Any]:
    return {"id": index, "message": {"event": name, "id": 42, "payload": payload}}


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


async def test_listen_subscribes_with_channel(transport: RecordingTransport) -> None:
    transport.results["plugin:event|listen"] = 42

    await listen(transport, "app://ready", lambda evt: None)

    command, args = transport.calls[0]
    assert command == "plugin:event|listen"
    assert args["event"] == "app://ready"
    assert args["target"] is None
    assert args["handler"].startswith("__CHANNEL__:")


async def test_listen_delivers_events_in_order(transport: RecordingTransport) -> None:
    received: list[Event] = []
    await listen(transport, "app://ready", received.append)
    handle = channel_handle(transport.calls[0][1]["handler"])

    transport.deliver(handle, _event(1, payload="second"))
    transport.deliver(handle, _event(0, payload="first"))

    assert [e.payload for e in received] == ["first", "second"]
    assert received[0].event == "app://ready"


async def test_listen_with_target(transport: RecordingTransport) -> None:
    await listen(transport, "app://ready", lambda evt: None, target="main")

    assert transport.calls[0][1]["target"] == "main"


async def test_unlisten_uses_subscription_id(transport: RecordingTransport) -> None:
    transport.results["plugin:event|listen"] = 42
    unlisten = await listen(transport, "app://ready", lambda evt: None)
    handle = channel_handle(transport.calls[0][1]["handler"])

    await unlisten()
    await unlisten()

    assert transport.calls[1:] == [
        ("plugin:event|unlisten", {"event": "app://ready", "eventId": 42})
    ]
    assert handle not in transport.registry


async def test_failed_unlisten_keeps_channel(transport: RecordingTransport) -> None:
    transport.results["plugin:event|listen"] = 1
    transport.results["plugin:event|unlisten"] = InvokeError(-32000, "gone")
    unlisten = await listen(transport, "app://ready", lambda evt: None)
    handle = channel_handle(transport.calls[0][1]["handler"])

    with pytest.raises(InvokeError):
        await unlisten()

    assert handle in transport.registry


async def test_concurrent_unlisten_failure_keeps_subscription(
    transport: RecordingTransport,
) -> None:
    transport.results["plugin:event|listen"] = 3
    unlisten = await listen(transport, "app://ready", lambda evt: None)
    handle = channel_handle(transport.calls[0][1]["handler"])
    gate = asyncio.Event()

    async def failing_unlisten(args: dict[str, Any]) -> None:
        await gate.wait()
        raise InvokeError(-32000, "gone")

    transport.results["plugin:event|unlisten"] = failing_unlisten

    first = asyncio.ensure_future(unlisten())
    second = asyncio.ensure_future(unlisten())
    await asyncio.sleep(0)
    gate.set()
    outcomes = await asyncio.gather(first, second, return_exceptions=True)

    assert all(isinstance(o, InvokeError) for o in outcomes)
    assert transport.commands().count("plugin:event|unlisten") == 1
    assert handle in transport.registry

    transport.results["plugin:event|unlisten"] = None
    await asyncio.gather(unlisten(), unlisten())

    assert transport.commands().count("plugin:event|unlisten") == 2
    assert handle not in transport.registry


async def test_listen_failure_propagates(transport: RecordingTransport) -> None:
    transport.results["plugin:event|listen"] = InvokeError(-32601, "no event plugin")

    with pytest.raises(InvokeError):
        await listen(transport, "app://ready", lambda evt: None)

    assert len(transport.registry) == 0


@pytest.mark.parametrize(
    "name", ["", "has space", "dots.not.allowed", "émoji", "app://ping\n"]
)
async def test_invalid_event_names_are_rejected(
    transport: RecordingTransport, name: str
) -> None:
    with pytest.raises(ValueError):
        await listen(transport, name, lambda evt: None)
    with pytest.raises(ValueError):
        await emit(transport, name)

    assert transport.calls == []


async def test_malformed_event_is_dropped(transport: RecordingTransport) -> None:
    received: list[Event] = []
    await listen(transport, "app://ready", received.append)
    handle = channel_handle(transport.calls[0][1]["handler"])

    transport.deliver(handle, {"id": 0, "message": {"payload": "no name"}})
    transport.deliver(handle, _event(1))

    assert len(received) == 1


async def test_once_fires_a_single_time(transport: RecordingTransport) -> None:
    transport.results["plugin:event|listen"] = 9
    gate = asyncio.Event()

    async def slow_unlisten(args: dict[str, Any]) -> None:
        await gate.wait()

    transport.results["plugin:event|unlisten"] = slow_unlisten
    received: list[Event] = []

    await once(transport, "app://ready", received.append)
    handle = channel_handle(transport.calls[0][1]["handler"])

    # Both arrive before the unlisten round-trip completes.
    transport.deliver(handle, _event(0, payload="a"))
    transport.deliver(handle, _event(1, payload="b"))
    await _settle()
    assert [e.payload for e in received] == ["a"]
    assert transport.calls[-1] == (
        "plugin:event|unlisten",
        {"event": "app://ready", "eventId": 9},
    )

    gate.set()
    await _settle()

    assert len(received) == 1
    assert transport.commands().count("plugin:event|unlisten") == 1
    assert handle not in transport.registry


async def test_once_swallows_unlisten_errors(transport: RecordingTransport) -> None:
    transport.results["plugin:event|unlisten"] = InvokeError(-32000, "gone")
    received: list[Event] = []

    await once(transport, "app://ready", received.append)
    handle = channel_handle(transport.calls[0][1]["handler"])
    transport.deliver(handle, _event(0))
    await _settle()

    assert len(received) == 1
    assert "plugin:event|unlisten" in transport.commands()


async def test_once_event_before_listen_ack(transport: RecordingTransport) -> None:
    received: list[Event] = []

    def ack_after_event(args: dict[str, Any]) -> int:
        transport.deliver(channel_handle(args["handler"]), _event(0, payload="early"))
        return 5

    transport.results["plugin:event|listen"] = ack_after_event

    await once(transport, "app://ready", received.append)
    await _settle()

    assert [e.payload for e in received] == ["early"]
    assert transport.calls[-1] == (
        "plugin:event|unlisten",
        {"event": "app://ready", "eventId": 5},
    )


async def test_once_unlistens_even_if_handler_raises(transport: RecordingTransport) -> None:
    def explode(evt: Event) -> None:
        raise RuntimeError("handler bug")

    await once(transport, "app://ready", explode)
    handle = channel_handle(transport.calls[0][1]["handler"])
    transport.deliver(handle, _event(0))
    await _settle()

    assert "plugin:event|unlisten" in transport.commands()


async def test_emit_sends_payload(transport: RecordingTransport) -> None:
    await emit(transport, "app://ping", {"n": 1})
    await emit(transport, "app://ping", target="settings")

    assert transport.calls == [
        ("plugin:event|emit", {"event": "app://ping", "target": None, "payload": {"n": 1}}),
        ("plugin:event|emit", {"event": "app://ping", "target": "settings", "payload": None}),
    ]


async def test_emit_failure_propagates(transport: RecordingTransport) -> None:
    transport.results["plugin:event|emit"] = InvokeError(-32000, "denied")

    with pytest.raises(InvokeError, match="denied"):
        await emit(transport, "app://ping")


async def test_builtin_event_names_are_valid(transport: RecordingTransport) -> None:
    await listen(transport, BuiltinEvent.WINDOW_RESIZED, lambda evt: None)

    assert transport.calls[0][1]["event"] == "tauri://resize"

"""Model and wire-encoding tests."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from plugin_ipc import rpc
from plugin_ipc.channel import Channel
from plugin_ipc.errors import CommandFailedError
from plugin_ipc.models import (
    CommandErr,
    CommandOk,
    RpcRequest,
    RpcResponse,
    parse_command_result,
    plugin_command,
    unwrap,
)
from plugin_ipc.plugins.geolocation import PositionOptions
from plugin_ipc.registry import CallbackRegistry

from . import host


def test_plugin_command_format() -> None:
    assert plugin_command("geolocation", "watch_position") == "plugin:geolocation|watch_position"


def test_command_result_variants() -> None:
    ok = parse_command_result({"status": "ok", "data": [1, 2]})
    err = parse_command_result({"status": "error", "error": "denied"})

    assert isinstance(ok, CommandOk)
    assert isinstance(err, CommandErr)
    assert unwrap(ok) == [1, 2]
    with pytest.raises(CommandFailedError) as info:
        unwrap(err)
    assert info.value.error == "denied"


def test_command_result_rejects_unknown_status() -> None:
    with pytest.raises(ValidationError):
        parse_command_result({"status": "maybe"})


def test_encode_args_replaces_channels_and_models(registry: CallbackRegistry) -> None:
    channel = Channel(registry=registry)
    args = {
        "channel": channel,
        "options": PositionOptions(enable_high_accuracy=True),
        "nested": [channel, {"n": 1}],
    }

    assert rpc.encode_args(args) == {
        "channel": f"__CHANNEL__:{channel.id}",
        "options": {"enableHighAccuracy": True, "timeout": 10_000, "maximumAge": 0},
        "nested": [f"__CHANNEL__:{channel.id}", {"n": 1}],
    }


def test_request_frame_carries_channel_reference(registry: CallbackRegistry) -> None:
    channel = Channel(registry=registry)

    frame = host.parse_message(
        rpc.build_request("plugin:x|y", {"channel": channel}, request_id="r1")
    )

    assert isinstance(frame, RpcRequest)
    assert frame.id == "r1"
    assert frame.params == {"channel": channel.to_json()}


def test_parse_response_and_deliver_frames() -> None:
    response = host.parse_message(rpc.build_error(-1, "bad", "r2"))
    deliver = host.parse_message(host.build_deliver(7, {"id": 0, "message": "hi"}))

    assert isinstance(response, RpcResponse)
    assert response.error == {"code": -1, "message": "bad", "data": None}
    assert isinstance(deliver, RpcRequest)
    assert deliver.method == rpc.DELIVER_METHOD
    assert deliver.id is None
    assert deliver.params == {"handle": 7, "payload": {"id": 0, "message": "hi"}}

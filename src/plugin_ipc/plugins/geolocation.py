"""Geolocation plugin bindings.

Every command returns a ``CommandResult`` instead of raising on host errors::

    match await get_current_position(transport):
        case CommandOk(data=position):
            ...
        case CommandErr(error=error):
            ...

``watch_position`` streams position updates through a ``Channel`` until
``clear_watch`` is called with the id it returned. The host may push an error
string instead of a position on the same channel.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..channel import Channel
from ..errors import InvokeError
from ..models import CommandErr, CommandOk, plugin_command
from ..transport import Transport

logger = logging.getLogger(__name__)

PLUGIN = "geolocation"

PermissionState = Literal["granted", "denied", "prompt", "prompt-with-rationale"]
PermissionType = Literal["location", "coarseLocation"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Coordinates(_CamelModel):
    latitude: float
    longitude: float
    accuracy: float
    altitude_accuracy: float | None = Field(default=None, alias="altitudeAccuracy")
    altitude: float | None = None
    speed: float | None = None
    heading: float | None = None


class Position(_CamelModel):
    timestamp: int
    coords: Coordinates


class PositionOptions(_CamelModel):
    enable_high_accuracy: bool = Field(default=False, alias="enableHighAccuracy")
    # Milliseconds.
    timeout: int = 10_000
    maximum_age: int = Field(default=0, alias="maximumAge")


class PermissionStatus(_CamelModel):
    location: PermissionState
    coarse_location: PermissionState = Field(alias="coarseLocation")


PositionCallback = Callable[[Position | str], None]


async def _command(
    transport: Transport, command: str, args: dict[str, Any] | None = None
) -> CommandOk | CommandErr:
    try:
        data = await transport.invoke(plugin_command(PLUGIN, command), args)
    except InvokeError as exc:
        return CommandErr(error=exc.message)
    return CommandOk(data=data)


def _validate_ok(
    result: CommandOk | CommandErr, model: type[BaseModel]
) -> CommandOk | CommandErr:
    match result:
        case CommandOk(data=data):
            return CommandOk(data=model.model_validate(data))
        case CommandErr():
            return result


async def get_current_position(
    transport: Transport, options: PositionOptions | None = None
) -> CommandOk | CommandErr:
    result = await _command(transport, "get_current_position", {"options": options})
    return _validate_ok(result, Position)


async def watch_position(
    transport: Transport,
    options: PositionOptions | None,
    callback: PositionCallback,
) -> int:
    """Stream position updates to *callback*; returns the channel id to clear.

    Raises ``InvokeError`` if the host refuses the watch.
    """

    def _on_message(raw: Any) -> None:
        if isinstance(raw, str):
            callback(raw)
            return
        try:
            position = Position.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Dropping malformed position update: %s", exc)
            return
        callback(position)

    channel = Channel(_on_message, registry=transport.registry)
    try:
        await transport.invoke(
            plugin_command(PLUGIN, "watch_position"),
            {"options": options or PositionOptions(), "channel": channel},
        )
    except BaseException:
        channel.discard()
        raise
    return channel.id


async def clear_watch(transport: Transport, channel_id: int) -> CommandOk | CommandErr:
    """Stop a watch; its channel is dropped from the registry on success."""
    result = await _command(transport, "clear_watch", {"channelId": channel_id})
    if isinstance(result, CommandOk):
        transport.registry.remove(channel_id)
    return result


async def check_permissions(transport: Transport) -> CommandOk | CommandErr:
    result = await _command(transport, "check_permissions")
    return _validate_ok(result, PermissionStatus)


async def request_permissions(
    transport: Transport, permissions: list[PermissionType] | None = None
) -> CommandOk | CommandErr:
    result = await _command(
        transport, "request_permissions", {"permissions": permissions}
    )
    return _validate_ok(result, PermissionStatus)

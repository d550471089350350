"""Shared Pydantic models — what travels between guest and host."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .errors import CommandFailedError


def plugin_command(plugin: str, command: str) -> str:
    """Return the routed command name, e.g. ``plugin:store|get``."""
    return f"plugin:{plugin}|{command}"


class RpcRequest(BaseModel):
    """JSON-RPC 2.0 request or notification (notification when id is None)."""

    jsonrpc: str = "2.0"
    method: str
    params: dict[str, Any] = Field(default_factory=dict)
    id: str | int | None = None


class RpcResponse(BaseModel):
    """JSON-RPC 2.0 response."""

    jsonrpc: str = "2.0"
    result: Any = None
    error: dict[str, Any] | None = None
    id: str | int | None = None


class DeliverParams(BaseModel):
    """Params of an ``ipc.deliver`` push: route ``payload`` to ``handle``."""

    handle: int = Field(ge=0)
    payload: Any = None


class TaggedMessage(BaseModel):
    """One message of an ordered stream.

    The sender numbers the messages of each stream from 0, one per message;
    ``id`` is that sequence number, ``message`` the actual payload.
    """

    id: int = Field(ge=0)
    message: Any = None


class Event(BaseModel):
    """An event as delivered to ``listen`` / ``once`` handlers."""

    model_config = ConfigDict(populate_by_name=True)

    event: str
    id: int
    payload: Any = None
    window_label: str | None = Field(default=None, alias="windowLabel")


# ---------------------------------------------------------------------------
# Command results
# ---------------------------------------------------------------------------


class CommandOk(BaseModel):
    status: Literal["ok"] = "ok"
    data: Any = None


class CommandErr(BaseModel):
    status: Literal["error"] = "error"
    error: Any = None


CommandResult = Annotated[CommandOk | CommandErr, Field(discriminator="status")]

_command_result = TypeAdapter(CommandResult)


def parse_command_result(data: Any) -> CommandOk | CommandErr:
    """Validate a ``{"status": ...}`` envelope into its variant."""
    return _command_result.validate_python(data)


def unwrap(result: CommandOk | CommandErr) -> Any:
    """Return the data of an ok result, raise ``CommandFailedError`` otherwise."""
    match result:
        case CommandOk(data=data):
            return data
        case CommandErr(error=error):
            raise CommandFailedError(error)

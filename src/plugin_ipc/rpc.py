"""JSON-RPC 2.0 helpers — build the frames the guest sends."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import uuid4

from pydantic import BaseModel

from .channel import Channel
from .models import RpcRequest, RpcResponse

DELIVER_METHOD = "ipc.deliver"

# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------


def encode_args(value: Any) -> Any:
    """Turn command arguments into plain JSON-able data.

    Channels become their ``__CHANNEL__:<id>`` reference so the host can tell
    a routing target from literal data; models are dumped by alias.
    """
    if isinstance(value, Channel):
        return value.to_json()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, Mapping):
        return {str(k): encode_args(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_args(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def build_request(
    method: str,
    params: dict[str, Any] | None = None,
    *,
    request_id: str | None = None,
) -> str:
    """Serialise a JSON-RPC request (expects a response)."""
    return RpcRequest(
        method=method,
        params=encode_args(params or {}),
        id=request_id or uuid4().hex,
    ).model_dump_json()


def build_error(
    code: int,
    message: str,
    request_id: str | int | None = None,
    data: Any = None,
) -> str:
    """Serialise a JSON-RPC error response."""
    return RpcResponse(
        error={"code": code, "message": message, "data": data},
        id=request_id,
    ).model_dump_json()


"""Transports — how guest code reaches the host.

``Transport`` is the contract the channel machinery depends on: an async
request/response ``invoke`` plus the callback registry that host pushes are
routed through.

``WebSocketTransport`` implements it over a JSON-RPC 2.0 WebSocket::

    async with WebSocketTransport("ws://127.0.0.1:18090") as transport:
        unlisten = await listen(transport, "store://change", print)
        ...

The transport:
  1. Connects to the host's WebSocket endpoint.
  2. Sends each ``invoke`` as a JSON-RPC request and resolves it from the
     matching response.
  3. Feeds ``ipc.deliver`` notifications from the host into the registry.
  4. Fails every pending request when the connection goes away.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any
from uuid import uuid4

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed

from . import rpc
from .config import Config
from .errors import InvokeError, RequestTimeoutError, TransportClosedError
from .models import DeliverParams, RpcRequest, RpcResponse
from .registry import CallbackRegistry, get_registry

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Request/response to the host plus routing of host pushes."""

    def __init__(self, *, registry: CallbackRegistry | None = None) -> None:
        self.registry = registry if registry is not None else get_registry()

    @abstractmethod
    async def invoke(self, command: str, args: dict[str, Any] | None = None) -> Any:
        """Run *command* on the host and return its result.

        Raises ``InvokeError`` when the host answers with an error.
        """


class WebSocketTransport(Transport):
    """JSON-RPC 2.0 over a single WebSocket connection to the host."""

    def __init__(
        self,
        url: str,
        *,
        registry: CallbackRegistry | None = None,
        request_timeout: float | None = None,
    ) -> None:
        super().__init__(registry=registry)
        self._url = url
        self._request_timeout = request_timeout
        self._ws: Any = None  # websockets connection
        self._reader: asyncio.Task[None] | None = None
        self._pending: dict[str, asyncio.Future[Any]] = {}

    @classmethod
    def from_config(
        cls, config: Config, *, registry: CallbackRegistry | None = None
    ) -> WebSocketTransport:
        return cls(
            config.host_url,
            registry=registry,
            request_timeout=config.request_timeout,
        )

    @property
    def connected(self) -> bool:
        return self._ws is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        if self._ws is not None:
            return
        logger.info("Connecting to host: %s", self._url)
        ws = await websockets.connect(self._url)
        self._ws = ws
        self._reader = asyncio.create_task(self._read_loop(ws))
        logger.info("Connected to host: %s", self._url)

    async def close(self) -> None:
        ws, reader = self._ws, self._reader
        self._ws = None
        self._reader = None
        if ws is not None:
            await ws.close()
        if reader is not None:
            await reader

    async def __aenter__(self) -> WebSocketTransport:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Outgoing
    # ------------------------------------------------------------------

    async def invoke(self, command: str, args: dict[str, Any] | None = None) -> Any:
        """Send a JSON-RPC request to the host and await the response."""
        ws = self._ws
        if ws is None:
            raise TransportClosedError("Not connected to host")
        request_id = uuid4().hex
        loop = asyncio.get_running_loop()
        fut: asyncio.Future[Any] = loop.create_future()
        self._pending[request_id] = fut
        try:
            await ws.send(rpc.build_request(command, args, request_id=request_id))
            logger.debug("-> %s (id=%s)", command, request_id)
            if self._request_timeout is None:
                return await fut
            try:
                return await asyncio.wait_for(fut, timeout=self._request_timeout)
            except asyncio.TimeoutError:
                raise RequestTimeoutError(command, self._request_timeout) from None
        except ConnectionClosed as exc:
            raise TransportClosedError(f"Connection to host closed: {exc}") from exc
        finally:
            self._pending.pop(request_id, None)

    # ------------------------------------------------------------------
    # Incoming frame dispatch
    # ------------------------------------------------------------------

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                if isinstance(raw, bytes):
                    raw = raw.decode("utf-8", errors="replace")
                await self._handle_frame(raw)
        except ConnectionClosed:
            pass
        finally:
            if self._ws is ws:
                self._ws = None
            self._fail_pending(TransportClosedError("Connection to host closed"))
            logger.info("Disconnected from host: %s", self._url)

    async def _handle_frame(self, raw: str) -> None:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Invalid JSON from host: %.200s", raw)
            return
        if not isinstance(data, dict):
            logger.warning("Unexpected frame from host: %.200s", raw)
            return

        try:
            if "method" in data:
                await self._handle_request(RpcRequest.model_validate(data))
            else:
                self._handle_response(RpcResponse.model_validate(data))
        except ValidationError as exc:
            logger.warning("Malformed JSON-RPC frame from host: %s", exc)

    async def _handle_request(self, req: RpcRequest) -> None:
        match req.method:
            case rpc.DELIVER_METHOD:
                try:
                    params = DeliverParams.model_validate(req.params)
                except ValidationError as exc:
                    logger.warning("Dropping malformed delivery: %s", exc)
                    return
                try:
                    self.registry.dispatch(params.handle, params.payload)
                except Exception:
                    logger.exception(
                        "Error delivering to callback handle %d", params.handle
                    )

            case _:
                logger.debug("Ignoring host method '%s'", req.method)
                if req.id is not None and self._ws is not None:
                    await self._ws.send(
                        rpc.build_error(
                            -32601, f"Method not found: {req.method}", req.id
                        )
                    )

    def _handle_response(self, resp: RpcResponse) -> None:
        fut = self._pending.pop(str(resp.id), None)
        if fut is None or fut.done():
            logger.debug("Response for unknown request id %s", resp.id)
            return
        if resp.error:
            fut.set_exception(
                InvokeError(
                    int(resp.error.get("code", -32603)),
                    str(resp.error.get("message", "Unknown error")),
                    resp.error.get("data"),
                )
            )
        else:
            fut.set_result(resp.result)

    def _fail_pending(self, exc: Exception) -> None:
        pending, self._pending = self._pending, {}
        for fut in pending.values():
            if not fut.done():
                fut.set_exception(exc)

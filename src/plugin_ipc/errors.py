"""Exceptions surfaced to application code.

Only failures of a request/response round-trip reach the caller. Routing
anomalies (unknown handles, stale sequence numbers, malformed pushes) are
logged by the component that sees them and never raised.
"""

from __future__ import annotations

from typing import Any


class IpcError(Exception):
    """Base class for every error raised by plugin-ipc."""


class InvokeError(IpcError):
    """The host answered a command with an error response."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def __repr__(self) -> str:
        return f"InvokeError(code={self.code!r}, message={self.message!r})"


class TransportClosedError(IpcError):
    """The transport is not connected, or the connection dropped mid-request."""


class RequestTimeoutError(IpcError):
    """The host did not answer within the configured request timeout."""

    def __init__(self, command: str, timeout: float) -> None:
        super().__init__(f"No response to '{command}' within {timeout:.1f}s")
        self.command = command
        self.timeout = timeout


class CommandFailedError(IpcError):
    """A command returned an ``{"status": "error"}`` result that was unwrapped."""

    def __init__(self, error: object) -> None:
        super().__init__(f"Command failed: {error}")
        self.error = error

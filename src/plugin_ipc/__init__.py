"""plugin-ipc — guest-side IPC for host plugins.

Exports the building blocks for streaming host messages into local code:
  - Channel            — ordered sink for one stream of host pushes
  - CallbackRegistry   — handle → callback routing table (``get_registry``)
  - PluginListener     — cancellable plugin event subscription
  - listen/once/emit   — event subscriptions over the host's event plugin
  - WebSocketTransport — JSON-RPC connection to the host
"""

from . import log_setup
from .channel import Channel
from .errors import (
    CommandFailedError,
    InvokeError,
    IpcError,
    RequestTimeoutError,
    TransportClosedError,
)
from .events import BuiltinEvent, emit, listen, once
from .listener import PluginListener, add_plugin_listener
from .models import CommandErr, CommandOk, CommandResult, Event
from .registry import CallbackRegistry, get_registry
from .transport import Transport, WebSocketTransport

__version__ = "0.1.0"
__all__ = [
    "log_setup",
    "BuiltinEvent",
    "CallbackRegistry",
    "Channel",
    "CommandErr",
    "CommandFailedError",
    "CommandOk",
    "CommandResult",
    "Event",
    "InvokeError",
    "IpcError",
    "PluginListener",
    "RequestTimeoutError",
    "Transport",
    "TransportClosedError",
    "WebSocketTransport",
    "add_plugin_listener",
    "emit",
    "get_registry",
    "listen",
    "once",
]

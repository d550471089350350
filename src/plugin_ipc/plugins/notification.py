"""Notification plugin listeners.

Both streams are plugin listeners: the returned ``PluginListener`` stops them.
Payloads are the host's notification objects, passed through as dicts.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ..listener import PluginListener, add_plugin_listener
from ..transport import Transport

PLUGIN = "notification"

NotificationCallback = Callable[[dict[str, Any]], None]


async def on_notification_received(
    transport: Transport, callback: NotificationCallback
) -> PluginListener:
    """Call *callback* for every notification the app receives."""
    return await add_plugin_listener(transport, PLUGIN, "notification", callback)


async def on_action(
    transport: Transport, callback: NotificationCallback
) -> PluginListener:
    """Call *callback* whenever the user acts on a notification."""
    return await add_plugin_listener(transport, PLUGIN, "actionPerformed", callback)

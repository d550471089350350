"""Plugin listeners — subscribe a handler to a named event of one plugin.

``add_plugin_listener`` opens a ``Channel`` for the handler and asks the
plugin to push the event's messages to it; the returned ``PluginListener``
cancels the subscription again::

    listener = await add_plugin_listener(
        transport, "notification", "actionPerformed", on_action
    )
    ...
    await listener.unregister()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .channel import Channel, MessageHandler
from .models import plugin_command
from .transport import Transport

logger = logging.getLogger(__name__)


class PluginListener:
    """One active ``(plugin, event, channel)`` subscription."""

    def __init__(
        self, transport: Transport, plugin: str, event: str, channel_id: int
    ) -> None:
        self.plugin = plugin
        self.event = event
        self.channel_id = channel_id
        self._transport = transport
        self._unregistered = False
        self._removing: asyncio.Future[None] | None = None

    @property
    def unregistered(self) -> bool:
        return self._unregistered

    async def unregister(self) -> None:
        """Ask the plugin to stop pushing to this listener's channel.

        Concurrent calls share one request. Transport errors propagate to
        every caller and leave the listener registered, so the call can be
        retried. After one successful removal further calls do nothing. The
        channel stays in the callback registry.
        """
        if self._unregistered:
            return
        if self._removing is None:
            self._removing = asyncio.ensure_future(self._remove())
            self._removing.add_done_callback(self._forget_failed)
        await asyncio.shield(self._removing)

    async def _remove(self) -> None:
        await self._transport.invoke(
            plugin_command(self.plugin, "remove_listener"),
            {"event": self.event, "channelId": self.channel_id},
        )
        self._unregistered = True
        logger.debug(
            "Removed listener %s/%s (channel %d)",
            self.plugin,
            self.event,
            self.channel_id,
        )

    def _forget_failed(self, task: asyncio.Future[None]) -> None:
        if task.cancelled() or task.exception() is not None:
            self._removing = None

    def __repr__(self) -> str:
        return (
            f"PluginListener(plugin={self.plugin!r}, event={self.event!r}, "
            f"channel_id={self.channel_id})"
        )


async def add_plugin_listener(
    transport: Transport,
    plugin: str,
    event: str,
    handler: MessageHandler,
) -> PluginListener:
    """Register *handler* for *event* pushes of *plugin*.

    Returns once the plugin acknowledged the registration. If it fails the
    channel is discarded and the error propagates.
    """
    channel = Channel(handler, registry=transport.registry)
    args: dict[str, Any] = {"event": event, "handler": channel}
    try:
        await transport.invoke(plugin_command(plugin, "register_listener"), args)
    except BaseException:
        channel.discard()
        raise
    logger.debug("Added listener %s/%s (channel %d)", plugin, event, channel.id)
    return PluginListener(transport, plugin, event, channel.id)

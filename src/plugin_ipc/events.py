"""Event subscriptions on top of channels — ``listen``, ``once``, ``emit``.

Events go through the host's ``event`` plugin. ``listen`` opens a private
``Channel``, so a subscriber sees events in the order the host sent them.
The host answers a listen request with its own subscription id; that id is
only used to unlisten, while the channel id only routes deliveries.

``target`` scopes a subscription or an emit to one labelled window/context;
``None`` means every context.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

from pydantic import ValidationError

from .channel import Channel
from .models import Event, plugin_command
from .transport import Transport

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], None]
Unlisten = Callable[[], Awaitable[None]]

LISTEN = plugin_command("event", "listen")
UNLISTEN = plugin_command("event", "unlisten")
EMIT = plugin_command("event", "emit")

_EVENT_NAME = re.compile(r"[A-Za-z0-9\-/:_]+")

# Keeps fire-and-forget unlisten tasks alive until they finish.
_background: set[asyncio.Task[None]] = set()


class BuiltinEvent(StrEnum):
    """Events the host emits on its own for windows and webviews."""

    WINDOW_RESIZED = "tauri://resize"
    WINDOW_MOVED = "tauri://move"
    WINDOW_CLOSE_REQUESTED = "tauri://close-requested"
    WINDOW_DESTROYED = "tauri://destroyed"
    WINDOW_FOCUS = "tauri://focus"
    WINDOW_BLUR = "tauri://blur"
    WINDOW_SCALE_FACTOR_CHANGED = "tauri://scale-change"
    WINDOW_THEME_CHANGED = "tauri://theme-changed"
    WINDOW_CREATED = "tauri://window-created"
    WEBVIEW_CREATED = "tauri://webview-created"
    DRAG_ENTER = "tauri://drag-enter"
    DRAG_OVER = "tauri://drag-over"
    DRAG_DROP = "tauri://drag-drop"
    DRAG_LEAVE = "tauri://drag-leave"


def check_event_name(event: str) -> None:
    """Raise ``ValueError`` unless *event* is a name the host accepts."""
    if not _EVENT_NAME.fullmatch(event):
        raise ValueError(
            f"Invalid event name {event!r}: only alphanumerics, '-', '/', ':' "
            "and '_' are allowed"
        )


class _Subscription:
    def __init__(
        self, transport: Transport, event: str, event_id: Any, channel: Channel
    ) -> None:
        self._transport = transport
        self._event = event
        self._event_id = event_id
        self._channel = channel
        self._done = False
        self._removing: asyncio.Future[None] | None = None

    async def unlisten(self) -> None:
        if self._done:
            return
        if self._removing is None:
            self._removing = asyncio.ensure_future(self._remove())
            self._removing.add_done_callback(self._forget_failed)
        await asyncio.shield(self._removing)

    async def _remove(self) -> None:
        await self._transport.invoke(
            UNLISTEN, {"event": self._event, "eventId": self._event_id}
        )
        self._done = True
        # Only this subscription ever held the channel.
        self._channel.discard()
        logger.debug("Unlistened '%s' (subscription %s)", self._event, self._event_id)

    def _forget_failed(self, task: asyncio.Future[None]) -> None:
        if task.cancelled() or task.exception() is not None:
            self._removing = None


async def listen(
    transport: Transport,
    event: str,
    handler: EventHandler,
    *,
    target: str | None = None,
) -> Unlisten:
    """Call *handler* for every *event* until the returned ``unlisten()`` runs."""
    check_event_name(event)

    def _on_message(raw: Any) -> None:
        try:
            evt = Event.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Dropping malformed '%s' event: %s", event, exc)
            return
        handler(evt)

    channel = Channel(_on_message, registry=transport.registry)
    try:
        event_id = await transport.invoke(
            LISTEN, {"event": event, "target": target, "handler": channel}
        )
    except BaseException:
        channel.discard()
        raise
    logger.debug("Listening to '%s' (subscription %s)", event, event_id)
    return _Subscription(transport, event, event_id, channel).unlisten


async def once(
    transport: Transport,
    event: str,
    handler: EventHandler,
    *,
    target: str | None = None,
) -> Unlisten:
    """Like ``listen`` but *handler* runs for the first event only.

    The unlisten request after the first event is best effort; its errors are
    logged and dropped. Events arriving before it completes are ignored here.
    """
    fired = False
    unlisten: Unlisten | None = None

    def _fire(evt: Event) -> None:
        nonlocal fired
        if fired:
            return
        fired = True
        try:
            handler(evt)
        finally:
            if unlisten is not None:
                _unlisten_in_background(unlisten, event)

    unlisten = await listen(transport, event, _fire, target=target)
    if fired:
        # The event beat the listen acknowledgement.
        _unlisten_in_background(unlisten, event)
    return unlisten


async def emit(
    transport: Transport,
    event: str,
    payload: Any = None,
    *,
    target: str | None = None,
) -> None:
    """Send *event* with *payload* to its listeners."""
    check_event_name(event)
    await transport.invoke(EMIT, {"event": event, "target": target, "payload": payload})


def _unlisten_in_background(unlisten: Unlisten, event: str) -> None:
    task = asyncio.get_running_loop().create_task(_unlisten_quietly(unlisten, event))
    _background.add(task)
    task.add_done_callback(_background.discard)


async def _unlisten_quietly(unlisten: Unlisten, event: str) -> None:
    try:
        await unlisten()
    except Exception as exc:
        logger.debug("Ignoring failed unlisten of '%s': %s", event, exc)

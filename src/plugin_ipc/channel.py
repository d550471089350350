"""Channel — an ordered sink for one stream of host-pushed messages.

The host tags every message of a stream with a sequence number starting at 0
and pushes them without any ordering guarantee. A ``Channel`` buffers early
arrivals and calls its ``on_message`` handler strictly in sequence order,
once per sequence number::

    channel = Channel(lambda position: print(position))
    await transport.invoke("plugin:geolocation|watch_position",
                           {"options": options, "channel": channel})

On the wire a channel is the string ``__CHANNEL__:<id>``; the host uses the id
to route ``ipc.deliver`` pushes back through the callback registry.

Attaching a handler never flushes anything by itself. Every arrival drains all
messages that have become contiguous, so the buffer only ever holds messages
that are still waiting for an earlier one. Messages that became deliverable
while no handler was attached are dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from .models import TaggedMessage
from .registry import CallbackRegistry, get_registry

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "__CHANNEL__:"

MessageHandler = Callable[[Any], None]


class Channel:
    """Reorders tagged deliveries and hands payloads to ``on_message``."""

    def __init__(
        self,
        on_message: MessageHandler | None = None,
        *,
        registry: CallbackRegistry | None = None,
    ) -> None:
        self._registry = registry if registry is not None else get_registry()
        self._on_message = on_message
        self._next_index = 0
        self._pending: dict[int, Any] = {}
        self._draining = False
        # The handle is valid from here on, before any host round-trip.
        self.id = self._registry.register(self._deliver)

    @property
    def on_message(self) -> MessageHandler | None:
        return self._on_message

    @on_message.setter
    def on_message(self, handler: MessageHandler | None) -> None:
        self._on_message = handler

    @property
    def next_index(self) -> int:
        """Sequence number the channel is waiting for."""
        return self._next_index

    @property
    def pending(self) -> tuple[int, ...]:
        """Buffered sequence numbers, ascending."""
        return tuple(sorted(self._pending))

    def to_json(self) -> str:
        return f"{CHANNEL_PREFIX}{self.id}"

    def __str__(self) -> str:
        return self.to_json()

    def __repr__(self) -> str:
        return (
            f"Channel(id={self.id}, next_index={self._next_index}, "
            f"pending={len(self._pending)})"
        )

    def discard(self) -> None:
        """Remove this channel from the callback registry.

        Later pushes for its id are dropped by the registry. Safe to call
        more than once.
        """
        self._registry.remove(self.id)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _deliver(self, raw: Any) -> None:
        try:
            tagged = TaggedMessage.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Channel %d dropping malformed delivery: %s", self.id, exc)
            return

        index = tagged.id
        if index < self._next_index:
            logger.debug(
                "Channel %d ignoring stale message %d (expecting %d)",
                self.id,
                index,
                self._next_index,
            )
            return
        # First copy wins when the same early message arrives twice.
        self._pending.setdefault(index, tagged.message)

        # A handler delivering into its own channel only buffers; the
        # drain already running below picks the message up.
        if self._draining:
            return
        self._draining = True
        try:
            while self._next_index in self._pending:
                message = self._pending.pop(self._next_index)
                self._next_index += 1
                self._emit(message)
        finally:
            self._draining = False

    def _emit(self, message: Any) -> None:
        handler = self._on_message
        if handler is None:
            logger.debug(
                "Channel %d has no handler, dropping message %d",
                self.id,
                self._next_index - 1,
            )
            return
        try:
            handler(message)
        except Exception:
            logger.exception("Channel %d handler raised", self.id)

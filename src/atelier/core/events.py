"""Event delivery from the agent loop to its caller.

The loop emits every event through one :class:`EventBus`. A caller may
register a single callback, read events from an :class:`EventChannel`,
or both.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

import anyio
from anyio.abc import ObjectReceiveStream, ObjectSendStream

from atelier.types.events import AgentEvent, RunFinished

logger = logging.getLogger(__name__)

EventCallback = Callable[[AgentEvent], Awaitable[None] | None]


class EventChannel:
    """Async iterator view of the event stream.

    Uses anyio memory object streams; iteration stops after the
    :class:`RunFinished` event or when the channel is closed.
    """

    def __init__(self, buffer_size: float = float("inf")) -> None:
        send: ObjectSendStream[AgentEvent]
        recv: ObjectReceiveStream[AgentEvent]
        send, recv = anyio.create_memory_object_stream[AgentEvent](max_buffer_size=buffer_size)
        self._send = send
        self._recv = recv

    async def send(self, event: AgentEvent) -> None:
        try:
            await self._send.send(event)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            logger.debug("Dropped %s: channel closed", event.name)

    async def close(self) -> None:
        await self._send.aclose()

    async def __aiter__(self) -> AsyncIterator[AgentEvent]:
        async with self._recv:
            async for event in self._recv:
                yield event
                if isinstance(event, RunFinished):
                    break


class EventBus:
    """Fans events out to an optional callback and any attached channels.

    A failing callback is logged and never interrupts the run.
    """

    def __init__(self, callback: EventCallback | None = None) -> None:
        self._callback = callback
        self._channels: list[EventChannel] = []

    def attach(self, channel: EventChannel) -> None:
        self._channels.append(channel)

    def detach(self, channel: EventChannel) -> None:
        if channel in self._channels:
            self._channels.remove(channel)

    async def emit(self, event: AgentEvent) -> None:
        if self._callback is not None:
            try:
                outcome = self._callback(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:  # noqa: BLE001
                logger.exception("Event callback failed on %s", event.name)
        for channel in list(self._channels):
            await channel.send(event)

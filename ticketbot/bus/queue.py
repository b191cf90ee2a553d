"""
Event bus and frame feed.

The bus decouples whatever transport produces frames from the bot that
consumes parsed events.
"""

import asyncio
from typing import Any, AsyncIterable, Iterable

from loguru import logger

from ticketbot.auto_reply.errors import ParseError
from ticketbot.bus.events import TicketEvent, parse_channel_create


class EventBus:
    """Async queue of parsed ticket events."""

    def __init__(self, maxsize: int = 0):
        self._inbound: asyncio.Queue[TicketEvent] = asyncio.Queue(maxsize=maxsize)
        self._published = 0

    async def publish(self, event: TicketEvent) -> None:
        """Publish an event for the bot to consume."""
        await self._inbound.put(event)
        self._published += 1

    async def consume(self) -> TicketEvent:
        """Wait for the next event."""
        return await self._inbound.get()

    @property
    def size(self) -> int:
        return self._inbound.qsize()

    def get_stats(self) -> dict[str, Any]:
        return {"pending": self.size, "published": self._published}


class FrameFeed:
    """
    Turns raw frames into events on the bus.

    Malformed frames are logged and dropped; they never stop the feed.
    """

    def __init__(self, bus: EventBus):
        self.bus = bus
        self.frames_seen = 0
        self.parse_errors = 0

    async def feed_frame(self, frame: str | bytes | dict[str, Any]) -> TicketEvent | None:
        """Parse one frame and publish it if it is a channel-create event."""
        self.frames_seen += 1
        try:
            event = parse_channel_create(frame)
        except ParseError as e:
            self.parse_errors += 1
            logger.warning(f"Dropping malformed frame: {e}")
            return None

        if event is not None:
            await self.bus.publish(event)
        return event

    async def pump(self, frames: AsyncIterable[Any] | Iterable[Any]) -> int:
        """
        Feed every frame from an iterable or async iterable.

        Returns:
            Number of events published.
        """
        published = 0
        if hasattr(frames, "__aiter__"):
            async for frame in frames:
                if await self.feed_frame(frame) is not None:
                    published += 1
        else:
            for frame in frames:
                if await self.feed_frame(frame) is not None:
                    published += 1
        return published

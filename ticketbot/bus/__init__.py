"""Event feed types and the in-process event bus."""

from ticketbot.bus.events import TicketEvent, parse_channel_create
from ticketbot.bus.queue import EventBus, FrameFeed

__all__ = [
    "TicketEvent",
    "parse_channel_create",
    "EventBus",
    "FrameFeed",
]

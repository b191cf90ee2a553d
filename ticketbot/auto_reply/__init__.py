"""
Auto-reply pipeline for TicketBot.

Provides the dispatch core:
- Duplicate suppression
- Destination policy and delay injection
- Rate-limited priority queue
- Reply dispatch and control commands
"""

from ticketbot.auto_reply.errors import (
    TicketBotError,
    DuplicateEvent,
    QueueFullError,
    TaskDiscardedError,
    DeliveryError,
    ParseError,
)
from ticketbot.auto_reply.clock import Clock, SystemClock
from ticketbot.auto_reply.dedup import Deduplicator
from ticketbot.auto_reply.policy import (
    DestinationPolicy,
    ResolvedReply,
    extract_ticket_number,
)
from ticketbot.auto_reply.delay import DelayInjector
from ticketbot.auto_reply.queue import (
    RateLimitedQueue,
    QueueConfig,
    QueueStatus,
    QueuedTask,
    TaskState,
    TokenBucket,
)
from ticketbot.auto_reply.dispatch import (
    ReplyDispatcher,
    DispatchConfig,
    DispatchOutcome,
    DispatchStatus,
)
from ticketbot.auto_reply.commands import (
    Command,
    CommandRegistry,
    parse_command,
    build_control_registry,
)

__all__ = [
    # Errors
    "TicketBotError",
    "DuplicateEvent",
    "QueueFullError",
    "TaskDiscardedError",
    "DeliveryError",
    "ParseError",
    # Time
    "Clock",
    "SystemClock",
    # Admission
    "Deduplicator",
    # Policy
    "DestinationPolicy",
    "ResolvedReply",
    "extract_ticket_number",
    "DelayInjector",
    # Queue
    "RateLimitedQueue",
    "QueueConfig",
    "QueueStatus",
    "QueuedTask",
    "TaskState",
    "TokenBucket",
    # Dispatch
    "ReplyDispatcher",
    "DispatchConfig",
    "DispatchOutcome",
    "DispatchStatus",
    # Commands
    "Command",
    "CommandRegistry",
    "parse_command",
    "build_control_registry",
]

"""
Reply dispatcher for TicketBot auto-reply.

Routes each new-ticket event through:
- Target filtering and the pause gate
- Duplicate suppression
- Destination policy and delay injection
- The rate-limited queue and the delivery action
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from loguru import logger

from ticketbot.auto_reply.dedup import Deduplicator
from ticketbot.auto_reply.delay import DelayInjector
from ticketbot.auto_reply.errors import (
    DeliveryError,
    DuplicateEvent,
    QueueFullError,
    TaskDiscardedError,
)
from ticketbot.auto_reply.policy import DestinationPolicy, ResolvedReply
from ticketbot.auto_reply.queue import RateLimitedQueue
from ticketbot.channels.base import DeliveryAction, DeliveryResult

if TYPE_CHECKING:
    from ticketbot.bus.events import TicketEvent
    from ticketbot.tracking.latency import LatencyTracker


@dataclass
class DispatchConfig:
    """Configuration for the dispatcher."""
    target_ids: set[str] = field(default_factory=set)  # Empty = all servers
    discard_on_pause: bool = True  # Flush queued replies when pausing


class DispatchStatus(str, Enum):
    """What happened to an event."""
    IGNORED = "ignored"  # Server not targeted
    PAUSED = "paused"  # Dropped while paused
    DUPLICATE = "duplicate"
    QUEUE_FULL = "queue_full"  # Id stays admitted, so a resubmit is a duplicate
    DISCARDED = "discarded"  # Flushed by a pause while delayed or queued
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass
class DispatchOutcome:
    """Result of handling one event."""
    event_id: str
    status: DispatchStatus
    reply: ResolvedReply | None = None
    result: DeliveryResult | None = None
    error: str | None = None
    delay_ms: float = 0.0


class ReplyDispatcher:
    """
    Turns ticket events into rate-limited replies.

    Flow:
    1. Drop events for untargeted servers, or while paused
    2. Admit each event id once
    3. Resolve message, priority and delay
    4. Wait the injected delay, then queue the delivery
    5. Report the delivery outcome
    """

    def __init__(
        self,
        queue: RateLimitedQueue,
        policy: DestinationPolicy,
        deduplicator: Deduplicator,
        delay_injector: DelayInjector,
        delivery: DeliveryAction,
        config: DispatchConfig | None = None,
        latency: "LatencyTracker | None" = None,
    ):
        self.queue = queue
        self.policy = policy
        self.deduplicator = deduplicator
        self.delay_injector = delay_injector
        self.delivery = delivery
        self.config = config or DispatchConfig()
        self.latency = latency

        self._paused = False

        # Stats
        self._counts: dict[DispatchStatus, int] = {status: 0 for status in DispatchStatus}

    @property
    def is_paused(self) -> bool:
        return self._paused

    def pause(self) -> int:
        """
        Stop admitting new events.

        Returns:
            Number of queued replies discarded (0 unless discard_on_pause).
        """
        self._paused = True
        discarded = self.queue.clear() if self.config.discard_on_pause else 0
        logger.info(f"Bot PAUSED ({discarded} queued replies discarded)")
        return discarded

    def resume(self) -> None:
        """Resume admitting new events."""
        self._paused = False
        logger.info("Bot RESUMED")

    def is_targeted(self, server_id: str) -> bool:
        """Whether events from a server should be answered."""
        return not self.config.target_ids or server_id in self.config.target_ids

    async def handle_event(self, event: "TicketEvent") -> DispatchOutcome:
        """
        Handle a single new-ticket event end to end.

        Args:
            event: The parsed channel-create event.

        Returns:
            The outcome; delivery failures are reported, never raised.
        """
        if not self.is_targeted(event.server_id):
            return self._outcome(event, DispatchStatus.IGNORED)

        name = self.policy.name_for(event.server_id)

        if self._paused:
            logger.info(f"Bot is paused - ignoring new channel in {name}")
            return self._outcome(event, DispatchStatus.PAUSED)

        try:
            self.deduplicator.check(event.id)
        except DuplicateEvent:
            logger.debug(f"Duplicate event for channel {event.id}. Ignoring.")
            return self._outcome(event, DispatchStatus.DUPLICATE)

        logger.info(f"New ticket detected: {event.label} in {name}")
        started = time.perf_counter()

        reply = self.policy.resolve(event.server_id, event.label)
        logger.debug(
            f"Resolved reply for {name}: {reply.message!r} "
            f"(priority: {reply.priority}, delay: {reply.delay_range_ms})"
        )

        delay_ms = await self.delay_injector.inject(reply.delay_range_ms)
        if delay_ms > 0:
            logger.debug(f"{name}: applied {delay_ms:.0f}ms delay")

        # A pause during the delay flushes this reply like a queued one
        if self._paused and self.config.discard_on_pause:
            logger.info(f"Reply for {event.id} discarded before sending")
            return self._outcome(
                event,
                DispatchStatus.DISCARDED,
                reply,
                error="Paused before the reply was queued",
                delay_ms=delay_ms,
            )

        async def send_reply() -> DeliveryResult:
            sent_at = time.perf_counter()
            result = await self.delivery.send(event.destination, reply.message)
            if self.latency:
                done_at = time.perf_counter()
                self.latency.add_measurement(
                    destination=reply.destination_name,
                    network_ms=(done_at - sent_at) * 1000,
                    total_ms=(done_at - started) * 1000,
                )
            return result

        try:
            result = await self.queue.submit(send_reply, priority=reply.priority)
        except QueueFullError as e:
            logger.warning(f"Rate limiter error for {event.id}: {e}")
            return self._outcome(event, DispatchStatus.QUEUE_FULL, reply, error=str(e), delay_ms=delay_ms)
        except TaskDiscardedError as e:
            logger.info(f"Reply for {event.id} discarded before sending")
            return self._outcome(event, DispatchStatus.DISCARDED, reply, error=str(e), delay_ms=delay_ms)
        except DeliveryError as e:
            logger.error(f"Error sending message to {event.destination}: {e}")
            return self._outcome(event, DispatchStatus.FAILED, reply, error=str(e), delay_ms=delay_ms)
        except Exception as e:
            logger.error(f"Unexpected delivery error for {event.destination}: {e}")
            return self._outcome(event, DispatchStatus.FAILED, reply, error=str(e), delay_ms=delay_ms)

        return self._outcome(event, DispatchStatus.DELIVERED, reply, result=result, delay_ms=delay_ms)

    def _outcome(
        self,
        event: "TicketEvent",
        status: DispatchStatus,
        reply: ResolvedReply | None = None,
        result: DeliveryResult | None = None,
        error: str | None = None,
        delay_ms: float = 0.0,
    ) -> DispatchOutcome:
        self._counts[status] += 1
        return DispatchOutcome(
            event_id=event.id,
            status=status,
            reply=reply,
            result=result,
            error=error,
            delay_ms=delay_ms,
        )

    def get_stats(self) -> dict[str, Any]:
        """Get dispatcher statistics."""
        return {
            "paused": self._paused,
            "discard_on_pause": self.config.discard_on_pause,
            "outcomes": {status.value: count for status, count in self._counts.items()},
            "queue_stats": self.queue.get_stats(),
        }

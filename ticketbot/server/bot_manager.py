"""
Bot lifecycle manager.

Provides:
- State machine for the bot lifecycle (stopped -> running <-> paused)
- Wiring of the auto-reply pipeline from Config
- Event bus consumption with one handler task per event
- Status reporting for the console and the control API
"""

import asyncio
import random
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger

from ticketbot import __version__
from ticketbot.auto_reply.clock import Clock, SystemClock
from ticketbot.auto_reply.dedup import Deduplicator
from ticketbot.auto_reply.delay import DelayInjector
from ticketbot.auto_reply.dispatch import DispatchConfig, DispatchOutcome, ReplyDispatcher
from ticketbot.auto_reply.errors import TicketBotError
from ticketbot.auto_reply.policy import DestinationPolicy
from ticketbot.auto_reply.queue import QueueConfig, RateLimitedQueue
from ticketbot.bus.events import TicketEvent
from ticketbot.bus.queue import EventBus
from ticketbot.channels.base import DeliveryAction
from ticketbot.config.schema import Config
from ticketbot.tracking.latency import LatencyTracker


class BotState(Enum):
    """Bot lifecycle states."""
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class BotStateError(TicketBotError):
    """A control command is not valid in the current state."""


class BotManager:
    """
    Owns the auto-reply pipeline and its lifecycle.

    Features:
    - Builds every component from Config, no shared globals
    - Pause drops new events (and optionally flushes the queue)
    - Graceful shutdown of timers, handlers and the HTTP client
    """

    def __init__(
        self,
        config: Config,
        delivery: DeliveryAction | None = None,
        bus: EventBus | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ):
        self._config = config
        self.clock = clock or SystemClock()
        rng = rng or random.Random()

        if delivery is None:
            from ticketbot.channels.revolt import RevoltDelivery
            delivery = RevoltDelivery(config.upstream)
        self.delivery = delivery
        self.bus = bus or EventBus()

        limits = config.rate_limit
        self.queue = RateLimitedQueue(
            QueueConfig(
                refill_rate=limits.refill_rate,
                bucket_size=limits.bucket_size,
                token_cost=limits.token_cost,
                max_queue_size=limits.max_queue_size,
                poll_interval_seconds=limits.poll_interval_ms / 1000,
            ),
            clock=self.clock,
        )
        self.deduplicator = Deduplicator(
            expiration_seconds=config.dedup.expiration_hours * 3600,
            cleanup_interval_seconds=config.dedup.cleanup_interval_minutes * 60,
            max_entries=config.dedup.max_entries,
            clock=self.clock,
        )
        self.policy = DestinationPolicy(config.destinations, rng=rng)
        self.latency = LatencyTracker()
        self.dispatcher = ReplyDispatcher(
            queue=self.queue,
            policy=self.policy,
            deduplicator=self.deduplicator,
            delay_injector=DelayInjector(clock=self.clock, rng=rng),
            delivery=self.delivery,
            config=DispatchConfig(
                target_ids=set(config.target_ids),
                discard_on_pause=config.control.discard_on_pause,
            ),
            latency=self.latency,
        )

        # State tracking
        self._state = BotState.STOPPED
        self._started_at: datetime | None = None
        self._consume_task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._shutdown = asyncio.Event()

        # Stats
        self._events_received = 0

    @property
    def state(self) -> BotState:
        """Current bot state."""
        return self._state

    @property
    def config(self) -> Config:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._state != BotState.STOPPED

    @property
    def is_paused(self) -> bool:
        return self._state == BotState.PAUSED

    async def start(self) -> None:
        """Start the cleanup timer and begin consuming events."""
        if self.is_running:
            return

        if not self._config.upstream.session_token:
            logger.warning("No session token configured - deliveries will be rejected upstream")

        self._shutdown.clear()
        await self.deduplicator.start()
        self._consume_task = asyncio.create_task(self._consume_loop())
        self._state = BotState.RUNNING
        self._started_at = datetime.now()

        logger.info("TicketBot started")
        limits = self._config.rate_limit
        logger.info(
            f"Rate Limit: {limits.refill_rate:g} msg/sec with burst of {limits.bucket_size}"
        )
        for server_id, entry in self._config.destinations.items():
            logger.info(
                f"Monitoring {entry.name or 'Unknown'} ({server_id}): "
                f"priority={entry.priority}, delay={entry.delay_min_ms:g}-{entry.delay_max_ms:g}ms, "
                f"message={entry.message}"
            )

    async def stop(self) -> None:
        """Stop consuming, cancel in-flight handlers and release resources."""
        if not self.is_running:
            return

        logger.info("Stopping TicketBot")
        if self._consume_task:
            self._consume_task.cancel()
            try:
                await self._consume_task
            except asyncio.CancelledError:
                pass
            self._consume_task = None

        for task in list(self._inflight):
            task.cancel()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        self._inflight.clear()

        await self.queue.close()
        await self.deduplicator.stop()
        await self.delivery.close()

        self._state = BotState.STOPPED
        logger.info("TicketBot stopped")

    def pause(self) -> int:
        """
        Pause the bot.

        Returns:
            Number of queued replies discarded.
        """
        if self._state != BotState.RUNNING:
            raise BotStateError(f"Cannot pause while {self._state.value}")
        self._state = BotState.PAUSED
        return self.dispatcher.pause()

    def resume(self) -> None:
        """Resume a paused bot."""
        if self._state != BotState.PAUSED:
            raise BotStateError(f"Cannot resume while {self._state.value}")
        self.dispatcher.resume()
        self._state = BotState.RUNNING

    def request_shutdown(self) -> None:
        """Ask the owner of run() to stop the bot."""
        self._shutdown.set()

    async def wait_for_shutdown(self) -> None:
        await self._shutdown.wait()

    async def run(self) -> None:
        """Start the bot and keep it running until shutdown is requested."""
        await self.start()
        try:
            await self.wait_for_shutdown()
        finally:
            await self.stop()

    async def handle(self, event: TicketEvent) -> DispatchOutcome:
        """Handle one event directly, bypassing the bus."""
        self._events_received += 1
        return await self.dispatcher.handle_event(event)

    async def _consume_loop(self) -> None:
        while True:
            event = await self.bus.consume()
            task = asyncio.create_task(self._handle_safely(event))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _handle_safely(self, event: TicketEvent) -> None:
        try:
            outcome = await self.handle(event)
            logger.debug(f"Event {event.id}: {outcome.status.value}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error handling event {event.id}: {e}")

    def get_status(self) -> dict[str, Any]:
        """Get comprehensive status information."""
        uptime = None
        if self._started_at and self.is_running:
            uptime = (datetime.now() - self._started_at).total_seconds()

        return {
            "state": self._state.value,
            "is_running": self.is_running,
            "is_paused": self.is_paused,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "uptime_seconds": uptime,
            "events_received": self._events_received,
            "in_flight": len(self._inflight),
            "targets": {
                server_id: entry.name or "Unknown"
                for server_id, entry in self._config.destinations.items()
            },
            "queue": self.queue.get_stats(),
            "dedup": self.deduplicator.get_stats(),
            "outcomes": self.dispatcher.get_stats()["outcomes"],
            "latency": self.latency.get_stats(),
            "bus": self.bus.get_stats(),
            "version": __version__,
        }

"""
Tests for the reply dispatcher.
"""

import asyncio
import random

import pytest

from conftest import FakeClock, RecordingDelivery, settle
from ticketbot.auto_reply.dedup import Deduplicator
from ticketbot.auto_reply.delay import DelayInjector
from ticketbot.auto_reply.dispatch import DispatchConfig, DispatchStatus, ReplyDispatcher
from ticketbot.auto_reply.policy import DestinationPolicy
from ticketbot.auto_reply.queue import QueueConfig, RateLimitedQueue
from ticketbot.bus.events import TicketEvent
from ticketbot.tracking.latency import LatencyTracker


class GatedClock(FakeClock):
    """Clock whose sleeps all wait until the gate is opened."""

    def __init__(self):
        super().__init__(auto_advance=False)
        self.gate = asyncio.Event()

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        await self.gate.wait()


def make_dispatcher(
    clock,
    delivery,
    destinations,
    queue_config: QueueConfig | None = None,
    discard_on_pause: bool = True,
    target_ids=None,
) -> ReplyDispatcher:
    return ReplyDispatcher(
        queue=RateLimitedQueue(queue_config or QueueConfig(), clock=clock),
        policy=DestinationPolicy(destinations, rng=random.Random(7)),
        deduplicator=Deduplicator(clock=clock),
        delay_injector=DelayInjector(clock=clock, rng=random.Random(7)),
        delivery=delivery,
        config=DispatchConfig(
            target_ids=set(target_ids or ()),
            discard_on_pause=discard_on_pause,
        ),
        latency=LatencyTracker(),
    )


def ticket(event_id: str, server_id: str = "srv-plain", label: str = "ticket-482") -> TicketEvent:
    return TicketEvent(
        id=event_id,
        destination=f"chan-{event_id}",
        server_id=server_id,
        label=label,
    )


class TestHandleEvent:
    """Tests for the happy path and the early exits."""

    @pytest.mark.asyncio
    async def test_delivers_reply_to_event_channel(self, frozen_clock, destinations):
        delivery = RecordingDelivery()
        dispatcher = make_dispatcher(frozen_clock, delivery, destinations)

        outcome = await dispatcher.handle_event(ticket("e1"))

        assert outcome.status == DispatchStatus.DELIVERED
        assert outcome.result.message_id == "msg-1"
        assert outcome.reply.message == "482"
        assert delivery.sent == [("chan-e1", "482")]

    @pytest.mark.asyncio
    async def test_records_latency(self, frozen_clock, destinations):
        dispatcher = make_dispatcher(frozen_clock, RecordingDelivery(), destinations)

        await dispatcher.handle_event(ticket("e1"))

        stats = dispatcher.latency.get_stats("Plain")
        assert stats["count"] == 1
        assert stats["max_total_ms"] >= stats["max_network_ms"]

    @pytest.mark.asyncio
    async def test_untargeted_server_is_ignored(self, frozen_clock, destinations):
        delivery = RecordingDelivery()
        dispatcher = make_dispatcher(
            frozen_clock, delivery, destinations, target_ids={"srv-vip"}
        )

        outcome = await dispatcher.handle_event(ticket("e1", server_id="srv-plain"))

        assert outcome.status == DispatchStatus.IGNORED
        assert delivery.sent == []
        assert "e1" not in dispatcher.deduplicator

    @pytest.mark.asyncio
    async def test_duplicate_is_sent_once(self, frozen_clock, destinations):
        delivery = RecordingDelivery()
        dispatcher = make_dispatcher(frozen_clock, delivery, destinations)

        first = await dispatcher.handle_event(ticket("e1"))
        second = await dispatcher.handle_event(ticket("e1"))

        assert first.status == DispatchStatus.DELIVERED
        assert second.status == DispatchStatus.DUPLICATE
        assert len(delivery.sent) == 1

    @pytest.mark.asyncio
    async def test_paused_events_are_not_remembered(self, frozen_clock, destinations):
        delivery = RecordingDelivery()
        dispatcher = make_dispatcher(frozen_clock, delivery, destinations)

        dispatcher.pause()
        paused = await dispatcher.handle_event(ticket("e1"))
        dispatcher.resume()
        resumed = await dispatcher.handle_event(ticket("e1"))

        assert paused.status == DispatchStatus.PAUSED
        assert resumed.status == DispatchStatus.DELIVERED
        assert delivery.sent == [("chan-e1", "482")]

    @pytest.mark.asyncio
    async def test_delivery_failure_is_reported(self, frozen_clock, destinations):
        delivery = RecordingDelivery(fail_channels={"chan-bad"})
        dispatcher = make_dispatcher(frozen_clock, delivery, destinations)

        failed = await dispatcher.handle_event(ticket("bad"))
        delivered = await dispatcher.handle_event(ticket("good"))

        assert failed.status == DispatchStatus.FAILED
        assert "API Error: 403" in failed.error
        assert delivered.status == DispatchStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_delay_is_applied_before_queueing(self, frozen_clock, destinations):
        dispatcher = make_dispatcher(frozen_clock, RecordingDelivery(), destinations)

        vip = await dispatcher.handle_event(ticket("e1", server_id="srv-vip"))

        assert vip.delay_ms == 200.0
        assert frozen_clock.sleeps == [0.2]
        assert vip.reply.message in {"..2", "..3", "..4", "..5"}

    @pytest.mark.asyncio
    async def test_zero_delay_destination_does_not_sleep(self, frozen_clock, destinations):
        dispatcher = make_dispatcher(frozen_clock, RecordingDelivery(), destinations)

        outcome = await dispatcher.handle_event(ticket("e1"))

        assert outcome.delay_ms == 0.0
        assert frozen_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_outcome_counts(self, frozen_clock, destinations):
        dispatcher = make_dispatcher(frozen_clock, RecordingDelivery(), destinations)

        await dispatcher.handle_event(ticket("e1"))
        await dispatcher.handle_event(ticket("e1"))

        outcomes = dispatcher.get_stats()["outcomes"]
        assert outcomes["delivered"] == 1
        assert outcomes["duplicate"] == 1


class TestQueueInteraction:
    """Tests that depend on the rate limiter holding replies back."""

    @pytest.mark.asyncio
    async def test_queue_full(self, frozen_clock, destinations):
        delivery = RecordingDelivery()
        dispatcher = make_dispatcher(
            frozen_clock,
            delivery,
            destinations,
            queue_config=QueueConfig(bucket_size=1, max_queue_size=1),
        )

        await dispatcher.handle_event(ticket("e1"))
        waiting = asyncio.create_task(dispatcher.handle_event(ticket("e2")))
        await settle()

        rejected = await dispatcher.handle_event(ticket("e3"))
        assert rejected.status == DispatchStatus.QUEUE_FULL
        assert "queue is full" in rejected.error

        # The rejected id stays admitted
        resubmitted = await dispatcher.handle_event(ticket("e3"))
        assert resubmitted.status == DispatchStatus.DUPLICATE

        await dispatcher.queue.close()
        assert (await waiting).status == DispatchStatus.DISCARDED

    @pytest.mark.asyncio
    async def test_priority_reply_overtakes_queued_reply(self, frozen_clock, destinations):
        delivery = RecordingDelivery()
        dispatcher = make_dispatcher(
            frozen_clock,
            delivery,
            destinations,
            queue_config=QueueConfig(bucket_size=1),
        )

        await dispatcher.handle_event(ticket("e1"))
        normal = asyncio.create_task(dispatcher.handle_event(ticket("e2")))
        await settle()
        urgent = asyncio.create_task(dispatcher.handle_event(ticket("e3", server_id="srv-vip")))
        await settle()

        frozen_clock.advance(1)
        await settle()
        assert [channel for channel, _ in delivery.sent] == ["chan-e1", "chan-e3"]

        frozen_clock.advance(1)
        await asyncio.gather(normal, urgent)
        assert [channel for channel, _ in delivery.sent] == ["chan-e1", "chan-e3", "chan-e2"]

    @pytest.mark.asyncio
    async def test_pause_discards_queued_replies(self, frozen_clock, destinations):
        delivery = RecordingDelivery()
        dispatcher = make_dispatcher(
            frozen_clock,
            delivery,
            destinations,
            queue_config=QueueConfig(bucket_size=1),
        )

        await dispatcher.handle_event(ticket("e1"))
        waiting = asyncio.create_task(dispatcher.handle_event(ticket("e2")))
        await settle()

        assert dispatcher.pause() == 1
        outcome = await waiting

        assert outcome.status == DispatchStatus.DISCARDED
        assert delivery.sent == [("chan-e1", "482")]
        await dispatcher.queue.close()

    @pytest.mark.asyncio
    async def test_pause_during_delay_discards_reply(self, destinations):
        clock = GatedClock()
        delivery = RecordingDelivery()
        dispatcher = make_dispatcher(clock, delivery, destinations)

        delayed = asyncio.create_task(
            dispatcher.handle_event(ticket("e1", server_id="srv-vip"))
        )
        await settle()
        assert clock.sleeps == [0.2]

        assert dispatcher.pause() == 0
        clock.gate.set()
        outcome = await delayed

        assert outcome.status == DispatchStatus.DISCARDED
        assert delivery.sent == []
        assert dispatcher.queue.is_empty
        assert dispatcher.get_stats()["outcomes"]["discarded"] == 1

    @pytest.mark.asyncio
    async def test_pause_during_delay_keeps_reply(self, destinations):
        clock = GatedClock()
        delivery = RecordingDelivery()
        dispatcher = make_dispatcher(clock, delivery, destinations, discard_on_pause=False)

        delayed = asyncio.create_task(
            dispatcher.handle_event(ticket("e1", server_id="srv-vip"))
        )
        await settle()

        dispatcher.pause()
        clock.gate.set()
        outcome = await delayed

        assert outcome.status == DispatchStatus.DELIVERED
        assert [channel for channel, _ in delivery.sent] == ["chan-e1"]

    @pytest.mark.asyncio
    async def test_pause_can_keep_queued_replies(self, frozen_clock, destinations):
        delivery = RecordingDelivery()
        dispatcher = make_dispatcher(
            frozen_clock,
            delivery,
            destinations,
            queue_config=QueueConfig(bucket_size=1),
            discard_on_pause=False,
        )

        await dispatcher.handle_event(ticket("e1"))
        waiting = asyncio.create_task(dispatcher.handle_event(ticket("e2")))
        await settle()

        assert dispatcher.pause() == 0
        assert dispatcher.queue.size == 1

        frozen_clock.advance(1)
        outcome = await waiting

        assert outcome.status == DispatchStatus.DELIVERED
        assert [channel for channel, _ in delivery.sent] == ["chan-e1", "chan-e2"]

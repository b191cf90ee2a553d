"""
Pytest configuration and shared fixtures for TicketBot tests.
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from ticketbot.auto_reply.errors import DeliveryError
from ticketbot.channels.base import DeliveryAction, DeliveryResult
from ticketbot.config.schema import Config, DestinationConfig


class FakeClock:
    """
    Hand-driven clock.

    sleep() records the request, advances time when auto_advance is set,
    and always yields to the event loop once.
    """

    def __init__(self, start: float = 1000.0, auto_advance: bool = True):
        self.current = start
        self.auto_advance = auto_advance
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if self.auto_advance:
            self.current += seconds
        await asyncio.sleep(0)


class RecordingDelivery(DeliveryAction):
    """Delivery action that records sends and fails for chosen channels."""

    name = "recording"

    def __init__(self, clock=None, fail_channels: set[str] | None = None):
        self.clock = clock
        self.fail_channels = fail_channels or set()
        self.sent: list[tuple[str, str]] = []
        self.sent_at: list[float] = []
        self.closed = False

    async def send(self, channel_id: str, message: str) -> DeliveryResult:
        if channel_id in self.fail_channels:
            raise DeliveryError(403, "Missing permission")
        self.sent.append((channel_id, message))
        if self.clock is not None:
            self.sent_at.append(self.clock.now())
        return DeliveryResult(message_id=f"msg-{len(self.sent)}")

    async def close(self) -> None:
        self.closed = True


async def settle(iterations: int = 50) -> None:
    """Let pending tasks run for a number of loop iterations."""
    for _ in range(iterations):
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    """A fake clock that advances on sleep."""
    return FakeClock()


@pytest.fixture
def frozen_clock():
    """A fake clock that only moves when advanced by hand."""
    return FakeClock(auto_advance=False)


@pytest.fixture
def destinations():
    """A small destination table covering each reply style."""
    return {
        "srv-plain": DestinationConfig(name="Plain"),
        "srv-vip": DestinationConfig(
            name="VIP",
            priority=True,
            delay_min_ms=200,
            delay_max_ms=200,
            message="random_suffix",
            suffixes=["..2", "..3", "..4", "..5"],
        ),
        "srv-range": DestinationConfig(
            name="Range",
            priority=True,
            delay_min_ms=180,
            delay_max_ms=200,
        ),
        "srv-template": DestinationConfig(
            name="Templated",
            message="template",
            template="Hi from {name}, ticket {ticket}",
        ),
    }


@pytest.fixture
def config(destinations):
    """A config with a session token and the test destinations."""
    config = Config(destinations=destinations)
    config.upstream.session_token = "test-token"
    return config

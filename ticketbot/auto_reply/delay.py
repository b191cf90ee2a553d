"""Per-destination delay applied before a reply is queued."""

import random

from ticketbot.auto_reply.clock import Clock, SystemClock


class DelayInjector:
    """Waits a (possibly random) time drawn from a [min, max] ms range."""

    def __init__(self, clock: Clock | None = None, rng: random.Random | None = None):
        self.clock = clock or SystemClock()
        self._rng = rng or random.Random()

    def compute_delay_ms(self, delay_range_ms: tuple[float, float]) -> float:
        """Pick the delay for a range; fixed when min == max."""
        low, high = delay_range_ms
        if low == high:
            return float(low)
        return low + self._rng.random() * (high - low)

    async def inject(self, delay_range_ms: tuple[float, float]) -> float:
        """
        Suspend for the computed delay.

        Returns:
            The delay applied, in milliseconds.
        """
        delay_ms = self.compute_delay_ms(delay_range_ms)
        if delay_ms > 0:
            await self.clock.sleep(delay_ms / 1000)
        return delay_ms

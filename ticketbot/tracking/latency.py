"""
Delivery latency tracking for TicketBot.

Tracks:
- Network + API time per delivery
- Total time including local processing
- Per-destination breakdown over a bounded history
"""

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LatencyMeasurement:
    """A single delivery timing."""
    destination: str
    network_ms: float
    total_ms: float
    timestamp: float = field(default_factory=time.time)

    @property
    def processing_ms(self) -> float:
        return self.total_ms - self.network_ms


class LatencyTracker:
    """Keeps the most recent delivery timings."""

    def __init__(self, max_measurements: int = 1000):
        self.max_measurements = max_measurements
        self._measurements: deque[LatencyMeasurement] = deque(maxlen=max_measurements)

    def add_measurement(self, destination: str, network_ms: float, total_ms: float) -> None:
        """Record one delivery timing."""
        self._measurements.append(
            LatencyMeasurement(destination=destination, network_ms=network_ms, total_ms=total_ms)
        )

    def get_stats(self, destination: str | None = None) -> dict[str, Any]:
        """
        Summarize recorded timings.

        Args:
            destination: Restrict to one destination name, or None for all.

        Returns:
            Count, avg/min/max network and total time, avg processing time.
        """
        measurements = [
            m for m in self._measurements
            if destination is None or m.destination == destination
        ]

        if not measurements:
            return {
                "count": 0,
                "avg_network_ms": 0.0,
                "min_network_ms": 0.0,
                "max_network_ms": 0.0,
                "avg_total_ms": 0.0,
                "min_total_ms": 0.0,
                "max_total_ms": 0.0,
                "avg_processing_ms": 0.0,
            }

        network = [m.network_ms for m in measurements]
        total = [m.total_ms for m in measurements]
        processing = [m.processing_ms for m in measurements]
        count = len(measurements)

        return {
            "count": count,
            "avg_network_ms": sum(network) / count,
            "min_network_ms": min(network),
            "max_network_ms": max(network),
            "avg_total_ms": sum(total) / count,
            "min_total_ms": min(total),
            "max_total_ms": max(total),
            "avg_processing_ms": sum(processing) / count,
        }

    def destinations(self) -> list[str]:
        """Destination names with at least one measurement."""
        return sorted({m.destination for m in self._measurements})

    def reset(self) -> None:
        """Forget all measurements."""
        self._measurements.clear()

    def __len__(self) -> int:
        return len(self._measurements)

"""
Delivery tracking for TicketBot.

Provides:
- Latency measurement per delivery
- Per-destination statistics
"""

from ticketbot.tracking.latency import LatencyTracker, LatencyMeasurement

__all__ = ["LatencyTracker", "LatencyMeasurement"]

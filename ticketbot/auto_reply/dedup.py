"""
Duplicate suppression for inbound ticket events.

Provides:
- Exactly-once admission per event id
- Time-based expiration on a periodic timer
- Size cap with oldest-first eviction
"""

import asyncio
from typing import Any

from loguru import logger

from ticketbot.auto_reply.clock import Clock, SystemClock
from ticketbot.auto_reply.errors import DuplicateEvent


class Deduplicator:
    """
    Bounded membership map of admitted event ids.

    Entries map event id -> first-seen time taken from a monotonic clock,
    so dict insertion order is also chronological order. That lets
    admission evict the structurally-first entry in O(1), while
    enforce_capacity() sorts by timestamp and is exact regardless.
    """

    def __init__(
        self,
        expiration_seconds: float = 24 * 60 * 60,
        cleanup_interval_seconds: float = 60 * 60,
        max_entries: int = 100_000,
        clock: Clock | None = None,
    ):
        """
        Initialize the deduplicator.

        Args:
            expiration_seconds: Age after which an entry is forgotten.
            cleanup_interval_seconds: Period of the background cleanup.
            max_entries: Maximum number of ids to remember.
            clock: Time source (defaults to the system clock).
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.expiration_seconds = expiration_seconds
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self.max_entries = max_entries
        self.clock = clock or SystemClock()

        self._entries: dict[str, float] = {}
        self._cleanup_task: asyncio.Task | None = None

        # Stats
        self._total_admitted = 0
        self._total_duplicates = 0
        self._total_evicted = 0

    def admit(self, event_id: str) -> bool:
        """
        Admit an event id the first time it is seen.

        A repeat call leaves the map and the counters untouched.

        Returns:
            True if the id is new (and is now recorded), False otherwise.
        """
        if event_id in self._entries:
            return False

        if len(self._entries) >= self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            self._total_evicted += 1

        self._entries[event_id] = self.clock.now()
        self._total_admitted += 1
        return True

    def check(self, event_id: str) -> None:
        """Admit an event id or raise (and count) DuplicateEvent."""
        if not self.admit(event_id):
            self._total_duplicates += 1
            raise DuplicateEvent(event_id)

    def evict_expired(self, now: float | None = None) -> int:
        """
        Remove every entry older than the expiration window.

        Returns:
            Number of entries removed.
        """
        if now is None:
            now = self.clock.now()
        cutoff = now - self.expiration_seconds

        expired = [
            event_id for event_id, seen_at in self._entries.items()
            if seen_at < cutoff
        ]
        for event_id in expired:
            del self._entries[event_id]

        self._total_evicted += len(expired)
        logger.info(
            f"[Deduplicator] Cleanup completed: removed {len(expired)} expired entries, "
            f"{len(self._entries)} remaining"
        )
        return len(expired)

    def enforce_capacity(self, max_entries: int | None = None) -> int:
        """
        Evict the oldest entries (by first-seen time) down to the cap.

        Returns:
            Number of entries removed.
        """
        cap = self.max_entries if max_entries is None else max_entries
        excess = len(self._entries) - cap
        if excess <= 0:
            return 0

        by_age = sorted(self._entries.items(), key=lambda item: item[1])
        for event_id, _ in by_age[:excess]:
            del self._entries[event_id]

        self._total_evicted += excess
        logger.info(f"[Deduplicator] Size limit enforced: removed {excess} oldest entries")
        return excess

    def cleanup(self) -> int:
        """Run expiration followed by the size cap."""
        return self.evict_expired() + self.enforce_capacity()

    async def start(self) -> None:
        """Start the periodic cleanup task."""
        if self._cleanup_task:
            return

        async def cleanup_loop():
            while True:
                await self.clock.sleep(self.cleanup_interval_seconds)
                self.cleanup()

        self._cleanup_task = asyncio.create_task(cleanup_loop())

    async def stop(self) -> None:
        """Stop the periodic cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    @property
    def is_running(self) -> bool:
        """Whether the cleanup timer is active."""
        return self._cleanup_task is not None

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def first_seen(self, event_id: str) -> float | None:
        """First-seen time of an event id, if tracked."""
        return self._entries.get(event_id)

    def get_stats(self) -> dict[str, Any]:
        """Get deduplicator statistics."""
        oldest_age = None
        if self._entries:
            oldest_age = self.clock.now() - min(self._entries.values())

        return {
            "total_entries": len(self._entries),
            "oldest_entry_age_seconds": oldest_age,
            "total_admitted": self._total_admitted,
            "total_duplicates": self._total_duplicates,
            "total_evicted": self._total_evicted,
        }

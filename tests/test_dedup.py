"""
Tests for duplicate suppression.
"""

import pytest

from conftest import settle
from ticketbot.auto_reply.dedup import Deduplicator
from ticketbot.auto_reply.errors import DuplicateEvent


class TestAdmission:
    """Tests for admit() and check()."""

    def test_first_admission_wins(self, frozen_clock):
        dedup = Deduplicator(clock=frozen_clock)

        assert dedup.admit("chan-1") is True
        frozen_clock.advance(30)
        assert dedup.admit("chan-1") is False

        assert len(dedup) == 1
        assert dedup.first_seen("chan-1") == 1000.0

    def test_repeat_admit_changes_nothing(self, frozen_clock):
        dedup = Deduplicator(clock=frozen_clock)
        dedup.admit("chan-1")
        before = dedup.get_stats()

        assert dedup.admit("chan-1") is False
        assert dedup.get_stats() == before

    def test_check_raises_on_repeat(self, frozen_clock):
        dedup = Deduplicator(clock=frozen_clock)
        dedup.check("chan-1")

        with pytest.raises(DuplicateEvent) as exc_info:
            dedup.check("chan-1")
        assert exc_info.value.event_id == "chan-1"

    def test_cap_evicts_oldest_on_admission(self, frozen_clock):
        dedup = Deduplicator(max_entries=3, clock=frozen_clock)
        for event_id in ("a", "b", "c", "d"):
            dedup.admit(event_id)
            frozen_clock.advance(1)

        assert len(dedup) == 3
        assert "a" not in dedup
        assert all(event_id in dedup for event_id in ("b", "c", "d"))

    def test_evicted_id_is_admitted_again(self, frozen_clock):
        dedup = Deduplicator(max_entries=1, clock=frozen_clock)
        dedup.admit("a")
        dedup.admit("b")

        assert dedup.admit("a") is True

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            Deduplicator(max_entries=0)


class TestCleanup:
    """Tests for expiration and size enforcement."""

    def test_evict_expired(self, frozen_clock):
        dedup = Deduplicator(expiration_seconds=10, clock=frozen_clock)
        dedup.admit("old")
        frozen_clock.advance(6)
        dedup.admit("new")
        frozen_clock.advance(5)

        assert dedup.evict_expired() == 1
        assert "old" not in dedup
        assert "new" in dedup

    def test_evict_expired_at_explicit_time(self, frozen_clock):
        dedup = Deduplicator(expiration_seconds=10, clock=frozen_clock)
        dedup.admit("a")

        assert dedup.evict_expired(now=1005.0) == 0
        assert dedup.evict_expired(now=1011.0) == 1

    def test_enforce_capacity_uses_first_seen_time(self, frozen_clock):
        dedup = Deduplicator(clock=frozen_clock)
        frozen_clock.current = 2000.0
        dedup.admit("late")
        frozen_clock.current = 1000.0
        dedup.admit("early")

        assert dedup.enforce_capacity(1) == 1
        assert "early" not in dedup
        assert "late" in dedup

    def test_enforce_capacity_under_cap(self, frozen_clock):
        dedup = Deduplicator(max_entries=5, clock=frozen_clock)
        dedup.admit("a")
        assert dedup.enforce_capacity() == 0

    def test_stats(self, frozen_clock):
        dedup = Deduplicator(clock=frozen_clock)
        dedup.check("a")
        with pytest.raises(DuplicateEvent):
            dedup.check("a")
        frozen_clock.advance(12)

        stats = dedup.get_stats()
        assert stats["total_entries"] == 1
        assert stats["total_admitted"] == 1
        assert stats["total_duplicates"] == 1
        assert stats["oldest_entry_age_seconds"] == 12

    @pytest.mark.asyncio
    async def test_periodic_cleanup(self, clock):
        dedup = Deduplicator(expiration_seconds=10, cleanup_interval_seconds=5, clock=clock)
        dedup.admit("a")

        await dedup.start()
        assert dedup.is_running
        await settle(10)

        assert "a" not in dedup

        await dedup.stop()
        assert not dedup.is_running

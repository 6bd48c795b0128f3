"""Tests for the layered rate governor."""

import asyncio

import pytest

from imagegate.app.core.config import Settings
from imagegate.app.services.rate_governor import (
    DAY,
    HOUR,
    MINUTE,
    RateCounterStore,
    RateGovernor,
    WindowCounter,
    build_windows,
)


def make_governor(daily=500, hourly=50, burst=20, store=None):
    return RateGovernor(build_windows(daily=daily, hourly=hourly, burst=burst), store=store)


class TestAdmission:
    """Tests for admit()."""

    @pytest.mark.asyncio
    async def test_first_request_admitted(self):
        governor = make_governor()
        result = await governor.admit("10.0.0.1", now=1000.0)

        assert result.allowed is True
        assert result.windows["daily"].remaining == 499
        assert result.windows["hourly"].remaining == 49
        assert result.windows["burst"].remaining == 19
        # Headers report the tightest window
        assert result.window.label == "burst"
        assert result.limit == 20
        assert result.remaining == 19

    @pytest.mark.asyncio
    async def test_burst_ceiling(self):
        governor = make_governor()
        for i in range(20):
            result = await governor.admit("10.0.0.1", now=1000.0 + i)
            assert result.allowed is True

        result = await governor.admit("10.0.0.1", now=1030.0)
        assert result.allowed is False
        assert result.window.label == "burst"
        assert result.window.error == "too_many_requests"
        assert result.remaining == 0

    @pytest.mark.asyncio
    async def test_hourly_ceiling(self):
        governor = make_governor(daily=100, hourly=5, burst=100)
        for i in range(5):
            assert (await governor.admit("a", now=float(i))).allowed is True

        result = await governor.admit("a", now=10.0)
        assert result.allowed is False
        assert result.window.label == "hourly"
        assert result.window.error == "hourly_limit_exceeded"

    @pytest.mark.asyncio
    async def test_daily_ceiling(self):
        governor = make_governor(daily=3, hourly=100, burst=100)
        for i in range(3):
            assert (await governor.admit("a", now=float(i))).allowed is True

        result = await governor.admit("a", now=10.0)
        assert result.allowed is False
        assert result.window.label == "daily"
        assert result.window.message.startswith("You have reached your daily generation limit")

    @pytest.mark.asyncio
    async def test_daily_reported_first_when_several_windows_full(self):
        governor = make_governor(daily=2, hourly=2, burst=2)
        await governor.admit("a", now=0.0)
        await governor.admit("a", now=1.0)

        result = await governor.admit("a", now=2.0)
        assert result.window.label == "daily"

    @pytest.mark.asyncio
    async def test_hourly_reported_before_burst(self):
        governor = make_governor(daily=10, hourly=2, burst=2)
        await governor.admit("a", now=0.0)
        await governor.admit("a", now=1.0)

        result = await governor.admit("a", now=2.0)
        assert result.window.label == "hourly"

    @pytest.mark.asyncio
    async def test_identities_independent(self):
        governor = make_governor(burst=1)
        assert (await governor.admit("a", now=0.0)).allowed is True
        assert (await governor.admit("a", now=1.0)).allowed is False
        assert (await governor.admit("b", now=1.0)).allowed is True

    @pytest.mark.asyncio
    async def test_retry_after_counts_down_to_window_reset(self):
        governor = make_governor(burst=1)
        await governor.admit("a", now=1000.0)

        result = await governor.admit("a", now=1010.0)
        assert result.retry_after == 50
        assert result.reset_time == 1060

    @pytest.mark.asyncio
    async def test_uses_injected_clock(self):
        now = [5000.0]
        governor = RateGovernor(build_windows(burst=1), clock=lambda: now[0])

        assert (await governor.admit("a")).allowed is True
        assert (await governor.admit("a")).allowed is False
        now[0] += MINUTE
        assert (await governor.admit("a")).allowed is True


class TestWindowReset:
    """Tests for window expiry."""

    @pytest.mark.asyncio
    async def test_burst_window_resets_after_a_minute(self):
        governor = make_governor(burst=2)
        await governor.admit("a", now=0.0)
        await governor.admit("a", now=10.0)
        assert (await governor.admit("a", now=30.0)).allowed is False

        result = await governor.admit("a", now=61.0)
        assert result.allowed is True
        assert result.windows["burst"].remaining == 1

    @pytest.mark.asyncio
    async def test_window_anchored_at_first_request_after_expiry(self):
        governor = make_governor(burst=1)
        await governor.admit("a", now=0.0)
        # New period starts at 100, not at the wall-clock minute boundary 60
        assert (await governor.admit("a", now=100.0)).allowed is True
        assert (await governor.admit("a", now=150.0)).allowed is False
        assert (await governor.admit("a", now=160.0)).allowed is True

    @pytest.mark.asyncio
    async def test_hourly_window_resets(self):
        governor = make_governor(hourly=1, burst=10)
        await governor.admit("a", now=0.0)
        assert (await governor.admit("a", now=HOUR - 1)).allowed is False
        assert (await governor.admit("a", now=HOUR + 1)).allowed is True

    @pytest.mark.asyncio
    async def test_rejected_attempts_are_not_counted(self):
        governor = make_governor(daily=3, hourly=100, burst=2)
        await governor.admit("a", now=0.0)
        await governor.admit("a", now=1.0)
        for i in range(5):
            assert (await governor.admit("a", now=10.0 + i)).allowed is False

        # Only two requests were counted against the daily window
        result = await governor.admit("a", now=61.0)
        assert result.allowed is True
        assert result.windows["daily"].remaining == 0

        result = await governor.admit("a", now=125.0)
        assert result.allowed is False
        assert result.window.label == "daily"

    @pytest.mark.asyncio
    async def test_daily_window_resets(self):
        governor = make_governor(daily=1, hourly=10, burst=10)
        await governor.admit("a", now=0.0)
        assert (await governor.admit("a", now=DAY - 1)).allowed is False
        assert (await governor.admit("a", now=DAY + 1)).allowed is True


class TestConcurrency:
    """Concurrent admissions for one identity."""

    @pytest.mark.asyncio
    async def test_concurrent_burst_admits_exactly_the_ceiling(self):
        governor = make_governor(burst=20)

        results = await asyncio.gather(
            *(governor.admit("10.0.0.1", now=1000.0) for _ in range(35))
        )

        admitted = [r for r in results if r.allowed]
        rejected = [r for r in results if not r.allowed]
        assert len(admitted) == 20
        assert len(rejected) == 15
        assert all(r.window.label == "burst" for r in rejected)

    @pytest.mark.asyncio
    async def test_concurrent_identities_do_not_interfere(self):
        governor = make_governor(burst=5)

        results = await asyncio.gather(
            *(governor.admit(f"client-{i % 3}", now=0.0) for i in range(30))
        )

        assert sum(1 for r in results if r.allowed) == 15


class TestSnapshot:
    """Tests for the read-only status view."""

    @pytest.mark.asyncio
    async def test_snapshot_does_not_count(self):
        governor = make_governor()
        await governor.admit("a", now=0.0)

        first = await governor.snapshot("a", now=1.0)
        second = await governor.snapshot("a", now=2.0)

        assert first["burst"].remaining == 19
        assert second["burst"].remaining == 19
        assert second["daily"].window_ms == DAY * 1000

    @pytest.mark.asyncio
    async def test_snapshot_of_expired_window_reports_full_allowance(self):
        governor = make_governor(burst=2)
        await governor.admit("a", now=0.0)
        await governor.admit("a", now=1.0)

        statuses = await governor.snapshot("a", now=120.0)
        assert statuses["burst"].remaining == 2
        assert statuses["hourly"].remaining == 48

    @pytest.mark.asyncio
    async def test_snapshot_for_unknown_identity(self):
        governor = make_governor()
        statuses = await governor.snapshot("new", now=0.0)
        assert [s.label for s in statuses.values()] == ["daily", "hourly", "burst"]
        assert statuses["hourly"].remaining == 50


class TestRateCounterStore:
    """Tests for the counter store."""

    @pytest.mark.asyncio
    async def test_lru_limit_bounds_memory(self):
        store = RateCounterStore(max_entries=5)
        governor = make_governor(store=store)

        for i in range(12):
            await governor.admit(f"client-{i}", now=0.0)

        assert len(store) <= 5
        assert "client-11" in store
        assert "client-0" not in store

    @pytest.mark.asyncio
    async def test_cleanup_removes_expired_identities(self):
        governor = make_governor()
        await governor.admit("old", now=0.0)
        await governor.admit("recent", now=DAY - 10)

        removed = await governor.cleanup(now=DAY + 1)
        assert removed == 1

    def test_window_counter_expiry(self):
        counter = WindowCounter(count=3, window_start=100.0)
        assert counter.expired(159.0, MINUTE) is False
        assert counter.expired(160.0, MINUTE) is True


class TestFromSettings:

    def test_windows_follow_settings(self):
        settings = Settings(_env_file=None, rate_limit_daily=7, rate_limit_hourly=6, rate_limit_burst=5)
        governor = RateGovernor.from_settings(settings)

        assert [(w.label, w.limit, w.duration_seconds) for w in governor.windows] == [
            ("daily", 7, DAY),
            ("hourly", 6, HOUR),
            ("burst", 5, MINUTE),
        ]

    def test_requires_a_window(self):
        with pytest.raises(ValueError):
            RateGovernor([])


class TestIdleStatus:

    def test_full_allowance_without_touching_store(self):
        store = RateCounterStore()
        governor = make_governor(store=store)

        statuses = governor.idle_status(now=1000.0)

        assert statuses["daily"].remaining == 500
        assert statuses["burst"].reset_time == 1000.0 + MINUTE
        assert len(store) == 0

"""Tests for the sliding-window rate limiter."""

import pytest

from conftest import FakeClock
from storefront.suppliers.utils.rate_limiter import SlidingWindowRateLimiter


def make_limiter(clock: FakeClock, **kwargs) -> SlidingWindowRateLimiter:
    params = dict(max_requests=3, window_seconds=1.0, min_delay_seconds=0.0)
    params.update(kwargs)
    return SlidingWindowRateLimiter("test", clock=clock, sleep=clock.sleep, **params)


class TestSlidingWindowRateLimiter:
    """Window, spacing and throttling behaviour."""

    async def test_fourth_and_fifth_calls_wait_for_window(self, fake_clock: FakeClock):
        """With 3 requests per second, calls 4 and 5 land at least 1s after call 1."""
        limiter = make_limiter(fake_clock)

        times = []
        for _ in range(5):
            await limiter.wait_for_slot()
            times.append(fake_clock())

        assert times[0] == times[1] == times[2]
        assert times[3] - times[0] >= 1.0
        assert times[4] - times[0] >= 1.0

    async def test_calls_under_limit_do_not_sleep(self, fake_clock: FakeClock):
        limiter = make_limiter(fake_clock, max_requests=10)

        for _ in range(3):
            await limiter.wait_for_slot()

        assert fake_clock.sleeps == []

    async def test_min_delay_spaces_requests(self, fake_clock: FakeClock):
        limiter = make_limiter(fake_clock, max_requests=100, window_seconds=60.0, min_delay_seconds=1.25)

        await limiter.wait_for_slot()
        start = fake_clock()
        await limiter.wait_for_slot()

        assert fake_clock() - start == pytest.approx(1.25)

    async def test_throttling_adds_half_min_delay(self, fake_clock: FakeClock):
        limiter = make_limiter(
            fake_clock,
            max_requests=4,
            window_seconds=60.0,
            min_delay_seconds=1.0,
            throttle_threshold=0.5,
        )

        await limiter.wait_for_slot()
        await limiter.wait_for_slot()
        fake_clock.sleeps.clear()

        # Two requests in window reach 50% of 4: min delay plus half of it
        await limiter.wait_for_slot()

        assert fake_clock.sleeps == [pytest.approx(1.0), pytest.approx(0.5)]

    async def test_old_requests_leave_window(self, fake_clock: FakeClock):
        limiter = make_limiter(fake_clock)

        for _ in range(3):
            await limiter.wait_for_slot()
        fake_clock.advance(1.5)
        fake_clock.sleeps.clear()

        await limiter.wait_for_slot()

        assert fake_clock.sleeps == []
        assert limiter.get_stats().requests_in_window == 1

    async def test_get_stats_reports_full_window(self, fake_clock: FakeClock):
        limiter = make_limiter(fake_clock)

        for _ in range(3):
            await limiter.wait_for_slot()
        stats = limiter.get_stats()

        assert stats.requests_in_window == 3
        assert stats.slots_available == 0
        assert stats.time_to_next_slot == pytest.approx(1.0)
        assert stats.is_throttling is True

    async def test_reset_clears_window(self, fake_clock: FakeClock):
        limiter = make_limiter(fake_clock)
        for _ in range(3):
            await limiter.wait_for_slot()

        limiter.reset()

        assert limiter.get_stats().requests_in_window == 0

    def test_rejects_zero_capacity(self, fake_clock: FakeClock):
        with pytest.raises(ValueError):
            make_limiter(fake_clock, max_requests=0)

"""
Unit tests for scout/common/rate_limiter.py

Tests rate limiting infrastructure including:
- RateLimiter: Per-minute and daily limits with sliding window
- RateLimiterRegistry: Global registry management
- get_rate_limiter: Environment overrides
- Thread safety under concurrent acquire
"""

import threading

import pytest

from scout.common.rate_limiter import (
    DEFAULT_RATE_LIMITS,
    Provider,
    RateLimiter,
    RateLimiterRegistry,
    RateLimitExceededError,
    get_rate_limiter,
    get_rate_limiter_registry,
    reset_global_registry,
)


# ===== TESTS: RateLimitExceededError =====


class TestRateLimitExceededError:
    """Tests for RateLimitExceededError exception."""

    def test_error_message_formatting(self):
        """Should format error message with provider and limits."""
        error = RateLimitExceededError("firecrawl", "daily", 2000, 2000)

        assert error.provider == "firecrawl"
        assert error.limit_type == "daily"
        assert error.current == 2000
        assert error.limit == 2000
        assert "firecrawl" in str(error)
        assert "2000/2000" in str(error)

    def test_error_with_per_minute_type(self):
        """Should handle per-minute limit type."""
        error = RateLimitExceededError("openai", "per_minute", 100, 500)

        assert "per_minute" in str(error)
        assert "100/500" in str(error)


# ===== TESTS: RateLimiter =====


class TestRateLimiterInit:
    """Tests for RateLimiter initialization."""

    def test_init_with_defaults(self):
        """Should initialize with default values."""
        limiter = RateLimiter(provider="test")

        assert limiter.provider == "test"
        assert limiter.requests_per_minute == 60
        assert limiter.daily_limit is None
        assert limiter.allow_wait is True
        assert limiter.max_wait_seconds == 60.0

    def test_init_with_custom_values(self):
        """Should accept custom configuration."""
        limiter = RateLimiter(
            provider="firecrawl",
            requests_per_minute=30,
            daily_limit=2000,
            allow_wait=False,
            max_wait_seconds=5.0,
        )

        assert limiter.requests_per_minute == 30
        assert limiter.daily_limit == 2000
        assert limiter.allow_wait is False
        assert limiter.max_wait_seconds == 5.0


class TestRateLimiterAcquire:
    """Tests for acquire/check behavior."""

    def test_acquire_within_limit(self):
        """Should grant requests while under the per-minute limit."""
        limiter = RateLimiter(provider="test", requests_per_minute=3)

        assert limiter.acquire() is True
        assert limiter.acquire() is True
        assert limiter.get_stats().total_requests == 2

    def test_check_does_not_consume(self):
        """check() should report availability without recording a request."""
        limiter = RateLimiter(provider="test", requests_per_minute=1)

        assert limiter.check() is True
        assert limiter.check() is True
        assert limiter.get_stats().total_requests == 0

    def test_check_false_when_minute_full(self):
        """Should report unavailable once the minute window is full."""
        limiter = RateLimiter(provider="test", requests_per_minute=1)
        limiter.acquire()

        assert limiter.check() is False

    def test_per_minute_limit_raises_without_wait(self):
        """Should raise when the minute is full and waiting is not allowed."""
        limiter = RateLimiter(provider="test", requests_per_minute=1, allow_wait=False, max_wait_seconds=0.1)
        limiter.acquire()

        with pytest.raises(RateLimitExceededError) as exc_info:
            limiter.acquire()

        assert exc_info.value.limit_type == "per_minute"

    def test_per_minute_limit_times_out_with_wait(self):
        """Should return False when the wait would exceed max_wait_seconds."""
        limiter = RateLimiter(provider="test", requests_per_minute=1, max_wait_seconds=0.1)
        limiter.acquire()

        assert limiter.acquire() is False

    def test_daily_limit_returns_false(self):
        """Daily cap is hard: waiting never helps."""
        limiter = RateLimiter(provider="test", requests_per_minute=10, daily_limit=2)
        limiter.acquire()
        limiter.acquire()

        assert limiter.acquire() is False
        assert limiter.check() is False

    def test_daily_limit_raises_without_wait(self):
        """Should raise a daily error when waiting is disabled."""
        limiter = RateLimiter(provider="test", requests_per_minute=10, daily_limit=1, allow_wait=False)
        limiter.acquire()

        with pytest.raises(RateLimitExceededError) as exc_info:
            limiter.acquire()

        assert exc_info.value.limit_type == "daily"

    def test_window_slides(self, mocker):
        """Requests older than a minute should leave the window."""
        clock = mocker.patch("scout.common.rate_limiter.time.time", return_value=1000.0)
        limiter = RateLimiter(provider="test", requests_per_minute=1, allow_wait=False)
        limiter.acquire()

        clock.return_value = 1061.0

        assert limiter.acquire() is True


class TestRateLimiterStats:
    """Tests for stats, remaining and reset."""

    def test_remaining_daily(self):
        """Should count down the daily allowance."""
        limiter = RateLimiter(provider="test", daily_limit=5)
        limiter.acquire()

        assert limiter.get_remaining_daily() == 4

    def test_remaining_daily_unlimited(self):
        """Should return None without a daily limit."""
        assert RateLimiter(provider="test").get_remaining_daily() is None

    def test_reset_clears_counters(self):
        """Should clear windows and stats."""
        limiter = RateLimiter(provider="test", requests_per_minute=1, daily_limit=1)
        limiter.acquire()

        limiter.reset()

        assert limiter.check() is True
        assert limiter.get_stats().total_requests == 0
        assert limiter.get_remaining_daily() == 1

    def test_to_dict(self):
        """Should serialize configuration and stats."""
        limiter = RateLimiter(provider="firecrawl", requests_per_minute=30, daily_limit=2000)
        limiter.acquire()

        data = limiter.to_dict()

        assert data["provider"] == "firecrawl"
        assert data["requests_per_minute"] == 30
        assert data["stats"]["total_requests"] == 1
        assert data["remaining_daily"] == 1999

    def test_concurrent_acquire_is_counted_once_each(self):
        """Concurrent acquires should never exceed the limit."""
        limiter = RateLimiter(provider="test", requests_per_minute=5, allow_wait=False)
        granted = []

        def worker():
            try:
                granted.append(limiter.acquire())
            except RateLimitExceededError:
                granted.append(False)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert granted.count(True) == 5
        assert limiter.get_stats().total_requests == 5


# ===== TESTS: Registry =====


class TestRateLimiterRegistry:
    """Tests for RateLimiterRegistry and module helpers."""

    def test_get_or_create_uses_provider_defaults(self):
        """Should apply the provider's default limits."""
        registry = RateLimiterRegistry()

        limiter = registry.get_or_create(Provider.FIRECRAWL.value)

        assert limiter.requests_per_minute == DEFAULT_RATE_LIMITS["firecrawl"]["requests_per_minute"]
        assert limiter.daily_limit == DEFAULT_RATE_LIMITS["firecrawl"]["daily_limit"]

    def test_get_or_create_returns_same_instance(self):
        """Should cache one limiter per provider."""
        registry = RateLimiterRegistry()

        assert registry.get_or_create("openai") is registry.get_or_create("openai")

    def test_unknown_provider_gets_generic_defaults(self):
        """Should fall back to 60 rpm and no daily limit."""
        limiter = RateLimiterRegistry().get_or_create("other")

        assert limiter.requests_per_minute == 60
        assert limiter.daily_limit is None

    def test_get_all_stats(self):
        """Should report every limiter."""
        registry = RateLimiterRegistry()
        registry.get_or_create("openai").acquire()

        stats = registry.get_all_stats()

        assert stats["openai"]["stats"]["total_requests"] == 1

    def test_global_registry_is_singleton(self):
        """Should return the same registry until reset."""
        first = get_rate_limiter_registry()

        assert get_rate_limiter_registry() is first
        reset_global_registry()
        assert get_rate_limiter_registry() is not first

    def test_get_rate_limiter_env_override(self, monkeypatch):
        """Should read per-minute and daily limits from the environment."""
        monkeypatch.setenv("FIRECRAWL_RATE_LIMIT_PER_MIN", "7")
        monkeypatch.setenv("FIRECRAWL_DAILY_LIMIT", "70")

        limiter = get_rate_limiter("firecrawl")

        assert limiter.requests_per_minute == 7
        assert limiter.daily_limit == 70

    def test_get_rate_limiter_defaults(self, monkeypatch):
        """Should use provider defaults without environment overrides."""
        monkeypatch.delenv("OPENAI_RATE_LIMIT_PER_MIN", raising=False)
        monkeypatch.delenv("OPENAI_DAILY_LIMIT", raising=False)

        limiter = get_rate_limiter("openai")

        assert limiter.requests_per_minute == 500
        assert limiter.daily_limit is None

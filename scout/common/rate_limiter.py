"""
Rate limiting for external API calls.

Research for several organizations runs concurrently in worker threads, but
they share one search quota and one LLM quota. Every outbound call goes
through the limiter for its provider.

Usage:
    limiter = get_rate_limiter("firecrawl")
    if limiter.acquire():
        response = app.search(...)
"""

import os
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class Provider(str, Enum):
    """API providers with rate limits."""
    OPENAI = "openai"
    FIRECRAWL = "firecrawl"


# Default rate limits per provider
DEFAULT_RATE_LIMITS = {
    Provider.OPENAI.value: {"requests_per_minute": 500, "daily_limit": None},
    Provider.FIRECRAWL.value: {"requests_per_minute": 30, "daily_limit": 2000},
}


@dataclass
class RateLimitStats:
    total_requests: int = 0
    requests_today: int = 0
    requests_this_minute: int = 0
    waits_count: int = 0
    total_wait_time_seconds: float = 0.0
    last_request_at: Optional[datetime] = None


class RateLimitExceededError(Exception):
    """Raised when rate limit is exceeded and waiting is not allowed."""

    def __init__(self, provider: str, limit_type: str, current: int, limit: int):
        self.provider = provider
        self.limit_type = limit_type
        self.current = current
        self.limit = limit
        super().__init__(
            f"Rate limit exceeded for {provider}: {current}/{limit} ({limit_type})"
        )


class RateLimiter:
    """
    Thread-safe rate limiter using a sliding window.

    Tracks requests per minute and optionally per day.
    """

    def __init__(
        self,
        provider: str,
        requests_per_minute: int = 60,
        daily_limit: Optional[int] = None,
        allow_wait: bool = True,
        max_wait_seconds: float = 60.0,
    ):
        """
        Args:
            provider: Provider name for logging/stats
            requests_per_minute: Maximum requests per minute
            daily_limit: Maximum requests per day (None for unlimited)
            allow_wait: If True, wait when limit hit; if False, raise error
            max_wait_seconds: Maximum time to wait before giving up
        """
        self.provider = provider
        self.requests_per_minute = requests_per_minute
        self.daily_limit = daily_limit
        self.allow_wait = allow_wait
        self.max_wait_seconds = max_wait_seconds

        self._minute_window: deque = deque()
        self._lock = threading.Lock()

        self._daily_count = 0
        self._daily_reset_date = None

        self._stats = RateLimitStats()

    def _clean_minute_window(self) -> None:
        cutoff = time.time() - 60.0
        while self._minute_window and self._minute_window[0] < cutoff:
            self._minute_window.popleft()

    def _reset_daily_if_needed(self) -> None:
        today = datetime.now(timezone.utc).date()
        if self._daily_reset_date is None or self._daily_reset_date < today:
            self._daily_count = 0
            self._daily_reset_date = today

    def _get_wait_time(self) -> float:
        """Seconds until the oldest request leaves the window (0.0 if no wait needed)."""
        self._clean_minute_window()
        if len(self._minute_window) < self.requests_per_minute:
            return 0.0
        return max(0.0, self._minute_window[0] + 60.0 - time.time())

    def check(self) -> bool:
        """Check if a request is allowed without waiting."""
        with self._lock:
            self._reset_daily_if_needed()
            self._clean_minute_window()
            if self.daily_limit and self._daily_count >= self.daily_limit:
                return False
            return len(self._minute_window) < self.requests_per_minute

    def acquire(self) -> bool:
        """
        Acquire permission for a request (blocking).

        Waits if the per-minute limit is exceeded, up to max_wait_seconds.

        Returns:
            True if acquired, False if timed out or the daily cap is spent

        Raises:
            RateLimitExceededError: If allow_wait is False and limit exceeded
        """
        start_time = time.time()

        while True:
            with self._lock:
                self._reset_daily_if_needed()
                self._clean_minute_window()

                # Daily limit is a hard cap, no waiting helps
                if self.daily_limit and self._daily_count >= self.daily_limit:
                    if not self.allow_wait:
                        raise RateLimitExceededError(
                            self.provider, "daily", self._daily_count, self.daily_limit
                        )
                    return False

                if len(self._minute_window) < self.requests_per_minute:
                    self._minute_window.append(time.time())
                    self._daily_count += 1
                    self._stats.total_requests += 1
                    self._stats.requests_today = self._daily_count
                    self._stats.requests_this_minute = len(self._minute_window)
                    self._stats.last_request_at = datetime.now(timezone.utc)
                    return True

                wait_time = self._get_wait_time()
                current = len(self._minute_window)

            elapsed = time.time() - start_time
            if elapsed + wait_time > self.max_wait_seconds:
                if not self.allow_wait:
                    raise RateLimitExceededError(
                        self.provider, "per_minute", current, self.requests_per_minute
                    )
                return False

            self._stats.waits_count += 1
            self._stats.total_wait_time_seconds += min(wait_time, 1.0)
            time.sleep(min(wait_time, 1.0))  # Sleep in small increments

    def get_stats(self) -> RateLimitStats:
        with self._lock:
            self._clean_minute_window()
            return RateLimitStats(
                total_requests=self._stats.total_requests,
                requests_today=self._stats.requests_today,
                requests_this_minute=len(self._minute_window),
                waits_count=self._stats.waits_count,
                total_wait_time_seconds=self._stats.total_wait_time_seconds,
                last_request_at=self._stats.last_request_at,
            )

    def get_remaining_daily(self) -> Optional[int]:
        """Get remaining daily requests (None if no daily limit)."""
        if self.daily_limit is None:
            return None
        with self._lock:
            self._reset_daily_if_needed()
            return max(0, self.daily_limit - self._daily_count)

    def reset(self) -> None:
        with self._lock:
            self._minute_window.clear()
            self._daily_count = 0
            self._daily_reset_date = None
            self._stats = RateLimitStats()

    def to_dict(self) -> Dict[str, Any]:
        stats = self.get_stats()
        return {
            "provider": self.provider,
            "requests_per_minute": self.requests_per_minute,
            "daily_limit": self.daily_limit,
            "stats": {
                "total_requests": stats.total_requests,
                "requests_this_minute": stats.requests_this_minute,
                "waits_count": stats.waits_count,
            },
            "remaining_daily": self.get_remaining_daily(),
        }


class RateLimiterRegistry:
    """Single point of access for the rate limiters of all providers."""

    def __init__(self):
        self._limiters: Dict[str, RateLimiter] = {}
        self._lock = threading.Lock()

    def get_or_create(
        self,
        provider: str,
        requests_per_minute: Optional[int] = None,
        daily_limit: Optional[int] = None,
        **kwargs,
    ) -> RateLimiter:
        with self._lock:
            if provider not in self._limiters:
                defaults = DEFAULT_RATE_LIMITS.get(
                    provider,
                    {"requests_per_minute": 60, "daily_limit": None}
                )
                self._limiters[provider] = RateLimiter(
                    provider=provider,
                    requests_per_minute=requests_per_minute or defaults["requests_per_minute"],
                    daily_limit=daily_limit if daily_limit is not None else defaults["daily_limit"],
                    **kwargs,
                )
            return self._limiters[provider]

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            limiters = list(self._limiters.items())
        return {provider: limiter.to_dict() for provider, limiter in limiters}

    def reset_all(self) -> None:
        with self._lock:
            for limiter in self._limiters.values():
                limiter.reset()


_global_registry: Optional[RateLimiterRegistry] = None
_registry_lock = threading.Lock()


def get_rate_limiter_registry() -> RateLimiterRegistry:
    global _global_registry
    with _registry_lock:
        if _global_registry is None:
            _global_registry = RateLimiterRegistry()
        return _global_registry


def get_rate_limiter(provider: str) -> RateLimiter:
    """
    Get rate limiter for a provider using global registry.

    Reads configuration from environment variables:
    - {PROVIDER}_RATE_LIMIT_PER_MIN: Per-minute limit
    - {PROVIDER}_DAILY_LIMIT: Daily limit (optional)
    """
    registry = get_rate_limiter_registry()

    provider_upper = provider.upper()
    rpm = int(os.getenv(f"{provider_upper}_RATE_LIMIT_PER_MIN", "0"))
    daily = os.getenv(f"{provider_upper}_DAILY_LIMIT")
    daily_limit = int(daily) if daily else None

    if rpm == 0:
        defaults = DEFAULT_RATE_LIMITS.get(provider, {})
        rpm = defaults.get("requests_per_minute", 60)
        if daily_limit is None:
            daily_limit = defaults.get("daily_limit")

    return registry.get_or_create(
        provider=provider,
        requests_per_minute=rpm,
        daily_limit=daily_limit,
    )


def reset_global_registry() -> None:
    """Reset the global registry (useful for testing)."""
    global _global_registry
    with _registry_lock:
        if _global_registry:
            _global_registry.reset_all()
        _global_registry = None

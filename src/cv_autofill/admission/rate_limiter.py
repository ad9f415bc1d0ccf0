"""Request rate limiting and daily quotas."""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

from ..interfaces.rate_limit import CounterState, IRateLimitStore


logger = logging.getLogger(__name__)


CLEANUP_INTERVAL_SECONDS = 60
STALE_ENTRY_SECONDS = 3600


@dataclass(frozen=True)
class RateLimitConfig:
    window_seconds: float
    max_requests: int


CV_ANALYSIS_RATE_LIMIT = RateLimitConfig(window_seconds=60, max_requests=10)
CV_UPLOAD_RATE_LIMIT = RateLimitConfig(window_seconds=60, max_requests=20)

DEFAULT_LIMITS: Dict[str, RateLimitConfig] = {
    "cv_analysis": CV_ANALYSIS_RATE_LIMIT,
    "cv_upload": CV_UPLOAD_RATE_LIMIT,
}


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: datetime
    retry_after_seconds: int = 0


class InMemoryRateLimitStore(IRateLimitStore):
    """
    Process-local counter store.

    Expired entries are swept at most once per ``CLEANUP_INTERVAL_SECONDS``;
    an entry is dropped once its window has passed and it is older than an
    hour.
    """

    def __init__(self):
        self._entries: Dict[str, Tuple[CounterState, float]] = {}
        self._lock = threading.Lock()
        self._last_cleanup = 0.0

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < CLEANUP_INTERVAL_SECONDS:
            return
        self._last_cleanup = now
        expired = [
            key
            for key, (state, window) in self._entries.items()
            if now - state.window_start >= max(window, STALE_ENTRY_SECONDS)
        ]
        for key in expired:
            del self._entries[key]

    def increment(self, key: str, window_seconds: float, now: float) -> CounterState:
        with self._lock:
            self._cleanup(now)
            entry = self._entries.get(key)
            if entry is None or now - entry[0].window_start >= window_seconds:
                state = CounterState(count=1, window_start=now)
            else:
                state = CounterState(count=entry[0].count + 1, window_start=entry[0].window_start)
            self._entries[key] = (state, window_seconds)
            return state

    def get(self, key: str) -> Optional[CounterState]:
        with self._lock:
            entry = self._entries.get(key)
            return entry[0] if entry else None

    def reset(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _next_midnight(moment: datetime) -> datetime:
    return datetime.combine(moment.date() + timedelta(days=1), datetime.min.time())


class RateLimiter:
    """
    Fixed-window limiter over an injected counter store.

    Every check counts as a request; a request is allowed while the
    window's count stays within the limit.
    """

    def __init__(
        self,
        store: Optional[IRateLimitStore] = None,
        limits: Optional[Dict[str, RateLimitConfig]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store or InMemoryRateLimitStore()
        self._limits = dict(DEFAULT_LIMITS)
        if limits:
            self._limits.update(limits)
        self._clock = clock

    def _evaluate(self, key: str, limit: int, window_seconds: float, reset_at: Optional[datetime] = None) -> RateLimitResult:
        now = self._clock()
        state = self._store.increment(key, window_seconds, now)
        if reset_at is None:
            reset_at = datetime.fromtimestamp(state.window_start + window_seconds)
        allowed = state.count <= limit
        retry_after = 0 if allowed else max(1, int(reset_at.timestamp() - now + 0.999))
        return RateLimitResult(
            allowed=allowed,
            remaining=max(0, limit - state.count),
            reset_at=reset_at,
            retry_after_seconds=retry_after,
        )

    def check(self, action: str, identifier: str) -> RateLimitResult:
        """
        Count a request for ``action`` by ``identifier``.

        Raises:
            KeyError: If no limit is configured for ``action``.
        """
        config = self._limits[action]
        result = self._evaluate(f"{action}:{identifier}", config.max_requests, config.window_seconds)
        if not result.allowed:
            logger.warning(f"Rate limit hit for action {action}")
        return result

    def _check_day(self, key_suffix: str, limit: int) -> RateLimitResult:
        now = datetime.fromtimestamp(self._clock())
        reset_at = _next_midnight(now)
        key = f"{now.strftime('%Y-%m-%d')}:{key_suffix}"
        return self._evaluate(key, limit, (reset_at - now).total_seconds(), reset_at=reset_at)

    def check_daily_quota(self, user_id: str, limit: int) -> RateLimitResult:
        """Per-user daily quota, reset at the next local midnight."""
        result = self._check_day(user_id, limit)
        if not result.allowed:
            logger.warning("Daily quota exhausted for user")
        return result

    def check_tenant_quota(self, tenant_id: str, limit: int) -> RateLimitResult:
        result = self._check_day(f"tenant:{tenant_id}", limit)
        if not result.allowed:
            logger.warning(f"Daily quota exhausted for tenant {tenant_id}")
        return result

"""Fixed-window rate limiter kept in process memory.

Counters are lost on restart. One lock guards the window map; it is held only
for the check-and-increment of a single key.
"""

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from libris.domain.entities import RateLimitDecision
from libris.ports.rate_limiter import RateLimiterPort, RateLimitKey

logger = logging.getLogger(__name__)


@dataclass
class RateLimitWindow:
    start: float
    count: int
    limit: int
    period: float

    def expired(self, now: float) -> bool:
        return now >= self.start + self.period

    @property
    def reset_ts(self) -> float:
        return self.start + self.period


def _to_datetime(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


class InMemoryRateLimiter(RateLimiterPort):
    def __init__(
        self,
        limits: dict[str, tuple[int, float]],
        default: tuple[int, float] = (20, 60.0),
        clock: Callable[[], float] = time.time,
        purge_interval: int = 1000,
    ) -> None:
        self._limits = dict(limits)
        self._default = default
        self._clock = clock
        self._purge_interval = max(1, purge_interval)
        self._windows: dict[RateLimitKey, RateLimitWindow] = {}
        self._lock = threading.Lock()
        self._checks = 0

    def limit_for(self, action: str) -> tuple[int, float]:
        return self._limits.get(action, self._default)

    def check(self, key: RateLimitKey) -> RateLimitDecision:
        limit, period = self.limit_for(key[1])
        now = self._clock()

        with self._lock:
            self._checks += 1
            if self._checks % self._purge_interval == 0:
                self._purge_locked(now)

            window = self._windows.get(key)
            if window is None or window.expired(now):
                window = RateLimitWindow(start=now, count=1, limit=limit, period=period)
                self._windows[key] = window
                return RateLimitDecision(
                    allowed=True,
                    limit=limit,
                    remaining=limit - 1,
                    reset_at=_to_datetime(window.reset_ts),
                )

            if window.count >= window.limit:
                retry_after = max(1, math.ceil(window.reset_ts - now))
                decision = RateLimitDecision(
                    allowed=False,
                    limit=window.limit,
                    remaining=0,
                    reset_at=_to_datetime(window.reset_ts),
                    retry_after=retry_after,
                )
            else:
                window.count += 1
                decision = RateLimitDecision(
                    allowed=True,
                    limit=window.limit,
                    remaining=window.limit - window.count,
                    reset_at=_to_datetime(window.reset_ts),
                )

        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded: user=%s action=%s retry_after=%ds",
                key[0],
                key[1],
                decision.retry_after,
            )
        return decision

    def usage(self, key: RateLimitKey) -> dict[str, int]:
        limit, _ = self.limit_for(key[1])
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            used = 0 if window is None or window.expired(now) else window.count
        return {"used": used, "limit": limit, "remaining": max(0, limit - used)}

    def reset(self, key: RateLimitKey) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def purge_expired(self) -> int:
        """Drop every expired window. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            return self._purge_locked(now)

    def _purge_locked(self, now: float) -> int:
        stale = [key for key, window in self._windows.items() if window.expired(now)]
        for key in stale:
            del self._windows[key]
        if stale:
            logger.debug("Purged %d expired rate-limit windows", len(stale))
        return len(stale)

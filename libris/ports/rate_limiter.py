"""Rate limiter port: per (user, action) admission control."""

from abc import ABC, abstractmethod

from libris.domain.entities import RateLimitDecision
from libris.domain.errors import RateLimited

RateLimitKey = tuple[str, str]


class RateLimiterPort(ABC):
    @abstractmethod
    def check(self, key: RateLimitKey) -> RateLimitDecision:
        """Count one request against `key` and report whether it is allowed."""
        ...

    @abstractmethod
    def usage(self, key: RateLimitKey) -> dict[str, int]:
        """Current usage of `key` without counting a request."""
        ...

    @abstractmethod
    def reset(self, key: RateLimitKey) -> None:
        ...

    def enforce(self, user_id: str, action: str) -> RateLimitDecision:
        """`check` that raises RateLimited instead of returning a rejection."""
        decision = self.check((user_id, action))
        if not decision.allowed:
            raise RateLimited(
                retry_after=decision.retry_after,
                limit=decision.limit,
                reset_at=decision.reset_at,
                action=action,
            )
        return decision

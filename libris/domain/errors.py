"""Domain exceptions raised by services and mapped to HTTP responses in main."""

from datetime import datetime
from typing import Optional


class LibrisError(Exception):
    """Base class for all domain errors."""


class ValidationError(LibrisError):
    """An interaction event or tracker payload is missing required fields."""


class Unauthorized(LibrisError):
    """No identified caller."""


class InvalidArgument(LibrisError):
    """A request parameter (limit, context) is out of range."""


class RateLimited(LibrisError):
    """The caller exhausted its request budget for the current window."""

    def __init__(
        self,
        retry_after: int,
        limit: int,
        reset_at: Optional[datetime] = None,
        action: str = "",
    ) -> None:
        super().__init__(f"Rate limit exceeded for {action or 'action'}; retry in {retry_after}s")
        self.retry_after = retry_after
        self.limit = limit
        self.reset_at = reset_at
        self.action = action


class UpstreamReadFailure(LibrisError):
    """A read from the interaction log or catalog failed."""

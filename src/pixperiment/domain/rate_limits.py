"""Domain models for request rate limiting."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class RateLimitRule:
    """Allow `limit` requests per `window_seconds` sliding window."""

    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitState:
    """Penalty bookkeeping for one identity on one endpoint."""

    identity: str
    endpoint: str
    strikes: int = 0
    last_strike_at: datetime | None = None
    penalty_until: datetime | None = None

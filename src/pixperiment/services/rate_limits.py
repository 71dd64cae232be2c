"""Sliding-window rate limiting with escalating penalties."""

import logging
import math
import threading
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Protocol

from pixperiment.domain.errors import RateLimitExceededError
from pixperiment.domain.rate_limits import RateLimitRule, RateLimitState

logger = logging.getLogger(__name__)

BASE_PENALTY_SECONDS = 60
MAX_PENALTY_SECONDS = 3600
STRIKE_MEMORY = timedelta(hours=24)

DEFAULT_RULES = {
    "create-payment": RateLimitRule(limit=5, window_seconds=60),
    "vote": RateLimitRule(limit=20, window_seconds=60),
    "prediction": RateLimitRule(limit=10, window_seconds=3600),
    "admin-login": RateLimitRule(limit=5, window_seconds=60),
    "admin-verify": RateLimitRule(limit=10, window_seconds=60),
}


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class RateLimitRepository(Protocol):
    """Durable storage for request hits and penalty state."""

    def list_hits(self, identity: str, endpoint: str, since: datetime) -> list[datetime]:
        """Return hit timestamps at or after `since`, oldest first."""

    def add_hit(self, identity: str, endpoint: str, at: datetime) -> None:
        """Record an accepted request."""

    def get_state(self, identity: str, endpoint: str) -> RateLimitState | None:
        """Return penalty state for an identity on an endpoint."""

    def save_state(self, state: RateLimitState) -> None:
        """Insert or replace penalty state."""

    def purge(self, before: datetime) -> int:
        """Delete hits and idle state older than `before`."""


@dataclass
class InMemoryRateLimitRepository(RateLimitRepository):
    """Process-local repository for tests and single-instance deployments."""

    hits: dict[tuple[str, str], list[datetime]] = field(default_factory=dict)
    states: dict[tuple[str, str], RateLimitState] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def list_hits(self, identity: str, endpoint: str, since: datetime) -> list[datetime]:
        with self._lock:
            return sorted(
                hit for hit in self.hits.get((identity, endpoint), []) if hit >= since
            )

    def add_hit(self, identity: str, endpoint: str, at: datetime) -> None:
        with self._lock:
            self.hits.setdefault((identity, endpoint), []).append(at)

    def get_state(self, identity: str, endpoint: str) -> RateLimitState | None:
        with self._lock:
            return self.states.get((identity, endpoint))

    def save_state(self, state: RateLimitState) -> None:
        with self._lock:
            self.states[(state.identity, state.endpoint)] = state

    def purge(self, before: datetime) -> int:
        removed = 0
        with self._lock:
            for key, hits in list(self.hits.items()):
                kept = [hit for hit in hits if hit >= before]
                removed += len(hits) - len(kept)
                if kept:
                    self.hits[key] = kept
                else:
                    del self.hits[key]
            for key, state in list(self.states.items()):
                idle = state.last_strike_at is None or state.last_strike_at < before
                expired = state.penalty_until is None or state.penalty_until < before
                if idle and expired:
                    del self.states[key]
                    removed += 1
        return removed


@dataclass
class RateLimiter:
    """Per-identity, per-endpoint sliding-window limiter.

    The first window in which an identity exceeds a limit is a warning: it
    waits until the window frees up. Each later violating window adds a
    penalty that doubles from one minute up to an hour. Strikes are forgotten
    after a day without violations.
    """

    repository: RateLimitRepository
    rules: dict[str, RateLimitRule] = field(default_factory=lambda: dict(DEFAULT_RULES))
    clock: Callable[[], datetime] = field(default=_utcnow)

    def check(self, identity: str, endpoint: str) -> None:
        """Record a request or raise `RateLimitExceededError`."""
        rule = self.rules.get(endpoint)
        if rule is None:
            return
        try:
            retry_after = self._evaluate(identity, endpoint, rule, self.clock())
        except Exception:
            logger.exception("Rate limit store failed for %s on %s", identity, endpoint)
            return
        if retry_after is not None:
            logger.warning(
                "Rate limited %s on %s for %ss", identity, endpoint, retry_after
            )
            raise RateLimitExceededError(retry_after)

    def purge(self) -> int:
        return self.repository.purge(self.clock() - STRIKE_MEMORY)

    def _evaluate(
        self, identity: str, endpoint: str, rule: RateLimitRule, now: datetime
    ) -> int | None:
        state = self.repository.get_state(identity, endpoint)
        if state and state.penalty_until and now < state.penalty_until:
            return _seconds_until(now, state.penalty_until)

        window = timedelta(seconds=rule.window_seconds)
        window_start = now - window
        hits = self.repository.list_hits(identity, endpoint, window_start)
        if len(hits) < rule.limit:
            self.repository.add_hit(identity, endpoint, now)
            return None

        retry_at = hits[len(hits) - rule.limit] + window
        state = state or RateLimitState(identity=identity, endpoint=endpoint)
        if state.last_strike_at is None or state.last_strike_at < window_start:
            strikes = state.strikes
            if state.last_strike_at is not None and (
                now - state.last_strike_at > STRIKE_MEMORY
            ):
                strikes = 0
            strikes += 1
            penalty_until = None
            if strikes > 1:
                penalty = min(
                    BASE_PENALTY_SECONDS * 2 ** (strikes - 2), MAX_PENALTY_SECONDS
                )
                penalty_until = now + timedelta(seconds=penalty)
                retry_at = max(retry_at, penalty_until)
            self.repository.save_state(
                replace(
                    state,
                    strikes=strikes,
                    last_strike_at=now,
                    penalty_until=penalty_until,
                )
            )
        return _seconds_until(now, retry_at)


def _seconds_until(now: datetime, moment: datetime) -> int:
    return max(1, math.ceil((moment - now).total_seconds()))

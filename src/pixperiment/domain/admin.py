"""Admin domain models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class AdminSession:
    """An issued admin session token."""

    token: str
    created_at: datetime
    expires_at: datetime
    last_used_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

"""Supabase-backed rate limit storage."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from pixperiment.domain.rate_limits import RateLimitState
from pixperiment.services.rate_limits import RateLimitRepository


@dataclass
class SupabaseRateLimitRepository(RateLimitRepository):
    """Keeps hits and penalties in Postgres so every instance shares them."""

    client: Client

    def list_hits(self, identity: str, endpoint: str, since: datetime) -> list[datetime]:
        response = (
            self.client.table("rate_limit_hits")
            .select("hit_at")
            .eq("identity", identity)
            .eq("endpoint", endpoint)
            .gte("hit_at", since.isoformat())
            .order("hit_at")
            .execute()
        )
        return [datetime.fromisoformat(row["hit_at"]) for row in response.data or []]

    def add_hit(self, identity: str, endpoint: str, at: datetime) -> None:
        self.client.table("rate_limit_hits").insert(
            {"identity": identity, "endpoint": endpoint, "hit_at": at.isoformat()}
        ).execute()

    def get_state(self, identity: str, endpoint: str) -> RateLimitState | None:
        response = (
            self.client.table("rate_limit_states")
            .select("identity, endpoint, strikes, last_strike_at, penalty_until")
            .eq("identity", identity)
            .eq("endpoint", endpoint)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return RateLimitState(
            identity=row["identity"],
            endpoint=row["endpoint"],
            strikes=int(row.get("strikes") or 0),
            last_strike_at=_parse_optional(row.get("last_strike_at")),
            penalty_until=_parse_optional(row.get("penalty_until")),
        )

    def save_state(self, state: RateLimitState) -> None:
        self.client.table("rate_limit_states").upsert(
            {
                "identity": state.identity,
                "endpoint": state.endpoint,
                "strikes": state.strikes,
                "last_strike_at": (
                    state.last_strike_at.isoformat() if state.last_strike_at else None
                ),
                "penalty_until": (
                    state.penalty_until.isoformat() if state.penalty_until else None
                ),
            },
            on_conflict="identity,endpoint",
        ).execute()

    def purge(self, before: datetime) -> int:
        """Delete hits and strike records older than `before`."""
        hits = (
            self.client.table("rate_limit_hits")
            .delete()
            .lt("hit_at", before.isoformat())
            .execute()
        )
        states = (
            self.client.table("rate_limit_states")
            .delete()
            .lt("last_strike_at", before.isoformat())
            .execute()
        )
        return len(hits.data or []) + len(states.data or [])


def _parse_optional(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None

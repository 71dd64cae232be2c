"""Supabase-backed admin session repository."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from pixperiment.domain.admin import AdminSession
from pixperiment.services.admin import AdminSessionRepository


@dataclass
class SupabaseAdminSessionRepository(AdminSessionRepository):
    """Supabase implementation for the admin_sessions table."""

    client: Client

    def create(
        self, token: str, created_at: datetime, expires_at: datetime
    ) -> AdminSession:
        response = (
            self.client.table("admin_sessions")
            .insert(
                {
                    "session_token": token,
                    "created_at": created_at.isoformat(),
                    "expires_at": expires_at.isoformat(),
                    "last_used_at": created_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create admin session")
        return _row_to_session(response.data[0])

    def get(self, token: str) -> AdminSession | None:
        response = (
            self.client.table("admin_sessions")
            .select("session_token, created_at, expires_at, last_used_at")
            .eq("session_token", token)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_session(response.data[0])

    def touch(self, token: str, used_at: datetime) -> None:
        self.client.table("admin_sessions").update(
            {"last_used_at": used_at.isoformat()}
        ).eq("session_token", token).execute()

    def delete(self, token: str) -> None:
        self.client.table("admin_sessions").delete().eq(
            "session_token", token
        ).execute()

    def delete_expired(self, now: datetime) -> int:
        response = (
            self.client.table("admin_sessions")
            .delete()
            .lt("expires_at", now.isoformat())
            .execute()
        )
        return len(response.data or [])


def _row_to_session(row: dict[str, object]) -> AdminSession:
    last_used = row.get("last_used_at")
    return AdminSession(
        token=str(row["session_token"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        expires_at=datetime.fromisoformat(str(row["expires_at"])),
        last_used_at=(
            datetime.fromisoformat(last_used)
            if isinstance(last_used, str) and last_used
            else None
        ),
    )

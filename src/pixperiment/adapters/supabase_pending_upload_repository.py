"""Supabase-backed pending upload repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from pixperiment.domain.uploads import PendingUpload
from pixperiment.services.uploads import PendingUploadRepository

_COLUMNS = (
    "id, email, caption, image_data, image_name, image_type, quoted_price, "
    "stripe_session_id, created_at"
)


@dataclass
class SupabasePendingUploadRepository(PendingUploadRepository):
    """Supabase implementation for the pending_uploads table."""

    client: Client

    def create(  # noqa: PLR0913
        self,
        email: str,
        caption: str,
        image_data: str,
        image_name: str,
        image_type: str,
        quoted_price: int,
    ) -> PendingUpload:
        response = (
            self.client.table("pending_uploads")
            .insert(
                {
                    "email": email,
                    "caption": caption,
                    "image_data": image_data,
                    "image_name": image_name,
                    "image_type": image_type,
                    "quoted_price": quoted_price,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to store pending upload")
        return _row_to_pending(response.data[0])

    def attach_session(self, pending_id: UUID, session_id: str) -> None:
        self.client.table("pending_uploads").update(
            {"stripe_session_id": session_id}
        ).eq("id", str(pending_id)).execute()

    def get(self, pending_id: UUID) -> PendingUpload | None:
        response = (
            self.client.table("pending_uploads")
            .select(_COLUMNS)
            .eq("id", str(pending_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_pending(response.data[0])

    def get_by_session_id(self, session_id: str) -> PendingUpload | None:
        response = (
            self.client.table("pending_uploads")
            .select(_COLUMNS)
            .eq("stripe_session_id", session_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_pending(response.data[0])

    def delete(self, pending_id: UUID) -> None:
        self.client.table("pending_uploads").delete().eq(
            "id", str(pending_id)
        ).execute()

    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete rows created before the cutoff."""
        response = (
            self.client.table("pending_uploads")
            .delete()
            .lt("created_at", cutoff.isoformat())
            .execute()
        )
        return len(response.data or [])


def _row_to_pending(row: dict[str, object]) -> PendingUpload:
    session_id = row.get("stripe_session_id")
    return PendingUpload(
        id=UUID(str(row["id"])),
        email=str(row["email"]),
        caption=str(row["caption"]),
        image_data=str(row["image_data"]),
        image_name=str(row["image_name"]),
        image_type=str(row["image_type"]),
        quoted_price=int(row["quoted_price"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        stripe_session_id=str(session_id) if session_id else None,
    )

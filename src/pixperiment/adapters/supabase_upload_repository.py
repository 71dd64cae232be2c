"""Supabase-backed upload repository."""

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from pixperiment.domain.errors import DuplicateKeyError
from pixperiment.domain.uploads import NewUpload, UploadRecord
from pixperiment.services.uploads import UploadRepository

_COLUMNS = (
    "id, user_email, caption, image_url, price_paid, upload_order, "
    "stripe_session_id, created_at, amount_charged, is_recovered, upvotes, deleted_at"
)
_PAGE_SIZE = 1000
_UNIQUE_VIOLATION = "23505"
_SEARCH_UNSAFE = re.compile(r"[,()%*\\\"':]")


@dataclass
class SupabaseUploadRepository(UploadRepository):
    """Supabase implementation for the uploads table."""

    client: Client

    def get(self, upload_id: UUID) -> UploadRecord | None:
        response = (
            self.client.table("uploads")
            .select(_COLUMNS)
            .eq("id", str(upload_id))
            .is_("deleted_at", "null")
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_upload(response.data[0])

    def get_by_session_id(self, session_id: str) -> UploadRecord | None:
        response = (
            self.client.table("uploads")
            .select(_COLUMNS)
            .eq("stripe_session_id", session_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_upload(response.data[0])

    def insert(self, upload: NewUpload) -> UploadRecord:
        """Insert an upload, translating unique violations."""
        try:
            response = (
                self.client.table("uploads")
                .insert(
                    {
                        "user_email": upload.user_email,
                        "caption": upload.caption,
                        "image_url": upload.image_url,
                        "price_paid": upload.price_paid,
                        "upload_order": upload.upload_order,
                        "stripe_session_id": upload.stripe_session_id,
                        "amount_charged": upload.amount_charged,
                        "is_recovered": upload.is_recovered,
                    }
                )
                .execute()
            )
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                raise DuplicateKeyError(_violated_field(exc)) from exc
            raise
        if not response.data:
            raise RuntimeError("Failed to insert upload")
        return _row_to_upload(response.data[0])

    def delete(self, upload_id: UUID) -> None:
        self.client.table("uploads").update(
            {"deleted_at": datetime.now(tz=UTC).isoformat()}
        ).eq("id", str(upload_id)).execute()

    def max_upload_order(self) -> int:
        response = (
            self.client.table("uploads")
            .select("upload_order")
            .order("upload_order", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return 0
        return int(response.data[0]["upload_order"])

    def list_upload_orders(self) -> list[int]:
        return [int(row["upload_order"]) for row in self._select_all("upload_order")]

    def list_uploads(
        self,
        limit: int,
        search: str | None,
        sort_column: str,
        descending: bool,
    ) -> list[UploadRecord]:
        """Return uploads, optionally matching caption, email or dollar price."""
        query = (
            self.client.table("uploads").select(_COLUMNS).is_("deleted_at", "null")
        )
        term = _SEARCH_UNSAFE.sub("", search or "").strip()
        if term:
            filters = [f"caption.ilike.%{term}%", f"user_email.ilike.%{term}%"]
            if term.isdigit():
                filters.append(f"price_paid.eq.{int(term) * 100}")
            query = query.or_(",".join(filters))
        response = query.order(sort_column, desc=descending).limit(limit).execute()
        return [_row_to_upload(row) for row in response.data or []]

    def list_image_urls(self) -> set[str]:
        rows = self._select_all("image_url, deleted_at")
        return {row["image_url"] for row in rows if row.get("deleted_at") is None}

    def set_upvotes(self, upload_id: UUID, upvotes: int) -> None:
        self.client.table("uploads").update({"upvotes": upvotes}).eq(
            "id", str(upload_id)
        ).execute()

    def _select_all(self, columns: str) -> list[dict[str, object]]:
        rows: list[dict[str, object]] = []
        start = 0
        while True:
            response = (
                self.client.table("uploads")
                .select(columns)
                .order("upload_order")
                .range(start, start + _PAGE_SIZE - 1)
                .execute()
            )
            batch = response.data or []
            rows.extend(batch)
            if len(batch) < _PAGE_SIZE:
                return rows
            start += _PAGE_SIZE


def _violated_field(exc: APIError) -> str:
    text = f"{exc.message or ''} {exc.details or ''}"
    if "stripe_session_id" in text:
        return "stripe_session_id"
    if "upload_order" in text:
        return "upload_order"
    return "unknown"


def _row_to_upload(row: dict[str, object]) -> UploadRecord:
    amount = row.get("amount_charged")
    return UploadRecord(
        id=UUID(str(row["id"])),
        user_email=str(row["user_email"]),
        caption=str(row["caption"]),
        image_url=str(row["image_url"]),
        price_paid=int(row["price_paid"]),
        upload_order=int(row["upload_order"]),
        stripe_session_id=str(row["stripe_session_id"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        amount_charged=int(amount) if amount is not None else None,
        is_recovered=bool(row.get("is_recovered") or False),
        upvotes=int(row.get("upvotes") or 0),
        deleted_at=_parse_timestamp(row.get("deleted_at")),
    )


def _parse_timestamp(value: object) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(str(value))

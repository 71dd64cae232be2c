"""Persistence interfaces for uploads, pending payloads and images."""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from pixperiment.domain.uploads import (
    NewUpload,
    PendingUpload,
    StoredObject,
    UploadRecord,
)

SORT_COLUMNS = {
    "date": "created_at",
    "index": "upload_order",
    "votes": "upvotes",
}


class UploadRepository(Protocol):
    """Persistence interface for materialized uploads.

    Implementations must enforce uniqueness of both `stripe_session_id` and
    `upload_order` and raise `DuplicateKeyError` naming the violated field.
    Deleted uploads stay in the store, hidden from readers, so their order
    is never reassigned and their session is never materialized again.
    """

    def get(self, upload_id: UUID) -> UploadRecord | None:
        """Return a visible upload by id."""

    def get_by_session_id(self, session_id: str) -> UploadRecord | None:
        """Return the upload materialized from a checkout session, even if deleted."""

    def insert(self, upload: NewUpload) -> UploadRecord:
        """Insert an upload row and return it."""

    def delete(self, upload_id: UUID) -> None:
        """Hide an upload from the gallery."""

    def max_upload_order(self) -> int:
        """Return the highest assigned upload order, deleted rows included, or 0."""

    def list_upload_orders(self) -> list[int]:
        """Return every assigned upload order, deleted rows included."""

    def list_uploads(
        self,
        limit: int,
        search: str | None,
        sort_column: str,
        descending: bool,
    ) -> list[UploadRecord]:
        """Return visible uploads matching a search, sorted on a column."""

    def list_image_urls(self) -> set[str]:
        """Return every image URL referenced by a visible upload."""

    def set_upvotes(self, upload_id: UUID, upvotes: int) -> None:
        """Store the denormalized upvote count."""


class PendingUploadRepository(Protocol):
    """Persistence interface for payloads awaiting payment."""

    def create(  # noqa: PLR0913
        self,
        email: str,
        caption: str,
        image_data: str,
        image_name: str,
        image_type: str,
        quoted_price: int,
    ) -> PendingUpload:
        """Store a payload and return it."""

    def attach_session(self, pending_id: UUID, session_id: str) -> None:
        """Record the checkout session opened for a payload."""

    def get(self, pending_id: UUID) -> PendingUpload | None:
        """Return a payload by id."""

    def get_by_session_id(self, session_id: str) -> PendingUpload | None:
        """Return the payload attached to a checkout session."""

    def delete(self, pending_id: UUID) -> None:
        """Delete a payload."""

    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete payloads created before `cutoff` and return how many."""


class ImageStorage(Protocol):
    """Object storage for uploaded images."""

    def upload(self, path: str, content: bytes, content_type: str) -> str:
        """Store an object and return its public URL."""

    def remove(self, paths: list[str]) -> None:
        """Delete objects by path."""

    def list_objects(self) -> list[StoredObject]:
        """Return every object in the bucket."""

    def public_url(self, path: str) -> str:
        """Return the public URL for a path."""

    def path_for_url(self, url: str) -> str | None:
        """Return the bucket path behind a public URL, if it is ours."""

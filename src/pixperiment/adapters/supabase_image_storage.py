"""Supabase Storage adapter for uploaded images."""

import logging
from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from pixperiment.domain.errors import StorageError
from pixperiment.domain.uploads import StoredObject
from pixperiment.services.uploads import ImageStorage

logger = logging.getLogger(__name__)

_LIST_PAGE_SIZE = 1000


@dataclass
class SupabaseImageStorage(ImageStorage):
    """Image storage backed by a public Supabase bucket."""

    client: Client
    bucket: str = "uploads"

    def upload(self, path: str, content: bytes, content_type: str) -> str:
        """Upload an object and return its public URL."""
        try:
            self.client.storage.from_(self.bucket).upload(
                path=path,
                file=content,
                file_options={"content-type": content_type, "upsert": "false"},
            )
        except Exception as exc:
            logger.exception("Storage upload failed for %s", path)
            raise StorageError(f"Could not store image {path}") from exc
        return self.public_url(path)

    def remove(self, paths: list[str]) -> None:
        if not paths:
            return
        try:
            self.client.storage.from_(self.bucket).remove(paths)
        except Exception as exc:
            raise StorageError(f"Could not remove {len(paths)} images") from exc

    def list_objects(self) -> list[StoredObject]:
        """List every object at the bucket root."""
        objects: list[StoredObject] = []
        offset = 0
        while True:
            try:
                batch = self.client.storage.from_(self.bucket).list(
                    "", {"limit": _LIST_PAGE_SIZE, "offset": offset}
                )
            except Exception as exc:
                raise StorageError("Could not list stored images") from exc
            for item in batch:
                if item.get("id") is None:
                    continue
                created = item.get("created_at")
                objects.append(
                    StoredObject(
                        path=item["name"],
                        created_at=(
                            datetime.fromisoformat(created.replace("Z", "+00:00"))
                            if isinstance(created, str) and created
                            else None
                        ),
                    )
                )
            if len(batch) < _LIST_PAGE_SIZE:
                return objects
            offset += _LIST_PAGE_SIZE

    def public_url(self, path: str) -> str:
        url = self.client.storage.from_(self.bucket).get_public_url(path)
        return url.rstrip("?")

    def path_for_url(self, url: str) -> str | None:
        marker = f"/object/public/{self.bucket}/"
        if marker not in url:
            return None
        path = url.split(marker, 1)[1].split("?", 1)[0]
        return path or None

"""Admin sessions and guarded gallery operations."""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID

import bcrypt

from pixperiment.domain.admin import AdminSession
from pixperiment.domain.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StorageError,
)
from pixperiment.services.pricing import PricingService
from pixperiment.services.uploads import ImageStorage, UploadRepository
from pixperiment.services.validation import (
    is_token_shaped,
    validate_price,
    validate_upload_id,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE_PATH = "placeholder.svg"
_BCRYPT_MAX_BYTES = 72


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class AdminSessionRepository(Protocol):
    """Persistence interface for admin session tokens."""

    def create(
        self, token: str, created_at: datetime, expires_at: datetime
    ) -> AdminSession:
        """Store a new session token."""

    def get(self, token: str) -> AdminSession | None:
        """Return a session by token."""

    def touch(self, token: str, used_at: datetime) -> None:
        """Record the last time a token was used."""

    def delete(self, token: str) -> None:
        """Delete a session token."""

    def delete_expired(self, now: datetime) -> int:
        """Delete expired sessions and return how many."""


@dataclass
class AdminService:
    """Issues fixed-lifetime admin sessions and checks them on every call."""

    session_repository: AdminSessionRepository
    password_hash: str
    session_minutes: int = 30
    clock: Callable[[], datetime] = field(default=_utcnow)

    def login(self, password: str) -> AdminSession:
        """Exchange the admin password for a session token."""
        encoded = (password or "").encode("utf-8")
        # bcrypt only reads the first 72 bytes
        if (
            not encoded
            or len(encoded) > _BCRYPT_MAX_BYTES
            or not bcrypt.checkpw(encoded, self.password_hash.encode("utf-8"))
        ):
            logger.warning("Rejected admin login")
            raise AuthorizationError("Invalid credentials")
        now = self.clock()
        session = self.session_repository.create(
            token=secrets.token_hex(32),
            created_at=now,
            expires_at=now + timedelta(minutes=self.session_minutes),
        )
        logger.info("Issued admin session expiring at %s", session.expires_at)
        return session

    def verify(self, token: str | None) -> AdminSession:
        """Return the live session for a token.

        Missing, unknown and expired tokens all raise the same error.
        """
        if not is_token_shaped(token):
            raise AuthorizationError()
        session = self.session_repository.get(token or "")
        now = self.clock()
        if session is None or session.is_expired(now):
            raise AuthorizationError()
        self.session_repository.touch(session.token, now)
        return session

    def logout(self, token: str | None) -> None:
        if is_token_shaped(token):
            self.session_repository.delete(token or "")

    def purge_expired(self) -> int:
        return self.session_repository.delete_expired(self.clock())


@dataclass
class AdminGalleryService:
    """Destructive operations that require a verified admin session."""

    admin_service: AdminService
    upload_repository: UploadRepository
    storage: ImageStorage
    pricing_service: PricingService

    def delete_upload(self, token: str | None, upload_id: str | UUID) -> None:
        """Hide an upload and, best effort, remove its stored image."""
        self.admin_service.verify(token)
        resolved_id = validate_upload_id(upload_id)
        upload = self.upload_repository.get(resolved_id)
        if upload is None:
            raise NotFoundError("Upload not found")
        self.upload_repository.delete(resolved_id)
        logger.info(
            "Admin deleted upload #%s (session %s)",
            upload.upload_order,
            upload.stripe_session_id,
        )
        path = self.storage.path_for_url(upload.image_url)
        if path and path != PLACEHOLDER_IMAGE_PATH:
            try:
                self.storage.remove([path])
            except StorageError:
                logger.warning("Could not remove image %s", path, exc_info=True)

    def update_base_price(self, token: str | None, new_price: int) -> int:
        """Override the base price while the gallery is still empty.

        Every stored upload satisfies price == base + order - 1, so the base
        cannot move once an upload exists.
        """
        self.admin_service.verify(token)
        price = validate_price(new_price)
        if self.upload_repository.max_upload_order() > 0:
            raise ConflictError("Base price cannot change once uploads exist")
        self.pricing_service.pricing_repository.set_base_price(price)
        self.pricing_service.try_refresh_cache()
        logger.info("Admin set base price to %s cents", price)
        return price

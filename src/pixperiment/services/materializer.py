"""Idempotent conversion of paid checkout sessions into uploads."""

import html
import logging
from dataclasses import dataclass
from uuid import UUID, uuid4

from pixperiment.domain.errors import (
    DuplicateKeyError,
    InconsistencyError,
    OrderAssignmentError,
    StorageError,
    ValidationError,
)
from pixperiment.domain.payments import CheckoutSession
from pixperiment.domain.pricing import format_dollars, price_for_order
from pixperiment.domain.uploads import (
    ImageFile,
    MaterializationResult,
    MaterializationState,
    NewUpload,
    PendingUpload,
)
from pixperiment.services.pricing import PricingService
from pixperiment.services.uploads import (
    ImageStorage,
    PendingUploadRepository,
    UploadRepository,
)
from pixperiment.services.validation import MAX_IMAGE_BYTES, decode_image

logger = logging.getLogger(__name__)

RECOVERED_CAPTION = "Recovered upload"
RECOVERED_EMAIL = "unknown@recovered.invalid"


@dataclass
class UploadMaterializer:
    """Turns a verified paid session into exactly one upload record.

    The session id is the idempotency key. Order assignment relies on the
    store's unique constraint on `upload_order`: a writer that loses a slot
    re-reads the sequence and tries the next one.
    """

    upload_repository: UploadRepository
    pending_repository: PendingUploadRepository
    storage: ImageStorage
    pricing_service: PricingService
    max_image_bytes: int = MAX_IMAGE_BYTES
    max_attempts: int = 5

    def state_of(self, session: CheckoutSession) -> MaterializationState:
        if self.upload_repository.get_by_session_id(session.id) is not None:
            return MaterializationState.MATERIALIZED
        if session.paid:
            return MaterializationState.VERIFIED_UNMATERIALIZED
        return MaterializationState.PENDING_PAYMENT

    def materialize(self, session: CheckoutSession) -> MaterializationResult:
        """Create the upload for a paid session, or return the existing one."""
        _require_paid(session)
        existing = self.upload_repository.get_by_session_id(session.id)
        if existing is not None:
            return MaterializationResult(upload=existing, created=False)

        pending = self._load_pending(session)
        if pending is None:
            # a concurrent caller may have consumed the payload after our lookup
            existing = self.upload_repository.get_by_session_id(session.id)
            if existing is not None:
                return MaterializationResult(upload=existing, created=False)
            logger.error(
                "Paid session %s has no pending upload",
                session.id,
                extra={"pending_upload_id": session.pending_upload_id},
            )
            raise InconsistencyError(
                "Pending upload is missing for a paid session", session.id
            )
        try:
            image = decode_image(
                ImageFile(
                    name=pending.image_name,
                    type=pending.image_type,
                    data=pending.image_data,
                ),
                self.max_image_bytes,
            )
        except ValidationError as exc:
            logger.error("Stored payload for session %s is unreadable", session.id)
            raise InconsistencyError(
                "Pending upload payload is unreadable", session.id
            ) from exc

        path = f"{uuid4().hex}{image.extension}"
        image_url = self.storage.upload(path, image.content, image.content_type)
        result = self._insert_next(
            session,
            image_path=path,
            image_url=image_url,
            user_email=pending.email,
            caption=pending.caption,
            is_recovered=False,
        )
        self._discard_pending(pending.id, session.id)
        if result.created:
            logger.info(
                "Materialized session %s as upload #%s",
                session.id,
                result.upload.upload_order,
            )
            self.pricing_service.try_refresh_cache()
        return result

    def materialize_recovered(self, session: CheckoutSession) -> MaterializationResult:
        """Create a placeholder upload for a paid session whose payload is gone."""
        _require_paid(session)
        existing = self.upload_repository.get_by_session_id(session.id)
        if existing is not None:
            return MaterializationResult(upload=existing, created=False)

        caption = (session.metadata.get("caption") or "").strip() or RECOVERED_CAPTION
        path = f"recovered-{uuid4().hex}.svg"
        image_url = self.storage.upload(
            path, render_placeholder(caption, session.amount_total), "image/svg+xml"
        )
        result = self._insert_next(
            session,
            image_path=path,
            image_url=image_url,
            user_email=session.contact_email or RECOVERED_EMAIL,
            caption=caption,
            is_recovered=True,
        )
        if result.created:
            logger.warning(
                "Recovered session %s as placeholder upload #%s",
                session.id,
                result.upload.upload_order,
            )
            self.pricing_service.try_refresh_cache()
        return result

    def _load_pending(self, session: CheckoutSession) -> PendingUpload | None:
        pending_id = session.pending_upload_id
        if pending_id:
            try:
                pending = self.pending_repository.get(UUID(pending_id))
            except ValueError:
                pending = None
            if pending is not None:
                return pending
        return self.pending_repository.get_by_session_id(session.id)

    def _insert_next(  # noqa: PLR0913
        self,
        session: CheckoutSession,
        *,
        image_path: str,
        image_url: str,
        user_email: str,
        caption: str,
        is_recovered: bool,
    ) -> MaterializationResult:
        for _ in range(self.max_attempts):
            order = self.upload_repository.max_upload_order() + 1
            price = price_for_order(order, self.pricing_service.base_price())
            try:
                record = self.upload_repository.insert(
                    NewUpload(
                        user_email=user_email,
                        caption=caption,
                        image_url=image_url,
                        price_paid=price,
                        upload_order=order,
                        stripe_session_id=session.id,
                        amount_charged=session.amount_total,
                        is_recovered=is_recovered,
                    )
                )
            except DuplicateKeyError as exc:
                if exc.field == "upload_order":
                    logger.info(
                        "Upload order %s was taken, retrying session %s",
                        order,
                        session.id,
                    )
                    continue
                return self._resolve_session_conflict(session, image_path)
            if session.amount_total is not None and session.amount_total != price:
                logger.warning(
                    "Session %s charged $%s but upload #%s is priced $%s",
                    session.id,
                    format_dollars(session.amount_total),
                    order,
                    format_dollars(price),
                )
            return MaterializationResult(upload=record, created=True)
        logger.error(
            "Gave up assigning an upload order for session %s after %s attempts",
            session.id,
            self.max_attempts,
        )
        raise OrderAssignmentError("Could not assign an upload order", session.id)

    def _resolve_session_conflict(
        self, session: CheckoutSession, image_path: str
    ) -> MaterializationResult:
        existing = self.upload_repository.get_by_session_id(session.id)
        if existing is None:
            raise InconsistencyError(
                "Session key conflict without a stored upload", session.id
            )
        self._discard_image(image_path, session.id)
        return MaterializationResult(upload=existing, created=False)

    def _discard_image(self, path: str, session_id: str) -> None:
        try:
            self.storage.remove([path])
        except StorageError:
            logger.warning(
                "Left orphan image %s for session %s", path, session_id, exc_info=True
            )

    def _discard_pending(self, pending_id: UUID, session_id: str) -> None:
        try:
            self.pending_repository.delete(pending_id)
        except Exception:
            logger.exception(
                "Failed to delete pending upload %s for session %s",
                pending_id,
                session_id,
            )


def render_placeholder(caption: str, amount_cents: int | None) -> bytes:
    """Render the SVG shown in place of an image that could not be recovered."""
    shown = caption if len(caption) <= 100 else f"{caption[:100]}..."
    price_line = (
        f"Recovered Upload - ${format_dollars(amount_cents)}"
        if amount_cents is not None
        else "Recovered Upload"
    )
    svg = f"""<svg width="800" height="600" xmlns="http://www.w3.org/2000/svg">
  <defs>
    <linearGradient id="grad1" x1="0%" y1="0%" x2="100%" y2="100%">
      <stop offset="0%" style="stop-color:#667eea;stop-opacity:1" />
      <stop offset="100%" style="stop-color:#764ba2;stop-opacity:1" />
    </linearGradient>
  </defs>
  <rect width="800" height="600" fill="url(#grad1)"/>
  <text x="400" y="250" text-anchor="middle" font-family="Arial, sans-serif" \
font-size="24" fill="white" font-weight="bold">PixPeriment Upload (Recovered)</text>
  <text x="400" y="300" text-anchor="middle" font-family="Arial, sans-serif" \
font-size="18" fill="white">{html.escape(shown)}</text>
  <text x="400" y="400" text-anchor="middle" font-family="Arial, sans-serif" \
font-size="14" fill="white">{html.escape(price_line)}</text>
</svg>
"""
    return svg.encode("utf-8")


def _require_paid(session: CheckoutSession) -> None:
    if not session.paid:
        raise ValidationError("Payment has not been completed")

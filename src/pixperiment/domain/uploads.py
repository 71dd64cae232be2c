"""Domain models for uploads and their payment lifecycle."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class MaterializationState(StrEnum):
    """Where a checkout session sits on its way to becoming an upload."""

    PENDING_PAYMENT = "pending_payment"
    VERIFIED_UNMATERIALIZED = "verified_unmaterialized"
    MATERIALIZED = "materialized"


@dataclass(frozen=True)
class ImageFile:
    """Image payload as submitted by the browser."""

    name: str
    type: str
    data: str


@dataclass(frozen=True)
class DecodedImage:
    content: bytes
    content_type: str
    extension: str


@dataclass(frozen=True)
class UploadRecord:
    """Represents a persisted, paid upload."""

    id: UUID
    user_email: str
    caption: str
    image_url: str
    price_paid: int
    upload_order: int
    stripe_session_id: str
    created_at: datetime
    amount_charged: int | None = None
    is_recovered: bool = False
    upvotes: int = 0
    deleted_at: datetime | None = None


@dataclass(frozen=True)
class NewUpload:
    """Values for an upload row that has not been inserted yet."""

    user_email: str
    caption: str
    image_url: str
    price_paid: int
    upload_order: int
    stripe_session_id: str
    amount_charged: int | None = None
    is_recovered: bool = False


@dataclass(frozen=True)
class PendingUpload:
    """Upload payload parked while its checkout session is open."""

    id: UUID
    email: str
    caption: str
    image_data: str
    image_name: str
    image_type: str
    quoted_price: int
    created_at: datetime
    stripe_session_id: str | None = None


@dataclass(frozen=True)
class MaterializationResult:
    upload: UploadRecord
    created: bool


@dataclass(frozen=True)
class StoredObject:
    """An object found in the image bucket."""

    path: str
    created_at: datetime | None

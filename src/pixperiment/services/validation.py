"""Input validation for upload and admin requests."""

import base64
import binascii
import re
from uuid import UUID

from pixperiment.domain.errors import ValidationError
from pixperiment.domain.uploads import DecodedImage, ImageFile

MAX_EMAIL_LENGTH = 254
MAX_CAPTION_LENGTH = 500
MAX_IMAGE_BYTES = 5 * 1024 * 1024
MIN_PRICE_CENTS = 1
MAX_PRICE_CENTS = 1_000_000

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_TOKEN_RE = re.compile(r"^[a-zA-Z0-9]{32,}$")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_UNSAFE_CAPTION_PATTERNS = (
    re.compile(r"<\s*script", re.IGNORECASE),
    re.compile(r"<\s*iframe", re.IGNORECASE),
    re.compile(r"javascript\s*:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
)
_DATA_URL_RE = re.compile(r"^data:(?P<type>[\w/+.-]+);base64,(?P<data>.*)$", re.DOTALL)

_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def validate_email(raw: str | None) -> str:
    email = (raw or "").strip()
    if not email:
        raise ValidationError("Email is required")
    if len(email) > MAX_EMAIL_LENGTH:
        raise ValidationError("Email is too long")
    if not _EMAIL_RE.match(email):
        raise ValidationError("Email format is invalid")
    return email.lower()


def validate_caption(raw: str | None, max_length: int = MAX_CAPTION_LENGTH) -> str:
    """Return the trimmed caption or raise if it is empty, long or unsafe."""
    caption = (raw or "").strip()
    if not caption:
        raise ValidationError("Caption is required")
    if len(caption) > max_length:
        raise ValidationError(f"Caption must be {max_length} characters or fewer")
    if _CONTROL_RE.search(caption):
        raise ValidationError("Caption contains invalid characters")
    if any(pattern.search(caption) for pattern in _UNSAFE_CAPTION_PATTERNS):
        raise ValidationError("Caption contains disallowed content")
    return caption


def validate_image_type(content_type: str | None) -> str:
    normalized = (content_type or "").strip().lower()
    if normalized == "image/jpg":
        normalized = "image/jpeg"
    if normalized not in _IMAGE_TYPES:
        raise ValidationError("Image must be JPEG, PNG, GIF or WebP")
    return normalized


def decode_image(image: ImageFile, max_bytes: int = MAX_IMAGE_BYTES) -> DecodedImage:
    """Decode a base64 or data-URL image payload and check its type and size.

    The declared content type must agree with the data-URL prefix, when one
    is present, and with the file's magic bytes.
    """
    content_type = validate_image_type(image.type)
    payload = (image.data or "").strip()
    if not payload:
        raise ValidationError("Image data is required")
    match = _DATA_URL_RE.match(payload)
    if match:
        if validate_image_type(match.group("type")) != content_type:
            raise ValidationError("Image type does not match its data")
        payload = match.group("data")
    # base64 inflates by 4/3; reject before decoding oversized payloads
    if len(payload) > (max_bytes * 4) // 3 + 4:
        raise ValidationError("Image is larger than the upload limit")
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Image data is not valid base64") from exc
    if not content:
        raise ValidationError("Image data is required")
    if len(content) > max_bytes:
        raise ValidationError("Image is larger than the upload limit")
    if _sniff_image_type(content) != content_type:
        raise ValidationError("Image content does not match its declared type")
    return DecodedImage(
        content=content,
        content_type=content_type,
        extension=_IMAGE_TYPES[content_type],
    )


def validate_price(cents: int) -> int:
    if isinstance(cents, bool) or not isinstance(cents, int):
        raise ValidationError("Price must be a whole number of cents")
    if not MIN_PRICE_CENTS <= cents <= MAX_PRICE_CENTS:
        raise ValidationError(
            f"Price must be between {MIN_PRICE_CENTS} and {MAX_PRICE_CENTS} cents"
        )
    return cents


def validate_upload_id(raw: str | UUID) -> UUID:
    if isinstance(raw, UUID):
        return raw
    try:
        return UUID(str(raw).strip())
    except ValueError as exc:
        raise ValidationError("Upload id is invalid") from exc


def is_token_shaped(raw: str | None) -> bool:
    return bool(raw) and bool(_TOKEN_RE.match(raw or ""))


def _sniff_image_type(content: bytes) -> str | None:
    if content.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if content.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if content.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if len(content) >= 12 and content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"
    return None

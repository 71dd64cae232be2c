"""Gallery error taxonomy."""


class GalleryError(Exception):
    """Base class for errors raised by gallery services."""


class ValidationError(GalleryError):
    """Input was rejected before any side effect."""


class UpstreamVerificationError(GalleryError):
    """The payment processor could not confirm a session."""

    def __init__(self, message: str, session_id: str | None = None) -> None:
        super().__init__(message)
        self.session_id = session_id


class InvalidSignatureError(UpstreamVerificationError):
    """A signed processor event failed verification."""


class PaymentInitiationError(GalleryError):
    """The processor refused to create a checkout session."""


class ConflictError(GalleryError):
    """The requested change conflicts with persisted state."""


class InconsistencyError(GalleryError):
    """A paid session cannot be matched to its pending payload."""

    def __init__(self, message: str, session_id: str) -> None:
        super().__init__(message)
        self.session_id = session_id


class OrderAssignmentError(GalleryError):
    """Every attempt to claim the next upload order lost to another writer."""

    def __init__(self, message: str, session_id: str) -> None:
        super().__init__(message)
        self.session_id = session_id


class AuthorizationError(GalleryError):
    """An admin credential was missing, expired or unknown."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class NotFoundError(GalleryError):
    """A referenced record does not exist."""


class StorageError(GalleryError):
    """Object storage rejected a read or write."""


class DuplicateKeyError(GalleryError):
    """An insert hit a unique constraint."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Duplicate value for {field}")
        self.field = field


class RateLimitExceededError(GalleryError):
    """The caller exceeded the request budget for an endpoint."""

    def __init__(self, retry_after: int) -> None:
        super().__init__("Too many requests")
        self.retry_after = retry_after

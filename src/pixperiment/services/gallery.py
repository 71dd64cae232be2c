"""Gallery browsing, votes and weekly price predictions."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Protocol
from uuid import UUID

from pixperiment.domain.errors import NotFoundError, ValidationError
from pixperiment.domain.uploads import UploadRecord
from pixperiment.domain.votes import Prediction, Vote, VoteAction, VoteType
from pixperiment.services.uploads import SORT_COLUMNS, UploadRepository
from pixperiment.services.validation import validate_upload_id

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200
MAX_SEARCH_LENGTH = 100
MAX_PREDICTED_PRICE = 10_000


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class VoteRepository(Protocol):
    """Persistence interface for votes."""

    def get(self, upload_id: UUID, voter_identity: str) -> Vote | None:
        """Return a voter's vote on an upload."""

    def create(self, vote: Vote) -> None:
        """Insert a vote."""

    def update(self, vote: Vote) -> None:
        """Change the type of an existing vote."""

    def delete(self, upload_id: UUID, voter_identity: str) -> None:
        """Delete a voter's vote on an upload."""

    def count(self, upload_id: UUID, vote_type: VoteType) -> int:
        """Return how many votes of a type an upload has."""


class PredictionRepository(Protocol):
    """Persistence interface for price predictions."""

    def get(self, voter_identity: str, week_ending: date) -> Prediction | None:
        """Return a voter's prediction for a week."""

    def upsert(self, prediction: Prediction) -> None:
        """Insert or replace a voter's prediction for a week."""


@dataclass
class GalleryService:
    """Read side of the gallery plus visitor interactions."""

    upload_repository: UploadRepository
    vote_repository: VoteRepository
    prediction_repository: PredictionRepository
    clock: Callable[[], datetime] = field(default=_utcnow)

    def list_uploads(
        self,
        limit: int | None = None,
        search: str | None = None,
        sort_by: str = "date",
        sort_order: str = "desc",
    ) -> list[UploadRecord]:
        """Return uploads filtered by a caption or email search."""
        if sort_by not in SORT_COLUMNS:
            raise ValidationError("sortBy must be one of date, index, votes")
        if sort_order not in {"asc", "desc"}:
            raise ValidationError("sortOrder must be asc or desc")
        resolved_limit = DEFAULT_LIST_LIMIT if limit is None else limit
        if not 1 <= resolved_limit <= MAX_LIST_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIST_LIMIT}")
        term = (search or "").strip()[:MAX_SEARCH_LENGTH] or None
        return self.upload_repository.list_uploads(
            limit=resolved_limit,
            search=term,
            sort_column=SORT_COLUMNS[sort_by],
            descending=sort_order == "desc",
        )

    def toggle_vote(
        self, upload_id: str | UUID, voter_identity: str, vote_type: str
    ) -> VoteAction:
        """Create, switch or withdraw a vote.

        Repeating the current vote withdraws it.
        """
        resolved_id = validate_upload_id(upload_id)
        try:
            resolved_type = VoteType(vote_type)
        except ValueError as exc:
            raise ValidationError("voteType must be up or down") from exc
        if self.upload_repository.get(resolved_id) is None:
            raise NotFoundError("Upload not found")

        existing = self.vote_repository.get(resolved_id, voter_identity)
        vote = Vote(
            upload_id=resolved_id,
            voter_identity=voter_identity,
            vote_type=resolved_type,
        )
        if existing is None:
            self.vote_repository.create(vote)
            action = VoteAction.CREATED
        elif existing.vote_type == resolved_type:
            self.vote_repository.delete(resolved_id, voter_identity)
            action = VoteAction.REMOVED
        else:
            self.vote_repository.update(vote)
            action = VoteAction.UPDATED
        self.upload_repository.set_upvotes(
            resolved_id, self.vote_repository.count(resolved_id, VoteType.UP)
        )
        return action

    def submit_prediction(
        self, voter_identity: str, predicted_price: int, week_ending: date
    ) -> VoteAction:
        """Record a visitor's price guess for the week ending on a future date."""
        if not 1 <= predicted_price <= MAX_PREDICTED_PRICE:
            raise ValidationError(
                f"predictedPrice must be between 1 and {MAX_PREDICTED_PRICE}"
            )
        if week_ending <= self.clock().date():
            raise ValidationError("weekEnding must be in the future")
        existing = self.prediction_repository.get(voter_identity, week_ending)
        self.prediction_repository.upsert(
            Prediction(
                voter_identity=voter_identity,
                predicted_price=predicted_price,
                week_ending=week_ending,
            )
        )
        return VoteAction.CREATED if existing is None else VoteAction.UPDATED

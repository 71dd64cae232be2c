"""Domain models for votes and price predictions."""

from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from uuid import UUID


class VoteType(StrEnum):
    UP = "up"
    DOWN = "down"


class VoteAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class Vote:
    """One voter's current vote on an upload."""

    upload_id: UUID
    voter_identity: str
    vote_type: VoteType


@dataclass(frozen=True)
class Prediction:
    """A guess at the price an upload will reach by the end of a week."""

    voter_identity: str
    predicted_price: int
    week_ending: date

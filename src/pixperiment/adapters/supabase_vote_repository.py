"""Supabase-backed vote and prediction repositories."""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from supabase import Client

from pixperiment.domain.votes import Prediction, Vote, VoteType
from pixperiment.services.gallery import PredictionRepository, VoteRepository


@dataclass
class SupabaseVoteRepository(VoteRepository):
    """Supabase implementation for the likes table."""

    client: Client

    def get(self, upload_id: UUID, voter_identity: str) -> Vote | None:
        response = (
            self.client.table("likes")
            .select("upload_id, voter_identity, vote_type")
            .eq("upload_id", str(upload_id))
            .eq("voter_identity", voter_identity)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return Vote(
            upload_id=UUID(row["upload_id"]),
            voter_identity=row["voter_identity"],
            vote_type=VoteType(row["vote_type"]),
        )

    def create(self, vote: Vote) -> None:
        self.client.table("likes").insert(
            {
                "upload_id": str(vote.upload_id),
                "voter_identity": vote.voter_identity,
                "vote_type": vote.vote_type.value,
            }
        ).execute()

    def update(self, vote: Vote) -> None:
        self.client.table("likes").update({"vote_type": vote.vote_type.value}).eq(
            "upload_id", str(vote.upload_id)
        ).eq("voter_identity", vote.voter_identity).execute()

    def delete(self, upload_id: UUID, voter_identity: str) -> None:
        self.client.table("likes").delete().eq("upload_id", str(upload_id)).eq(
            "voter_identity", voter_identity
        ).execute()

    def count(self, upload_id: UUID, vote_type: VoteType) -> int:
        response = (
            self.client.table("likes")
            .select("upload_id", count="exact")
            .eq("upload_id", str(upload_id))
            .eq("vote_type", vote_type.value)
            .execute()
        )
        return response.count or 0


@dataclass
class SupabasePredictionRepository(PredictionRepository):
    """Supabase implementation for the predictions table."""

    client: Client

    def get(self, voter_identity: str, week_ending: date) -> Prediction | None:
        response = (
            self.client.table("predictions")
            .select("voter_identity, predicted_price, week_ending")
            .eq("voter_identity", voter_identity)
            .eq("week_ending", week_ending.isoformat())
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return Prediction(
            voter_identity=row["voter_identity"],
            predicted_price=int(row["predicted_price"]),
            week_ending=date.fromisoformat(row["week_ending"]),
        )

    def upsert(self, prediction: Prediction) -> None:
        self.client.table("predictions").upsert(
            {
                "voter_identity": prediction.voter_identity,
                "predicted_price": prediction.predicted_price,
                "week_ending": prediction.week_ending.isoformat(),
            },
            on_conflict="voter_identity,week_ending",
        ).execute()

"""Supabase-backed pricing row."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from pixperiment.services.pricing import PricingRepository

_PRICING_ROW_ID = 1


@dataclass
class SupabasePricingRepository(PricingRepository):
    """Supabase implementation for the single-row pricing table."""

    client: Client

    def get_base_price(self) -> int | None:
        row = self._row("base_price")
        value = row.get("base_price") if row else None
        return int(value) if value is not None else None

    def set_base_price(self, base_price: int) -> None:
        self.client.table("pricing").upsert(
            {
                "id": _PRICING_ROW_ID,
                "base_price": base_price,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).execute()

    def get_cached_count(self) -> int | None:
        row = self._row("upload_count")
        value = row.get("upload_count") if row else None
        return int(value) if value is not None else None

    def sync_cache(self, upload_count: int, current_price: int | None) -> None:
        self.client.table("pricing").upsert(
            {
                "id": _PRICING_ROW_ID,
                "upload_count": upload_count,
                "current_price": current_price,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).execute()

    def _row(self, columns: str) -> dict[str, object] | None:
        response = (
            self.client.table("pricing")
            .select(columns)
            .eq("id", _PRICING_ROW_ID)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return response.data[0]

"""Pricing service backed by the persisted upload sequence."""

import logging
from dataclasses import dataclass
from typing import Protocol

from pixperiment.domain.pricing import DEFAULT_BASE_PRICE_CENTS, PricingState
from pixperiment.services.uploads import UploadRepository

logger = logging.getLogger(__name__)


class PricingRepository(Protocol):
    """Persistence interface for the pricing row."""

    def get_base_price(self) -> int | None:
        """Return the admin base-price override, if any."""

    def set_base_price(self, base_price: int) -> None:
        """Store a base-price override."""

    def get_cached_count(self) -> int | None:
        """Return the denormalized upload counter, if any."""

    def sync_cache(self, upload_count: int, current_price: int | None) -> None:
        """Overwrite the denormalized counter and price."""


@dataclass
class PricingService:
    """Derives prices from the highest assigned upload order.

    The cached counter in the pricing row is display-only and is rewritten
    from the upload table, never read to assign a price.
    """

    upload_repository: UploadRepository
    pricing_repository: PricingRepository
    default_base_price: int = DEFAULT_BASE_PRICE_CENTS

    def base_price(self) -> int:
        override = self.pricing_repository.get_base_price()
        return override if override is not None else self.default_base_price

    def get_state(self) -> PricingState:
        """Return pricing for the next upload."""
        return PricingState(
            upload_count=self.upload_repository.max_upload_order(),
            base_price=self.base_price(),
        )

    def refresh_cache(self) -> PricingState:
        """Rewrite the cached counter from the upload table."""
        state = self.get_state()
        self.pricing_repository.sync_cache(state.upload_count, state.current_price)
        return state

    def try_refresh_cache(self) -> None:
        try:
            self.refresh_cache()
        except Exception:
            logger.exception("Failed to refresh cached pricing counter")

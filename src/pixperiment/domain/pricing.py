"""Price derivation for sequential uploads."""

from dataclasses import dataclass

DEFAULT_BASE_PRICE_CENTS = 100


def next_price(count: int, base_price: int = DEFAULT_BASE_PRICE_CENTS) -> int:
    """Return the charge for the upload that follows `count` existing ones."""
    if count < 0:
        raise ValueError("count must be non-negative")
    return base_price + count


def current_price(
    count: int, base_price: int = DEFAULT_BASE_PRICE_CENTS
) -> int | None:
    """Return what the latest upload paid, or None before the first one."""
    if count == 0:
        return None
    return next_price(count, base_price) - 1


def price_for_order(order: int, base_price: int = DEFAULT_BASE_PRICE_CENTS) -> int:
    """Return the price bound to an upload order."""
    if order < 1:
        raise ValueError("order must be positive")
    return base_price + order - 1


def format_dollars(cents: int) -> str:
    return f"{cents // 100}.{cents % 100:02d}"


@dataclass(frozen=True)
class PricingState:
    """Pricing derived from the persisted upload sequence."""

    upload_count: int
    base_price: int = DEFAULT_BASE_PRICE_CENTS

    @property
    def next_price(self) -> int:
        return next_price(self.upload_count, self.base_price)

    @property
    def current_price(self) -> int | None:
        return current_price(self.upload_count, self.base_price)

    @property
    def next_order(self) -> int:
        return self.upload_count + 1

"""Fixed-price pricing supplier for offline use."""

from decimal import Decimal

from goldledger.models.accounts import Quote
from goldledger.sources.base import PricingSupplier


class StaticPricingSupplier(PricingSupplier):
    """Quotes the same buy and sell price every time."""

    def __init__(self, buy_price_per_g: Decimal, sell_price_per_g: Decimal | None = None):
        self.quote = Quote(
            buy_price_per_g=buy_price_per_g,
            sell_price_per_g=sell_price_per_g if sell_price_per_g is not None else buy_price_per_g,
            source="static",
        )

    async def current_price(self) -> Quote:
        return self.quote

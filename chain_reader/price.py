from decimal import Decimal
from typing import Protocol


class PriceFeed(Protocol):
    async def get_usd_price(self) -> Decimal | None:
        ...


class StaticPriceFeed:
    """
    Price feed returning a configured USD price.

    Parameters
    ----------
    price : Decimal | None
        USD price of one unit; None means no price is known
    """

    def __init__(self, price: Decimal | None = None):
        if price is not None and price < 0:
            raise ValueError("USD price cannot be negative")
        self.price = price

    async def get_usd_price(self) -> Decimal | None:
        return self.price

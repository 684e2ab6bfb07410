"""Price feeds, caching and current-price resolution."""

from tradelens.pricing.cache import PriceCache
from tradelens.pricing.feed import (
    DEFAULT_STATIC_PRICE,
    STATIC_PRICES,
    CoinGeckoPriceSource,
    PriceResolver,
    quote_price,
    static_price,
)

__all__ = [
    "PriceCache",
    "DEFAULT_STATIC_PRICE",
    "STATIC_PRICES",
    "CoinGeckoPriceSource",
    "PriceResolver",
    "quote_price",
    "static_price",
]

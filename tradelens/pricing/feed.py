"""Price feeds and current-price resolution.

Resolution order for a symbol:
1. mid price from the live table
2. last trade price from the live table
3. the short-TTL cache, if still valid
4. the static default table (always succeeds)
"""
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

import httpx
import structlog

from tradelens.core.config import app_config
from tradelens.core.result import Err, Ok, Result
from tradelens.exchange.base import PriceSource
from tradelens.exchange.instruments import COINGECKO_IDS, SYMBOL_MAP, base_asset
from tradelens.exchange.schemas import PriceQuote
from tradelens.pricing.cache import PriceCache

logger = structlog.get_logger(__name__)


STATIC_PRICES: Dict[str, Decimal] = {
    "SOL/USDC": Decimal("180"),
    "BTC/USDC": Decimal("95000"),
    "ETH/USDC": Decimal("3200"),
    "RAY/USDC": Decimal("4.5"),
    "BONK/USDC": Decimal("0.000025"),
    "JUP/USDC": Decimal("1.2"),
    "PYTH/USDC": Decimal("0.45"),
}

DEFAULT_STATIC_PRICE = Decimal("100")


def static_price(symbol: str) -> Decimal:
    """Hard-coded last-resort price for a symbol."""
    return STATIC_PRICES.get(symbol, DEFAULT_STATIC_PRICE)


def quote_price(quote: Optional[PriceQuote]) -> Optional[Decimal]:
    """Mid price, else last price, else None."""
    if quote is None:
        return None
    if quote.mid_price > 0:
        return quote.mid_price
    if quote.last_price > 0:
        return quote.last_price
    return None


class CoinGeckoPriceSource(PriceSource):
    """
    Secondary price feed from the CoinGecko simple price endpoint.

    Quotes carry a simulated 0.1% spread around the USD price.
    """

    name = "coingecko"

    def __init__(
        self,
        url: Optional[str] = None,
        symbols: Optional[Iterable[str]] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or app_config.prices.coingecko_url
        self.symbols = list(symbols) if symbols is not None else list(SYMBOL_MAP.values())
        self._client = httpx.AsyncClient(
            timeout=timeout or app_config.prices.timeout, transport=transport
        )

    async def close(self):
        await self._client.aclose()

    async def fetch_prices(self) -> Result[Dict[str, PriceQuote]]:
        coin_ids = {
            COINGECKO_IDS[base_asset(s)]: s
            for s in self.symbols
            if base_asset(s) in COINGECKO_IDS
        }
        params = {"ids": ",".join(coin_ids), "vs_currencies": "usd"}

        try:
            response = await self._client.get(self.url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.warning("coingecko.request_failed", error=str(e))
            return Err(f"coingecko: {type(e).__name__}: {e}")
        except ValueError:
            logger.warning("coingecko.invalid_payload")
            return Err("coingecko: response is not JSON")

        if not isinstance(data, dict):
            return Err("coingecko: response is not a JSON object")

        prices = {}
        for coin_id, symbol in coin_ids.items():
            usd = (data.get(coin_id) or {}).get("usd")
            if usd:
                prices[symbol] = PriceQuote.from_price(Decimal(str(usd)))
        return Ok(prices)


class PriceResolver:
    """
    Current-price lookup over a primary feed, an optional secondary feed and
    their caches. Never raises; the static table is the terminal fallback.

    Args:
        primary: Primary feed (the dashboard API route)
        cache: Cache for primary tables (short TTL)
        fallback: Optional secondary feed
        fallback_cache: Cache for secondary tables (longer TTL)
    """

    def __init__(
        self,
        primary: PriceSource,
        cache: PriceCache,
        fallback: Optional[PriceSource] = None,
        fallback_cache: Optional[PriceCache] = None,
    ):
        self.primary = primary
        self.cache = cache
        self.fallback = fallback
        self.fallback_cache = fallback_cache

    async def _fetch(self, source: PriceSource) -> Dict[str, PriceQuote]:
        try:
            result = await source.fetch_prices()
        except Exception as e:
            logger.error("price_feed.unexpected_error", source=source.name, error=str(e))
            return {}

        if not result.is_ok:
            logger.warning("price_feed.fetch_failed", source=source.name, reason=result.reason)
            return {}
        return result.value

    async def fetch_live_prices(self) -> Dict[str, PriceQuote]:
        """
        Current price table.

        Returns the cached table while it is valid; otherwise fetches the
        primary feed, then the secondary feed, and finally returns an empty
        table when both are down.
        """
        if not self.cache.is_expired():
            return self.cache.snapshot()

        table = await self._fetch(self.primary)
        if table:
            self.cache.set(table)
            return table

        if self.fallback is not None:
            if self.fallback_cache is not None and not self.fallback_cache.is_expired():
                return self.fallback_cache.snapshot()

            table = await self._fetch(self.fallback)
            if table:
                if self.fallback_cache is not None:
                    self.fallback_cache.set(table)
                logger.warning(
                    "price_feed.fallback_used", source=self.fallback.name, symbols=len(table)
                )
                return table

        logger.warning("price_feed.unavailable", using="static_defaults")
        return {}

    def resolve(self, symbol: str, table: Optional[Mapping[str, PriceQuote]] = None) -> Decimal:
        """Resolve a price for symbol from a live table, the cache or the static table."""
        price = quote_price((table or {}).get(symbol))
        if price is not None:
            return price

        price = quote_price(self.cache.get(symbol))
        if price is not None:
            return price

        return static_price(symbol)

    async def get_current_price(self, symbol: str) -> Decimal:
        """Fetch the live table (or cache) and resolve one symbol."""
        table = await self.fetch_live_prices()
        return self.resolve(symbol, table)

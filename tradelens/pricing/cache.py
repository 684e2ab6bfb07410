"""Time-bounded price table cache."""
import time
from typing import Callable, Dict, Mapping, Optional

from tradelens.exchange.schemas import PriceQuote


class PriceCache:
    """
    Whole-table price cache with a fixed time-to-live.

    The table is replaced as a unit on every successful fetch; there are no
    per-symbol updates. The TTL check is the only guard: asyncio tasks
    interleave but never mutate the table in parallel.

    Args:
        ttl_seconds: Lifetime of a stored table
        clock: Monotonic time source in seconds (injectable for tests)
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._table: Dict[str, PriceQuote] = {}
        self._stored_at: Optional[float] = None

    def set(self, table: Mapping[str, PriceQuote]):
        """Replace the cached table and restart the TTL."""
        self._table = dict(table)
        self._stored_at = self._clock()

    def is_expired(self) -> bool:
        if self._stored_at is None:
            return True
        return self._clock() - self._stored_at >= self.ttl_seconds

    def get(self, symbol: str) -> Optional[PriceQuote]:
        """Quote for a symbol, or None when absent or expired."""
        if self.is_expired():
            return None
        return self._table.get(symbol)

    def snapshot(self) -> Dict[str, PriceQuote]:
        """Copy of the table while valid, else an empty dict."""
        if self.is_expired():
            return {}
        return dict(self._table)

    def clear(self):
        self._table = {}
        self._stored_at = None

    def __len__(self) -> int:
        return len(self._table)

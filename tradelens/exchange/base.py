"""Collaborator interfaces for upstream data sources.

Implementations return Ok/Err results instead of raising. A source that
raises anyway is treated as having returned Err by its callers.
"""
from abc import ABC, abstractmethod
from typing import Dict, List

from tradelens.core.models import MarketType
from tradelens.core.result import Result
from tradelens.exchange.schemas import (
    ClientData,
    ClientOrders,
    OrdersInfo,
    PriceQuote,
    RawTransaction,
)


class AccountDataSource(ABC):
    """Per-wallet account, order and history data."""

    @abstractmethod
    async def fetch_client_data(self, wallet: str) -> Result[ClientData]:
        """Account summary and held instruments."""

    @abstractmethod
    async def fetch_orders_info(
        self, wallet: str, instr_id: int, market_type: MarketType
    ) -> Result[OrdersInfo]:
        """Resting order counts (and the perp position block for perps)."""

    @abstractmethod
    async def fetch_orders(
        self, wallet: str, instr_id: int, market_type: MarketType, info: OrdersInfo
    ) -> Result[ClientOrders]:
        """Resting bids and asks located by the counts/offsets in info."""

    @abstractmethod
    async def fetch_transaction_history(self, wallet: str) -> Result[List[RawTransaction]]:
        """Raw transaction records, newest first."""


class PriceSource(ABC):
    """Live price table keyed by symbol."""

    name: str = "price_source"

    @abstractmethod
    async def fetch_prices(self) -> Result[Dict[str, PriceQuote]]:
        """Fetch the current price table."""

"""Exchange integration module for TradeLens."""

from tradelens.exchange.base import AccountDataSource, PriceSource
from tradelens.exchange.deriverse_client import DeriverseClient
from tradelens.exchange.instruments import (
    COINGECKO_IDS,
    SYMBOL_MAP,
    base_asset,
    symbol_for_instrument,
)
from tradelens.exchange.schemas import (
    ClientData,
    ClientOrders,
    InstrumentRef,
    OrdersInfo,
    PerpPositionBlock,
    PriceQuote,
    RawTransaction,
    RestingOrder,
    TokenBalance,
)

__all__ = [
    "AccountDataSource",
    "PriceSource",
    "DeriverseClient",
    "COINGECKO_IDS",
    "SYMBOL_MAP",
    "base_asset",
    "symbol_for_instrument",
    "ClientData",
    "ClientOrders",
    "InstrumentRef",
    "OrdersInfo",
    "PerpPositionBlock",
    "PriceQuote",
    "RawTransaction",
    "RestingOrder",
    "TokenBalance",
]

"""Wire schemas for the Deriverse dashboard API route.

The route serializes the exchange SDK's account structures as camelCase JSON;
these models accept either camelCase or snake_case keys.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tradelens.core.models import ZERO, MarketType


def epoch_to_datetime(timestamp: int) -> datetime:
    """UTC datetime for a seconds epoch.

    Raises:
        ValueError: Timestamp outside the platform datetime range (for
            example a millisecond epoch)
    """
    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"timestamp out of range: {timestamp}") from e


class WireModel(BaseModel):
    """Base for route payloads."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        json_encoders={Decimal: str},
    )


# =============================================================================
# Account data
# =============================================================================

class TokenBalance(WireModel):
    token_id: int
    amount: Decimal = ZERO


class InstrumentRef(WireModel):
    """An instrument the client holds an account on."""
    instr_id: int
    client_id: int = 0


class ClientData(WireModel):
    """Account summary for one wallet (action=client)."""
    has_account: bool = False
    client_id: Optional[int] = None
    spot_trades: int = 0
    perp_trades: int = 0
    lp_trades: int = 0
    points: int = 0
    balances: List[TokenBalance] = Field(default_factory=list)
    spot_positions: List[InstrumentRef] = Field(default_factory=list)
    perp_positions: List[InstrumentRef] = Field(default_factory=list)

    def instruments(self) -> List[tuple]:
        """(instr_id, market_type) for every held instrument."""
        held = [(ref.instr_id, MarketType.SPOT) for ref in self.spot_positions]
        held.extend((ref.instr_id, MarketType.PERPETUAL) for ref in self.perp_positions)
        return held


# =============================================================================
# Orders
# =============================================================================

class PerpPositionBlock(WireModel):
    """Perpetual position fields reported alongside perp order info.

    perps is the signed position size; cost is the signed position cost.
    """
    perps: Decimal = ZERO
    funds: Decimal = ZERO
    in_orders_perps: Decimal = ZERO
    in_orders_funds: Decimal = ZERO
    fees: Decimal = ZERO
    rebates: Decimal = ZERO
    result: Decimal = ZERO
    cost: Decimal = ZERO
    leverage: Decimal = ZERO
    funding_funds: Decimal = ZERO
    soc_loss_funds: Decimal = ZERO

    @property
    def has_exposure(self) -> bool:
        return self.perps != 0


class OrdersInfo(WireModel):
    """Resting order counts and offsets for one instrument."""
    bids_count: int = 0
    asks_count: int = 0
    bids_entry: int = 0
    asks_entry: int = 0
    position: Optional[PerpPositionBlock] = None

    @property
    def has_resting_orders(self) -> bool:
        return self.bids_count > 0 or self.asks_count > 0


class RestingOrder(WireModel):
    """One resting order; line is a price level reference, not a price."""
    order_id: int
    line: int = 0
    quantity: Decimal = ZERO
    filled: Decimal = ZERO
    timestamp: int = 0

    @property
    def placed_at(self) -> datetime:
        return epoch_to_datetime(self.timestamp)


class ClientOrders(WireModel):
    bids: List[RestingOrder] = Field(default_factory=list)
    asks: List[RestingOrder] = Field(default_factory=list)


# =============================================================================
# Prices
# =============================================================================

class PriceQuote(WireModel):
    """Top-of-book quote for one symbol."""
    last_price: Decimal = ZERO
    best_bid: Decimal = ZERO
    best_ask: Decimal = ZERO
    mid_price: Decimal = ZERO

    @classmethod
    def from_price(cls, price: Decimal) -> "PriceQuote":
        """Quote with a simulated 0.1% spread around a single reference price."""
        return cls(
            last_price=price,
            best_bid=price * Decimal("0.999"),
            best_ask=price * Decimal("1.001"),
            mid_price=price,
        )


# =============================================================================
# Transaction history
# =============================================================================

class RawTransaction(WireModel):
    """Raw transaction record from the history fetch.

    fee is the network fee paid by the wallet, not a trading fee.
    """
    signature: str
    type: str
    instr_id: Optional[int] = None
    side: Optional[str] = None
    size: Optional[Decimal] = None
    sol_change: Optional[Decimal] = None
    price: Optional[Decimal] = None
    fee: Decimal = ZERO
    timestamp: int = 0

    @property
    def executed_at(self) -> datetime:
        return epoch_to_datetime(self.timestamp)

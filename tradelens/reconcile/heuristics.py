"""Heuristics for rebuilding trades from raw transaction records.

Raw transactions usually do not say which side of the book the wallet took,
and they never carry the trading fees that were charged. Both are estimated
here. The estimates are approximations: they are good enough for dashboard
aggregates, not an accounting record.
"""
from decimal import Decimal
from typing import Callable, Optional

from tradelens.core.config import ReconcilerConfig
from tradelens.core.models import ZERO, MarketType, TradeFees, TradeSide
from tradelens.exchange.schemas import RawTransaction

# Receives the transaction and its index among executable transactions
SideInference = Callable[[RawTransaction, int], TradeSide]

BUY_SIDES = frozenset({"bid", "buy", "long"})
SELL_SIDES = frozenset({"ask", "sell", "short"})


def explicit_side(tx: RawTransaction) -> Optional[TradeSide]:
    """Side stated by the record itself, if any."""
    if tx.side is None:
        return None
    side = tx.side.strip().lower()
    if side in BUY_SIDES:
        return TradeSide.LONG
    if side in SELL_SIDES:
        return TradeSide.SHORT
    return None


def infer_side_from_balance_delta(tx: RawTransaction, index: int) -> TradeSide:
    """
    HEURISTIC: guess the side of a transaction without an explicit side.

    A SOL balance increase is read as a buy (long) and a decrease as a sell
    (short). With no balance delta the guess alternates by index, which is
    arbitrary: the same history can yield different sides if records are
    added or dropped. Never treat the result as ground truth.
    """
    if tx.sol_change is not None:
        if tx.sol_change > 0:
            return TradeSide.LONG
        if tx.sol_change < 0:
            return TradeSide.SHORT
    return TradeSide.LONG if index % 2 == 0 else TradeSide.SHORT


class FeeSchedule:
    """
    Estimated fee rates applied to the notional of reconstructed trades.

    Funding is only charged on perpetuals.
    """

    def __init__(
        self,
        maker_rate: Decimal = Decimal("0.0002"),
        taker_rate: Decimal = Decimal("0.0005"),
        funding_rate: Decimal = Decimal("0.0001"),
    ):
        self.maker_rate = maker_rate
        self.taker_rate = taker_rate
        self.funding_rate = funding_rate

    @classmethod
    def from_config(cls, config: ReconcilerConfig) -> "FeeSchedule":
        return cls(
            maker_rate=config.maker_fee_rate,
            taker_rate=config.taker_fee_rate,
            funding_rate=config.funding_fee_rate,
        )

    def estimate(self, notional: Decimal, market_type: MarketType) -> TradeFees:
        funding = notional * self.funding_rate if market_type == MarketType.PERPETUAL else ZERO
        return TradeFees(
            maker_fee=notional * self.maker_rate,
            taker_fee=notional * self.taker_rate,
            funding_fee=funding,
        )

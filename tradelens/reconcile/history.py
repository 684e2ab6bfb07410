"""Trade reconstruction from raw transaction history."""
from decimal import Decimal
from typing import Callable, List, Optional, Sequence

import structlog
from pydantic import ValidationError

from tradelens.core.config import ReconcilerConfig
from tradelens.core.models import (
    MarketType,
    OrderType,
    Trade,
    TradeStatus,
    utc_now,
)
from tradelens.exchange.instruments import DEFAULT_SYMBOL, symbol_for_instrument
from tradelens.exchange.schemas import RawTransaction
from tradelens.reconcile.heuristics import (
    FeeSchedule,
    SideInference,
    explicit_side,
    infer_side_from_balance_delta,
)

logger = structlog.get_logger(__name__)


# Transaction kinds that represent an executed trade. Everything else
# (deposit, withdraw, cancel, place_order, ...) is skipped.
EXECUTABLE_TYPES = frozenset({"spot_trade", "perp_trade", "spot_swap"})

PERP_TYPES = frozenset({"perp_trade"})


def is_executable(tx: RawTransaction) -> bool:
    return tx.type in EXECUTABLE_TYPES


def _quantity(tx: RawTransaction, config: ReconcilerConfig) -> Decimal:
    if tx.size is not None and tx.size > 0:
        return tx.size
    if tx.sol_change is not None and abs(tx.sol_change) > config.min_balance_delta:
        return abs(tx.sol_change)
    return config.default_quantity


def reconstruct_trades(
    transactions: Sequence[RawTransaction],
    price_for: Callable[[str], Decimal],
    side_inference: SideInference = infer_side_from_balance_delta,
    fees: Optional[FeeSchedule] = None,
    config: Optional[ReconcilerConfig] = None,
) -> List[Trade]:
    """
    Rebuild open trades from raw transaction records.

    Args:
        transactions: Raw records in any order
        price_for: Current price lookup used when a record has no price
        side_inference: Side guess for records without an explicit side
        fees: Fee estimate (defaults to the configured schedule)
        config: Reconstruction settings

    Returns:
        One open Trade per executable record; unusable records are skipped
    """
    config = config or ReconcilerConfig()
    fees = fees or FeeSchedule.from_config(config)

    trades = []
    executable = [tx for tx in transactions if is_executable(tx)]
    skipped = len(transactions) - len(executable)

    for index, tx in enumerate(executable):
        market_type = MarketType.PERPETUAL if tx.type in PERP_TYPES else MarketType.SPOT
        symbol = symbol_for_instrument(tx.instr_id) if tx.instr_id is not None else DEFAULT_SYMBOL
        price = tx.price if tx.price is not None and tx.price > 0 else price_for(symbol)
        quantity = _quantity(tx, config)

        try:
            entry_time = tx.executed_at if tx.timestamp > 0 else utc_now()
            trade = Trade(
                id=f"tx-{tx.signature}",
                tx_signature=tx.signature,
                symbol=symbol,
                market_type=market_type,
                side=explicit_side(tx) or side_inference(tx, index),
                order_type=OrderType.MARKET,
                status=TradeStatus.OPEN,
                entry_price=price,
                quantity=quantity,
                leverage=Decimal("1") if market_type == MarketType.PERPETUAL else None,
                entry_time=entry_time,
                fees=fees.estimate(price * quantity, market_type),
            )
        except ValidationError as e:
            logger.warning(
                "history.transaction_skipped",
                signature=tx.signature,
                errors=e.error_count(),
            )
            continue
        except ValueError as e:
            logger.warning(
                "history.transaction_skipped",
                signature=tx.signature,
                error=str(e),
            )
            continue
        trades.append(trade)

    logger.info(
        "history.trades_reconstructed",
        transactions=len(transactions),
        skipped=skipped,
        trades=len(trades),
    )
    return trades

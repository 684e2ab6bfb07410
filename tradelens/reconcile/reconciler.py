"""Position reconciliation for one wallet session.

Builds the normalized {trades, positions} view from the account data source
and the live price table:

Primary path, per held instrument (issued concurrently):
- resting bids/asks become open limit trades priced at the current mid price
  (the order data carries a price level reference, not a price)
- a perpetual with a non-zero size becomes one position trade with entry
  price abs(cost / size), plus its Position

Fallback path, when client data or any instrument fetch fails:
- trades reconstructed from transaction history
- positions derived from the session's cached open trades

Nothing here raises to the caller. Upstream failures are logged and reported
through the result's source flag.
"""
import asyncio
from decimal import Decimal
from enum import Enum
from typing import Awaitable, List, Mapping, Optional, Sequence, Tuple

import structlog
from pydantic import BaseModel, Field

from tradelens.core.config import ReconcilerConfig, app_config
from tradelens.core.models import (
    ZERO,
    MarketType,
    OrderType,
    Position,
    Trade,
    TradeFees,
    TradeSide,
    TradeStatus,
)
from tradelens.core.result import Err, Result
from tradelens.core.session import WalletSession
from tradelens.exchange.base import AccountDataSource
from tradelens.exchange.instruments import symbol_for_instrument
from tradelens.exchange.schemas import ClientOrders, PerpPositionBlock, PriceQuote
from tradelens.pricing.feed import PriceResolver, quote_price
from tradelens.reconcile.heuristics import (
    FeeSchedule,
    SideInference,
    infer_side_from_balance_delta,
)
from tradelens.reconcile.history import reconstruct_trades

logger = structlog.get_logger(__name__)


class ReconciliationSource(str, Enum):
    """Where a reconciliation result came from."""
    PRIMARY = "primary"
    FALLBACK = "fallback"
    NO_ACCOUNT = "no_account"
    UNAVAILABLE = "unavailable"


class ReconciliationResult(BaseModel):
    """Normalized view of one wallet."""
    trades: List[Trade] = Field(default_factory=list)
    positions: List[Position] = Field(default_factory=list)
    source: ReconciliationSource = ReconciliationSource.PRIMARY
    upstream_available: bool = True
    failed_instruments: List[Tuple[int, MarketType]] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.trades and not self.positions


class InstrumentOutcome(BaseModel):
    """Result of reconciling one instrument."""
    instr_id: int
    market_type: MarketType
    trades: List[Trade] = Field(default_factory=list)
    positions: List[Position] = Field(default_factory=list)
    error: Optional[str] = None


def derive_positions(
    trades: Sequence[Trade],
    table: Optional[Mapping[str, PriceQuote]] = None,
) -> List[Position]:
    """
    Positions for every open trade, priced from the table.

    A symbol missing from the table falls back to the trade's last known
    price.
    """
    table = table or {}
    positions = []
    for trade in trades:
        if not trade.is_open:
            continue
        price = quote_price(table.get(trade.symbol))
        positions.append(Position.from_trade(trade, price or trade.last_known_price))
    return positions


def _dedupe(items, key) -> list:
    seen = set()
    unique = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return sorted(unique, key=key)


def _sorted_trades(trades: Sequence[Trade]) -> List[Trade]:
    return _dedupe(trades, key=lambda t: (t.entry_time, t.id))


def _sorted_positions(positions: Sequence[Position]) -> List[Position]:
    return _dedupe(positions, key=lambda p: (p.open_time, p.id))


class PositionReconciler:
    """
    Reconcile trades and positions for a wallet session.

    Args:
        source: Account data collaborator
        prices: Price resolver (live table, cache, static defaults)
        side_inference: Side guess for history records without a side
        config: Reconstruction settings (fee rates, default quantity)
    """

    def __init__(
        self,
        source: AccountDataSource,
        prices: PriceResolver,
        side_inference: SideInference = infer_side_from_balance_delta,
        config: Optional[ReconcilerConfig] = None,
    ):
        self.source = source
        self.prices = prices
        self.side_inference = side_inference
        self.config = config or app_config.reconciler
        self.fees = FeeSchedule.from_config(self.config)

    async def reconcile(
        self,
        session: WalletSession,
        cached_trades: Sequence[Trade] = (),
    ) -> ReconciliationResult:
        """
        Build the normalized view for a session.

        Args:
            session: Wallet session the result belongs to
            cached_trades: Trades currently held for this session

        Returns:
            ReconciliationResult; empty on total outage, never raises
        """
        try:
            return await self._reconcile(session, cached_trades)
        except Exception as e:
            logger.error(
                "reconciler.unexpected_error",
                wallet=session.wallet_address,
                session_id=session.session_id,
                error=str(e),
                exc_info=True,
            )
            return ReconciliationResult(
                source=ReconciliationSource.UNAVAILABLE,
                upstream_available=False,
            )

    async def _reconcile(
        self,
        session: WalletSession,
        cached_trades: Sequence[Trade],
    ) -> ReconciliationResult:
        wallet = session.wallet_address
        logger.info("reconciler.started", wallet=wallet, session_id=session.session_id)

        table = await self.prices.fetch_live_prices()

        client = await self._call("client_data", self.source.fetch_client_data(wallet))
        if not client.is_ok:
            logger.warning("reconciler.client_data_failed", wallet=wallet, reason=client.reason)
            return await self._fallback(session, cached_trades, table)

        if not client.value.has_account:
            logger.info("reconciler.no_account", wallet=wallet)
            return ReconciliationResult(source=ReconciliationSource.NO_ACCOUNT)

        instruments = client.value.instruments()
        results = await asyncio.gather(
            *(
                self._reconcile_instrument(session, instr_id, market_type, table)
                for instr_id, market_type in instruments
            ),
            return_exceptions=True,
        )

        trades: List[Trade] = []
        positions: List[Position] = []
        failed: List[Tuple[int, MarketType]] = []

        for (instr_id, market_type), outcome in zip(instruments, results):
            if isinstance(outcome, BaseException):
                error = f"{type(outcome).__name__}: {outcome}"
            else:
                error = outcome.error
            if error is not None:
                logger.warning(
                    "reconciler.instrument_failed",
                    wallet=wallet,
                    instr_id=instr_id,
                    market_type=market_type.value,
                    reason=error,
                )
                failed.append((instr_id, market_type))
                continue
            trades.extend(outcome.trades)
            positions.extend(outcome.positions)

        if failed:
            return await self._fallback(
                session, cached_trades, table,
                trades=trades, positions=positions, failed=failed,
            )

        result = ReconciliationResult(
            trades=_sorted_trades(trades),
            positions=_sorted_positions(positions),
            source=ReconciliationSource.PRIMARY,
        )
        logger.info(
            "reconciler.completed",
            wallet=wallet,
            source=result.source.value,
            instruments=len(instruments),
            trades=len(result.trades),
            positions=len(result.positions),
        )
        return result

    async def _call(self, operation: str, pending: Awaitable[Result]) -> Result:
        """Await a collaborator call, converting a raised exception into Err."""
        try:
            return await pending
        except Exception as e:
            logger.error("reconciler.collaborator_raised", operation=operation, error=str(e))
            return Err(f"{operation}: {type(e).__name__}: {e}")

    # =========================================================================
    # Primary path
    # =========================================================================

    async def _reconcile_instrument(
        self,
        session: WalletSession,
        instr_id: int,
        market_type: MarketType,
        table: Mapping[str, PriceQuote],
    ) -> InstrumentOutcome:
        wallet = session.wallet_address
        outcome = InstrumentOutcome(instr_id=instr_id, market_type=market_type)
        symbol = symbol_for_instrument(instr_id)
        price = self.prices.resolve(symbol, table)

        info = await self._call(
            "orders_info", self.source.fetch_orders_info(wallet, instr_id, market_type)
        )
        if not info.is_ok:
            outcome.error = info.reason
            return outcome

        block = info.value.position
        leverage = block.leverage if block is not None and block.leverage > 0 else None

        if market_type == MarketType.PERPETUAL and block is not None and block.has_exposure:
            trade = self._position_trade(session, instr_id, symbol, block, price)
            outcome.trades.append(trade)
            outcome.positions.append(Position.from_trade(trade, price))

        if info.value.has_resting_orders:
            orders = await self._call(
                "orders",
                self.source.fetch_orders(wallet, instr_id, market_type, info.value),
            )
            if not orders.is_ok:
                outcome.error = orders.reason
                return outcome
            outcome.trades.extend(
                self._order_trades(instr_id, symbol, market_type, orders.value, price, leverage)
            )

        return outcome

    def _position_trade(
        self,
        session: WalletSession,
        instr_id: int,
        symbol: str,
        block: PerpPositionBlock,
        price: Decimal,
    ) -> Trade:
        """Synthesize the open trade behind a live perpetual position.

        The account data carries no open time; the session connect time
        stands in for it.
        """
        quantity = abs(block.perps)
        entry_price = abs(block.cost / block.perps)
        if entry_price == 0:
            entry_price = price

        trade = Trade(
            id=f"perp-{instr_id}-position",
            symbol=symbol,
            market_type=MarketType.PERPETUAL,
            side=TradeSide.LONG if block.perps > 0 else TradeSide.SHORT,
            order_type=OrderType.MARKET,
            status=TradeStatus.OPEN,
            entry_price=entry_price,
            quantity=quantity,
            leverage=block.leverage if block.leverage > 0 else None,
            entry_time=session.connected_at,
            fees=TradeFees(
                maker_fee=ZERO,
                taker_fee=abs(block.fees),
                funding_fee=abs(block.funding_funds),
            ),
        )
        return trade.with_live_price(price)

    @staticmethod
    def _order_trades(
        instr_id: int,
        symbol: str,
        market_type: MarketType,
        orders: ClientOrders,
        price: Decimal,
        leverage: Optional[Decimal],
    ) -> List[Trade]:
        """Convert resting orders into open limit trades at the current mid price."""
        prefix = "perp" if market_type == MarketType.PERPETUAL else "spot"
        trades = []

        for side, book in ((TradeSide.LONG, orders.bids), (TradeSide.SHORT, orders.asks)):
            for order in book:
                if order.quantity <= 0:
                    continue
                try:
                    placed_at = order.placed_at
                except ValueError as e:
                    logger.warning(
                        "reconciler.order_skipped",
                        instr_id=instr_id,
                        order_id=order.order_id,
                        error=str(e),
                    )
                    continue
                trade = Trade(
                    id=f"{prefix}-{instr_id}-{order.order_id}",
                    tx_signature=str(order.order_id),
                    symbol=symbol,
                    market_type=market_type,
                    side=side,
                    order_type=OrderType.LIMIT,
                    status=TradeStatus.OPEN,
                    entry_price=price,
                    quantity=order.quantity,
                    leverage=leverage if market_type == MarketType.PERPETUAL else None,
                    entry_time=placed_at,
                )
                trades.append(trade.with_live_price(price))

        return trades

    # =========================================================================
    # Fallback path
    # =========================================================================

    async def _fallback(
        self,
        session: WalletSession,
        cached_trades: Sequence[Trade],
        table: Mapping[str, PriceQuote],
        trades: Sequence[Trade] = (),
        positions: Sequence[Position] = (),
        failed: Sequence[Tuple[int, MarketType]] = (),
    ) -> ReconciliationResult:
        """
        Rebuild what the primary path could not deliver.

        Trades from instruments that did succeed are kept. History is fetched
        once without retry; cached open trades are re-marked against the
        latest table and their positions recomputed.
        """
        wallet = session.wallet_address
        logger.warning(
            "reconciler.fallback_started",
            wallet=wallet,
            failed_instruments=len(failed),
        )

        history = await self._call(
            "transaction_history", self.source.fetch_transaction_history(wallet)
        )
        if history.is_ok:
            reconstructed = reconstruct_trades(
                history.value,
                price_for=lambda symbol: self.prices.resolve(symbol, table),
                side_inference=self.side_inference,
                fees=self.fees,
                config=self.config,
            )
        else:
            logger.warning("reconciler.history_failed", wallet=wallet, reason=history.reason)
            reconstructed = []

        cached_open = []
        for trade in cached_trades:
            if not trade.is_open:
                continue
            live = quote_price(table.get(trade.symbol))
            cached_open.append(trade.with_live_price(live or trade.last_known_price))

        all_trades = _sorted_trades(list(trades) + reconstructed + cached_open)
        all_positions = _sorted_positions(list(positions) + derive_positions(cached_open, table))

        source = (
            ReconciliationSource.FALLBACK
            if all_trades or all_positions
            else ReconciliationSource.UNAVAILABLE
        )
        result = ReconciliationResult(
            trades=all_trades,
            positions=all_positions,
            source=source,
            upstream_available=False,
            failed_instruments=list(failed),
        )
        logger.info(
            "reconciler.completed",
            wallet=wallet,
            source=source.value,
            trades=len(all_trades),
            positions=len(all_positions),
        )
        return result

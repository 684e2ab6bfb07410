"""Pytest fixtures and utilities for the TradeLens test suite."""
import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from tradelens.core.config import ReconcilerConfig
from tradelens.core.models import (
    MarketType,
    OrderType,
    Trade,
    TradeFees,
    TradeSide,
    TradeStatus,
)
from tradelens.core.result import Err, Ok, Result
from tradelens.core.session import SessionState
from tradelens.exchange.base import AccountDataSource, PriceSource
from tradelens.exchange.schemas import (
    ClientData,
    ClientOrders,
    InstrumentRef,
    OrdersInfo,
    PerpPositionBlock,
    PriceQuote,
    RawTransaction,
    RestingOrder,
)
from tradelens.pricing.cache import PriceCache
from tradelens.pricing.feed import PriceResolver
from tradelens.reconcile.reconciler import PositionReconciler


BASE_TIME = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

_ids = itertools.count(1)


# =============================================================================
# Trade Builders
# =============================================================================

def build_trade(**overrides) -> Trade:
    """Open trade with sensible defaults."""
    data = {
        "id": f"trade-{next(_ids)}",
        "symbol": "SOL/USDC",
        "market_type": MarketType.SPOT,
        "side": TradeSide.LONG,
        "order_type": OrderType.MARKET,
        "status": TradeStatus.OPEN,
        "entry_price": Decimal("100"),
        "quantity": Decimal("1"),
        "entry_time": BASE_TIME,
    }
    data.update(overrides)
    return Trade(**data)


def build_closed_trade(pnl, hold: timedelta = timedelta(hours=1), **overrides) -> Trade:
    """Closed trade with the given realized PnL."""
    pnl = Decimal(str(pnl))
    entry_price = Decimal(str(overrides.pop("entry_price", "100")))
    quantity = Decimal(str(overrides.pop("quantity", "1")))
    side = overrides.pop("side", TradeSide.LONG)
    entry_time = overrides.pop("entry_time", BASE_TIME)

    exit_price = entry_price + pnl / quantity * side.direction
    if exit_price <= 0:
        exit_price = Decimal("0.01")

    return build_trade(
        status=TradeStatus.CLOSED,
        side=side,
        entry_price=entry_price,
        quantity=quantity,
        entry_time=entry_time,
        exit_time=overrides.pop("exit_time", entry_time + hold),
        exit_price=exit_price,
        pnl=pnl,
        **overrides,
    )


@pytest.fixture
def trade_factory():
    """Factory for open trades."""
    return build_trade


@pytest.fixture
def closed_trade_factory():
    """Factory for closed trades with a given PnL."""
    return build_closed_trade


@pytest.fixture
def sample_trades():
    """Mixed trade set: three closed, one open."""
    return [
        build_closed_trade(
            "50", symbol="SOL/USDC", entry_time=BASE_TIME,
            fees=TradeFees(maker_fee=Decimal("0.02"), taker_fee=Decimal("0.05")),
        ),
        build_closed_trade(
            "-20", side=TradeSide.SHORT, symbol="BTC/USDC",
            entry_time=BASE_TIME + timedelta(hours=5),
            fees=TradeFees(maker_fee=Decimal("0.01"), taker_fee=Decimal("0.03")),
        ),
        build_closed_trade(
            "10", symbol="SOL/USDC", order_type=OrderType.LIMIT,
            entry_time=BASE_TIME + timedelta(days=1),
            fees=TradeFees(maker_fee=Decimal("0.01"), taker_fee=Decimal("0.02")),
        ),
        build_trade(
            symbol="ETH/USDC", market_type=MarketType.PERPETUAL,
            entry_price=Decimal("3000"), quantity=Decimal("0.5"), leverage=Decimal("2"),
            entry_time=BASE_TIME + timedelta(days=1, hours=2),
            fees=TradeFees(
                maker_fee=Decimal("0"), taker_fee=Decimal("0.75"), funding_fee=Decimal("0.15")
            ),
        ),
    ]


# =============================================================================
# Time and Price Fakes
# =============================================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def advance(self, seconds: float):
        self.now += seconds

    def __call__(self) -> float:
        return self.now


class FakePriceSource(PriceSource):
    """Price source returning queued results (the last one repeats)."""

    def __init__(self, *results, name: str = "fake"):
        self.results = list(results) or [Ok({})]
        self.name = name
        self.calls = 0

    async def fetch_prices(self) -> Result[Dict[str, PriceQuote]]:
        self.calls += 1
        result = self.results[min(self.calls - 1, len(self.results) - 1)]
        if isinstance(result, Exception):
            raise result
        return result


def quote(price) -> PriceQuote:
    price = Decimal(str(price))
    return PriceQuote(last_price=price, best_bid=price, best_ask=price, mid_price=price)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def price_cache(clock):
    return PriceCache(ttl_seconds=10, clock=clock)


@pytest.fixture
def fallback_cache(clock):
    return PriceCache(ttl_seconds=30, clock=clock)


@pytest.fixture
def live_prices():
    return {"SOL/USDC": quote("200"), "BTC/USDC": quote("100000"), "ETH/USDC": quote("3500")}


@pytest.fixture
def resolver(price_cache, live_prices):
    """Resolver over a primary feed that always succeeds."""
    return PriceResolver(primary=FakePriceSource(Ok(live_prices)), cache=price_cache)


@pytest.fixture
def down_resolver(price_cache):
    """Resolver whose primary feed always fails."""
    return PriceResolver(primary=FakePriceSource(Err("feed down")), cache=price_cache)


# =============================================================================
# Account Data Fake
# =============================================================================

class FakeAccountSource(AccountDataSource):
    """
    Scriptable account data source.

    orders_info / orders are keyed by (instr_id, market_type). Missing keys
    return empty Ok values. delays (seconds) are applied per key before
    responding to exercise concurrent completion order.
    """

    def __init__(
        self,
        client: Optional[Result] = None,
        orders_info: Optional[Dict[Tuple[int, MarketType], Result]] = None,
        orders: Optional[Dict[Tuple[int, MarketType], Result]] = None,
        history: Optional[Result] = None,
        delays: Optional[Dict[Tuple[int, MarketType], float]] = None,
    ):
        self.client = client or Ok(ClientData(has_account=True))
        self.orders_info = orders_info or {}
        self.orders = orders or {}
        self.history = history or Ok([])
        self.delays = delays or {}
        self.calls: List[Tuple] = []

    @staticmethod
    def _unwrap(result):
        if isinstance(result, Exception):
            raise result
        return result

    async def fetch_client_data(self, wallet):
        self.calls.append(("client", wallet))
        return self._unwrap(self.client)

    async def fetch_orders_info(self, wallet, instr_id, market_type):
        self.calls.append(("orders_info", instr_id, market_type))
        await asyncio.sleep(self.delays.get((instr_id, market_type), 0))
        return self._unwrap(self.orders_info.get((instr_id, market_type), Ok(OrdersInfo())))

    async def fetch_orders(self, wallet, instr_id, market_type, info):
        self.calls.append(("orders", instr_id, market_type))
        return self._unwrap(self.orders.get((instr_id, market_type), Ok(ClientOrders())))

    async def fetch_transaction_history(self, wallet):
        self.calls.append(("history", wallet))
        return self._unwrap(self.history)


def client_with(spot=(), perp=()) -> ClientData:
    return ClientData(
        has_account=True,
        client_id=7,
        spot_positions=[InstrumentRef(instr_id=i, client_id=7) for i in spot],
        perp_positions=[InstrumentRef(instr_id=i, client_id=7) for i in perp],
    )


def resting(order_id: int, quantity, timestamp: int = 1705320000) -> RestingOrder:
    return RestingOrder(order_id=order_id, quantity=Decimal(str(quantity)), timestamp=timestamp)


def perp_block(perps, cost, leverage="5", fees="0.4", funding="0.1") -> PerpPositionBlock:
    return PerpPositionBlock(
        perps=Decimal(str(perps)),
        cost=Decimal(str(cost)),
        leverage=Decimal(leverage),
        fees=Decimal(fees),
        funding_funds=Decimal(funding),
    )


def raw_tx(signature: str, tx_type: str = "spot_trade", **fields) -> RawTransaction:
    fields.setdefault("timestamp", 1705320000)
    return RawTransaction(signature=signature, type=tx_type, **fields)


@pytest.fixture
def reconciler_config():
    return ReconcilerConfig()


@pytest.fixture
def make_reconciler(resolver, reconciler_config):
    """Build a reconciler over a fake account source."""
    def _make(source: AccountDataSource, **kwargs) -> PositionReconciler:
        kwargs.setdefault("config", reconciler_config)
        return PositionReconciler(source, kwargs.pop("prices", resolver), **kwargs)
    return _make


@pytest.fixture
def session_state():
    return SessionState()


@pytest_asyncio.fixture
async def connected_state(session_state, trade_factory):
    """Session state with a connected wallet holding one open trade."""
    session_state.connect("Wallet1111")
    session_state.trades = [trade_factory(id="open-1")]
    yield session_state
    session_state.disconnect()


# =============================================================================
# Builder Fixtures
# =============================================================================

@pytest.fixture
def make_quote():
    return quote


@pytest.fixture
def make_client():
    return client_with


@pytest.fixture
def make_resting():
    return resting


@pytest.fixture
def make_perp_block():
    return perp_block


@pytest.fixture
def make_raw_tx():
    return raw_tx


@pytest.fixture
def account_source_cls():
    return FakeAccountSource


@pytest.fixture
def price_source_cls():
    return FakePriceSource

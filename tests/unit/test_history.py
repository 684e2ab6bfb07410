"""Unit tests for trade reconstruction from transaction history."""
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from tradelens.core.models import MarketType, OrderType, TradeSide, TradeStatus
from tradelens.reconcile.heuristics import FeeSchedule
from tradelens.reconcile.history import is_executable, reconstruct_trades


def price_for(symbol):
    return {"SOL/USDC": Decimal("200"), "ETH/USDC": Decimal("3500")}.get(symbol, Decimal("1"))


class TestReconstructTrades:
    """Test reconstruct_trades."""

    def test_skips_non_executable_records(self, make_raw_tx):
        transactions = [
            make_raw_tx("a", "deposit"),
            make_raw_tx("b", "spot_trade", sol_change=Decimal("2")),
            make_raw_tx("c", "cancel_order"),
            make_raw_tx("d", "spot_swap", sol_change=Decimal("-1")),
        ]

        trades = reconstruct_trades(transactions, price_for)

        assert [t.id for t in trades] == ["tx-b", "tx-d"]
        assert not is_executable(transactions[0])

    def test_spot_trade_fields(self, make_raw_tx):
        tx = make_raw_tx("sig1", instr_id=0, sol_change=Decimal("2"), timestamp=1705320000)

        trade = reconstruct_trades([tx], price_for)[0]

        assert trade.tx_signature == "sig1"
        assert trade.symbol == "SOL/USDC"
        assert trade.market_type == MarketType.SPOT
        assert trade.side == TradeSide.LONG
        assert trade.order_type == OrderType.MARKET
        assert trade.status == TradeStatus.OPEN
        assert trade.entry_price == Decimal("200")
        assert trade.quantity == Decimal("2")
        assert trade.leverage is None
        assert trade.entry_time == datetime.fromtimestamp(1705320000, tz=timezone.utc)
        assert trade.fees.funding_fee == Decimal("0")

    def test_perp_trade(self, make_raw_tx):
        tx = make_raw_tx("p1", "perp_trade", instr_id=2, size=Decimal("0.5"), side="ask")

        trade = reconstruct_trades([tx], price_for)[0]

        assert trade.market_type == MarketType.PERPETUAL
        assert trade.leverage == Decimal("1")
        assert trade.symbol == "ETH/USDC"
        assert trade.side == TradeSide.SHORT
        assert trade.fees.funding_fee == Decimal("1750") * Decimal("0.0001")

    def test_record_price_preferred(self, make_raw_tx):
        tx = make_raw_tx("s", price=Decimal("150"), size=Decimal("1"))
        assert reconstruct_trades([tx], price_for)[0].entry_price == Decimal("150")

    def test_missing_instrument_defaults_to_sol(self, make_raw_tx):
        assert reconstruct_trades([make_raw_tx("s")], price_for)[0].symbol == "SOL/USDC"

    def test_unknown_instrument_symbol(self, make_raw_tx):
        trade = reconstruct_trades([make_raw_tx("s", instr_id=99)], price_for)[0]
        assert trade.symbol == "UNKNOWN-99/USDC"
        assert trade.entry_price == Decimal("1")

    @pytest.mark.parametrize("fields,expected", [
        ({"size": Decimal("3")}, Decimal("3")),
        ({"size": Decimal("0"), "sol_change": Decimal("-0.25")}, Decimal("0.25")),
        ({"sol_change": Decimal("0.001")}, Decimal("0.1")),
        ({}, Decimal("0.1")),
    ])
    def test_quantity_rules(self, make_raw_tx, fields, expected):
        trade = reconstruct_trades([make_raw_tx("q", **fields)], price_for)[0]
        assert trade.quantity == expected

    def test_fees_estimated_on_notional(self, make_raw_tx):
        tx = make_raw_tx("f", size=Decimal("1"), price=Decimal("100"))

        trade = reconstruct_trades([tx], price_for, fees=FeeSchedule())[0]

        assert trade.fees.maker_fee == Decimal("0.02")
        assert trade.fees.taker_fee == Decimal("0.05")

    def test_network_fee_not_counted_as_trading_fee(self, make_raw_tx):
        tx = make_raw_tx("f", size=Decimal("1"), price=Decimal("100"), fee=Decimal("5"))

        trade = reconstruct_trades([tx], price_for)[0]

        assert trade.fees.total_fee == Decimal("0.07")

    def test_missing_timestamp_uses_now(self, make_raw_tx):
        before = datetime.now(timezone.utc)
        trade = reconstruct_trades([make_raw_tx("t", timestamp=0)], price_for)[0]
        assert trade.entry_time >= before

    def test_injected_side_inference_sees_executable_index(self, make_raw_tx):
        seen = []

        def infer(tx, index):
            seen.append((tx.signature, index))
            return TradeSide.SHORT

        transactions = [
            make_raw_tx("a"),
            make_raw_tx("skip", "deposit"),
            make_raw_tx("b", side="buy"),
            make_raw_tx("c"),
        ]

        trades = reconstruct_trades(transactions, price_for, side_inference=infer)

        assert seen == [("a", 0), ("c", 2)]
        assert [t.side for t in trades] == [TradeSide.SHORT, TradeSide.LONG, TradeSide.SHORT]

    def test_unusable_price_skipped(self, make_raw_tx):
        transactions = [make_raw_tx("bad", instr_id=7), make_raw_tx("good", instr_id=0)]

        trades = reconstruct_trades(
            transactions, lambda symbol: Decimal("0") if "UNKNOWN" in symbol else Decimal("5")
        )

        assert [t.id for t in trades] == ["tx-good"]

    def test_out_of_range_timestamp_skipped(self, make_raw_tx):
        transactions = [
            make_raw_tx("millis", timestamp=1705320000000),
            make_raw_tx("good"),
        ]

        trades = reconstruct_trades(transactions, price_for)

        assert [t.id for t in trades] == ["tx-good"]

    def test_empty_history(self):
        assert reconstruct_trades([], price_for) == []

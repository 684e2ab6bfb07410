"""Unit tests for side inference and fee estimation."""
import pytest
from decimal import Decimal

from tradelens.core.config import ReconcilerConfig
from tradelens.core.models import MarketType, TradeSide
from tradelens.reconcile.heuristics import (
    FeeSchedule,
    explicit_side,
    infer_side_from_balance_delta,
)


class TestExplicitSide:
    """Test parsing of sides stated on the record."""

    @pytest.mark.parametrize("raw,expected", [
        ("bid", TradeSide.LONG),
        ("BUY", TradeSide.LONG),
        (" long ", TradeSide.LONG),
        ("ask", TradeSide.SHORT),
        ("Sell", TradeSide.SHORT),
        ("short", TradeSide.SHORT),
    ])
    def test_known_sides(self, make_raw_tx, raw, expected):
        assert explicit_side(make_raw_tx("sig", side=raw)) == expected

    def test_missing_or_unknown(self, make_raw_tx):
        assert explicit_side(make_raw_tx("sig")) is None
        assert explicit_side(make_raw_tx("sig", side="both")) is None


class TestBalanceDeltaInference:
    """Test the balance-delta side heuristic."""

    def test_positive_delta_is_long(self, make_raw_tx):
        tx = make_raw_tx("sig", sol_change=Decimal("0.5"))
        assert infer_side_from_balance_delta(tx, 1) == TradeSide.LONG

    def test_negative_delta_is_short(self, make_raw_tx):
        tx = make_raw_tx("sig", sol_change=Decimal("-0.5"))
        assert infer_side_from_balance_delta(tx, 0) == TradeSide.SHORT

    def test_no_delta_alternates_by_index(self, make_raw_tx):
        tx = make_raw_tx("sig")
        sides = [infer_side_from_balance_delta(tx, i) for i in range(4)]
        assert sides == [TradeSide.LONG, TradeSide.SHORT, TradeSide.LONG, TradeSide.SHORT]

    def test_zero_delta_alternates(self, make_raw_tx):
        tx = make_raw_tx("sig", sol_change=Decimal("0"))
        assert infer_side_from_balance_delta(tx, 3) == TradeSide.SHORT


class TestFeeSchedule:
    """Test fee estimates."""

    def test_spot_has_no_funding(self):
        fees = FeeSchedule().estimate(Decimal("1000"), MarketType.SPOT)

        assert fees.maker_fee == Decimal("0.2")
        assert fees.taker_fee == Decimal("0.5")
        assert fees.funding_fee == Decimal("0")
        assert fees.total_fee == Decimal("0.7")

    def test_perp_includes_funding(self):
        fees = FeeSchedule().estimate(Decimal("1000"), MarketType.PERPETUAL)

        assert fees.funding_fee == Decimal("0.1")
        assert fees.total_fee == Decimal("0.8")

    def test_from_config(self):
        config = ReconcilerConfig(maker_fee_rate=Decimal("0.001"), taker_fee_rate=Decimal("0.002"))

        fees = FeeSchedule.from_config(config).estimate(Decimal("100"), MarketType.SPOT)

        assert fees.maker_fee == Decimal("0.1")
        assert fees.taker_fee == Decimal("0.2")

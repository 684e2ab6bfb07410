"""Daily performance series and the full dashboard snapshot."""
from datetime import date, tzinfo
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

import structlog

from tradelens.analytics.metrics import (
    calculate_fee_breakdown,
    calculate_order_type_metrics,
    calculate_portfolio_metrics,
    calculate_session_metrics,
    calculate_symbol_metrics,
    calculate_time_based_metrics,
    closed_trades,
    filter_trades,
)
from tradelens.core.models import (
    HUNDRED,
    ZERO,
    DailyPerformance,
    DashboardSnapshot,
    FilterOptions,
    Trade,
)

logger = structlog.get_logger(__name__)


def calculate_daily_performance(trades: Sequence[Trade]) -> List[DailyPerformance]:
    """Realized performance per UTC exit date, ascending.

    A closed trade with zero PnL counts as a loss for the day. Drawdown is
    measured against the running high-water mark of cumulative PnL and its
    percentage is 0 until that mark is positive.
    """
    days: Dict[date, Dict] = {}

    for trade in closed_trades(trades):
        day = trade.exit_time.date()
        data = days.setdefault(
            day,
            {"pnl": ZERO, "volume": ZERO, "fees": ZERO, "trades": 0, "wins": 0, "losses": 0},
        )
        data["pnl"] += trade.pnl
        data["volume"] += trade.notional
        data["fees"] += trade.fees.total_fee
        data["trades"] += 1
        if trade.pnl > 0:
            data["wins"] += 1
        else:
            data["losses"] += 1

    cumulative = ZERO
    peak = ZERO
    series = []

    for day in sorted(days):
        data = days[day]
        cumulative += data["pnl"]
        if cumulative > peak:
            peak = cumulative
        drawdown = peak - cumulative

        series.append(DailyPerformance(
            date=day,
            pnl=data["pnl"],
            cumulative_pnl=cumulative,
            volume=data["volume"],
            fees=data["fees"],
            trade_count=data["trades"],
            win_count=data["wins"],
            loss_count=data["losses"],
            drawdown=drawdown,
            drawdown_percentage=drawdown / peak * HUNDRED if peak > 0 else ZERO,
        ))

    return series


def build_dashboard(
    trades: Sequence[Trade],
    filters: Optional[FilterOptions] = None,
    tz: Optional[tzinfo] = None,
) -> DashboardSnapshot:
    """
    Filter trades and compute every dashboard aggregate.

    Args:
        trades: Full trade list owned by the caller
        filters: Optional predicate applied before aggregation
        tz: Zone for hourly bucketing (defaults to the local zone)

    Returns:
        DashboardSnapshot over the filtered trades
    """
    selected = filter_trades(trades, filters)

    snapshot = DashboardSnapshot(
        trade_count=len(selected),
        portfolio=calculate_portfolio_metrics(selected),
        hourly=calculate_time_based_metrics(selected, tz),
        sessions=calculate_session_metrics(selected),
        symbols=calculate_symbol_metrics(selected),
        fees=calculate_fee_breakdown(selected),
        order_types=calculate_order_type_metrics(selected),
        daily=calculate_daily_performance(selected),
    )

    logger.debug(
        "analytics.snapshot_built",
        input_trades=len(trades),
        selected_trades=len(selected),
        total_pnl=str(snapshot.portfolio.total_pnl),
    )
    return snapshot


def format_decimal(value: Decimal, places: int = 2) -> str:
    """Render a metric for reports; the unbounded profit factor prints as 'inf'."""
    if value.is_infinite():
        return "inf"
    return f"{value:.{places}f}"

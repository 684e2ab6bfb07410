"""Trade analytics: pure aggregate functions over trade lists."""

from tradelens.analytics.metrics import (
    UNBOUNDED,
    calculate_fee_breakdown,
    calculate_order_type_metrics,
    calculate_portfolio_metrics,
    calculate_session_metrics,
    calculate_symbol_metrics,
    calculate_time_based_metrics,
    closed_trades,
    filter_trades,
    matches_filter,
    session_for_hour,
)
from tradelens.analytics.performance import (
    build_dashboard,
    calculate_daily_performance,
    format_decimal,
)

__all__ = [
    "UNBOUNDED",
    "build_dashboard",
    "calculate_daily_performance",
    "calculate_fee_breakdown",
    "calculate_order_type_metrics",
    "calculate_portfolio_metrics",
    "calculate_session_metrics",
    "calculate_symbol_metrics",
    "calculate_time_based_metrics",
    "closed_trades",
    "filter_trades",
    "format_decimal",
    "matches_filter",
    "session_for_hour",
]

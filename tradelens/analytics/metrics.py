"""Trading metrics computed from trade data.

Every function in this module is a pure function of its input: no I/O, no
hidden state, and no exceptions for empty input. An empty or all-open trade
list yields zero-valued metrics, which is the documented contract rather than
an error path.

Realized figures (PnL, win rate, durations) only consider closed trades with a
defined PnL. Activity figures (volume, fees) consider every input trade.
"""
from datetime import date, tzinfo
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from tradelens.core.models import (
    HUNDRED,
    ZERO,
    FeeBreakdown,
    FeePoint,
    FilterOptions,
    OrderType,
    OrderTypeMetrics,
    PortfolioMetrics,
    SessionMetrics,
    SymbolMetrics,
    TimeBasedMetrics,
    Trade,
    TradeSide,
    TradeStatus,
    TradingSession,
)

# Profit factor when there are wins and no losses
UNBOUNDED = Decimal("Infinity")

SESSION_WINDOWS: Tuple[Tuple[TradingSession, int, int], ...] = (
    (TradingSession.ASIAN, 0, 8),
    (TradingSession.EUROPEAN, 8, 16),
    (TradingSession.AMERICAN, 16, 24),
)


# =============================================================================
# Helpers
# =============================================================================

def closed_trades(trades: Sequence[Trade]) -> List[Trade]:
    """Closed trades that carry a realized PnL."""
    return [t for t in trades if t.status == TradeStatus.CLOSED and t.pnl is not None]


def win_rate(wins: int, total: int) -> Decimal:
    """Percentage of winners; 0 for an empty set."""
    if total == 0:
        return ZERO
    return Decimal(wins) / Decimal(total) * HUNDRED


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _sum(values) -> Decimal:
    return sum(values, ZERO)


def session_for_hour(hour: int) -> TradingSession:
    """Map a UTC hour (0-23) to its trading session."""
    for session, start, end in SESSION_WINDOWS:
        if start <= hour < end:
            return session
    return TradingSession.AMERICAN


def _max_drawdown(trades: List[Trade]) -> Tuple[Decimal, Decimal]:
    """Walk cumulative PnL in exit order.

    Returns:
        (max drawdown, final high-water mark)
    """
    peak = ZERO
    cumulative = ZERO
    max_drawdown = ZERO

    for trade in sorted(trades, key=lambda t: t.exit_time):
        cumulative += trade.pnl
        if cumulative > peak:
            peak = cumulative
        drawdown = peak - cumulative
        if drawdown > max_drawdown:
            max_drawdown = drawdown

    return max_drawdown, peak


# =============================================================================
# Portfolio
# =============================================================================

def calculate_portfolio_metrics(trades: Sequence[Trade]) -> PortfolioMetrics:
    """Compute portfolio-level performance metrics.

    Args:
        trades: Any mix of open and closed trades

    Returns:
        PortfolioMetrics; all zeros when no closed trade carries PnL
    """
    closed = closed_trades(trades)
    if not closed:
        return PortfolioMetrics()

    winners = [t for t in closed if t.pnl > 0]
    losers = [t for t in closed if t.pnl < 0]
    long_count = sum(1 for t in closed if t.side == TradeSide.LONG)
    short_count = sum(1 for t in closed if t.side == TradeSide.SHORT)

    total_pnl = _sum(t.pnl for t in closed)
    total_volume = _sum(t.notional for t in trades)
    total_fees = _sum(t.fees.total_fee for t in trades)

    gross_wins = _sum(t.pnl for t in winners)
    gross_losses = abs(_sum(t.pnl for t in losers))

    if gross_losses > 0:
        profit_factor = gross_wins / gross_losses
    elif gross_wins > 0:
        profit_factor = UNBOUNDED
    else:
        profit_factor = ZERO

    # A missing short side falls back to the long count, not infinity
    if short_count > 0:
        long_short_ratio = Decimal(long_count) / Decimal(short_count)
    else:
        long_short_ratio = Decimal(long_count)

    durations = [t.duration for t in closed if t.exit_time is not None]
    max_drawdown, peak = _max_drawdown(closed)

    return PortfolioMetrics(
        total_pnl=total_pnl,
        total_pnl_percentage=total_pnl / total_volume * HUNDRED if total_volume > 0 else ZERO,
        total_volume=total_volume,
        total_fees=total_fees,
        win_rate=win_rate(len(winners), len(closed)),
        total_trades=len(closed),
        winning_trades=len(winners),
        losing_trades=len(losers),
        average_win=gross_wins / len(winners) if winners else ZERO,
        average_loss=gross_losses / len(losers) if losers else ZERO,
        largest_win=max([t.pnl for t in winners] + [ZERO]),
        largest_loss=max([abs(t.pnl) for t in losers] + [ZERO]),
        profit_factor=profit_factor,
        average_trade_duration=_mean(durations),
        long_short_ratio=long_short_ratio,
        max_drawdown=max_drawdown,
        max_drawdown_percentage=max_drawdown / peak * HUNDRED if peak > 0 else ZERO,
    )


# =============================================================================
# Time buckets
# =============================================================================

def calculate_time_based_metrics(
    trades: Sequence[Trade],
    tz: Optional[tzinfo] = None,
) -> List[TimeBasedMetrics]:
    """Performance by hour of day of entry.

    Args:
        trades: Trades to bucket
        tz: Zone used for the hour of day (defaults to the local zone)

    Returns:
        Exactly 24 entries, hour 0 through 23
    """
    pnl: Dict[int, Decimal] = {hour: ZERO for hour in range(24)}
    wins: Dict[int, int] = {hour: 0 for hour in range(24)}
    totals: Dict[int, int] = {hour: 0 for hour in range(24)}

    for trade in closed_trades(trades):
        hour = trade.entry_time.astimezone(tz).hour
        pnl[hour] += trade.pnl
        totals[hour] += 1
        if trade.pnl > 0:
            wins[hour] += 1

    return [
        TimeBasedMetrics(
            hour=hour,
            pnl=pnl[hour],
            trade_count=totals[hour],
            win_rate=win_rate(wins[hour], totals[hour]),
        )
        for hour in range(24)
    ]


def calculate_session_metrics(trades: Sequence[Trade]) -> List[SessionMetrics]:
    """Performance by UTC trading session of entry.

    Returns:
        Exactly three entries: asian, european, american
    """
    pnl: Dict[TradingSession, Decimal] = {s: ZERO for s, _, _ in SESSION_WINDOWS}
    wins: Dict[TradingSession, int] = {s: 0 for s, _, _ in SESSION_WINDOWS}
    totals: Dict[TradingSession, int] = {s: 0 for s, _, _ in SESSION_WINDOWS}
    durations: Dict[TradingSession, List[float]] = {s: [] for s, _, _ in SESSION_WINDOWS}

    for trade in closed_trades(trades):
        # entry_time is stored in UTC
        session = session_for_hour(trade.entry_time.hour)
        pnl[session] += trade.pnl
        totals[session] += 1
        if trade.pnl > 0:
            wins[session] += 1
        if trade.exit_time is not None:
            durations[session].append(trade.duration)

    return [
        SessionMetrics(
            session=session,
            pnl=pnl[session],
            trade_count=totals[session],
            win_rate=win_rate(wins[session], totals[session]),
            average_duration=_mean(durations[session]),
        )
        for session, _, _ in SESSION_WINDOWS
    ]


# =============================================================================
# Symbols
# =============================================================================

def calculate_symbol_metrics(trades: Sequence[Trade]) -> List[SymbolMetrics]:
    """Performance per symbol, sorted by volume (highest first).

    Volume and fees cover every trade of the symbol; PnL, trade count and
    win rate only cover its closed trades. Equal volumes keep input order.
    """
    symbol_data: Dict[str, Dict] = {}

    for trade in trades:
        data = symbol_data.setdefault(
            trade.symbol,
            {"pnl": ZERO, "volume": ZERO, "fees": ZERO, "wins": 0, "total": 0},
        )
        is_closed = trade.status == TradeStatus.CLOSED
        pnl = (trade.pnl or ZERO) if is_closed else ZERO

        data["pnl"] += pnl
        data["volume"] += trade.notional
        data["fees"] += trade.fees.total_fee
        if is_closed:
            data["total"] += 1
        if pnl > 0:
            data["wins"] += 1

    metrics = [
        SymbolMetrics(
            symbol=symbol,
            pnl=data["pnl"],
            volume=data["volume"],
            trade_count=data["total"],
            win_rate=win_rate(data["wins"], data["total"]),
            average_pnl=data["pnl"] / data["total"] if data["total"] > 0 else ZERO,
            fees=data["fees"],
        )
        for symbol, data in symbol_data.items()
    ]
    return sorted(metrics, key=lambda m: m.volume, reverse=True)


# =============================================================================
# Fees
# =============================================================================

def calculate_fee_breakdown(trades: Sequence[Trade]) -> FeeBreakdown:
    """Fee totals by kind plus a cumulative daily series (UTC entry date)."""
    maker_fees = ZERO
    taker_fees = ZERO
    funding_fees = ZERO
    fees_by_date: Dict[date, Decimal] = {}

    for trade in trades:
        maker_fees += trade.fees.maker_fee
        taker_fees += trade.fees.taker_fee
        funding_fees += trade.fees.funding_fee or ZERO

        day = trade.entry_time.date()
        fees_by_date[day] = fees_by_date.get(day, ZERO) + trade.fees.total_fee

    cumulative = ZERO
    fees_over_time = []
    for day in sorted(fees_by_date):
        cumulative += fees_by_date[day]
        fees_over_time.append(
            FeePoint(date=day, fees=fees_by_date[day], cumulative_fees=cumulative)
        )

    return FeeBreakdown(
        maker_fees=maker_fees,
        taker_fees=taker_fees,
        funding_fees=funding_fees,
        total_fees=maker_fees + taker_fees + funding_fees,
        fees_over_time=fees_over_time,
    )


# =============================================================================
# Order types
# =============================================================================

def calculate_order_type_metrics(trades: Sequence[Trade]) -> List[OrderTypeMetrics]:
    """Performance per order type, in order of first appearance."""
    order_data: Dict[OrderType, Dict] = {}

    for trade in closed_trades(trades):
        data = order_data.setdefault(
            trade.order_type, {"pnl": ZERO, "wins": 0, "total": 0, "durations": []}
        )
        data["pnl"] += trade.pnl
        data["total"] += 1
        if trade.pnl > 0:
            data["wins"] += 1
        duration = trade.duration or 0.0
        if duration > 0:
            data["durations"].append(duration)

    return [
        OrderTypeMetrics(
            order_type=order_type,
            pnl=data["pnl"],
            trade_count=data["total"],
            win_rate=win_rate(data["wins"], data["total"]),
            average_duration=_mean(data["durations"]),
        )
        for order_type, data in order_data.items()
    ]


# =============================================================================
# Filtering
# =============================================================================

def matches_filter(trade: Trade, filters: FilterOptions) -> bool:
    """True if the trade satisfies every non-empty filter field.

    PnL bounds compare against pnl or 0: a trade without realized PnL is
    evaluated as if its PnL were zero, not excluded.
    """
    start = filters.date_range.start
    end = filters.date_range.end
    if start is not None and trade.entry_time < start:
        return False
    if end is not None and trade.entry_time > end:
        return False

    if filters.symbols and trade.symbol not in filters.symbols:
        return False
    if filters.market_types and trade.market_type not in filters.market_types:
        return False
    if filters.sides and trade.side not in filters.sides:
        return False
    if filters.statuses and trade.status not in filters.statuses:
        return False

    pnl = trade.pnl if trade.pnl is not None else ZERO
    if filters.min_pnl is not None and pnl < filters.min_pnl:
        return False
    if filters.max_pnl is not None and pnl > filters.max_pnl:
        return False

    return True


def filter_trades(trades: Sequence[Trade], filters: Optional[FilterOptions]) -> List[Trade]:
    """Trades passing every non-empty filter field, in input order."""
    if filters is None or filters.is_empty:
        return list(trades)
    return [t for t in trades if matches_filter(t, filters)]

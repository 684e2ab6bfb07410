"""Data models for the TradeLens analytics core.

This module defines the structures shared by the two halves of the system:
- Trade / Position: normalized exchange activity produced by the reconciler
- Metric snapshots: pure aggregates produced by the analytics functions
- FilterOptions: user-supplied trade predicate

All monetary values use Decimal for precision.
All timestamps are timezone-aware UTC datetime objects.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


ZERO = Decimal("0")
HUNDRED = Decimal("100")


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Interpret naive datetimes as UTC and normalize aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================

class TradeSide(str, Enum):
    """Trade direction."""
    LONG = "long"
    SHORT = "short"

    @property
    def direction(self) -> int:
        """+1 for long, -1 for short."""
        return 1 if self == TradeSide.LONG else -1


class TradeStatus(str, Enum):
    """Trade lifecycle status."""
    OPEN = "open"
    CLOSED = "closed"
    LIQUIDATED = "liquidated"


class OrderType(str, Enum):
    """Order type enumeration."""
    MARKET = "market"
    LIMIT = "limit"
    STOP = "stop"
    STOP_LIMIT = "stop_limit"


class MarketType(str, Enum):
    """Market the instrument trades on."""
    SPOT = "spot"
    PERPETUAL = "perpetual"


class TradingSession(str, Enum):
    """Fixed UTC time-of-day buckets."""
    ASIAN = "asian"           # 00:00 - 08:00 UTC
    EUROPEAN = "european"     # 08:00 - 16:00 UTC
    AMERICAN = "american"     # 16:00 - 24:00 UTC


def calculate_unrealized_pnl(
    side: TradeSide,
    entry_price: Decimal,
    current_price: Decimal,
    quantity: Decimal,
) -> Decimal:
    """Directional PnL of an open exposure at the given price."""
    return (current_price - entry_price) * quantity * side.direction


def calculate_pnl_percentage(
    side: TradeSide,
    entry_price: Decimal,
    price: Decimal,
    leverage: Optional[Decimal] = None,
) -> Decimal:
    """PnL percentage relative to margin.

    Without leverage this is the plain price move; with leverage the move is
    measured against the margin actually posted, so it scales by leverage.
    """
    if entry_price == 0:
        return ZERO
    move = (price - entry_price) / entry_price * HUNDRED * side.direction
    if leverage is not None and leverage > 0:
        return move * leverage
    return move


def calculate_liquidation_price(
    side: TradeSide,
    entry_price: Decimal,
    leverage: Decimal,
) -> Decimal:
    """Price at which the posted margin is fully lost (no maintenance buffer)."""
    return entry_price * (1 - side.direction / leverage)


# =============================================================================
# Trade Models
# =============================================================================

class TradeFees(BaseModel):
    """Fee breakdown of a single trade.

    total_fee is derived when omitted and must match the components when
    supplied.
    """
    maker_fee: Decimal = Field(default=ZERO, description="Maker fee")
    taker_fee: Decimal = Field(default=ZERO, description="Taker fee")
    funding_fee: Optional[Decimal] = Field(default=None, description="Funding fee (perps)")
    total_fee: Optional[Decimal] = Field(default=None, description="Total fee")

    @model_validator(mode="after")
    def check_total(self) -> "TradeFees":
        expected = self.maker_fee + self.taker_fee + (self.funding_fee or ZERO)
        if self.total_fee is None:
            self.total_fee = expected
        elif self.total_fee != expected:
            raise ValueError(
                f"total_fee {self.total_fee} does not equal maker + taker + funding ({expected})"
            )
        return self


class Trade(BaseModel):
    """One executed or resting order.

    Created by the reconciler from raw exchange data. Instances are frozen:
    closing a trade or refreshing its live price returns a new Trade.

    Attributes:
        id: Trade identifier
        tx_signature: External transaction reference
        symbol: Asset pair (e.g. "SOL/USDC")
        market_type: Spot or perpetual
        side: Long or short
        order_type: Market, limit, stop, stop-limit
        status: Open, closed, liquidated
        entry_price: Entry execution price
        current_price: Last live price (open trades)
        exit_price: Exit price (closed trades only)
        quantity: Trade size
        leverage: Leverage multiplier (perps)
        entry_time: Entry timestamp
        exit_time: Exit timestamp (closed trades only)
        pnl: Realized PnL (closed trades only)
        pnl_percentage: Realized PnL percentage (closed trades only)
        unrealized_pnl: Live PnL of an open trade
        unrealized_pnl_percentage: Live PnL percentage of an open trade
        fees: Fee breakdown
        notes: Free-text journal note
        tags: Tag set
    """
    model_config = ConfigDict(frozen=True, json_encoders={Decimal: str})

    # Identification
    id: str = Field(..., description="Trade ID")
    tx_signature: str = Field(default="", description="Transaction signature")

    # Instrument
    symbol: str = Field(..., description="Trading pair")
    market_type: MarketType = Field(default=MarketType.SPOT, description="Market type")
    side: TradeSide = Field(..., description="Trade side")
    order_type: OrderType = Field(default=OrderType.MARKET, description="Order type")
    status: TradeStatus = Field(default=TradeStatus.OPEN, description="Trade status")

    # Prices and size
    entry_price: Decimal = Field(..., gt=0, description="Entry price")
    current_price: Optional[Decimal] = Field(default=None, description="Live price")
    exit_price: Optional[Decimal] = Field(default=None, description="Exit price")
    quantity: Decimal = Field(..., gt=0, description="Trade size")
    leverage: Optional[Decimal] = Field(default=None, gt=0, description="Leverage")

    # Timestamps
    entry_time: datetime = Field(..., description="Entry time")
    exit_time: Optional[datetime] = Field(default=None, description="Exit time")

    # PnL
    pnl: Optional[Decimal] = Field(default=None, description="Realized PnL")
    pnl_percentage: Optional[Decimal] = Field(default=None, description="Realized PnL %")
    unrealized_pnl: Optional[Decimal] = Field(default=None, description="Live PnL")
    unrealized_pnl_percentage: Optional[Decimal] = Field(default=None, description="Live PnL %")

    fees: TradeFees = Field(default_factory=TradeFees, description="Fee breakdown")

    # Journal
    notes: Optional[str] = Field(default=None, description="Journal note")
    tags: List[str] = Field(default_factory=list, description="Tags")

    @field_validator("entry_time", "exit_time")
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store every timestamp as aware UTC."""
        return ensure_utc(v)

    @model_validator(mode="after")
    def check_lifecycle(self) -> "Trade":
        """exit_price, exit_time and pnl exist if and only if the trade is closed."""
        closing_fields = {
            "exit_price": self.exit_price,
            "exit_time": self.exit_time,
            "pnl": self.pnl,
        }
        if self.status == TradeStatus.CLOSED:
            missing = [name for name, value in closing_fields.items() if value is None]
            if missing:
                raise ValueError(f"Closed trade requires {', '.join(missing)}")
        else:
            present = [name for name, value in closing_fields.items() if value is not None]
            if present:
                raise ValueError(
                    f"{', '.join(present)} only allowed on closed trades (status={self.status.value})"
                )
        if self.exit_time is not None and self.exit_time < self.entry_time:
            raise ValueError("exit_time must not precede entry_time")
        return self

    @property
    def is_open(self) -> bool:
        return self.status == TradeStatus.OPEN

    @property
    def is_closed(self) -> bool:
        return self.status == TradeStatus.CLOSED

    @property
    def notional(self) -> Decimal:
        """Entry notional (entry price * quantity)."""
        return self.entry_price * self.quantity

    @property
    def duration(self) -> Optional[float]:
        """Trade duration in seconds (None if still open)."""
        if self.exit_time is None:
            return None
        return (self.exit_time - self.entry_time).total_seconds()

    @property
    def last_known_price(self) -> Decimal:
        """Most recent price seen for this trade."""
        return self.current_price if self.current_price is not None else self.entry_price

    def close(self, exit_price: Decimal, exit_time: Optional[datetime] = None) -> "Trade":
        """Return a closed copy of this trade with realized PnL.

        Args:
            exit_price: Exit execution price
            exit_time: Exit timestamp (defaults to now)

        Returns:
            New Trade with status CLOSED
        """
        if not self.is_open:
            raise ValueError(f"Trade {self.id} is not open (status={self.status.value})")

        data = self.model_dump()
        data.update(
            status=TradeStatus.CLOSED,
            exit_price=exit_price,
            exit_time=exit_time or utc_now(),
            current_price=exit_price,
            pnl=calculate_unrealized_pnl(self.side, self.entry_price, exit_price, self.quantity),
            pnl_percentage=calculate_pnl_percentage(self.side, self.entry_price, exit_price),
            unrealized_pnl=None,
            unrealized_pnl_percentage=None,
        )
        return Trade.model_validate(data)

    def with_live_price(self, price: Decimal) -> "Trade":
        """Return a copy of an open trade re-marked at a live price."""
        if not self.is_open:
            return self
        return self.model_copy(update={
            "current_price": price,
            "unrealized_pnl": calculate_unrealized_pnl(
                self.side, self.entry_price, price, self.quantity
            ),
            "unrealized_pnl_percentage": calculate_pnl_percentage(
                self.side, self.entry_price, price
            ),
        })


# =============================================================================
# Position Models
# =============================================================================

class Position(BaseModel):
    """Live open exposure.

    Recomputed on every refresh, never patched. unrealized_pnl is the plain
    directional PnL of the full quantity; unrealized_pnl_percentage is
    measured against margin and therefore scaled by leverage.
    """
    model_config = ConfigDict(frozen=True, json_encoders={Decimal: str})

    id: str = Field(..., description="Position ID")
    symbol: str = Field(..., description="Trading pair")
    market_type: MarketType = Field(..., description="Market type")
    side: TradeSide = Field(..., description="Position side")
    entry_price: Decimal = Field(..., gt=0, description="Average entry price")
    current_price: Decimal = Field(..., description="Current price")
    quantity: Decimal = Field(..., gt=0, description="Position size")
    leverage: Optional[Decimal] = Field(default=None, gt=0, description="Leverage")
    unrealized_pnl: Decimal = Field(default=ZERO, description="Unrealized PnL")
    unrealized_pnl_percentage: Decimal = Field(default=ZERO, description="Unrealized PnL %")
    margin: Optional[Decimal] = Field(default=None, description="Posted margin")
    liquidation_price: Optional[Decimal] = Field(default=None, description="Liquidation price")
    open_time: datetime = Field(..., description="Open time")

    @field_validator("open_time")
    @classmethod
    def normalize_open_time(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def position_value(self) -> Decimal:
        """Current position value at the live price."""
        return self.current_price * self.quantity

    @classmethod
    def from_trade(cls, trade: Trade, current_price: Decimal) -> "Position":
        """Derive a position from an open trade at the given price.

        Perpetual positions carry margin (entry notional over leverage) and a
        liquidation price; a perpetual without leverage is treated as 1x.
        """
        margin = liquidation_price = None
        if trade.market_type == MarketType.PERPETUAL:
            leverage = trade.leverage or Decimal("1")
            margin = trade.entry_price * trade.quantity / leverage
            liquidation_price = calculate_liquidation_price(
                trade.side, trade.entry_price, leverage
            )

        return cls(
            id=f"pos-{trade.id}",
            symbol=trade.symbol,
            market_type=trade.market_type,
            side=trade.side,
            entry_price=trade.entry_price,
            current_price=current_price,
            quantity=trade.quantity,
            leverage=trade.leverage,
            unrealized_pnl=calculate_unrealized_pnl(
                trade.side, trade.entry_price, current_price, trade.quantity
            ),
            unrealized_pnl_percentage=calculate_pnl_percentage(
                trade.side, trade.entry_price, current_price, trade.leverage
            ),
            margin=margin,
            liquidation_price=liquidation_price,
            open_time=trade.entry_time,
        )


# =============================================================================
# Filter Models
# =============================================================================

class DateRange(BaseModel):
    """Inclusive date range; either end may be open."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", "end")
    @classmethod
    def normalize_bounds(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class FilterOptions(BaseModel):
    """User-supplied trade predicate.

    Every non-empty field must match (AND semantics). Empty lists and unset
    bounds match everything.
    """
    date_range: DateRange = Field(default_factory=DateRange)
    symbols: List[str] = Field(default_factory=list)
    market_types: List[MarketType] = Field(default_factory=list)
    sides: List[TradeSide] = Field(default_factory=list)
    statuses: List[TradeStatus] = Field(default_factory=list)
    min_pnl: Optional[Decimal] = None
    max_pnl: Optional[Decimal] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.date_range.start is None
            and self.date_range.end is None
            and not self.symbols
            and not self.market_types
            and not self.sides
            and not self.statuses
            and self.min_pnl is None
            and self.max_pnl is None
        )


# =============================================================================
# Metric Snapshots
# =============================================================================

class PortfolioMetrics(BaseModel):
    """Portfolio-level aggregate over a trade set.

    profit_factor is Decimal("Infinity") when there are wins and no losses.
    average_trade_duration is in seconds.
    """
    model_config = ConfigDict(json_encoders={Decimal: str})

    total_pnl: Decimal = ZERO
    total_pnl_percentage: Decimal = ZERO
    total_volume: Decimal = ZERO
    total_fees: Decimal = ZERO
    win_rate: Decimal = ZERO
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    average_win: Decimal = ZERO
    average_loss: Decimal = ZERO
    largest_win: Decimal = ZERO
    largest_loss: Decimal = ZERO
    profit_factor: Decimal = Field(default=ZERO, allow_inf_nan=True)
    average_trade_duration: float = 0.0
    long_short_ratio: Decimal = ZERO
    max_drawdown: Decimal = ZERO
    max_drawdown_percentage: Decimal = ZERO

    @property
    def has_unbounded_profit_factor(self) -> bool:
        return self.profit_factor.is_infinite()


class TimeBasedMetrics(BaseModel):
    """Performance for one hour of the day."""
    hour: int = Field(..., ge=0, le=23)
    pnl: Decimal = ZERO
    trade_count: int = 0
    win_rate: Decimal = ZERO


class SessionMetrics(BaseModel):
    """Performance for one trading session."""
    session: TradingSession
    pnl: Decimal = ZERO
    trade_count: int = 0
    win_rate: Decimal = ZERO
    average_duration: float = 0.0


class SymbolMetrics(BaseModel):
    """Performance for one symbol."""
    symbol: str
    pnl: Decimal = ZERO
    volume: Decimal = ZERO
    trade_count: int = 0
    win_rate: Decimal = ZERO
    average_pnl: Decimal = ZERO
    fees: Decimal = ZERO


class FeePoint(BaseModel):
    """Fees paid on one UTC calendar day."""
    date: date
    fees: Decimal = ZERO
    cumulative_fees: Decimal = ZERO


class FeeBreakdown(BaseModel):
    """Fee totals by kind plus a daily cumulative series."""
    maker_fees: Decimal = ZERO
    taker_fees: Decimal = ZERO
    funding_fees: Decimal = ZERO
    total_fees: Decimal = ZERO
    fees_over_time: List[FeePoint] = Field(default_factory=list)


class OrderTypeMetrics(BaseModel):
    """Performance for one order type."""
    order_type: OrderType
    pnl: Decimal = ZERO
    trade_count: int = 0
    win_rate: Decimal = ZERO
    average_duration: float = 0.0


class DailyPerformance(BaseModel):
    """Realized performance for one UTC calendar day."""
    date: date
    pnl: Decimal = ZERO
    cumulative_pnl: Decimal = ZERO
    volume: Decimal = ZERO
    fees: Decimal = ZERO
    trade_count: int = 0
    win_count: int = 0
    loss_count: int = 0
    drawdown: Decimal = ZERO
    drawdown_percentage: Decimal = ZERO


class DashboardSnapshot(BaseModel):
    """Every aggregate for one filtered trade set."""
    model_config = ConfigDict(json_encoders={Decimal: str})

    trade_count: int = 0
    portfolio: PortfolioMetrics = Field(default_factory=PortfolioMetrics)
    hourly: List[TimeBasedMetrics] = Field(default_factory=list)
    sessions: List[SessionMetrics] = Field(default_factory=list)
    symbols: List[SymbolMetrics] = Field(default_factory=list)
    fees: FeeBreakdown = Field(default_factory=FeeBreakdown)
    order_types: List[OrderTypeMetrics] = Field(default_factory=list)
    daily: List[DailyPerformance] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utc_now)

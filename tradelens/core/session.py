"""Wallet session scoping.

A WalletSession is created on every connect and threaded through each
reconciliation and refresh call. SessionState only accepts results tagged
with the session that is current when they complete, so work started for a
previous wallet can never write into a newer session.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import structlog
from pydantic import BaseModel, ConfigDict, Field

from tradelens.core.models import Position, Trade, utc_now

if TYPE_CHECKING:
    from tradelens.reconcile.reconciler import ReconciliationResult

logger = structlog.get_logger(__name__)


class WalletSession(BaseModel):
    """One wallet connection."""
    model_config = ConfigDict(frozen=True)

    wallet_address: str = Field(..., min_length=1, description="Wallet public key")
    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Session ID")
    connected_at: datetime = Field(default_factory=utc_now, description="Connect time")


class SessionState:
    """
    Trades and positions owned by the current wallet session.

    Trade and position data is never persisted; disconnecting clears it
    immediately. Trades closed by hand stay closed across later
    reconciliations and refreshes of the same session.
    """

    def __init__(self):
        self.session: Optional[WalletSession] = None
        self.trades: List[Trade] = []
        self.positions: List[Position] = []
        self.upstream_available: bool = True
        self.last_updated: Optional[datetime] = None
        self._manual_closes: Dict[str, Trade] = {}

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def connect(self, wallet_address: str) -> WalletSession:
        """Start a new session, discarding any previous one."""
        if self.session is not None:
            self.disconnect()

        self.session = WalletSession(wallet_address=wallet_address)
        logger.info(
            "session.connected",
            wallet=wallet_address,
            session_id=self.session.session_id,
        )
        return self.session

    def disconnect(self) -> Optional[WalletSession]:
        """End the current session and clear its data."""
        previous = self.session
        self.session = None
        self.clear()
        if previous is not None:
            logger.info(
                "session.disconnected",
                wallet=previous.wallet_address,
                session_id=previous.session_id,
            )
        return previous

    def clear(self):
        """Drop all trades and positions."""
        self.trades = []
        self.positions = []
        self.upstream_available = True
        self.last_updated = None
        self._manual_closes = {}

    def is_current(self, session: WalletSession) -> bool:
        return self.session is not None and self.session.session_id == session.session_id

    @property
    def is_connected(self) -> bool:
        return self.session is not None

    @property
    def open_trades(self) -> List[Trade]:
        return [t for t in self.trades if t.is_open]

    # =========================================================================
    # Updates
    # =========================================================================

    def _accept(self, session: WalletSession, kind: str) -> bool:
        if self.is_current(session):
            return True
        logger.info(
            "session.stale_result_dropped",
            kind=kind,
            session_id=session.session_id,
            current_session_id=self.session.session_id if self.session else None,
        )
        return False

    def _keep_manual_closes(
        self,
        trades: Sequence[Trade],
        positions: Sequence[Position],
    ) -> Tuple[List[Trade], List[Position]]:
        """Re-apply trades closed by hand over incoming values, by trade id."""
        if not self._manual_closes:
            return list(trades), list(positions)

        kept = [self._manual_closes.get(t.id, t) for t in trades]
        present = {t.id for t in kept}
        kept.extend(t for tid, t in self._manual_closes.items() if tid not in present)

        closed_positions = {f"pos-{tid}" for tid in self._manual_closes}
        return (
            sorted(kept, key=lambda t: (t.entry_time, t.id)),
            [p for p in positions if p.id not in closed_positions],
        )

    def apply_reconciliation(self, session: WalletSession, result: "ReconciliationResult") -> bool:
        """
        Replace trades and positions with a reconciliation result.

        Returns:
            False if the result belongs to a session that is no longer current
        """
        if not self._accept(session, "reconciliation"):
            return False

        self.trades, self.positions = self._keep_manual_closes(result.trades, result.positions)
        self.upstream_available = result.upstream_available
        self.last_updated = utc_now()
        return True

    def apply_refresh(
        self,
        session: WalletSession,
        trades: Sequence[Trade],
        positions: Sequence[Position],
    ) -> bool:
        """Replace trades and positions with refreshed values (stale sessions dropped)."""
        if not self._accept(session, "refresh"):
            return False

        self.trades, self.positions = self._keep_manual_closes(trades, positions)
        self.last_updated = utc_now()
        return True

    def close_trade(
        self,
        trade_id: str,
        exit_price: Decimal,
        exit_time: Optional[datetime] = None,
    ) -> Trade:
        """
        Manually mark an open trade closed.

        Raises:
            KeyError: No trade with that id
            ValueError: The trade is not open
        """
        for index, trade in enumerate(self.trades):
            if trade.id == trade_id:
                closed = trade.close(exit_price, exit_time)
                self.trades[index] = closed
                self._manual_closes[trade_id] = closed
                self.positions = [p for p in self.positions if p.id != f"pos-{trade_id}"]
                logger.info(
                    "session.trade_closed",
                    trade_id=trade_id,
                    exit_price=str(exit_price),
                    pnl=str(closed.pnl),
                )
                return closed

        raise KeyError(trade_id)

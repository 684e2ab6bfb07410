"""Dashboard engine - orchestrates reconciliation, refresh and analytics."""
from datetime import tzinfo
from decimal import Decimal
from typing import Dict, Optional

import structlog

from tradelens.analytics import build_dashboard
from tradelens.core.models import DashboardSnapshot, FilterOptions, Trade
from tradelens.core.session import SessionState, WalletSession
from tradelens.pricing.feed import PriceResolver
from tradelens.reconcile.reconciler import PositionReconciler, ReconciliationResult
from tradelens.reconcile.refresh import PnlRefresher

logger = structlog.get_logger(__name__)


class DashboardEngine:
    """
    Main dashboard engine that ties the components together.

    Responsibilities:
    - Opens and closes wallet sessions
    - Runs reconciliation and applies results to the current session
    - Keeps the PnL refresher in step with the session
    - Computes dashboard snapshots on demand
    """

    def __init__(
        self,
        reconciler: PositionReconciler,
        prices: PriceResolver,
        state: Optional[SessionState] = None,
        refresher: Optional[PnlRefresher] = None,
    ):
        self.reconciler = reconciler
        self.prices = prices
        self.state = state or SessionState()
        self.refresher = refresher or PnlRefresher(self.state, prices)

        self.last_result: Optional[ReconciliationResult] = None

    @property
    def session(self) -> Optional[WalletSession]:
        return self.state.session

    async def connect(self, wallet_address: str) -> ReconciliationResult:
        """Open a session for a wallet, reconcile it and start refreshing."""
        logger.info("engine.connecting", wallet=wallet_address)

        await self.refresher.stop()
        session = self.state.connect(wallet_address)
        result = await self._reconcile(session)

        logger.info(
            "engine.connected",
            wallet=wallet_address,
            source=result.source.value,
            trades=len(result.trades),
            positions=len(result.positions),
        )
        return result

    async def refresh(self) -> Optional[ReconciliationResult]:
        """Re-run reconciliation for the current session."""
        session = self.state.session
        if session is None:
            logger.debug("engine.refresh_skipped", reason="no_session")
            return None
        return await self._reconcile(session)

    async def _reconcile(self, session: WalletSession) -> ReconciliationResult:
        result = await self.reconciler.reconcile(session, cached_trades=self.state.trades)

        if self.state.apply_reconciliation(session, result):
            self.last_result = result
            if self.state.trades:
                await self.refresher.start()
            else:
                await self.refresher.stop()
        return result

    async def disconnect(self):
        """Stop refreshing and clear all session data."""
        logger.info("engine.disconnecting")
        await self.refresher.stop()
        self.state.disconnect()
        self.last_result = None
        logger.info("engine.disconnected")

    def close_trade(self, trade_id: str, exit_price: Decimal) -> Trade:
        """Manually mark an open trade closed at exit_price."""
        return self.state.close_trade(trade_id, exit_price)

    def snapshot(
        self,
        filters: Optional[FilterOptions] = None,
        tz: Optional[tzinfo] = None,
    ) -> DashboardSnapshot:
        """Dashboard aggregates over the current session's trades."""
        return build_dashboard(self.state.trades, filters, tz)

    def get_status(self) -> Dict:
        """Get current engine status."""
        session = self.state.session
        return {
            'connected': session is not None,
            'wallet': session.wallet_address if session else None,
            'session_id': session.session_id if session else None,
            'refreshing': self.refresher.is_running,
            'upstream_available': self.state.upstream_available,
            'source': self.last_result.source.value if self.last_result else None,
            'trades': len(self.state.trades),
            'open_trades': len(self.state.open_trades),
            'positions': {
                pos.id: {
                    'symbol': pos.symbol,
                    'side': pos.side.value,
                    'quantity': str(pos.quantity),
                    'entry_price': str(pos.entry_price),
                    'current_price': str(pos.current_price),
                    'unrealized_pnl': str(pos.unrealized_pnl),
                }
                for pos in self.state.positions
            },
            'last_updated': (
                self.state.last_updated.isoformat() if self.state.last_updated else None
            ),
        }

"""Periodic live PnL refresh for open trades."""
import asyncio
from typing import List, Mapping, Optional, Sequence

import structlog

from tradelens.core.config import app_config
from tradelens.core.models import Trade
from tradelens.core.session import SessionState, WalletSession
from tradelens.exchange.schemas import PriceQuote
from tradelens.pricing.feed import PriceResolver
from tradelens.reconcile.reconciler import derive_positions

logger = structlog.get_logger(__name__)


def mark_to_market(
    trades: Sequence[Trade],
    resolver: PriceResolver,
    table: Mapping[str, PriceQuote],
) -> List[Trade]:
    """Re-mark open trades at resolved prices; other trades are returned as is."""
    return [
        t.with_live_price(resolver.resolve(t.symbol, table)) if t.is_open else t
        for t in trades
    ]


async def update_trades_pnl(trades: Sequence[Trade], resolver: PriceResolver) -> List[Trade]:
    """Fetch the live price table and re-mark every open trade."""
    table = await resolver.fetch_live_prices()
    return mark_to_market(trades, resolver, table)


class PnlRefresher:
    """
    Fixed-interval refresh of open trade PnL and derived positions.

    Runs only while there is an active session with trades. The loop exits
    on its own when the session changes or the trade set becomes empty, and
    overlapping refreshes are skipped rather than queued.

    Args:
        state: Session state to refresh
        resolver: Price resolver
        interval: Seconds between refreshes (defaults to REFRESH_INTERVAL_SECONDS)
    """

    def __init__(
        self,
        state: SessionState,
        resolver: PriceResolver,
        interval: Optional[float] = None,
    ):
        self.state = state
        self.resolver = resolver
        self.interval = interval or app_config.refresh.refresh_interval_seconds

        self._task: Optional[asyncio.Task] = None
        self._session: Optional[WalletSession] = None
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> bool:
        """
        Start the refresh loop for the current session.

        Returns:
            True if a loop is running for the current session afterwards
        """
        session = self.state.session
        if session is None or not self.state.trades:
            logger.debug(
                "refresher.not_started",
                has_session=session is not None,
                trades=len(self.state.trades),
            )
            return False

        if self.is_running:
            if self._session is not None and self._session.session_id == session.session_id:
                return True
            await self.stop()

        self._session = session
        self._task = asyncio.create_task(self._run(session))
        logger.info(
            "refresher.started",
            session_id=session.session_id,
            interval=self.interval,
        )
        return True

    async def stop(self):
        """Cancel the loop and wait for it to finish."""
        task, self._task = self._task, None
        self._session = None
        if task is None:
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("refresher.stopped")

    async def refresh_once(self, session: WalletSession) -> bool:
        """
        Recompute live PnL and positions for the session's open trades.

        Returns:
            True if the refreshed values were applied
        """
        if self._lock.locked():
            logger.debug("refresher.skipped_in_flight", session_id=session.session_id)
            return False

        async with self._lock:
            if not self.state.is_current(session):
                return False

            table = await self.resolver.fetch_live_prices()
            trades = mark_to_market(self.state.trades, self.resolver, table)
            positions = derive_positions(trades, table)

            applied = self.state.apply_refresh(session, trades, positions)
            if applied:
                logger.debug(
                    "refresher.refreshed",
                    session_id=session.session_id,
                    open_trades=len(positions),
                )
            return applied

    async def _run(self, session: WalletSession):
        while True:
            await asyncio.sleep(self.interval)

            if not self.state.is_current(session):
                logger.info("refresher.exiting", reason="session_changed")
                return
            if not self.state.trades:
                logger.info("refresher.exiting", reason="no_trades")
                return

            try:
                await self.refresh_once(session)
            except Exception as e:
                logger.error("refresher.refresh_failed", error=str(e))

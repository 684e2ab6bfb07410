"""
TradeLens - Main Entry Point

Trading analytics for Deriverse wallets.

Usage:
    # Check configuration
    python main.py --check

    # Reconcile a wallet once and print the dashboard report
    python main.py --wallet <ADDRESS>

    # Keep refreshing live PnL until interrupted
    python main.py --wallet <ADDRESS> --watch

    # Report on a JSON trade export, filtered
    python main.py --trades-file trades.json --symbol SOL/USDC --side long

    # Show session status after reconciling
    python main.py --wallet <ADDRESS> --status
"""

import argparse
import asyncio
import json
import signal
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import structlog

from tradelens.analytics import build_dashboard, format_decimal
from tradelens.core.config import app_config
from tradelens.core.engine import DashboardEngine
from tradelens.core.models import (
    DashboardSnapshot,
    DateRange,
    FilterOptions,
    MarketType,
    Trade,
    TradeSide,
    TradeStatus,
)
from tradelens.exchange.deriverse_client import DeriverseClient
from tradelens.pricing.cache import PriceCache
from tradelens.pricing.feed import CoinGeckoPriceSource, PriceResolver
from tradelens.reconcile.reconciler import PositionReconciler
from tradelens.utils.logging_config import setup_logging

logger = structlog.get_logger(__name__)


class DashboardApp:
    """
    Main application: wires the HTTP collaborators, price resolution,
    reconciliation and the dashboard engine.
    """

    def __init__(self):
        self.client: Optional[DeriverseClient] = None
        self.coingecko: Optional[CoinGeckoPriceSource] = None
        self.engine: Optional[DashboardEngine] = None

        self._shutdown_event = asyncio.Event()
        self._initialized = False

    async def initialize(self):
        """Initialize all components based on configuration."""
        logger.info(
            "app.initializing",
            api_url=app_config.deriverse.api_url,
            fallback_prices=app_config.prices.fallback_enabled,
        )

        self.client = DeriverseClient()
        if app_config.prices.fallback_enabled:
            self.coingecko = CoinGeckoPriceSource()

        resolver = PriceResolver(
            primary=self.client,
            cache=PriceCache(app_config.prices.price_cache_ttl_seconds),
            fallback=self.coingecko,
            fallback_cache=(
                PriceCache(app_config.prices.fallback_cache_ttl_seconds)
                if self.coingecko else None
            ),
        )
        reconciler = PositionReconciler(self.client, resolver)
        self.engine = DashboardEngine(reconciler, resolver)

        self._initialized = True
        logger.info("app.initialized")

    async def run(self, wallet: str, watch: bool = False) -> DashboardEngine:
        """Connect a wallet; with watch, keep refreshing until a shutdown signal."""
        if not self._initialized:
            raise RuntimeError("App not initialized. Call initialize() first.")

        await self.engine.connect(wallet)

        if watch:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self._signal_handler)

            logger.info("app.watching", wallet=wallet, interval=self.engine.refresher.interval)
            await self._shutdown_event.wait()

        return self.engine

    async def shutdown(self):
        """Perform graceful shutdown."""
        logger.info("app.shutting_down")

        if self.engine:
            await self.engine.disconnect()
        if self.client:
            await self.client.close()
        if self.coingecko:
            await self.coingecko.close()

        logger.info("app.shutdown_complete")

    def _signal_handler(self):
        """Handle shutdown signals."""
        logger.info("app.shutdown_signal_received")
        self._shutdown_event.set()


def check_configuration() -> Dict:
    """
    Check if configuration is valid.

    Returns:
        Dictionary with validation results
    """
    validation = app_config.validate_configuration()
    warnings = []

    if not app_config.prices.fallback_enabled:
        warnings.append("⚠️  Fallback price feed disabled: outages fall back to static prices")
    if app_config.is_production and app_config.logging.log_level == "DEBUG":
        warnings.append("⚠️  DEBUG logging in production")

    return {
        "valid": validation["valid"],
        "issues": validation["issues"],
        "warnings": warnings,
        "api_url": app_config.deriverse.api_url,
        "environment": app_config.system.environment,
        "timezone": app_config.system.timezone or "local",
    }


def load_trades(path: Path) -> List[Trade]:
    """Load a JSON list of trade records."""
    records = json.loads(path.read_text())
    return [Trade.model_validate(record) for record in records]


def build_filters(args: argparse.Namespace) -> Optional[FilterOptions]:
    filters = FilterOptions(
        date_range=DateRange(
            start=datetime.fromisoformat(args.since) if args.since else None,
            end=datetime.fromisoformat(args.until) if args.until else None,
        ),
        symbols=args.symbol or [],
        sides=[TradeSide(s) for s in args.side or []],
        market_types=[MarketType(m) for m in args.market or []],
        statuses=[TradeStatus(s) for s in args.status_filter or []],
    )
    return None if filters.is_empty else filters


def print_report(snapshot: DashboardSnapshot):
    """Print formatted dashboard report."""
    portfolio = snapshot.portfolio

    print("\n" + "=" * 60)
    print("           TRADELENS - DASHBOARD REPORT")
    print("=" * 60)

    print(f"\n🕐 Generated: {snapshot.generated_at.isoformat()}")
    print(f"📋 Trades: {snapshot.trade_count} ({portfolio.total_trades} closed)")

    print(f"\n💰 Portfolio:")
    print(f"   Total PnL: {format_decimal(portfolio.total_pnl)} USDC "
          f"({format_decimal(portfolio.total_pnl_percentage)}%)")
    print(f"   Volume: {format_decimal(portfolio.total_volume)} USDC")
    print(f"   Fees: {format_decimal(portfolio.total_fees, 4)} USDC")
    print(f"   Win Rate: {format_decimal(portfolio.win_rate)}% "
          f"({portfolio.winning_trades}W / {portfolio.losing_trades}L)")
    print(f"   Profit Factor: {format_decimal(portfolio.profit_factor)}")
    print(f"   Long/Short Ratio: {format_decimal(portfolio.long_short_ratio)}")
    print(f"   Max Drawdown: {format_decimal(portfolio.max_drawdown)} USDC "
          f"({format_decimal(portfolio.max_drawdown_percentage)}%)")

    print(f"\n🌍 Sessions:")
    for session in snapshot.sessions:
        print(f"   {session.session.value:<9} {session.trade_count:>4} trades  "
              f"PnL {format_decimal(session.pnl)}  win {format_decimal(session.win_rate)}%")

    if snapshot.symbols:
        print(f"\n📈 Symbols:")
        for symbol in snapshot.symbols:
            print(f"   {symbol.symbol:<12} volume {format_decimal(symbol.volume)}  "
                  f"PnL {format_decimal(symbol.pnl)}  fees {format_decimal(symbol.fees, 4)}")

    fees = snapshot.fees
    print(f"\n💸 Fees:")
    print(f"   Maker: {format_decimal(fees.maker_fees, 4)}  Taker: {format_decimal(fees.taker_fees, 4)}  "
          f"Funding: {format_decimal(fees.funding_fees, 4)}")

    if snapshot.daily:
        print(f"\n📅 Daily:")
        for day in snapshot.daily[-7:]:
            print(f"   {day.date.isoformat()}  PnL {format_decimal(day.pnl)}  "
                  f"cumulative {format_decimal(day.cumulative_pnl)}  "
                  f"drawdown {format_decimal(day.drawdown)}")

    print("\n" + "=" * 60)


def print_status(status: Dict):
    """Print formatted session status."""
    print("\n" + "=" * 60)
    print("           TRADELENS - SESSION STATUS")
    print("=" * 60)

    print(f"\n🔌 Wallet: {status.get('wallet') or 'not connected'}")
    print(f"🆔 Session: {status.get('session_id') or 'N/A'}")
    print(f"📡 Source: {status.get('source') or 'N/A'}")
    print(f"✓ Upstream available: {status.get('upstream_available')}")
    print(f"🔄 Refreshing: {status.get('refreshing')}")
    print(f"🕐 Last updated: {status.get('last_updated') or 'N/A'}")

    positions = status.get('positions', {})
    print(f"\n📈 Positions (Total: {len(positions)}):")
    if positions:
        for pos in positions.values():
            print(f"   - {pos['symbol']} {pos['side']}: {pos['quantity']} @ {pos['entry_price']} "
                  f"(now {pos['current_price']}, uPnL {pos['unrealized_pnl']})")
    else:
        print("   No open positions")

    print(f"\n📝 Trades: {status.get('trades', 0)} ({status.get('open_trades', 0)} open)")
    print("\n" + "=" * 60)


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="TradeLens - Deriverse trading analytics")

    # Sources
    parser.add_argument("--wallet", help="Wallet address to reconcile")
    parser.add_argument("--trades-file", type=Path, help="JSON file with a list of trades")
    parser.add_argument(
        "--watch", action="store_true", help="Keep refreshing live PnL until interrupted"
    )

    # Filters
    parser.add_argument("--symbol", action="append", help="Only this symbol (repeatable)")
    parser.add_argument(
        "--side", action="append", choices=[s.value for s in TradeSide], help="Only this side"
    )
    parser.add_argument(
        "--market", action="append", choices=[m.value for m in MarketType],
        help="Only this market type",
    )
    parser.add_argument(
        "--trade-status", dest="status_filter", action="append",
        choices=[s.value for s in TradeStatus], help="Only this trade status",
    )
    parser.add_argument("--since", help="Entry time lower bound (ISO 8601)")
    parser.add_argument("--until", help="Entry time upper bound (ISO 8601)")

    # Actions
    parser.add_argument("--check", action="store_true", help="Check configuration and exit")
    parser.add_argument(
        "--status", action="store_true", help="Show session status after reconciling"
    )
    parser.add_argument(
        "--console-logs", action="store_true", help="Human-readable logs instead of JSON"
    )

    args = parser.parse_args()

    setup_logging(json_output=not args.console_logs)

    config_check = check_configuration()
    for warning in config_check["warnings"]:
        print(warning)

    if args.check:
        print("\n" + "=" * 60)
        print("           CONFIGURATION CHECK")
        print("=" * 60)

        if config_check["valid"]:
            print("\n✓ Configuration is valid")
        else:
            print("\n✗ Configuration errors:")
            for issue in config_check["issues"]:
                print(f"   - {issue}")

        print(f"\nEnvironment: {config_check['environment']}")
        print(f"API URL: {config_check['api_url']}")
        print(f"Timezone: {config_check['timezone']}")
        print("\n" + "=" * 60)
        return

    if not config_check["valid"]:
        print("\n✗ Configuration errors:")
        for issue in config_check["issues"]:
            print(f"   - {issue}")
        print("\nPlease check your .env file and try again.")
        return

    filters = build_filters(args)
    tz = app_config.display_timezone

    if args.trades_file:
        trades = load_trades(args.trades_file)
        print_report(build_dashboard(trades, filters, tz))
        return

    if not args.wallet:
        parser.error("one of --wallet, --trades-file or --check is required")

    app = DashboardApp()
    try:
        await app.initialize()
        engine = await app.run(args.wallet, watch=args.watch)
        print_report(engine.snapshot(filters, tz))
        if args.status:
            print_status(engine.get_status())
    except Exception as e:
        logger.error("app.fatal_error", error=str(e), exc_info=True)
        raise
    finally:
        await app.shutdown()


if __name__ == "__main__":
    asyncio.run(main())

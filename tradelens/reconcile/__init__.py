"""Position reconciliation, trade reconstruction and live PnL refresh."""

from tradelens.reconcile.heuristics import (
    FeeSchedule,
    SideInference,
    explicit_side,
    infer_side_from_balance_delta,
)
from tradelens.reconcile.history import EXECUTABLE_TYPES, is_executable, reconstruct_trades
from tradelens.reconcile.reconciler import (
    PositionReconciler,
    ReconciliationResult,
    ReconciliationSource,
    derive_positions,
)
from tradelens.reconcile.refresh import PnlRefresher, mark_to_market, update_trades_pnl

__all__ = [
    "FeeSchedule",
    "SideInference",
    "explicit_side",
    "infer_side_from_balance_delta",
    "EXECUTABLE_TYPES",
    "is_executable",
    "reconstruct_trades",
    "PositionReconciler",
    "ReconciliationResult",
    "ReconciliationSource",
    "derive_positions",
    "PnlRefresher",
    "mark_to_market",
    "update_trades_pnl",
]

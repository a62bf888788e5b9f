"""Performance metrics calculated from the trade ledger.

All metrics are derived from raw trade records (the single source of truth),
independently of the engine's cached counters.
"""

import logging
from typing import List

import numpy as np
import pandas as pd

from papertrade.schemas.trade import TradeAction, TradeRecordV1
from papertrade.utils.helpers import safe_div

logger = logging.getLogger(__name__)


def _sells(trades: List[TradeRecordV1]) -> List[TradeRecordV1]:
    return [t for t in trades if t.action == TradeAction.SELL]


def win_rate(trades: List[TradeRecordV1]) -> float:
    """
    Percentage of settled trades with positive profit.

    Args:
        trades: Trade records (buys are ignored)

    Returns:
        Win rate in percent (0.0 when nothing has settled)
    """
    sells = _sells(trades)
    winners = sum(1 for t in sells if t.profit is not None and t.profit > 0)
    return safe_div(winners, len(sells)) * 100


def total_profit(trades: List[TradeRecordV1]) -> float:
    """Sum of realized profit over all sells."""
    profits = [t.profit for t in _sells(trades) if t.profit is not None]
    return float(np.sum(profits)) if profits else 0.0


def total_return_pct(trades: List[TradeRecordV1], initial_balance: float) -> float:
    """Realized profit as a percentage of the starting balance."""
    return safe_div(total_profit(trades), initial_balance) * 100


def average_profit_percent(trades: List[TradeRecordV1]) -> float:
    """Mean profit percent per settled trade."""
    values = [t.profit_percent for t in _sells(trades) if t.profit_percent is not None]
    if not values:
        return 0.0
    return float(np.mean(values))


def profit_factor(trades: List[TradeRecordV1]) -> float:
    """
    Gross profit divided by gross loss.

    Returns:
        Profit factor, ``inf`` if there are wins and no losses, 0.0 with no wins.
    """
    profits = np.array([t.profit for t in _sells(trades) if t.profit is not None], dtype=float)
    if profits.size == 0:
        return 0.0

    gross_profit = profits[profits > 0].sum()
    gross_loss = -profits[profits < 0].sum()

    if gross_loss < 1e-12:
        return float("inf") if gross_profit > 0 else 0.0
    return float(gross_profit / gross_loss)


def max_drawdown(trades: List[TradeRecordV1], initial_balance: float) -> float:
    """
    Largest peak-to-trough fall of realized equity, as a fraction of the peak.

    Realized equity is the starting balance plus cumulative sell profit, in
    ledger order.
    """
    profits = [t.profit for t in _sells(trades) if t.profit is not None]
    if not profits:
        return 0.0

    equity = initial_balance + np.cumsum(profits)
    equity = np.concatenate([[initial_balance], equity])
    running_peak = np.maximum.accumulate(equity)
    drawdowns = np.where(running_peak > 0, (running_peak - equity) / running_peak, 0.0)
    return float(drawdowns.max())


def trades_to_frame(trades: List[TradeRecordV1]) -> pd.DataFrame:
    """Convert trade records to a DataFrame (one row per trade, ledger order)."""
    columns = list(TradeRecordV1.model_fields.keys())
    if not trades:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame([t.model_dump() for t in trades], columns=columns)


def calculate_all_metrics(trades: List[TradeRecordV1], initial_balance: float) -> dict:
    """Calculate every metric in one pass over the ledger."""
    sells = _sells(trades)
    metrics = {
        "total_trades": len(trades) - len(sells),
        "completed_trades": len(sells),
        "win_rate_pct": win_rate(trades),
        "total_profit": total_profit(trades),
        "total_return_pct": total_return_pct(trades, initial_balance),
        "average_profit_pct": average_profit_percent(trades),
        "profit_factor": profit_factor(trades),
        "max_drawdown_pct": max_drawdown(trades, initial_balance) * 100,
    }
    logger.debug(f"Calculated metrics over {len(trades)} trades")
    return metrics

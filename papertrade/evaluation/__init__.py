"""Reporting and performance metrics derived from the ledgers."""

from papertrade.evaluation.metrics import (
    average_profit_percent,
    calculate_all_metrics,
    max_drawdown,
    profit_factor,
    total_profit,
    total_return_pct,
    trades_to_frame,
    win_rate,
)
from papertrade.evaluation.reporting import build_snapshot, log_summary

__all__ = [
    "build_snapshot",
    "log_summary",
    "calculate_all_metrics",
    "win_rate",
    "total_profit",
    "total_return_pct",
    "average_profit_percent",
    "profit_factor",
    "max_drawdown",
    "trades_to_frame",
]

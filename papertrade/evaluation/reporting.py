"""Session snapshot and human-readable summary.

Both read the ledgers and never mutate them.
"""

import logging
from typing import TYPE_CHECKING, Optional

from papertrade.schemas.snapshot import SnapshotV1
from papertrade.schemas.trade import TradeAction
from papertrade.utils.helpers import safe_div

if TYPE_CHECKING:
    from papertrade.simulator.state import EngineState

logger = logging.getLogger(__name__)


def build_snapshot(state: "EngineState", recent_limit: int = 5) -> SnapshotV1:
    """
    Summarise an engine state.

    Args:
        state: Engine state to read
        recent_limit: Number of most recent trades to include

    Returns:
        SnapshotV1. Win rate is 0 when no trade has completed.
    """
    buys = state.trades.list_trades(action=TradeAction.BUY)
    sells = state.trades.list_trades(action=TradeAction.SELL)
    winning = [t for t in sells if t.profit is not None and t.profit > 0]

    current = state.quote_balance()
    initial = state.initial_quote_balance

    return SnapshotV1(
        quote_symbol=state.quote_symbol,
        initial_quote_balance=initial,
        current_quote_balance=current,
        total_return_percent=safe_div(current - initial, initial) * 100,
        total_opportunities=len(buys),
        completed_trades=len(sells),
        winning_trades=len(winning),
        win_rate=safe_div(len(winning), len(sells)) * 100,
        total_profit=state.total_profit,
        open_positions=[
            b for b in state.balances.list_balances() if b.asset_id != state.quote_asset_id
        ],
        recent_activity=state.trades.recent(recent_limit),
    )


def log_summary(snapshot: SnapshotV1, log: Optional[logging.Logger] = None) -> None:
    """Write the periodic paper trading summary to the log."""
    log = log or logger
    symbol = snapshot.quote_symbol

    log.info("=" * 60)
    log.info("PAPER TRADING SUMMARY")
    log.info(f"  Current Balance:     {snapshot.current_quote_balance:.6f} {symbol}")
    log.info(f"  Total Return:        {snapshot.total_return_percent:.2f}%")
    log.info(f"  Total Opportunities: {snapshot.total_opportunities}")
    log.info(f"  Completed Trades:    {snapshot.completed_trades}")
    log.info(f"  Win Rate:            {snapshot.win_rate:.2f}%")
    log.info(f"  Total Profit:        {snapshot.total_profit:.6f} {symbol}")

    if snapshot.open_positions:
        log.info(f"  Open Positions:      {len(snapshot.open_positions)}")
        for position in snapshot.open_positions:
            log.info(f"    {position.display_symbol}: {position.quantity:.6f}")

    if snapshot.recent_activity:
        log.info("  Recent Activity:")
        for trade in snapshot.recent_activity:
            time = trade.timestamp.strftime("%H:%M:%S")
            if trade.action == TradeAction.BUY:
                log.info(
                    f"    {time} BUY  {trade.display_symbol} for {trade.quote_amount:.6f} {symbol}"
                )
            else:
                trend = "up" if trade.profit > 0 else "down"
                log.info(
                    f"    {time} SELL {trade.display_symbol} {trend} {trade.profit_percent:.2f}%"
                )
    log.info("=" * 60)

"""Explicit engine state owned by one engine instance."""

import math
import threading
from dataclasses import dataclass, field
from typing import Callable, List

from papertrade.schemas.engine_config import EngineConfigV1
from papertrade.schemas.trade import TradeAction, TradeRecordV1
from papertrade.storage.balance_ledger import InMemoryBalanceLedger
from papertrade.storage.trade_ledger import InMemoryTradeLedger


@dataclass
class EngineState:
    """
    Ledgers and cached counters of one simulation run.

    Includes:
    - Balance ledger (quote asset pinned)
    - Trade ledger
    - Running total profit and trade counter, cached for O(1) reporting

    The cached counters must always equal what the trade ledger implies;
    ``discrepancies()`` recomputes them.
    """

    balances: InMemoryBalanceLedger
    trades: InMemoryTradeLedger
    quote_asset_id: str
    quote_symbol: str
    initial_quote_balance: float
    total_profit: float = 0.0
    trade_counter: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @classmethod
    def initial(cls, config: EngineConfigV1) -> "EngineState":
        """Create a fresh state seeded with the configured quote balance."""
        balances = InMemoryBalanceLedger(pinned_assets=[config.quote_asset_id])
        balances.credit(
            config.quote_asset_id, config.quote_asset_symbol, config.initial_quote_balance
        )
        return cls(
            balances=balances,
            trades=InMemoryTradeLedger(),
            quote_asset_id=config.quote_asset_id,
            quote_symbol=config.quote_asset_symbol,
            initial_quote_balance=config.initial_quote_balance,
        )

    def record_buy(self, build: Callable[[int], TradeRecordV1]) -> TradeRecordV1:
        """
        Build and append a buy under the next trade number.

        The counter only advances once the append has succeeded, so a failed
        build or append leaves the counter untouched.
        """
        with self._lock:
            number = self.trade_counter + 1
            trade = build(number)
            self.trades.append(trade)
            self.trade_counter = number
            return trade

    def add_profit(self, profit: float) -> float:
        """Add realized profit to the running total."""
        with self._lock:
            self.total_profit += profit
            return self.total_profit

    def quote_balance(self) -> float:
        """Current virtual quote balance."""
        balance = self.balances.get(self.quote_asset_id)
        return balance.quantity if balance is not None else 0.0

    def copy(self) -> "EngineState":
        """Independent copy for snapshot/restore."""
        with self._lock:
            return EngineState(
                balances=self.balances.copy(),
                trades=self.trades.copy(),
                quote_asset_id=self.quote_asset_id,
                quote_symbol=self.quote_symbol,
                initial_quote_balance=self.initial_quote_balance,
                total_profit=self.total_profit,
                trade_counter=self.trade_counter,
            )

    def discrepancies(self, tolerance: float = 1e-9) -> List[str]:
        """
        Recompute cached counters from the trade ledger.

        Returns:
            Human-readable descriptions of every mismatch (empty if consistent).
        """
        problems = []
        sells = self.trades.list_trades(action=TradeAction.SELL)
        buys = self.trades.list_trades(action=TradeAction.BUY)

        recomputed_profit = math.fsum(t.profit for t in sells)
        if abs(recomputed_profit - self.total_profit) > tolerance:
            problems.append(
                f"total_profit {self.total_profit} != sum of sell profits {recomputed_profit}"
            )
        if self.trade_counter != len(buys):
            problems.append(f"trade_counter {self.trade_counter} != buy count {len(buys)}")
        return problems

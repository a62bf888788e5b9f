"""In-memory implementation of the trade ledger."""

import threading
from typing import Callable, Dict, List, Optional

from papertrade.schemas.trade import TradeAction, TradeRecordV1, sell_id_for
from papertrade.errors import DuplicateTradeError
from papertrade.storage.interface import TradeLedgerInterface


class InMemoryTradeLedger(TradeLedgerInterface):
    """
    Append-only list of trade records.

    Records are frozen pydantic models and are never updated or removed. The
    id index rejects a second record with the same id, which is the storage
    backstop for at-most-one settlement per buy.
    """

    def __init__(self):
        self._trades: List[TradeRecordV1] = []
        self._by_id: Dict[str, TradeRecordV1] = {}
        self._lock = threading.Lock()

    def append(self, trade: TradeRecordV1) -> None:
        """Record a trade."""
        with self._lock:
            if trade.trade_id in self._by_id:
                raise DuplicateTradeError(trade.trade_id)
            self._trades.append(trade)
            self._by_id[trade.trade_id] = trade

    def get(self, trade_id: str) -> Optional[TradeRecordV1]:
        """Retrieve a trade by ID."""
        return self._by_id.get(trade_id)

    def has_trade(self, trade_id: str) -> bool:
        return trade_id in self._by_id

    def find(self, predicate: Callable[[TradeRecordV1], bool]) -> Optional[TradeRecordV1]:
        """Return the first trade in insertion order matching the predicate."""
        for trade in self._snapshot():
            if predicate(trade):
                return trade
        return None

    def open_buys(self, asset_id: Optional[str] = None) -> List[TradeRecordV1]:
        """
        List buys with no settling sell.

        Ordered by timestamp ascending; insertion order breaks ties because
        ``sorted`` is stable.
        """
        buys = [
            t
            for t in self._snapshot()
            if t.is_buy
            and (asset_id is None or t.asset_id == asset_id)
            and sell_id_for(t.trade_id) not in self._by_id
        ]
        return sorted(buys, key=lambda t: t.timestamp)

    def find_open_buy(self, asset_id: str) -> Optional[TradeRecordV1]:
        """Return the oldest buy for an asset with no settling sell."""
        buys = self.open_buys(asset_id)
        return buys[0] if buys else None

    def list_trades(
        self,
        action: Optional[TradeAction] = None,
        asset_id: Optional[str] = None,
    ) -> List[TradeRecordV1]:
        """List trades with filters, in insertion order."""
        trades = self._snapshot()
        if action is not None:
            trades = [t for t in trades if t.action == action]
        if asset_id is not None:
            trades = [t for t in trades if t.asset_id == asset_id]
        return trades

    def recent(self, limit: int) -> List[TradeRecordV1]:
        """Return the last ``limit`` trades in insertion order."""
        if limit <= 0:
            return []
        return self._snapshot()[-limit:]

    def copy(self) -> "InMemoryTradeLedger":
        """Return an independent copy. Records are immutable and shared."""
        clone = InMemoryTradeLedger()
        for trade in self._snapshot():
            clone.append(trade)
        return clone

    def _snapshot(self) -> List[TradeRecordV1]:
        with self._lock:
            return list(self._trades)

    def __len__(self) -> int:
        return len(self._trades)

"""Abstract ledger interfaces for the paper trading engine."""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from papertrade.schemas.balance import BalanceV1
from papertrade.schemas.trade import TradeAction, TradeRecordV1


class BalanceLedgerInterface(ABC):
    """
    Abstract interface for the virtual balance ledger.

    Maps asset id to virtual quantity. Every mutation is check-then-write
    atomic with respect to the asset key.
    """

    @abstractmethod
    def get(self, asset_id: str) -> Optional[BalanceV1]:
        """Retrieve the balance for an asset, or None if absent."""
        pass

    @abstractmethod
    def credit(self, asset_id: str, display_symbol: str, amount: float) -> BalanceV1:
        """Add quantity to an asset, creating the entry on first credit."""
        pass

    @abstractmethod
    def debit(self, asset_id: str, amount: float) -> Optional[BalanceV1]:
        """Remove quantity from an asset. Raises InsufficientFundsError without mutating."""
        pass

    @abstractmethod
    def list_balances(self) -> List[BalanceV1]:
        """List all balances in creation order."""
        pass


class TradeLedgerInterface(ABC):
    """
    Abstract interface for the append-only trade ledger.

    The trade ledger is the single source of truth for realized PnL.
    """

    @abstractmethod
    def append(self, trade: TradeRecordV1) -> None:
        """Record a trade. Raises DuplicateTradeError if the id exists."""
        pass

    @abstractmethod
    def get(self, trade_id: str) -> Optional[TradeRecordV1]:
        """Retrieve a trade by ID."""
        pass

    @abstractmethod
    def find(self, predicate: Callable[[TradeRecordV1], bool]) -> Optional[TradeRecordV1]:
        """Return the first trade in insertion order matching the predicate."""
        pass

    @abstractmethod
    def find_open_buy(self, asset_id: str) -> Optional[TradeRecordV1]:
        """Return the oldest buy for an asset with no settling sell."""
        pass

    @abstractmethod
    def list_trades(
        self,
        action: Optional[TradeAction] = None,
        asset_id: Optional[str] = None,
    ) -> List[TradeRecordV1]:
        """List trades with filters, in insertion order."""
        pass

    @abstractmethod
    def recent(self, limit: int) -> List[TradeRecordV1]:
        """Return the last ``limit`` trades in insertion order."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

"""Ledger layer with abstract interfaces and in-memory implementations."""

from papertrade.storage.balance_ledger import InMemoryBalanceLedger
from papertrade.storage.interface import BalanceLedgerInterface, TradeLedgerInterface
from papertrade.storage.trade_ledger import InMemoryTradeLedger

__all__ = [
    # Interfaces
    "BalanceLedgerInterface",
    "TradeLedgerInterface",
    # In-memory implementations
    "InMemoryBalanceLedger",
    "InMemoryTradeLedger",
]

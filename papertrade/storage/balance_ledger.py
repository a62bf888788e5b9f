"""In-memory implementation of the balance ledger."""

import copy
import math
import threading
from typing import Dict, Iterable, List, Optional

from papertrade.schemas.balance import BalanceV1
from papertrade.errors import InsufficientFundsError
from papertrade.storage.interface import BalanceLedgerInterface


class InMemoryBalanceLedger(BalanceLedgerInterface):
    """
    Dictionary-backed balance ledger with one lock per asset key.

    Pinned assets (the quote asset) keep their entry at a zero quantity;
    every other entry is removed as soon as its quantity reaches exactly zero.
    Callers receive copies, so a returned BalanceV1 never aliases ledger state.
    """

    def __init__(self, pinned_assets: Iterable[str] = ()):
        """
        Initialize balance ledger.

        Args:
            pinned_assets: Asset ids whose entry survives a zero quantity
        """
        self.pinned_assets = frozenset(pinned_assets)
        self._balances: Dict[str, BalanceV1] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, asset_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(asset_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[asset_id] = lock
            return lock

    @staticmethod
    def _check_amount(amount: float) -> None:
        if not math.isfinite(amount) or amount < 0:
            raise ValueError(f"amount must be finite and >= 0 (got {amount})")

    def get(self, asset_id: str) -> Optional[BalanceV1]:
        """Retrieve the balance for an asset, or None if absent."""
        balance = self._balances.get(asset_id)
        return balance.model_copy() if balance is not None else None

    def credit(self, asset_id: str, display_symbol: str, amount: float) -> BalanceV1:
        """Add quantity to an asset, creating the entry on first credit."""
        self._check_amount(amount)
        with self._lock_for(asset_id):
            current = self._balances.get(asset_id)
            if current is None:
                updated = BalanceV1(asset_id=asset_id, display_symbol=display_symbol, quantity=amount)
            else:
                updated = current.model_copy(update={"quantity": current.quantity + amount})
            if updated.quantity == 0 and asset_id not in self.pinned_assets:
                self._balances.pop(asset_id, None)
            else:
                self._balances[asset_id] = updated
            return updated.model_copy()

    def debit(self, asset_id: str, amount: float) -> Optional[BalanceV1]:
        """
        Remove quantity from an asset.

        Returns:
            The remaining balance, or None if the entry was removed.

        Raises:
            InsufficientFundsError: If amount exceeds the quantity held. The
                ledger is left untouched.
        """
        self._check_amount(amount)
        with self._lock_for(asset_id):
            current = self._balances.get(asset_id)
            available = current.quantity if current is not None else 0.0
            if current is None or amount > available:
                raise InsufficientFundsError(asset_id, requested=amount, available=available)

            remaining = available - amount
            if remaining == 0 and asset_id not in self.pinned_assets:
                del self._balances[asset_id]
                return None

            updated = current.model_copy(update={"quantity": max(remaining, 0.0)})
            self._balances[asset_id] = updated
            return updated.model_copy()

    def list_balances(self) -> List[BalanceV1]:
        """List all balances in creation order."""
        return [balance.model_copy() for balance in list(self._balances.values())]

    def copy(self) -> "InMemoryBalanceLedger":
        """Return an independent copy with fresh locks."""
        clone = InMemoryBalanceLedger(pinned_assets=self.pinned_assets)
        clone._balances = copy.deepcopy(self._balances)
        return clone

    def __contains__(self, asset_id: str) -> bool:
        return asset_id in self._balances

    def __len__(self) -> int:
        return len(self._balances)

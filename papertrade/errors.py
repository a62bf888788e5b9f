"""Exception taxonomy for the paper trading simulator."""


class SimulationError(Exception):
    """Base class for recoverable simulation errors."""


class InsufficientFundsError(SimulationError):
    """Raised when a debit exceeds the virtual balance. No state is changed."""

    def __init__(self, asset_id: str, requested: float, available: float):
        self.asset_id = asset_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient balance for {asset_id}: {available} < {requested}"
        )


class UnmatchedSettlementError(SimulationError):
    """Raised when a close finds nothing to settle (already closed or unknown)."""

    def __init__(self, asset_id: str, reason: str):
        self.asset_id = asset_id
        self.reason = reason
        super().__init__(f"Nothing to settle for {asset_id}: {reason}")


class FilterRejected(SimulationError):
    """Control-flow signal: an opportunity did not pass the buy gates."""

    def __init__(self, asset_id: str, reason: str):
        self.asset_id = asset_id
        self.reason = reason
        super().__init__(f"Skipping {asset_id}: {reason}")


class DuplicateTradeError(SimulationError):
    """Raised when a trade id is appended to the trade ledger twice."""

    def __init__(self, trade_id: str):
        self.trade_id = trade_id
        super().__init__(f"Trade already recorded: {trade_id}")

"""Position lifecycle engine: opens and settles virtual positions."""

import logging
import math
import threading
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from papertrade.errors import FilterRejected, InsufficientFundsError, UnmatchedSettlementError
from papertrade.evaluation.reporting import build_snapshot
from papertrade.schemas.engine_config import EngineConfigV1
from papertrade.schemas.events import BalanceObservedEventV1, PoolOpportunityEventV1
from papertrade.schemas.snapshot import SnapshotV1
from papertrade.schemas.trade import TradeAction, TradeRecordV1, sell_id_for
from papertrade.simulator.clock import Clock, SystemClock, VirtualClock
from papertrade.simulator.price_model import PriceMovementSimulator
from papertrade.simulator.scheduler import SchedulerInterface, ThreadingScheduler, VirtualScheduler
from papertrade.simulator.state import EngineState
from papertrade.utils.helpers import safe_div

logger = logging.getLogger(__name__)

FilterGate = Callable[[PoolOpportunityEventV1], bool]
SnipeList = Callable[[str], bool]


def display_symbol_for(asset_id: str) -> str:
    """Placeholder symbol for a freshly launched token."""
    return f"TOKEN_{asset_id[:8]}"


class PaperTradingEngine:
    """
    Virtual execution engine shadowing the live sniping strategy.

    Responsibilities:
    - Opens a position per accepted pool opportunity (debit quote, credit
      asset, record buy, arm auto-sell)
    - Settles positions on auto-sell or on an observed balance change
      (sample exit price, credit quote net of slippage, record sell)
    - Guarantees at most one settlement per buy

    Concurrency:
    - Open/Close for the same asset serialise on a per-asset lock
    - Different assets never wait on each other
    - A second close for the same buy (timer vs. observed sell) finds the
      position already settled and is a no-op

    Every public entry point catches and logs its own failures so one bad event
    never stops the feed.
    """

    def __init__(
        self,
        config: EngineConfigV1,
        state: Optional[EngineState] = None,
        rng: Optional[np.random.Generator] = None,
        scheduler: Optional[SchedulerInterface] = None,
        clock: Optional[Clock] = None,
        filters: Sequence[FilterGate] = (),
        snipe_list: Optional[SnipeList] = None,
        price_simulator: Optional[PriceMovementSimulator] = None,
        acquisition_pricer: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize engine.

        Args:
            config: Engine configuration (immutable)
            state: Existing state to continue from (default: fresh state from config)
            rng: Pseudorandom source for prices and jitter (default: unseeded)
            scheduler: Deferred action scheduler (default: ThreadingScheduler)
            clock: Time source (default: the scheduler's virtual clock, else system time)
            filters: Buy gates, all of which must pass when the snipe list is off
            snipe_list: Membership predicate used when config.use_snipe_list is set
            price_simulator: Exit multiplier sampler (default: built from config.scenario_table)
            acquisition_pricer: Synthetic entry price source (default: uniform in
                config.acquisition_price_range)
        """
        self.config = config
        self.state = state if state is not None else EngineState.initial(config)
        self.rng = rng if rng is not None else np.random.default_rng()
        self.scheduler = scheduler if scheduler is not None else ThreadingScheduler()

        if clock is None:
            clock = self.scheduler.clock if isinstance(self.scheduler, VirtualScheduler) else SystemClock()
        self.clock = clock

        self.filters = list(filters)
        self.snipe_list = snipe_list
        self.price_simulator = price_simulator or PriceMovementSimulator(
            config.scenario_table, self.rng
        )
        self.acquisition_pricer = acquisition_pricer or self._sample_acquisition_price

        self._asset_locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Open transition
    # ------------------------------------------------------------------

    def on_pool_opportunity(self, event: PoolOpportunityEventV1) -> Optional[TradeRecordV1]:
        """
        Handle a new pool event.

        Returns:
            The buy record if a position was opened now, else None (rejected,
            failed, or deferred by the buy delay).
        """
        if self.config.auto_buy_delay_seconds > 0:
            logger.debug(
                f"Waiting {self.config.auto_buy_delay_seconds}s before buying {event.asset_id}"
            )
            self.scheduler.arm(
                f"buy_{event.pool_account_id}",
                self.config.auto_buy_delay_seconds,
                lambda: self.open_position(event),
            )
            return None
        return self.open_position(event)

    def open_position(self, event: PoolOpportunityEventV1) -> Optional[TradeRecordV1]:
        """Attempt the Open transition for one opportunity."""
        asset_id = event.asset_id
        try:
            self._check_gates(event)
            with self._asset_lock(asset_id):
                return self._open(event)

        except FilterRejected as e:
            logger.debug(str(e), extra={"event": "buy_skipped", "asset_id": asset_id})
            return None

        except InsufficientFundsError as e:
            logger.warning(
                f"Insufficient {self.config.quote_asset_symbol} balance for buy: "
                f"{e.available} < {e.requested}",
                extra={"event": "buy_rejected", "asset_id": asset_id},
            )
            return None

        except Exception as e:
            logger.error(
                f"Failed to open position for {asset_id} (pool_opportunity): {e}",
                exc_info=True,
                extra={"event": "open_failed", "asset_id": asset_id},
            )
            return None

    def _check_gates(self, event: PoolOpportunityEventV1) -> None:
        """Raise FilterRejected unless the opportunity may be bought."""
        if event.quote_asset_id != self.config.quote_asset_id:
            raise FilterRejected(event.asset_id, f"quote asset {event.quote_asset_id} not traded")

        if self.config.use_snipe_list:
            if self.snipe_list is None or not self.snipe_list(event.asset_id):
                raise FilterRejected(event.asset_id, "token is not in the snipe list")
            return

        for gate in self.filters:
            if not gate(event):
                name = getattr(gate, "__name__", type(gate).__name__)
                raise FilterRejected(event.asset_id, f"pool does not match filter {name}")

    def _open(self, event: PoolOpportunityEventV1) -> TradeRecordV1:
        quote_id = self.config.quote_asset_id
        quote_amount = self.config.fixed_buy_quote_amount

        asset_id = event.asset_id
        symbol = display_symbol_for(asset_id)

        self.state.balances.debit(quote_id, quote_amount)
        credited = None

        try:
            price = float(self.acquisition_pricer())
            if not math.isfinite(price) or price <= 0:
                raise ValueError(f"acquisition price must be positive (got {price})")
            asset_amount = quote_amount / price
            if not math.isfinite(asset_amount) or asset_amount <= 0:
                raise ValueError(f"asset amount must be finite and > 0 (got {asset_amount})")

            self.state.balances.credit(asset_id, symbol, asset_amount)
            credited = asset_amount

            buy = self.state.record_buy(
                lambda number: TradeRecordV1(
                    trade_id=f"trade_{number}_{self.clock.epoch_ms()}",
                    action=TradeAction.BUY,
                    asset_id=asset_id,
                    display_symbol=symbol,
                    quote_amount=quote_amount,
                    asset_amount=asset_amount,
                    price=price,
                    timestamp=self.clock.now(),
                )
            )
        except Exception:
            # Undo every ledger write so a failed open leaves no trace
            if credited is not None:
                self.state.balances.debit(asset_id, credited)
            self.state.balances.credit(quote_id, self.config.quote_asset_symbol, quote_amount)
            raise

        trade_id = buy.trade_id
        logger.info(
            f"BUY {symbol}: {quote_amount} {self.config.quote_asset_symbol} -> "
            f"{asset_amount:.6f} @ {price:.8f} (trade {trade_id})",
            extra={"event": "position_opened", "asset_id": asset_id, "trade_id": trade_id},
        )

        if self.config.auto_sell_enabled:
            delay = self._auto_sell_delay()
            self.scheduler.arm(trade_id, delay, lambda: self.close_position(asset_id, trade_id))

        return buy

    # ------------------------------------------------------------------
    # Close transition
    # ------------------------------------------------------------------

    def close_position(
        self, asset_id: str, buy_id: str, source: str = "auto_sell"
    ) -> Optional[TradeRecordV1]:
        """
        Settle a specific buy (the scheduler's entry point).

        Returns:
            The sell record, or None if there was nothing to settle.
        """
        return self._settle(asset_id, lambda: buy_id, source)

    def on_balance_observed(self, event: BalanceObservedEventV1) -> Optional[TradeRecordV1]:
        """Settle the oldest open buy of the observed asset."""

        def resolve_oldest_buy() -> str:
            buy = self.state.trades.find_open_buy(event.asset_id)
            if buy is None:
                raise UnmatchedSettlementError(event.asset_id, "no open buy")
            return buy.trade_id

        return self._settle(event.asset_id, resolve_oldest_buy, "balance_observed")

    def settle_all(self) -> List[TradeRecordV1]:
        """Close every open position (end of session)."""
        sells = []
        for buy in self.state.trades.open_buys():
            sell = self.close_position(buy.asset_id, buy.trade_id, source="end_of_session")
            if sell is not None:
                sells.append(sell)
        return sells

    def _settle(
        self, asset_id: str, resolve_buy_id: Callable[[], str], source: str
    ) -> Optional[TradeRecordV1]:
        try:
            with self._asset_lock(asset_id):
                return self._close(asset_id, resolve_buy_id())

        except UnmatchedSettlementError as e:
            logger.info(
                f"Nothing to settle ({source}): {e}",
                extra={"event": "close_noop", "asset_id": asset_id},
            )
            return None

        except Exception as e:
            logger.error(
                f"Failed to close position for {asset_id} ({source}): {e}",
                exc_info=True,
                extra={"event": "close_failed", "asset_id": asset_id},
            )
            return None

    def _close(self, asset_id: str, buy_id: str) -> TradeRecordV1:
        balance = self.state.balances.get(asset_id)
        if balance is None:
            raise UnmatchedSettlementError(asset_id, "no balance held")

        buy = self.state.trades.get(buy_id)
        if buy is None or not buy.is_buy or buy.asset_id != asset_id:
            raise UnmatchedSettlementError(asset_id, f"unknown buy {buy_id}")

        sell_id = sell_id_for(buy_id)
        if self.state.trades.has_trade(sell_id):
            raise UnmatchedSettlementError(asset_id, f"buy {buy_id} already settled")

        # The last open buy takes whatever remains so the entry is removed
        if len(self.state.trades.open_buys(asset_id)) > 1:
            quantity = min(buy.asset_amount, balance.quantity)
        else:
            quantity = balance.quantity

        multiplier = self.price_simulator.sample()
        exit_price = buy.price * multiplier
        gross_proceeds = quantity * exit_price
        net_proceeds = gross_proceeds * (1 - self.config.sell_slippage_percent / 100)

        profit = net_proceeds - buy.quote_amount
        profit_percent = safe_div(profit, buy.quote_amount) * 100

        sell = TradeRecordV1(
            trade_id=sell_id,
            action=TradeAction.SELL,
            asset_id=asset_id,
            display_symbol=buy.display_symbol,
            quote_amount=net_proceeds,
            asset_amount=quantity,
            price=exit_price,
            timestamp=self.clock.now(),
            profit=profit,
            profit_percent=profit_percent,
        )

        self.state.balances.debit(asset_id, quantity)
        self.state.balances.credit(
            self.config.quote_asset_id, self.config.quote_asset_symbol, net_proceeds
        )
        self.state.trades.append(sell)
        self.state.add_profit(profit)

        trend = "up" if profit > 0 else "down"
        logger.info(
            f"SELL {buy.display_symbol} ({trend}): {buy.price:.8f} -> {exit_price:.8f}, "
            f"profit {profit:.6f} {self.config.quote_asset_symbol} ({profit_percent:.2f}%)",
            extra={
                "event": "position_closed",
                "asset_id": asset_id,
                "trade_id": sell_id,
                "profit": profit,
            },
        )
        return sell

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def snapshot(self, recent_limit: Optional[int] = None) -> SnapshotV1:
        """Pure read of the current session summary."""
        limit = self.config.recent_activity_limit if recent_limit is None else recent_limit
        return build_snapshot(self.state, recent_limit=limit)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _asset_lock(self, asset_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._asset_locks.get(asset_id)
            if lock is None:
                lock = threading.RLock()
                self._asset_locks[asset_id] = lock
            return lock

    def _sample_acquisition_price(self) -> float:
        low, high = self.config.acquisition_price_range
        return float(self.rng.uniform(low, high))

    def _auto_sell_delay(self) -> float:
        jitter = self.config.auto_sell_jitter_seconds
        extra = float(self.rng.uniform(0.0, jitter)) if jitter > 0 else 0.0
        return self.config.auto_sell_delay_seconds + extra


def create_virtual_engine(
    config: EngineConfigV1,
    seed: Optional[int] = None,
    clock: Optional[VirtualClock] = None,
    **kwargs,
) -> PaperTradingEngine:
    """
    Build an engine on a virtual clock with a seeded generator.

    Args:
        config: Engine configuration
        seed: Seed for the numpy generator (None for OS entropy)
        clock: Virtual clock to share (default: a fresh one)
        **kwargs: Forwarded to PaperTradingEngine

    Returns:
        Engine whose scheduler fires only when advanced.
    """
    scheduler = VirtualScheduler(clock or VirtualClock())
    return PaperTradingEngine(
        config,
        rng=np.random.default_rng(seed),
        scheduler=scheduler,
        clock=scheduler.clock,
        **kwargs,
    )

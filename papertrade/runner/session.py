"""Offline paper trading session on a virtual clock."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from papertrade.evaluation.metrics import calculate_all_metrics
from papertrade.evaluation.reporting import log_summary
from papertrade.runner.progress import SessionProgress
from papertrade.runner.synthetic_feed import SyntheticOpportunityFeed
from papertrade.schemas.engine_config import EngineConfigV1
from papertrade.schemas.snapshot import SnapshotV1
from papertrade.schemas.trade import TradeAction, TradeRecordV1
from papertrade.simulator.engine import PaperTradingEngine, create_virtual_engine
from papertrade.simulator.scheduler import VirtualScheduler

logger = logging.getLogger(__name__)


@dataclass
class SessionResult:
    """Outcome of an offline session."""

    snapshot: SnapshotV1
    metrics: dict
    trades: List[TradeRecordV1] = field(default_factory=list)


class OfflineSession:
    """
    Runs the engine against the synthetic feed in virtual time.

    Workflow:
    1. Each feed interval, maybe emit a launch and offer it to the engine
    2. Advance the virtual scheduler by one interval (auto-sells fire)
    3. Log a summary every ``summary_interval_seconds`` of virtual time
    4. At the end, let pending auto-sells fire and settle anything left open

    The engine and the feed draw from independent streams of one seed, so a
    seed fully determines the session.
    """

    def __init__(
        self,
        config: EngineConfigV1,
        seed: Optional[int] = None,
        duration_seconds: float = 3600.0,
        feed_interval_seconds: float = 15.0,
        launch_probability: float = 0.3,
        settle_at_end: bool = True,
        log_periodic_summaries: bool = False,
        show_progress_bar: bool = True,
        engine: Optional[PaperTradingEngine] = None,
    ):
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be > 0")

        engine_seq, feed_seq = np.random.SeedSequence(seed).spawn(2)

        self.config = config
        self.seed = seed
        self.engine = engine or create_virtual_engine(
            config, seed=int(engine_seq.generate_state(1)[0])
        )
        if not isinstance(self.engine.scheduler, VirtualScheduler):
            raise ValueError("OfflineSession requires an engine with a VirtualScheduler")

        self.feed = SyntheticOpportunityFeed(
            quote_asset_id=config.quote_asset_id,
            rng=np.random.default_rng(feed_seq),
            interval_seconds=feed_interval_seconds,
            launch_probability=launch_probability,
        )
        self.duration_seconds = duration_seconds
        self.settle_at_end = settle_at_end
        self.log_periodic_summaries = log_periodic_summaries
        self.show_progress_bar = show_progress_bar

    def run(self) -> SessionResult:
        """Execute the session and return the final snapshot and metrics."""
        engine = self.engine
        scheduler: VirtualScheduler = engine.scheduler
        interval = self.feed.interval_seconds
        total_ticks = max(int(self.duration_seconds // interval), 1)
        next_summary = self.config.summary_interval_seconds

        logger.info(
            f"Starting offline session: {total_ticks} ticks of {interval}s, seed={self.seed}"
        )

        with SessionProgress(
            total_ticks=total_ticks,
            description=f"Session seed={self.seed}",
            show_progress_bar=self.show_progress_bar,
        ) as progress:
            for tick in range(total_ticks):
                event = self.feed.tick(pool_open_time=int(engine.clock.now().timestamp()))
                if event is not None:
                    progress.increment_opportunity()
                    if engine.on_pool_opportunity(event) is not None:
                        progress.increment_opened()

                closed = self._count_sells()
                scheduler.advance(interval)
                if self._count_sells() > closed:
                    progress.increment_closed(self._count_sells() - closed)
                progress.update_tick()

                elapsed = (tick + 1) * interval
                if self.log_periodic_summaries and elapsed >= next_summary:
                    log_summary(engine.snapshot())
                    next_summary += self.config.summary_interval_seconds

            if self.settle_at_end:
                closed = self._count_sells()
                scheduler.run_all()
                engine.settle_all()
                progress.increment_closed(self._count_sells() - closed)

        snapshot = engine.snapshot()
        trades = engine.state.trades.list_trades()
        metrics = calculate_all_metrics(trades, engine.state.initial_quote_balance)

        problems = engine.state.discrepancies()
        for problem in problems:
            logger.error(f"Ledger inconsistency: {problem}")

        log_summary(snapshot)
        return SessionResult(snapshot=snapshot, metrics=metrics, trades=trades)

    def _count_sells(self) -> int:
        return len(self.engine.state.trades.list_trades(action=TradeAction.SELL))

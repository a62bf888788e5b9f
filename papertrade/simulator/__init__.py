"""
papertrade simulator module.

Provides the virtual position lifecycle with probability-weighted exits.

Main components:
- PaperTradingEngine: Opens and settles positions against the ledgers
- EngineState: Ledgers plus cached counters of one run
- PriceMovementSimulator: Scenario-table exit multiplier sampler
- VirtualScheduler / ThreadingScheduler: Deferred auto-sell execution

Usage:
    from papertrade.schemas import EngineConfigV1, PoolOpportunityEventV1
    from papertrade.simulator import create_virtual_engine

    engine = create_virtual_engine(EngineConfigV1(), seed=42)

    # Open position
    buy = engine.on_pool_opportunity(
        PoolOpportunityEventV1(
            pool_account_id="pool_1",
            asset_id="FAKEabc123",
            quote_asset_id=engine.config.quote_asset_id,
        )
    )

    # Let the auto-sell fire
    engine.scheduler.advance(60.0)

    print(engine.snapshot().total_profit)
"""

from papertrade.simulator.clock import Clock, SystemClock, VirtualClock
from papertrade.simulator.engine import PaperTradingEngine, create_virtual_engine
from papertrade.simulator.price_model import PriceMovementSimulator
from papertrade.simulator.scheduler import SchedulerInterface, ThreadingScheduler, VirtualScheduler
from papertrade.simulator.state import EngineState

__all__ = [
    "PaperTradingEngine",
    "create_virtual_engine",
    "EngineState",
    "PriceMovementSimulator",
    "SchedulerInterface",
    "VirtualScheduler",
    "ThreadingScheduler",
    "Clock",
    "SystemClock",
    "VirtualClock",
]

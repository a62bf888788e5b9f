"""Pydantic schemas for all papertrade records."""

from papertrade.schemas.balance import BalanceV1
from papertrade.schemas.engine_config import (
    AGGRESSIVE_SCENARIOS,
    MODERATE_SCENARIOS,
    SCENARIO_PRESETS,
    EngineConfigV1,
    ScenarioBucketV1,
    scenario_preset,
)
from papertrade.schemas.events import BalanceObservedEventV1, PoolOpportunityEventV1
from papertrade.schemas.snapshot import SnapshotV1
from papertrade.schemas.trade import TradeAction, TradeRecordV1, sell_id_for

__all__ = [
    # Balance
    "BalanceV1",
    # Trade
    "TradeRecordV1",
    "TradeAction",
    "sell_id_for",
    # Events
    "PoolOpportunityEventV1",
    "BalanceObservedEventV1",
    # Config
    "EngineConfigV1",
    "ScenarioBucketV1",
    "SCENARIO_PRESETS",
    "AGGRESSIVE_SCENARIOS",
    "MODERATE_SCENARIOS",
    "scenario_preset",
    # Snapshot
    "SnapshotV1",
]

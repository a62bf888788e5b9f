"""Pytest configuration and shared fixtures for papertrade tests."""

import logging
from datetime import datetime, timezone
from typing import Any, List

import numpy as np
import pytest

from papertrade.schemas.engine_config import EngineConfigV1, ScenarioBucketV1
from papertrade.schemas.events import BalanceObservedEventV1, PoolOpportunityEventV1
from papertrade.schemas.trade import TradeAction, TradeRecordV1
from papertrade.simulator.clock import VirtualClock
from papertrade.simulator.engine import PaperTradingEngine, create_virtual_engine
from papertrade.simulator.scheduler import VirtualScheduler
from papertrade.storage.balance_ledger import InMemoryBalanceLedger
from papertrade.storage.trade_ledger import InMemoryTradeLedger

WSOL = "So11111111111111111111111111111111111111112"


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def fixed_scenarios() -> List[ScenarioBucketV1]:
    """Single bucket that always yields a 1.5x multiplier."""
    return [ScenarioBucketV1(probability=1.0, min_multiplier=1.5, max_multiplier=1.5, label="fixed")]


@pytest.fixture
def engine_config(fixed_scenarios: List[ScenarioBucketV1]) -> EngineConfigV1:
    """Deterministic engine config: 1.0 SOL wallet, 0.05 buys, 2% slippage."""
    return EngineConfigV1(
        quote_asset_id=WSOL,
        quote_asset_symbol="SOL",
        initial_quote_balance=1.0,
        fixed_buy_quote_amount=0.05,
        auto_sell_enabled=True,
        auto_sell_delay_seconds=20.0,
        auto_sell_jitter_seconds=0.0,
        sell_slippage_percent=2.0,
        scenario_table=fixed_scenarios,
    )


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def virtual_clock() -> VirtualClock:
    """Virtual clock starting at 2024-01-01 UTC."""
    return VirtualClock(datetime(2024, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def engine(engine_config: EngineConfigV1, virtual_clock: VirtualClock) -> PaperTradingEngine:
    """Engine on a virtual scheduler with a fixed 0.0005 acquisition price."""
    return create_virtual_engine(
        engine_config,
        seed=42,
        clock=virtual_clock,
        acquisition_pricer=lambda: 0.0005,
    )


@pytest.fixture
def scheduler(engine: PaperTradingEngine) -> VirtualScheduler:
    """The engine's virtual scheduler."""
    return engine.scheduler


@pytest.fixture
def make_pool_event():
    """Factory for pool opportunity events."""

    def _make(asset_id: str = "MintAAAAAAAAAAAA", quote_asset_id: str = WSOL) -> PoolOpportunityEventV1:
        return PoolOpportunityEventV1(
            pool_account_id=f"pool_{asset_id}",
            asset_id=asset_id,
            quote_asset_id=quote_asset_id,
        )

    return _make


@pytest.fixture
def make_balance_event():
    """Factory for observed balance events."""

    def _make(asset_id: str = "MintAAAAAAAAAAAA") -> BalanceObservedEventV1:
        return BalanceObservedEventV1(asset_id=asset_id, owner_account_ref=f"ata_{asset_id}")

    return _make


# ============================================================================
# Storage Fixtures
# ============================================================================


@pytest.fixture
def balance_ledger() -> InMemoryBalanceLedger:
    """Balance ledger with SOL pinned and 1.0 credited."""
    ledger = InMemoryBalanceLedger(pinned_assets=[WSOL])
    ledger.credit(WSOL, "SOL", 1.0)
    return ledger


@pytest.fixture
def trade_ledger() -> InMemoryTradeLedger:
    """Empty trade ledger."""
    return InMemoryTradeLedger()


@pytest.fixture
def sample_buy() -> TradeRecordV1:
    """A buy of 100 units at 0.0005."""
    return TradeRecordV1(
        trade_id="trade_1_1704067200000",
        action=TradeAction.BUY,
        asset_id="MintAAAAAAAAAAAA",
        display_symbol="TOKEN_MintAAAA",
        quote_amount=0.05,
        asset_amount=100.0,
        price=0.0005,
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def sample_sell(sample_buy: TradeRecordV1) -> TradeRecordV1:
    """The settling sell of ``sample_buy`` at 1.5x with 2% slippage."""
    return TradeRecordV1(
        trade_id=f"sell_{sample_buy.trade_id}",
        action=TradeAction.SELL,
        asset_id=sample_buy.asset_id,
        display_symbol=sample_buy.display_symbol,
        quote_amount=0.0735,
        asset_amount=100.0,
        price=0.00075,
        timestamp=datetime(2024, 1, 1, 0, 0, 20, tzinfo=timezone.utc),
        profit=0.0235,
        profit_percent=47.0,
    )


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded numpy generator."""
    return np.random.default_rng(1234)


@pytest.fixture
def event_records(caplog):
    """Return a helper listing captured records for a telemetry event name."""
    caplog.set_level(logging.DEBUG, logger="papertrade")

    def _records(event: str):
        return [r for r in caplog.records if getattr(r, "event", None) == event]

    return _records


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config: Any) -> None:
    """Configure pytest."""
    # Add custom markers
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "property: marks property-based tests")

"""Unit tests for the position lifecycle engine."""

from datetime import timedelta

import pytest

from papertrade.schemas.trade import TradeAction
from papertrade.simulator.engine import create_virtual_engine, display_symbol_for
from papertrade.simulator.state import EngineState
from papertrade.storage.trade_ledger import InMemoryTradeLedger

WSOL = "So11111111111111111111111111111111111111112"
MINT = "MintAAAAAAAAAAAA"


def build_engine(config, virtual_clock, price: float = 0.0005, **kwargs):
    return create_virtual_engine(
        config, seed=7, clock=virtual_clock, acquisition_pricer=lambda: price, **kwargs
    )


class TestOpenPosition:
    """Test the Open transition."""

    def test_buy_debits_quote_and_credits_asset(self, engine, make_pool_event):
        buy = engine.on_pool_opportunity(make_pool_event(MINT))

        assert buy is not None
        assert buy.action == TradeAction.BUY
        assert buy.quote_amount == 0.05
        assert buy.price == 0.0005
        assert buy.asset_amount == pytest.approx(100.0)
        assert buy.display_symbol == display_symbol_for(MINT) == "TOKEN_MintAAAA"

        assert engine.state.quote_balance() == pytest.approx(0.95)
        assert engine.state.balances.get(MINT).quantity == pytest.approx(100.0)
        assert engine.state.trades.get(buy.trade_id) == buy

    def test_trade_id_uses_counter_and_clock(self, engine, make_pool_event):
        first = engine.on_pool_opportunity(make_pool_event("MintA"))
        second = engine.on_pool_opportunity(make_pool_event("MintB"))
        assert first.trade_id == "trade_1_1704067200000"
        assert second.trade_id == "trade_2_1704067200000"
        assert engine.state.trade_counter == 2

    def test_auto_sell_is_armed(self, engine, scheduler, virtual_clock, make_pool_event):
        engine.on_pool_opportunity(make_pool_event(MINT))
        assert scheduler.pending() == 1
        assert scheduler.next_due() == virtual_clock.now() + timedelta(seconds=20)

    def test_auto_sell_jitter_bounds(self, engine_config, virtual_clock, make_pool_event):
        config = engine_config.model_copy(
            update={"auto_sell_delay_seconds": 20.0, "auto_sell_jitter_seconds": 10.0}
        )
        engine = build_engine(config, virtual_clock)
        for i in range(10):
            engine.on_pool_opportunity(make_pool_event(f"Mint{i}"))

        assert engine.scheduler.advance(19.999) == 0
        assert engine.scheduler.advance(10.001) == 10

    def test_auto_sell_disabled(self, engine_config, virtual_clock, make_pool_event):
        config = engine_config.model_copy(update={"auto_sell_enabled": False})
        engine = build_engine(config, virtual_clock)
        assert engine.on_pool_opportunity(make_pool_event(MINT)) is not None
        assert engine.scheduler.pending() == 0

    def test_insufficient_funds_rejected(self, engine_config, virtual_clock, make_pool_event, event_records):
        config = engine_config.model_copy(update={"initial_quote_balance": 0.02})
        engine = build_engine(config, virtual_clock)

        assert engine.on_pool_opportunity(make_pool_event(MINT)) is None

        assert len(event_records("buy_rejected")) == 1
        assert event_records("buy_rejected")[0].levelname == "WARNING"
        assert engine.state.quote_balance() == 0.02
        assert len(engine.state.trades) == 0
        assert engine.state.balances.get(MINT) is None
        assert engine.scheduler.pending() == 0

    def test_exact_balance_can_be_spent(self, engine_config, virtual_clock, make_pool_event):
        config = engine_config.model_copy(update={"initial_quote_balance": 0.05})
        engine = build_engine(config, virtual_clock)
        assert engine.on_pool_opportunity(make_pool_event(MINT)) is not None
        assert engine.state.quote_balance() == 0.0
        assert engine.state.balances.get(WSOL) is not None

    def test_quote_mismatch_skipped(self, engine, make_pool_event, event_records):
        assert engine.on_pool_opportunity(make_pool_event(MINT, quote_asset_id="OtherQuote")) is None
        assert len(event_records("buy_skipped")) == 1
        assert len(engine.state.trades) == 0

    def test_failing_filter_skips(self, engine_config, virtual_clock, make_pool_event, event_records):
        def min_liquidity(event):
            return False

        engine = build_engine(engine_config, virtual_clock, filters=[min_liquidity])
        assert engine.on_pool_opportunity(make_pool_event(MINT)) is None
        records = event_records("buy_skipped")
        assert len(records) == 1
        assert "min_liquidity" in records[0].getMessage()

    def test_passing_filters_buy(self, engine_config, virtual_clock, make_pool_event):
        engine = build_engine(engine_config, virtual_clock, filters=[lambda e: True, lambda e: True])
        assert engine.on_pool_opportunity(make_pool_event(MINT)) is not None

    def test_snipe_list_replaces_filters(self, engine_config, virtual_clock, make_pool_event):
        config = engine_config.model_copy(update={"use_snipe_list": True})
        engine = build_engine(
            config,
            virtual_clock,
            filters=[lambda e: False],
            snipe_list={"MintListed"}.__contains__,
        )
        assert engine.on_pool_opportunity(make_pool_event("MintListed")) is not None
        assert engine.on_pool_opportunity(make_pool_event("MintOther")) is None

    def test_snipe_list_missing_rejects_all(self, engine_config, virtual_clock, make_pool_event):
        config = engine_config.model_copy(update={"use_snipe_list": True})
        engine = build_engine(config, virtual_clock)
        assert engine.on_pool_opportunity(make_pool_event(MINT)) is None

    def test_invalid_price_refunds(self, engine_config, virtual_clock, make_pool_event, event_records):
        engine = build_engine(engine_config, virtual_clock, price=0.0)
        assert engine.on_pool_opportunity(make_pool_event(MINT)) is None
        assert len(event_records("open_failed")) == 1
        assert engine.state.quote_balance() == pytest.approx(1.0)
        assert len(engine.state.trades) == 0

    def test_overflowing_asset_amount_leaves_no_trace(
        self, engine_config, virtual_clock, make_pool_event, event_records
    ):
        """A subnormal price makes quote / price overflow; nothing may be written."""
        engine = build_engine(engine_config, virtual_clock, price=1e-310)

        assert engine.on_pool_opportunity(make_pool_event(MINT)) is None

        assert len(event_records("open_failed")) == 1
        assert engine.state.quote_balance() == pytest.approx(1.0)
        assert engine.state.balances.get(MINT) is None
        assert len(engine.state.trades) == 0
        assert engine.state.trade_counter == 0
        assert engine.state.discrepancies() == []
        assert engine.scheduler.pending() == 0

    def test_failed_append_rolls_back_credit(
        self, engine_config, virtual_clock, make_pool_event, event_records
    ):
        """A trade ledger failure after the asset credit undoes both balance writes."""

        class FailingTradeLedger(InMemoryTradeLedger):
            def append(self, trade):
                raise RuntimeError("trade ledger unavailable")

        state = EngineState.initial(engine_config)
        state.trades = FailingTradeLedger()
        engine = build_engine(engine_config, virtual_clock, state=state)

        assert engine.on_pool_opportunity(make_pool_event(MINT)) is None

        assert len(event_records("open_failed")) == 1
        assert engine.state.quote_balance() == pytest.approx(1.0)
        assert engine.state.balances.get(MINT) is None
        assert engine.state.trade_counter == 0
        assert engine.state.discrepancies() == []

    def test_counter_continues_after_failed_open(self, engine_config, virtual_clock, make_pool_event):
        prices = iter([0.0, 0.0005])
        engine = create_virtual_engine(
            engine_config, seed=7, clock=virtual_clock, acquisition_pricer=lambda: next(prices)
        )

        assert engine.on_pool_opportunity(make_pool_event("MintA")) is None
        buy = engine.on_pool_opportunity(make_pool_event("MintB"))

        assert buy.trade_id == "trade_1_1704067200000"
        assert engine.state.discrepancies() == []

    def test_raising_gate_is_isolated(self, engine_config, virtual_clock, make_pool_event, event_records):
        def flaky_safety_check(event):
            if event.asset_id == "MintBroken":
                raise RuntimeError("rpc timeout")
            return True

        engine = build_engine(engine_config, virtual_clock, filters=[flaky_safety_check])

        assert engine.on_pool_opportunity(make_pool_event("MintBroken")) is None

        records = event_records("open_failed")
        assert len(records) == 1
        assert records[0].asset_id == "MintBroken"
        assert records[0].levelname == "ERROR"
        assert "pool_opportunity" in records[0].getMessage()
        assert engine.state.quote_balance() == 1.0
        assert engine.state.balances.list_balances()[0].asset_id == WSOL
        assert len(engine.state.balances) == 1
        assert len(engine.state.trades) == 0

        assert engine.on_pool_opportunity(make_pool_event(MINT)) is not None
        assert len(engine.state.trades) == 1

    def test_raising_snipe_list_is_isolated(self, engine_config, virtual_clock, make_pool_event, event_records):
        def snipe_list(asset_id):
            if asset_id == "MintBroken":
                raise KeyError(asset_id)
            return True

        config = engine_config.model_copy(update={"use_snipe_list": True})
        engine = build_engine(config, virtual_clock, snipe_list=snipe_list)

        assert engine.on_pool_opportunity(make_pool_event("MintBroken")) is None
        assert [r.asset_id for r in event_records("open_failed")] == ["MintBroken"]
        assert len(engine.state.trades) == 0

        assert engine.on_pool_opportunity(make_pool_event(MINT)) is not None

    def test_buy_delay_defers_open(self, engine_config, virtual_clock, make_pool_event):
        config = engine_config.model_copy(update={"auto_buy_delay_seconds": 2.0})
        engine = build_engine(config, virtual_clock)

        assert engine.on_pool_opportunity(make_pool_event(MINT)) is None
        assert len(engine.state.trades) == 0

        engine.scheduler.advance(2.0)
        buys = engine.state.trades.list_trades(action=TradeAction.BUY)
        assert len(buys) == 1
        assert buys[0].timestamp == virtual_clock.now()

    def test_sampled_price_in_configured_range(self, engine_config, virtual_clock, make_pool_event):
        engine = create_virtual_engine(engine_config, seed=3, clock=virtual_clock)
        buy = engine.on_pool_opportunity(make_pool_event(MINT))
        low, high = engine_config.acquisition_price_range
        assert low <= buy.price <= high


class TestClosePosition:
    """Test the Close transition."""

    def test_end_to_end_profit(self, engine, scheduler, make_pool_event, event_records):
        buy = engine.on_pool_opportunity(make_pool_event(MINT))
        scheduler.advance(20.0)

        sell = engine.state.trades.get(f"sell_{buy.trade_id}")
        assert sell is not None
        assert sell.asset_amount == pytest.approx(100.0)
        assert sell.price == pytest.approx(0.00075)
        assert sell.quote_amount == pytest.approx(0.0735)
        assert sell.profit == pytest.approx(0.0235)
        assert sell.profit_percent == pytest.approx(47.0)

        assert engine.state.quote_balance() == pytest.approx(1.0235)
        assert engine.state.balances.get(MINT) is None
        assert engine.state.total_profit == pytest.approx(0.0235)
        assert len(event_records("position_closed")) == 1

    def test_close_is_idempotent(self, engine, scheduler, make_pool_event, event_records):
        buy = engine.on_pool_opportunity(make_pool_event(MINT))

        first = engine.close_position(MINT, buy.trade_id, source="manual")
        second = engine.close_position(MINT, buy.trade_id, source="manual")
        scheduler.advance(30.0)

        assert first is not None
        assert second is None
        assert len(engine.state.trades.list_trades(action=TradeAction.SELL)) == 1
        assert engine.state.quote_balance() == pytest.approx(1.0235)
        assert len(event_records("close_noop")) == 2

    def test_observed_balance_settles_oldest(self, engine, scheduler, virtual_clock, make_pool_event, make_balance_event):
        buy = engine.on_pool_opportunity(make_pool_event(MINT))
        virtual_clock.advance(5.0)

        sell = engine.on_balance_observed(make_balance_event(MINT))
        assert sell.trade_id == f"sell_{buy.trade_id}"

        # The auto-sell timer still fires but finds nothing to do
        scheduler.advance(30.0)
        assert len(engine.state.trades) == 2

    def test_observed_balance_without_position(self, engine, make_balance_event, event_records):
        assert engine.on_balance_observed(make_balance_event("MintUnknown")) is None
        assert len(event_records("close_noop")) == 1
        assert len(engine.state.trades) == 0

    def test_unknown_buy_id(self, engine, make_pool_event):
        engine.on_pool_opportunity(make_pool_event(MINT))
        assert engine.close_position(MINT, "trade_999_0") is None

    def test_buy_id_of_other_asset(self, engine, make_pool_event):
        buy_a = engine.on_pool_opportunity(make_pool_event("MintA"))
        engine.on_pool_opportunity(make_pool_event("MintB"))
        assert engine.close_position("MintB", buy_a.trade_id) is None

    def test_two_buys_same_asset(self, engine_config, virtual_clock, make_pool_event):
        config = engine_config.model_copy(update={"auto_sell_enabled": False})
        engine = build_engine(config, virtual_clock)
        event = make_pool_event(MINT)

        first = engine.on_pool_opportunity(event)
        virtual_clock.advance(1.0)
        second = engine.on_pool_opportunity(event)
        assert engine.state.balances.get(MINT).quantity == pytest.approx(200.0)

        sell_first = engine.close_position(MINT, first.trade_id)
        assert sell_first.asset_amount == pytest.approx(100.0)
        assert engine.state.balances.get(MINT).quantity == pytest.approx(100.0)

        sell_second = engine.close_position(MINT, second.trade_id)
        assert sell_second.asset_amount == pytest.approx(100.0)
        assert engine.state.balances.get(MINT) is None
        assert engine.state.trades.open_buys() == []

    def test_loss_is_recorded(self, engine_config, virtual_clock, make_pool_event):
        from papertrade.schemas.engine_config import ScenarioBucketV1

        table = [ScenarioBucketV1(probability=1.0, min_multiplier=0.5, max_multiplier=0.5)]
        config = engine_config.model_copy(update={"scenario_table": table})
        engine = build_engine(config, virtual_clock)

        engine.on_pool_opportunity(make_pool_event(MINT))
        engine.scheduler.advance(20.0)

        sell = engine.state.trades.list_trades(action=TradeAction.SELL)[0]
        # 100 * 0.00025 * 0.98
        assert sell.profit == pytest.approx(0.0245 - 0.05)
        assert sell.profit < 0
        assert engine.snapshot().win_rate == 0.0

    def test_settle_all(self, engine_config, virtual_clock, make_pool_event):
        config = engine_config.model_copy(update={"auto_sell_enabled": False})
        engine = build_engine(config, virtual_clock)
        for i in range(3):
            engine.on_pool_opportunity(make_pool_event(f"Mint{i}"))

        sells = engine.settle_all()
        assert len(sells) == 3
        assert engine.state.trades.open_buys() == []
        assert engine.settle_all() == []
        assert engine.state.quote_balance() == pytest.approx(1.0 + 3 * 0.0235)


class TestSnapshot:
    """Test engine snapshot reporting."""

    def test_fresh_snapshot(self, engine):
        snapshot = engine.snapshot()
        assert snapshot.current_quote_balance == 1.0
        assert snapshot.total_return_percent == 0.0
        assert snapshot.completed_trades == 0
        assert snapshot.win_rate == 0.0
        assert snapshot.open_positions == []
        assert snapshot.recent_activity == []

    def test_snapshot_after_round_trip(self, engine, scheduler, make_pool_event):
        engine.on_pool_opportunity(make_pool_event("MintA"))
        engine.on_pool_opportunity(make_pool_event("MintB"))
        open_snapshot = engine.snapshot()
        assert [b.asset_id for b in open_snapshot.open_positions] == ["MintA", "MintB"]
        assert open_snapshot.total_opportunities == 2

        scheduler.advance(20.0)
        snapshot = engine.snapshot()
        assert snapshot.completed_trades == 2
        assert snapshot.winning_trades == 2
        assert snapshot.win_rate == 100.0
        assert snapshot.total_return_percent == pytest.approx(4.7)
        assert snapshot.open_positions == []
        assert len(snapshot.recent_activity) == 4

    def test_snapshot_does_not_mutate(self, engine, make_pool_event):
        engine.on_pool_opportunity(make_pool_event(MINT))
        before = engine.state.copy()
        engine.snapshot()
        assert engine.state.quote_balance() == before.quote_balance()
        assert len(engine.state.trades) == len(before.trades)

    def test_state_stays_consistent(self, engine, scheduler, make_pool_event):
        for i in range(5):
            engine.on_pool_opportunity(make_pool_event(f"Mint{i}"))
        scheduler.advance(60.0)
        assert engine.state.discrepancies() == []

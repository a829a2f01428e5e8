"""
Tests for the arbitrage decision engine.
"""

import asyncio
from dataclasses import replace
from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from arbitrator.engine.arbitrage_engine import ArbitrageEngine
from arbitrator.exceptions import ConfigurationError, PoolNotFoundError
from arbitrator.models import DecisionAction, EngineStatus, Side

from helpers import FakeVenue, eventually


@pytest.fixture
def engine(venue_a, venue_b, order_config):
    """Create an engine over two in-memory venues."""
    return ArbitrageEngine(venue_a, venue_b, order_config)


class TestSpreadTest:
    """Stage 1: spread ratio against the fee ceiling."""

    def test_fee_ceiling(self, engine):
        assert engine.fee_ceiling() == Decimal("0.0065")

    def test_wide_spread_passes(self, engine):
        assert engine.is_spread_profitable(Decimal("100"), Decimal("105"))

    def test_narrow_spread_fails(self, engine):
        assert not engine.is_spread_profitable(Decimal("100"), Decimal("100.3"))

    def test_spread_equal_to_ceiling_fails(self, engine):
        # (100.65 - 100) / 100 == 0.0065 exactly
        assert not engine.is_spread_profitable(Decimal("100"), Decimal("100.65"))
        assert engine.is_spread_profitable(Decimal("100"), Decimal("100.6500001"))

    def test_order_of_prices_does_not_matter(self, engine):
        pairs = [
            (Decimal("100"), Decimal("105")),
            (Decimal("100"), Decimal("100.3")),
            (Decimal("0.0016"), Decimal("0.00162")),
        ]
        for low, high in pairs:
            assert engine.is_spread_profitable(low, high) == engine.is_spread_profitable(high, low)

    def test_equal_prices_fail(self, engine):
        assert not engine.is_spread_profitable(Decimal("100"), Decimal("100"))

    def test_unknown_price_fails(self, engine):
        assert not engine.is_spread_profitable(Decimal("0"), Decimal("105"))

    def test_slippage_buffer_widens_ceiling(self, engine, order_config):
        engine.set_config(replace(order_config, slippage_buffer=Decimal("0.1")))

        assert engine.fee_ceiling() == Decimal("0.1055")
        assert not engine.is_spread_profitable(Decimal("100"), Decimal("105"))


class TestProfitSimulation:
    """Stage 2: round-trip net profit."""

    def test_worked_example(self, engine):
        evaluation = engine.simulate_profit(Decimal("100"), Decimal("105"))

        assert evaluation.buy_price == Decimal("100")
        assert evaluation.sell_price == Decimal("105")
        assert evaluation.buy_fee == Decimal("0.003")
        assert evaluation.sell_fee == Decimal("0.0025")
        assert evaluation.net_quote_spent == Decimal("99.7")
        assert evaluation.base_acquired == Decimal("0.997")
        assert evaluation.net_base_sold == Decimal("0.9945075")
        assert evaluation.quote_returned == Decimal("104.4232875")
        assert evaluation.profit == Decimal("4.4231875")
        assert evaluation.is_profitable

    def test_direction_follows_lower_price(self, engine):
        evaluation = engine.simulate_profit(Decimal("105"), Decimal("100"))

        assert evaluation.buy_price == Decimal("100")
        assert evaluation.buy_fee == Decimal("0.0025")
        assert evaluation.sell_price == Decimal("105")
        assert evaluation.sell_fee == Decimal("0.003")

    def test_profit_equal_to_threshold_passes(self, engine, order_config):
        engine.set_config(replace(order_config, profit_threshold=Decimal("4.4231875")))

        evaluation = engine.simulate_profit(Decimal("100"), Decimal("105"))

        assert evaluation.profit == evaluation.profit_threshold
        assert evaluation.is_profitable

    def test_profit_below_threshold_fails(self, engine, order_config):
        engine.set_config(replace(order_config, profit_threshold=Decimal("5.0")))

        assert not engine.simulate_profit(Decimal("100"), Decimal("105")).is_profitable


class TestEvaluate:
    """Both stages together."""

    def test_profitable_spread_buys_on_cheaper_venue(self, engine):
        decision = engine.evaluate(Decimal("100"), Decimal("105"))

        assert decision.action == DecisionAction.ARBITRAGE
        assert decision.buy_venue == "VenueA"
        assert decision.sell_venue == "VenueB"
        assert decision.amount == Decimal("100")
        assert decision.symbol == "USDT/WBNB"
        assert decision.evaluation.profit == Decimal("4.4231875")

    def test_reversed_prices_reverse_direction(self, engine):
        decision = engine.evaluate(Decimal("105"), Decimal("100"))

        assert decision.buy_venue == "VenueB"
        assert decision.sell_venue == "VenueA"

    def test_narrow_spread_skips_simulation(self, engine):
        decision = engine.evaluate(Decimal("100"), Decimal("100.3"))

        assert decision.action == DecisionAction.NONE
        assert decision.evaluation is None

    def test_insufficient_profit_returns_no_decision(self, engine, order_config):
        engine.set_config(replace(order_config, profit_threshold=Decimal("5.0")))

        decision = engine.evaluate(Decimal("100"), Decimal("105"))

        assert not decision.is_actionable
        assert decision.evaluation is not None
        assert decision.evaluation.profit < Decimal("5.0")

    def test_unknown_price_returns_no_decision(self, engine):
        assert not engine.evaluate(Decimal("0"), Decimal("105")).is_actionable
        assert not engine.evaluate(Decimal("100"), Decimal("0")).is_actionable

    def test_equal_prices_return_no_decision(self, engine):
        assert not engine.evaluate(Decimal("100"), Decimal("100")).is_actionable


class TestProfitEvaluationRecord:
    """Every net-profit simulation leaves one structured log record."""

    def test_record_carries_inputs_and_result(self, engine):
        with capture_logs() as logs:
            engine.simulate_profit(Decimal("100"), Decimal("105"))

        records = [log for log in logs if log["event"] == "profit_evaluation"]
        assert len(records) == 1
        record = records[0]
        assert record["log_level"] == "info"
        assert record["component"] == "trades"
        assert record["buy_price"] == Decimal("100")
        assert record["sell_price"] == Decimal("105")
        assert record["notional_amount"] == Decimal("100")
        assert record["buy_fee"] == Decimal("0.003")
        assert record["sell_fee"] == Decimal("0.0025")
        assert record["fixed_execution_cost"] == Decimal("0.0001")
        assert record["profit"] == Decimal("4.4231875")
        assert record["profit_threshold"] == Decimal("4.0")
        assert record["profitable"] is True

    def test_unprofitable_simulation_is_recorded_too(self, engine, order_config):
        engine.set_config(replace(order_config, profit_threshold=Decimal("5.0")))

        with capture_logs() as logs:
            decision = engine.evaluate(Decimal("100"), Decimal("105"))

        assert not decision.is_actionable
        records = [log for log in logs if log["event"] == "profit_evaluation"]
        assert [record["profitable"] for record in records] == [False]
        assert records[0]["profit_threshold"] == Decimal("5.0")

    def test_failed_spread_test_leaves_no_record(self, engine):
        with capture_logs() as logs:
            decision = engine.evaluate(Decimal("100"), Decimal("100.3"))

        assert not decision.is_actionable
        assert not [log for log in logs if log["event"] == "profit_evaluation"]


class TestEngineConfig:
    """Configuration handling on the engine."""

    def test_rejected_update_keeps_previous_config(self, engine, order_config):
        applied = engine.set_config(replace(order_config, notional_amount=Decimal("0")))

        assert applied is False
        assert engine.current_config() == order_config

    def test_invalid_initial_config_raises(self, venue_a, venue_b, order_config):
        with pytest.raises(ConfigurationError):
            ArbitrageEngine(venue_a, venue_b, replace(order_config, profit_threshold=Decimal("0")))


class TestReconciliationLoop:
    """The running engine fed from two live streams."""

    @pytest.mark.asyncio
    async def test_awaits_both_prices_before_evaluating(self, engine, venue_a):
        session = asyncio.create_task(engine.start())
        await eventually(lambda: venue_a.feeds)

        venue_a.push_price("100")
        await eventually(lambda: engine.last_prices["a"] > 0)

        assert engine.status == EngineStatus.AWAITING_BOTH_PRICES
        assert engine.get_metrics()["evaluations"] == 0

        await engine.stop()
        await session

    @pytest.mark.asyncio
    async def test_profitable_spread_dispatches_both_legs(self, engine, venue_a, venue_b):
        session = asyncio.create_task(engine.start())
        await eventually(lambda: venue_a.feeds and venue_b.feeds)

        venue_a.push_price("100")
        venue_b.push_price("105")
        await eventually(lambda: venue_a.trades and venue_b.trades)

        assert engine.status == EngineStatus.EVALUATING
        assert venue_a.trades[0] == (Side.BUY, Decimal("100"), "USDT/WBNB")
        assert venue_b.trades[0] == (Side.SELL, Decimal("100"), "USDT/WBNB")
        assert engine.last_decision.buy_venue == "VenueA"

        await engine.stop()
        await session
        assert engine.status == EngineStatus.STOPPED
        assert all(result.succeeded for result in engine.trade_results)

    @pytest.mark.asyncio
    async def test_latest_price_wins(self, engine, venue_a, venue_b):
        session = asyncio.create_task(engine.start())
        await eventually(lambda: venue_a.feeds and venue_b.feeds)

        venue_a.push_price("100")
        venue_a.push_price("100.2")
        venue_b.push_price("100.3")
        await eventually(lambda: engine.get_metrics()["quotes_received"] == 3)

        assert abs(engine.last_prices["a"] - Decimal("100.2")) < Decimal("1e-9")
        assert abs(engine.last_prices["b"] - Decimal("100.3")) < Decimal("1e-9")
        assert venue_a.trades == []
        assert venue_b.trades == []

        await engine.stop()
        await session

    @pytest.mark.asyncio
    async def test_stream_closing_before_counterpart_reports(self, engine, venue_a, venue_b):
        session = asyncio.create_task(engine.start())
        await eventually(lambda: venue_a.feeds and venue_b.feeds)

        venue_a.push_price("100")
        venue_b.end_feed()
        await asyncio.wait_for(session, timeout=1.0)

        assert engine.status == EngineStatus.AWAITING_BOTH_PRICES
        assert engine.last_decision is None
        assert not engine.is_running
        assert venue_a.active_symbols == []
        assert venue_b.active_symbols == []

    @pytest.mark.asyncio
    async def test_stream_failure_ends_session(self, engine, venue_a, venue_b):
        session = asyncio.create_task(engine.start())
        await eventually(lambda: venue_a.feeds and venue_b.feeds)

        venue_a.push_price("100")
        venue_b.push_price("100.1")
        await eventually(lambda: engine.status == EngineStatus.EVALUATING)

        venue_a.fail_feed(ConnectionError("websocket closed"))
        await asyncio.wait_for(session, timeout=1.0)

        assert engine.status == EngineStatus.STOPPED

    @pytest.mark.asyncio
    async def test_failed_trade_does_not_stop_evaluation(self, engine, venue_a, venue_b):
        venue_a.fail_trades = True
        session = asyncio.create_task(engine.start())
        await eventually(lambda: venue_a.feeds and venue_b.feeds)

        venue_a.push_price("100")
        venue_b.push_price("105")
        await eventually(lambda: engine.get_metrics()["trades_failed"] == 1)

        venue_b.push_price("105.5")
        await eventually(lambda: len(venue_b.trades) == 2)

        assert engine.is_running
        failed = [r for r in engine.trade_results if not r.succeeded]
        assert failed and "insufficient funds" in failed[0].error

        await engine.stop()
        await session

    @pytest.mark.asyncio
    async def test_slow_trades_do_not_block_the_loop(self, venue_b, order_config):
        slow_venue = FakeVenue("VenueA", Decimal("0.003"), trade_delay=0.5)
        engine = ArbitrageEngine(slow_venue, venue_b, order_config)
        session = asyncio.create_task(engine.start())
        await eventually(lambda: slow_venue.feeds and venue_b.feeds)

        slow_venue.push_price("100")
        venue_b.push_price("105")
        await eventually(lambda: engine.get_metrics()["decisions"] == 1)

        venue_b.push_price("100.1")
        await eventually(lambda: engine.get_metrics()["quotes_received"] == 3, timeout=0.3)
        assert engine.get_metrics()["trades_in_flight"] > 0

        await engine.stop()
        await session
        assert engine.get_metrics()["trades_in_flight"] == 0

    @pytest.mark.asyncio
    async def test_config_update_applies_to_next_evaluation(self, engine, venue_a, venue_b, order_config):
        engine.set_config(replace(order_config, profit_threshold=Decimal("5.0")))
        session = asyncio.create_task(engine.start())
        await eventually(lambda: venue_a.feeds and venue_b.feeds)

        venue_a.push_price("100")
        venue_b.push_price("105")
        await eventually(lambda: engine.get_metrics()["spread_passes"] == 1)
        assert engine.get_metrics()["decisions"] == 0

        engine.set_config(order_config)
        venue_b.push_price("105.01")
        await eventually(lambda: engine.get_metrics()["decisions"] == 1)

        await engine.stop()
        await session

    @pytest.mark.asyncio
    async def test_unknown_symbol_fails_to_start(self, engine, venue_a):
        with pytest.raises(PoolNotFoundError):
            await engine.start("DOGE/SHIB")

        assert venue_a.active_symbols == []

    @pytest.mark.asyncio
    async def test_cannot_start_twice(self, engine, venue_a, venue_b):
        session = asyncio.create_task(engine.start())
        await eventually(lambda: engine.is_running)

        with pytest.raises(RuntimeError):
            await engine.start()

        await engine.stop()
        await session

    @pytest.mark.asyncio
    async def test_venues_sharing_a_name_trade_by_price(self, order_config):
        first = FakeVenue("Uniswap", Decimal("0.003"))
        second = FakeVenue("Uniswap", Decimal("0.0025"))
        engine = ArbitrageEngine(first, second, order_config)
        session = asyncio.create_task(engine.start())
        await eventually(lambda: first.feeds and second.feeds)

        first.push_price("105")
        second.push_price("100")
        await eventually(lambda: first.trades and second.trades)

        assert second.trades == [(Side.BUY, Decimal("100"), "USDT/WBNB")]
        assert first.trades == [(Side.SELL, Decimal("100"), "USDT/WBNB")]
        assert engine.last_prices["a"] > engine.last_prices["b"]

        await engine.stop()
        await session

    @pytest.mark.asyncio
    async def test_cancelled_caller_sees_cancellation(self, engine, venue_a, venue_b):
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(engine.start(), timeout=0.1)

        assert not engine.is_running
        assert venue_a.active_symbols == []
        assert venue_b.active_symbols == []

    @pytest.mark.asyncio
    async def test_stop_ends_session_without_error(self, engine, venue_a, venue_b):
        session = asyncio.create_task(engine.start())
        await eventually(lambda: engine.is_running)

        await engine.stop()

        assert await asyncio.wait_for(session, timeout=1.0) is None
        assert engine.status == EngineStatus.STOPPED

    @pytest.mark.asyncio
    async def test_trade_history_keeps_most_recent_results(self, venue_a, venue_b, order_config):
        engine = ArbitrageEngine(venue_a, venue_b, order_config, trade_history_size=2)
        session = asyncio.create_task(engine.start())
        await eventually(lambda: venue_a.feeds and venue_b.feeds)

        venue_a.push_price("100")
        venue_b.push_price("105")
        await eventually(lambda: engine.get_metrics()["trades_submitted"] == 2)
        venue_b.push_price("105.5")
        await eventually(lambda: engine.get_metrics()["trades_submitted"] == 4)

        await engine.stop()
        await session
        assert len(engine.trade_results) == 2
        assert all(result.transaction_id.endswith("-2") for result in engine.trade_results)

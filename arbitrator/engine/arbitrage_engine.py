"""
Two-venue arbitrage decision engine.

Merges the price streams of two venues trading the same pair, keeps the
last known price per venue and, once both have reported, runs a two-stage
test on every new quote:

1. Spread test: (sell - buy) / buy must exceed the fee ceiling
   (both venue fees plus the slippage buffer).
2. Net-profit simulation: a notional round trip through both venues,
   net of fees and the fixed execution cost, must clear the profit
   threshold.

When both pass, a buy on the cheaper venue and a sell on the richer one are
dispatched as background tasks; the loop never waits on them.
"""

import asyncio
import time
from collections import deque
from datetime import datetime
from decimal import Decimal
from typing import Deque, Dict, List, Optional, Set

from arbitrator.dex.base import BaseVenue, PriceStream
from arbitrator.engine.config_state import ConfigState
from arbitrator.logger import get_logger, trade_logger
from arbitrator.models import (
    Decision,
    DecisionAction,
    EngineStatus,
    OrderConfig,
    PriceQuote,
    ProfitEvaluation,
    Side,
    TradeResult,
)


logger = get_logger("engine")

_UNKNOWN = Decimal(0)

# Most recent trade outcomes kept in memory; totals live in the counters
TRADE_HISTORY_SIZE = 200


class ArbitrageEngine:
    """
    Decision engine for one pair of venues.

    The engine depends only on the venue capability: price stream, fee rate,
    buy and sell. Connection setup and signing stay behind the venues.
    """

    def __init__(
        self,
        venue_a: BaseVenue,
        venue_b: BaseVenue,
        order_config: OrderConfig,
        trade_history_size: int = TRADE_HISTORY_SIZE,
    ):
        self.venue_a = venue_a
        self.venue_b = venue_b
        self._config_state = ConfigState(order_config)

        self._status = EngineStatus.AWAITING_BOTH_PRICES
        self._last_price_a = _UNKNOWN
        self._last_price_b = _UNKNOWN
        self._symbol: Optional[str] = None

        self._loop_task: Optional[asyncio.Task] = None
        self._stopping = False
        self._trade_tasks: Set[asyncio.Task] = set()
        self._trade_results: Deque[TradeResult] = deque(maxlen=trade_history_size)
        self.last_decision: Optional[Decision] = None

        # Performance tracking
        self._start_time: Optional[datetime] = None
        self._quotes_received = 0
        self._evaluations = 0
        self._spread_passes = 0
        self._decisions = 0
        self._trades_submitted = 0
        self._trades_failed = 0

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_config(self, new_config: OrderConfig) -> bool:
        """Validated update; an invalid config is logged and ignored."""
        return self._config_state.set_config(new_config)

    def current_config(self) -> OrderConfig:
        return self._config_state.current_config()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def status(self) -> EngineStatus:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def last_prices(self) -> Dict[str, Decimal]:
        """
        Last price seen on venue "a" and venue "b".

        Zero means the venue has not reported. Keyed by position, not name,
        since both venues may share a name.
        """
        return {"a": self._last_price_a, "b": self._last_price_b}

    @property
    def trade_results(self) -> List[TradeResult]:
        """The most recent trade outcomes, oldest first."""
        return list(self._trade_results)

    def get_metrics(self) -> dict:
        """Get engine counters."""
        return {
            "status": self._status.value,
            "symbol": self._symbol,
            "quotes_received": self._quotes_received,
            "evaluations": self._evaluations,
            "spread_passes": self._spread_passes,
            "decisions": self._decisions,
            "trades_submitted": self._trades_submitted,
            "trades_failed": self._trades_failed,
            "trades_in_flight": len(self._trade_tasks),
        }

    # ------------------------------------------------------------------
    # Decision logic
    # ------------------------------------------------------------------

    def fee_ceiling(self, config: Optional[OrderConfig] = None) -> Decimal:
        """Minimum spread ratio worth simulating: both fees plus slippage."""
        config = config or self.current_config()
        return (
            self.venue_a.get_fee_rate()
            + self.venue_b.get_fee_rate()
            + config.slippage_buffer
        )

    def is_spread_profitable(
        self,
        price_a: Decimal,
        price_b: Decimal,
        config: Optional[OrderConfig] = None,
    ) -> bool:
        """
        Stage 1. Strictly greater than the fee ceiling passes; equal fails.

        The result does not depend on which venue holds the lower price.
        """
        if price_a <= 0 or price_b <= 0:
            return False

        buy = min(price_a, price_b)
        sell = max(price_a, price_b)
        spread_ratio = (sell - buy) / buy
        ceiling = self.fee_ceiling(config)

        logger.debug(
            "Spread check",
            price_a=price_a,
            price_b=price_b,
            spread_ratio=spread_ratio,
            fee_ceiling=ceiling,
        )
        return spread_ratio > ceiling

    def simulate_profit(
        self,
        price_a: Decimal,
        price_b: Decimal,
        config: Optional[OrderConfig] = None,
    ) -> ProfitEvaluation:
        """
        Stage 2. Simulate buying on the cheaper venue and selling on the other.

        Every simulation is logged with all of its inputs and outputs.
        """
        config = config or self.current_config()

        if price_a <= price_b:
            buy_price, buy_fee = price_a, self.venue_a.get_fee_rate()
            sell_price, sell_fee = price_b, self.venue_b.get_fee_rate()
        else:
            buy_price, buy_fee = price_b, self.venue_b.get_fee_rate()
            sell_price, sell_fee = price_a, self.venue_a.get_fee_rate()

        net_quote_spent = config.notional_amount * (1 - buy_fee)
        base_acquired = net_quote_spent / buy_price
        net_base_sold = base_acquired * (1 - sell_fee)
        quote_returned = net_base_sold * sell_price
        profit = quote_returned - config.notional_amount - config.fixed_execution_cost

        evaluation = ProfitEvaluation(
            buy_price=buy_price,
            sell_price=sell_price,
            buy_fee=buy_fee,
            sell_fee=sell_fee,
            notional_amount=config.notional_amount,
            fixed_execution_cost=config.fixed_execution_cost,
            net_quote_spent=net_quote_spent,
            base_acquired=base_acquired,
            net_base_sold=net_base_sold,
            quote_returned=quote_returned,
            profit=profit,
            profit_threshold=config.profit_threshold,
        )
        trade_logger.log_profit_evaluation(evaluation)
        return evaluation

    def evaluate(self, price_a: Decimal, price_b: Decimal) -> Decision:
        """Run both stages against one config snapshot and pick a direction."""
        if price_a <= 0 or price_b <= 0:
            return Decision.none()

        config = self.current_config()
        self._evaluations += 1

        if not self.is_spread_profitable(price_a, price_b, config):
            return Decision.none()
        self._spread_passes += 1

        evaluation = self.simulate_profit(price_a, price_b, config)
        if not evaluation.is_profitable:
            return Decision.none(evaluation)

        if price_a < price_b:
            buy_venue, sell_venue = self.venue_a.name, self.venue_b.name
        else:
            buy_venue, sell_venue = self.venue_b.name, self.venue_a.name

        return Decision(
            action=DecisionAction.ARBITRAGE,
            buy_venue=buy_venue,
            sell_venue=sell_venue,
            buy_price=evaluation.buy_price,
            sell_price=evaluation.sell_price,
            amount=config.notional_amount,
            symbol=self._symbol or config.active_symbol,
            evaluation=evaluation,
        )

    # ------------------------------------------------------------------
    # Reconciliation loop
    # ------------------------------------------------------------------

    async def start(self, symbol: Optional[str] = None) -> None:
        """
        Subscribe both venues and evaluate until either stream closes.

        Raises:
            PoolNotFoundError: if a venue does not trade the symbol.
            StreamError: if a venue subscription could not be opened.
        """
        if self.is_running:
            raise RuntimeError("Engine is already running")

        self._symbol = symbol or self.current_config().active_symbol
        self._stopping = False
        self._status = EngineStatus.AWAITING_BOTH_PRICES
        self._last_price_a = _UNKNOWN
        self._last_price_b = _UNKNOWN

        stream_a = await self.venue_a.get_price_stream(self._symbol)
        try:
            stream_b = await self.venue_b.get_price_stream(self._symbol)
        except Exception:
            await self.venue_a.unsubscribe(self._symbol)
            raise

        self._start_time = datetime.utcnow()
        logger.info(
            "🚀 Arbitrage session started",
            symbol=self._symbol,
            venue_a=self.venue_a.name,
            venue_b=self.venue_b.name,
            fee_ceiling=self.fee_ceiling(),
        )

        self._loop_task = asyncio.create_task(
            self._reconcile(stream_a, stream_b), name=f"engine:{self._symbol}"
        )
        try:
            await self._loop_task
        except asyncio.CancelledError:
            # Quiet only when stop() asked for it
            if not self._stopping:
                self._loop_task.cancel()
                raise
            logger.info("Reconciliation loop cancelled")
        finally:
            await self.venue_a.unsubscribe(self._symbol)
            await self.venue_b.unsubscribe(self._symbol)

    async def stop(self) -> None:
        """Stop the loop and let in-flight trades settle."""
        logger.info("Stopping engine...")
        self._stopping = True

        if self._loop_task is not None and not self._loop_task.done():
            self._loop_task.cancel()
            await asyncio.gather(self._loop_task, return_exceptions=True)

        if self._symbol is not None:
            await self.venue_a.unsubscribe(self._symbol)
            await self.venue_b.unsubscribe(self._symbol)

        await self.wait_for_trades()
        self._status = EngineStatus.STOPPED
        self._log_session_summary()

    async def wait_for_trades(self) -> None:
        """Wait until every dispatched trade has finished."""
        if self._trade_tasks:
            await asyncio.gather(*list(self._trade_tasks), return_exceptions=True)

    async def _reconcile(self, stream_a: PriceStream, stream_b: PriceStream) -> None:
        """Fair wait across both streams with one outstanding read per venue."""
        streams = {0: stream_a, 1: stream_b}
        pending: Dict[asyncio.Task, int] = {
            asyncio.create_task(stream.get()): index for index, stream in streams.items()
        }

        try:
            while True:
                done, _ = await asyncio.wait(
                    list(pending), return_when=asyncio.FIRST_COMPLETED
                )

                closed = []
                for task in done:
                    index = pending.pop(task)
                    quote = task.result()
                    if quote is None:
                        closed.append(streams[index])
                        continue
                    self._on_quote(index, quote)
                    pending[asyncio.create_task(streams[index].get())] = index

                if closed:
                    for stream in closed:
                        logger.warning(
                            "Price stream closed, ending session",
                            venue=stream.venue_name,
                            symbol=stream.symbol,
                        )
                    break
        finally:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

            # A session that never saw both prices stays awaiting
            if self._status == EngineStatus.EVALUATING:
                self._status = EngineStatus.STOPPED

    def _on_quote(self, index: int, quote: PriceQuote) -> None:
        self._quotes_received += 1
        if index == 0:
            self._last_price_a = quote.price
        else:
            self._last_price_b = quote.price

        if self._last_price_a == _UNKNOWN or self._last_price_b == _UNKNOWN:
            return
        self._status = EngineStatus.EVALUATING

        decision = self.evaluate(self._last_price_a, self._last_price_b)
        if decision.is_actionable:
            self.last_decision = decision
            self._decisions += 1
            trade_logger.log_decision(decision)
            if self._last_price_a < self._last_price_b:
                self._dispatch(decision, self.venue_a, self.venue_b)
            else:
                self._dispatch(decision, self.venue_b, self.venue_a)

    # ------------------------------------------------------------------
    # Trade dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, decision: Decision, buy_venue: BaseVenue, sell_venue: BaseVenue) -> None:
        """Fire both legs as background tasks."""
        legs = ((buy_venue, Side.BUY), (sell_venue, Side.SELL))
        for venue, side in legs:
            task = asyncio.create_task(
                self._execute_trade(venue, side, decision.amount, decision.symbol),
                name=f"trade:{venue.name}:{side.value}",
            )
            self._trade_tasks.add(task)
            task.add_done_callback(self._trade_tasks.discard)

    async def _execute_trade(
        self, venue: BaseVenue, side: Side, amount: Decimal, symbol: str
    ) -> TradeResult:
        result = TradeResult(venue=venue.name, side=side, amount=amount, symbol=symbol)
        started = time.perf_counter()

        try:
            if side == Side.BUY:
                result.transaction_id = await venue.buy(amount, symbol)
            else:
                result.transaction_id = await venue.sell(amount, symbol)
        except Exception as e:
            result.error = str(e) or type(e).__name__
        result.latency_ms = (time.perf_counter() - started) * 1000

        self._trade_results.append(result)
        if result.succeeded:
            self._trades_submitted += 1
            trade_logger.log_trade_submitted(
                venue=venue.name,
                side=side.value,
                symbol=symbol,
                amount=amount,
                transaction_id=result.transaction_id,
                latency_ms=result.latency_ms,
            )
        else:
            self._trades_failed += 1
            trade_logger.log_trade_failed(
                venue=venue.name,
                side=side.value,
                symbol=symbol,
                amount=amount,
                error=result.error or "venue returned no transaction id",
            )
        return result

    def _log_session_summary(self) -> None:
        """Log summary when stopping."""
        if not self._start_time:
            return

        runtime = datetime.utcnow() - self._start_time
        logger.info(
            "📈 Session Summary",
            runtime=str(runtime),
            **self.get_metrics(),
        )

"""
Test doubles shared across the test modules.
"""

import asyncio
from decimal import Decimal
from typing import List

from arbitrator.dex.base import BaseVenue, ReconnectionPolicy
from arbitrator.dex.pricing import price_to_sqrt_price_x96
from arbitrator.exceptions import PoolNotFoundError, TradeExecutionError
from arbitrator.models import PoolConfig, Side, SwapEvent


# Well-known test key (private key = 1)
TEST_PRIVATE_KEY = "0x" + "0" * 63 + "1"
TEST_ADDRESS = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"


TEST_POOL = PoolConfig(
    base_token="USDT",
    quote_token="WBNB",
    base_decimals=18,
    quote_decimals=18,
    address="0x00000000000000000000000000000000000000aa",
)


class FakeVenue(BaseVenue):
    """In-memory venue whose swap feeds are driven from the test."""

    def __init__(
        self,
        name: str,
        fee_rate: Decimal,
        reconnection: ReconnectionPolicy = None,
        trade_delay: float = 0.0,
    ):
        super().__init__(name, fee_rate, reconnection=reconnection)
        self.pools = {TEST_POOL.symbol: TEST_POOL}
        self.feeds: List[asyncio.Queue] = []
        self.open_count = 0
        self.failing_opens = 0
        self.fail_trades = False
        self.trade_delay = trade_delay
        self.trades: List[tuple] = []

    def resolve_pool(self, symbol: str) -> PoolConfig:
        if symbol not in self.pools:
            raise PoolNotFoundError(self.name, symbol, "test")
        return self.pools[symbol]

    async def open_swap_feed(self, symbol: str, pool: PoolConfig):
        if self.failing_opens:
            self.failing_opens -= 1
            raise ConnectionError("node unreachable")
        self.open_count += 1
        queue: asyncio.Queue = asyncio.Queue()
        self.feeds.append(queue)
        return self._drain(queue)

    async def _drain(self, queue: asyncio.Queue):
        while True:
            item = await queue.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    def push_price(self, price, liquidity: int = 10**18) -> None:
        """Emit a swap at the given quote-per-base price on the newest feed."""
        sqrt_price = price_to_sqrt_price_x96(
            Decimal(str(price)), TEST_POOL.base_decimals, TEST_POOL.quote_decimals
        )
        self.push_event(SwapEvent(sqrt_price_x96=sqrt_price, liquidity=liquidity))

    def push_event(self, event: SwapEvent) -> None:
        self.feeds[-1].put_nowait(event)

    def end_feed(self) -> None:
        self.feeds[-1].put_nowait(None)

    def fail_feed(self, error: Exception) -> None:
        self.feeds[-1].put_nowait(error)

    async def buy(self, amount: Decimal, symbol: str) -> str:
        return await self._trade(Side.BUY, amount, symbol)

    async def sell(self, amount: Decimal, symbol: str) -> str:
        return await self._trade(Side.SELL, amount, symbol)

    async def _trade(self, side: Side, amount: Decimal, symbol: str) -> str:
        if self.trade_delay:
            await asyncio.sleep(self.trade_delay)
        self.trades.append((side, amount, symbol))
        if self.fail_trades:
            raise TradeExecutionError(self.name, side.value, "insufficient funds")
        return f"{self.name}-{side.value}-{len(self.trades)}"


async def eventually(predicate, timeout: float = 1.0) -> None:
    """Poll until predicate() is true or fail after timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)

"""
Base class for trading venues and their price streams.

A venue exposes the capability the arbitrage engine depends on:
price stream per symbol, fee rate, buy and sell. Subclasses only supply the
raw swap feed and the swap execution; subscription bookkeeping, price
normalization and teardown live here.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import AsyncIterator, Dict, List, Optional

from arbitrator.dex.pricing import classify_liquidity, normalize_price
from arbitrator.exceptions import NormalizationError, StreamError
from arbitrator.logger import get_logger, stream_logger
from arbitrator.models import PoolConfig, PriceQuote, SwapEvent


logger = get_logger("venues")


@dataclass
class ReconnectionPolicy:
    """Retry policy for a failed upstream feed. Zero attempts means never retry."""
    max_attempts: int = 0
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 60.0

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for given attempt number."""
        delay = self.initial_delay * (self.backoff_factor ** attempt)
        return min(delay, self.max_delay)

    @classmethod
    def from_config(cls, stream_config) -> "ReconnectionPolicy":
        return cls(
            max_attempts=stream_config.reconnect_attempts,
            initial_delay=stream_config.reconnect_initial_delay,
            backoff_factor=stream_config.reconnect_backoff,
            max_delay=stream_config.reconnect_max_delay,
        )


class PriceStream:
    """
    Single-slot channel of PriceQuotes from one venue for one symbol.

    At most one quote is pending at a time: publish() waits until the
    consumer has taken the previous one. Once closed, the stream never
    delivers another value; get() returns None and async iteration stops.
    """

    def __init__(self, venue_name: str, symbol: str):
        self.venue_name = venue_name
        self.symbol = symbol
        self._queue: asyncio.Queue[Optional[PriceQuote]] = asyncio.Queue(maxsize=1)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def publish(self, quote: PriceQuote) -> bool:
        """Hand a quote to the consumer. Returns False if the stream is closed."""
        if self._closed:
            return False
        await self._queue.put(quote)
        return not self._closed

    async def get(self) -> Optional[PriceQuote]:
        """Wait for the next quote, or None once the stream is closed."""
        if self._closed:
            return None
        quote = await self._queue.get()
        if quote is None or self._closed:
            return None
        return quote

    def close(self) -> None:
        """Close the stream and wake a waiting consumer. Idempotent."""
        if self._closed:
            return
        self._closed = True
        # Drop any undelivered quote, then leave the end-of-stream sentinel
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    def __aiter__(self) -> "PriceStream":
        return self

    async def __anext__(self) -> PriceQuote:
        quote = await self.get()
        if quote is None:
            raise StopAsyncIteration
        return quote


@dataclass
class _Subscription:
    symbol: str
    pool: PoolConfig
    stream: PriceStream
    task: Optional[asyncio.Task] = None
    reconnect_attempts: int = 0
    quotes_published: int = 0


async def _close_feed(feed: AsyncIterator[SwapEvent]) -> None:
    aclose = getattr(feed, "aclose", None)
    if aclose is not None:
        await aclose()


class BaseVenue(ABC):
    """Abstract base class for a liquidity venue."""

    def __init__(
        self,
        name: str,
        fee_rate: Decimal,
        reconnection: Optional[ReconnectionPolicy] = None,
        low_liquidity_threshold: int = 10**10,
    ):
        self.name = name
        self._fee_rate = Decimal(fee_rate)
        self.reconnection = reconnection or ReconnectionPolicy()
        self.low_liquidity_threshold = low_liquidity_threshold

        # Registry of live subscriptions; mutated only under the lock
        self._subscriptions: Dict[str, _Subscription] = {}
        self._registry_lock = asyncio.Lock()

    def get_fee_rate(self) -> Decimal:
        """Proportional fee charged by the venue on each swap."""
        return self._fee_rate

    @property
    def active_symbols(self) -> List[str]:
        return list(self._subscriptions)

    @abstractmethod
    def resolve_pool(self, symbol: str) -> PoolConfig:
        """
        Return the pool trading this symbol.

        Raises:
            PoolNotFoundError: if the venue has no such pool.
        """
        pass

    @abstractmethod
    async def open_swap_feed(
        self, symbol: str, pool: PoolConfig
    ) -> AsyncIterator[SwapEvent]:
        """
        Subscribe to the pool's swap events.

        Returns an async iterator of raw events. Ending the iterator means the
        upstream closed; raising from it means the transport failed.
        """
        pass

    @abstractmethod
    async def buy(self, amount: Decimal, symbol: str) -> str:
        """Swap quote token into base token. Returns the transaction id."""
        pass

    @abstractmethod
    async def sell(self, amount: Decimal, symbol: str) -> str:
        """Swap base token into quote token. Returns the transaction id."""
        pass

    async def get_price_stream(self, symbol: str) -> PriceStream:
        """
        Subscribe to normalized prices for a symbol.

        A second call while the subscription is alive returns the same stream.

        Raises:
            PoolNotFoundError: if the venue does not trade the symbol.
            StreamError: if the upstream subscription could not be opened.
        """
        async with self._registry_lock:
            existing = self._subscriptions.get(symbol)
            if existing is not None and not existing.stream.closed:
                return existing.stream

            pool = self.resolve_pool(symbol)
            try:
                feed = await self.open_swap_feed(symbol, pool)
            except StreamError:
                raise
            except Exception as e:
                raise StreamError(f"{self.name} could not subscribe to {symbol}: {e}") from e

            subscription = _Subscription(
                symbol=symbol,
                pool=pool,
                stream=PriceStream(self.name, symbol),
            )
            self._subscriptions[symbol] = subscription
            subscription.task = asyncio.create_task(
                self._run_subscription(subscription, feed),
                name=f"{self.name}:{symbol}",
            )

        stream_logger.log_subscribed(self.name, symbol, pool.address or pool.test_address)
        return subscription.stream

    async def unsubscribe(self, symbol: str) -> bool:
        """Tear down a subscription. Returns False if none was active."""
        async with self._registry_lock:
            subscription = self._subscriptions.pop(symbol, None)
        if subscription is None:
            return False

        if subscription.task is not None:
            subscription.task.cancel()
            await asyncio.gather(subscription.task, return_exceptions=True)
        subscription.stream.close()
        return True

    async def close(self) -> None:
        """Tear down every active subscription."""
        for symbol in list(self._subscriptions):
            await self.unsubscribe(symbol)

    def to_quote(self, symbol: str, pool: PoolConfig, event: SwapEvent) -> PriceQuote:
        """Normalize a raw swap event into a PriceQuote."""
        price = normalize_price(event.sqrt_price_x96, pool.base_decimals, pool.quote_decimals)
        return PriceQuote(
            venue_name=self.name,
            symbol=symbol,
            price=price,
            liquidity=event.liquidity,
            liquidity_status=classify_liquidity(event.liquidity, self.low_liquidity_threshold),
        )

    async def _run_subscription(
        self, subscription: _Subscription, feed: Optional[AsyncIterator[SwapEvent]]
    ) -> None:
        """Worker: forward normalized quotes until the upstream ends or fails."""
        reason = "upstream closed"
        try:
            while feed is not None:
                try:
                    await self._pump(subscription, feed)
                    break
                except Exception as e:
                    stream_logger.log_stream_error(self.name, subscription.symbol, str(e))
                    reason = f"stream error: {e}"
                finally:
                    await _close_feed(feed)
                feed = await self._reopen_feed(subscription)
        except asyncio.CancelledError:
            reason = "unsubscribed"
            raise
        finally:
            subscription.stream.close()
            if self._subscriptions.get(subscription.symbol) is subscription:
                del self._subscriptions[subscription.symbol]
            stream_logger.log_unsubscribed(self.name, subscription.symbol, reason)

    async def _pump(
        self, subscription: _Subscription, feed: AsyncIterator[SwapEvent]
    ) -> None:
        async for event in feed:
            try:
                quote = self.to_quote(subscription.symbol, subscription.pool, event)
            except NormalizationError as e:
                logger.warning(
                    "Skipping swap event with unusable price",
                    venue=self.name,
                    symbol=subscription.symbol,
                    error=str(e),
                )
                continue

            subscription.reconnect_attempts = 0
            if not await subscription.stream.publish(quote):
                return
            subscription.quotes_published += 1
            stream_logger.log_quote(quote)

    async def _reopen_feed(
        self, subscription: _Subscription
    ) -> Optional[AsyncIterator[SwapEvent]]:
        """Retry the upstream per the reconnection policy; None when exhausted."""
        policy = self.reconnection
        while subscription.reconnect_attempts < policy.max_attempts:
            delay = policy.calculate_delay(subscription.reconnect_attempts)
            subscription.reconnect_attempts += 1
            stream_logger.log_reconnecting(
                self.name, subscription.symbol, subscription.reconnect_attempts, delay
            )
            await asyncio.sleep(delay)
            try:
                return await self.open_swap_feed(subscription.symbol, subscription.pool)
            except Exception as e:
                stream_logger.log_stream_error(self.name, subscription.symbol, str(e))
        return None

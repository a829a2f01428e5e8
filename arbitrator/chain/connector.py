"""
Websocket connection to a blockchain node.

Owns the AsyncWeb3 instance and fans `eth_subscribe("logs")` notifications
out to one queue per subscription, since a persistent web3 connection only
has a single subscription message stream.
"""

import asyncio
from typing import Any, Dict, List, Optional, Union

from web3 import AsyncWeb3, WebSocketProvider

from arbitrator.chain.networks import Network
from arbitrator.exceptions import ChainConnectionError
from arbitrator.logger import get_logger


logger = get_logger("chain")


class LogSubscription:
    """
    Async iterator over the logs delivered to one node subscription.

    Iteration ends when aclose() is called and raises ChainConnectionError
    if the node connection drops.
    """

    def __init__(self, connector: "ChainConnector", subscription_id: str):
        self._connector = connector
        self.subscription_id = subscription_id
        self._queue: asyncio.Queue[Union[Dict[str, Any], Exception, None]] = asyncio.Queue()
        self._closed = False

    def deliver(self, item: Union[Dict[str, Any], Exception, None]) -> None:
        self._queue.put_nowait(item)

    def __aiter__(self) -> "LogSubscription":
        return self

    async def __anext__(self) -> Dict[str, Any]:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.deliver(None)
        await self._connector.unsubscribe(self.subscription_id)


class ChainConnector:
    """Persistent websocket client for one network."""

    def __init__(self, network: Network):
        self.network = network
        self.w3: Optional[AsyncWeb3] = None
        self._subscriptions: Dict[str, LogSubscription] = {}
        self._dispatcher: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return self.w3 is not None

    async def connect(self) -> None:
        """Open the websocket and start routing subscription messages."""
        if self.w3 is not None:
            return

        try:
            self.w3 = await AsyncWeb3(WebSocketProvider(self.network.ws_url))
            chain_id = await self.w3.eth.chain_id
        except Exception as e:
            self.w3 = None
            raise ChainConnectionError(
                f"Could not connect to {self.network.name} at {self.network.ws_url}: {e}"
            ) from e

        if chain_id != self.network.chain_id:
            logger.warning(
                "Node reports unexpected chain id",
                expected=self.network.chain_id,
                actual=chain_id,
            )

        self._dispatcher = asyncio.create_task(self._dispatch_subscriptions())
        logger.info(
            "✅ Connected to chain",
            network=self.network.network,
            chain=self.network.chain_name,
            chain_id=self.network.chain_id,
            ws_url=self.network.ws_url,
        )

    async def disconnect(self) -> None:
        """Close all subscriptions and the websocket."""
        if self._dispatcher:
            self._dispatcher.cancel()
            await asyncio.gather(self._dispatcher, return_exceptions=True)
            self._dispatcher = None

        for subscription in list(self._subscriptions.values()):
            subscription.deliver(None)
        self._subscriptions.clear()

        if self.w3 is not None:
            await self.w3.provider.disconnect()
            self.w3 = None
            logger.info("Closing client connection", network=self.network.name)

    def require_web3(self) -> AsyncWeb3:
        if self.w3 is None:
            raise ChainConnectionError("Not connected to a node")
        return self.w3

    async def subscribe_logs(self, address: str, topics: List[str]) -> LogSubscription:
        """Subscribe to logs emitted by a contract address."""
        w3 = self.require_web3()
        try:
            subscription_id = await w3.eth.subscribe(
                "logs",
                {"address": AsyncWeb3.to_checksum_address(address), "topics": topics},
            )
        except Exception as e:
            raise ChainConnectionError(f"Log subscription for {address} failed: {e}") from e

        subscription_id = str(subscription_id)
        subscription = LogSubscription(self, subscription_id)
        self._subscriptions[subscription_id] = subscription
        logger.debug("Log subscription opened", address=address, subscription_id=subscription_id)
        return subscription

    async def unsubscribe(self, subscription_id: str) -> None:
        self._subscriptions.pop(subscription_id, None)
        if self.w3 is None:
            return
        try:
            await self.w3.eth.unsubscribe(subscription_id)
        except Exception as e:
            logger.warning("Unsubscribe failed", subscription_id=subscription_id, error=str(e))

    async def _dispatch_subscriptions(self) -> None:
        """Route every subscription notification to its LogSubscription."""
        error: Exception
        try:
            async for payload in self.require_web3().socket.process_subscriptions():
                subscription = self._subscriptions.get(str(payload["subscription"]))
                if subscription is not None:
                    subscription.deliver(payload["result"])
            error = ChainConnectionError("Node closed the subscription stream")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Subscription dispatcher failed", error=str(e))
            error = ChainConnectionError(str(e))

        for subscription in list(self._subscriptions.values()):
            subscription.deliver(error)

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

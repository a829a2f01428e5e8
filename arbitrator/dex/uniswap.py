"""
Uniswap V3 venue.

Prices come from the pool's Swap events; trades go through the V3 swap
router's exactInputSingle.

Swap directions, with token0 = base and token1 = quote:
  - buy():  quote -> base  (token1 -> token0)
  - sell(): base -> quote  (token0 -> token1)
"""

import time
import uuid
from decimal import ROUND_DOWN, Decimal
from typing import AsyncIterator, Optional

from web3 import AsyncWeb3
from web3.exceptions import MismatchedABI

from arbitrator.chain.connector import ChainConnector, LogSubscription
from arbitrator.chain.keychain import Keychain
from arbitrator.chain.wallet import Wallet
from arbitrator.config import get_config
from arbitrator.dex.abi import (
    SWAP_ROUTER_ABI,
    UNISWAP_V3_POOL_ABI,
    UNISWAP_V3_SWAP_SIGNATURE,
)
from arbitrator.dex.base import BaseVenue, ReconnectionPolicy
from arbitrator.dex.pools import UNISWAP, get_pool_config
from arbitrator.dex.pricing import normalize_price
from arbitrator.exceptions import TradeExecutionError
from arbitrator.logger import get_logger
from arbitrator.models import PoolConfig, Side, SwapEvent


logger = get_logger("uniswap")


class UniswapV3Venue(BaseVenue):
    """A Uniswap V3 deployment on the connected chain."""

    VENUE_NAME = UNISWAP
    POOL_ABI = UNISWAP_V3_POOL_ABI
    SWAP_EVENT_SIGNATURE = UNISWAP_V3_SWAP_SIGNATURE

    def __init__(
        self,
        connector: ChainConnector,
        keychain: Keychain,
        fee_rate: Optional[Decimal] = None,
        router_address: Optional[str] = None,
        paper_trading: Optional[bool] = None,
    ):
        config = get_config()
        super().__init__(
            name=self.VENUE_NAME,
            fee_rate=fee_rate if fee_rate is not None else self._default_fee_rate(),
            reconnection=ReconnectionPolicy.from_config(config.stream),
            low_liquidity_threshold=config.venues.low_liquidity_threshold,
        )
        self.connector = connector
        self.keychain = keychain
        self.router_address = router_address or self._default_router()
        self.paper_trading = config.is_paper_trading if paper_trading is None else paper_trading
        self.wallet = Wallet(connector, keychain, paper_trading=self.paper_trading)

    def _default_fee_rate(self) -> Decimal:
        return get_config().venues.uniswap_fee_rate

    def _default_router(self) -> str:
        return get_config().venues.uniswap_router

    def resolve_pool(self, symbol: str) -> PoolConfig:
        network = self.connector.network
        return get_pool_config(self.name, symbol, network.chain_name, network.network)

    def _pool_address(self, pool: PoolConfig) -> str:
        return AsyncWeb3.to_checksum_address(pool.address_for(self.connector.network.network))

    async def open_swap_feed(
        self, symbol: str, pool: PoolConfig
    ) -> AsyncIterator[SwapEvent]:
        w3 = self.connector.require_web3()
        pool_address = self._pool_address(pool)
        contract = w3.eth.contract(address=pool_address, abi=self.POOL_ABI)
        topic = AsyncWeb3.to_hex(AsyncWeb3.keccak(text=self.SWAP_EVENT_SIGNATURE))

        subscription = await self.connector.subscribe_logs(pool_address, [topic])
        logger.info(f"Subscribed to {self.name} V3 pool", symbol=symbol, address=pool_address)
        return self._decode_swaps(contract, subscription)

    async def _decode_swaps(
        self, contract, subscription: LogSubscription
    ) -> AsyncIterator[SwapEvent]:
        try:
            async for log in subscription:
                try:
                    event = contract.events.Swap().process_log(log)
                except MismatchedABI as e:
                    logger.warning("Ignoring undecodable pool log", venue=self.name, error=str(e))
                    continue

                args = event["args"]
                yield SwapEvent(
                    sqrt_price_x96=args["sqrtPriceX96"],
                    liquidity=args["liquidity"],
                    tick=args["tick"],
                    transaction_hash=AsyncWeb3.to_hex(event["transactionHash"]),
                    block_number=event["blockNumber"],
                )
        finally:
            await subscription.aclose()

    async def get_spot_price(self, symbol: str) -> Decimal:
        """Read the pool's current price from slot0."""
        w3 = self.connector.require_web3()
        pool = self.resolve_pool(symbol)
        contract = w3.eth.contract(address=self._pool_address(pool), abi=self.POOL_ABI)
        slot0 = await contract.functions.slot0().call()
        return normalize_price(slot0[0], pool.base_decimals, pool.quote_decimals)

    async def buy(self, amount: Decimal, symbol: str) -> str:
        return await self._swap(Side.BUY, amount, symbol)

    async def sell(self, amount: Decimal, symbol: str) -> str:
        return await self._swap(Side.SELL, amount, symbol)

    async def _swap(self, side: Side, amount: Decimal, symbol: str) -> str:
        """Build, sign and broadcast an exact-input swap. Returns the tx hash."""
        pool = self.resolve_pool(symbol)

        if side == Side.BUY:
            token_in, token_out = pool.quote_token_contract, pool.base_token_contract
            decimals = pool.quote_decimals
        else:
            token_in, token_out = pool.base_token_contract, pool.quote_token_contract
            decimals = pool.base_decimals

        amount_in = int(
            (Decimal(amount).scaleb(decimals)).to_integral_value(rounding=ROUND_DOWN)
        )
        if amount_in <= 0:
            raise TradeExecutionError(self.name, side.value, f"amount {amount} rounds to zero")

        logger.info(
            "Swap transaction info",
            venue=self.name,
            side=side.value,
            symbol=symbol,
            amount=str(amount),
            amount_in=str(amount_in),
            token_in=token_in,
            token_out=token_out,
        )

        if self.paper_trading:
            transaction_id = f"paper-{uuid.uuid4().hex[:16]}"
            logger.info("📝 Paper swap recorded", venue=self.name, transaction_id=transaction_id)
            return transaction_id

        venues = get_config().venues
        started = time.perf_counter()
        try:
            w3 = self.connector.require_web3()
            sender = self.keychain.address
            # The router pulls token_in, so it needs an allowance first
            await self.wallet.ensure_allowance(token_in, self.router_address, amount_in)
            router = w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(self.router_address),
                abi=SWAP_ROUTER_ABI,
            )
            params = {
                "tokenIn": AsyncWeb3.to_checksum_address(token_in),
                "tokenOut": AsyncWeb3.to_checksum_address(token_out),
                "fee": pool.fee_tier,
                "recipient": sender,
                "amountIn": amount_in,
                "amountOutMinimum": 0,
                "sqrtPriceLimitX96": 0,
            }
            nonce = await w3.eth.get_transaction_count(sender, "pending")
            transaction = await router.functions.exactInputSingle(params).build_transaction({
                "from": sender,
                "nonce": nonce,
                "value": 0,
                "gas": venues.gas_limit,
                "maxFeePerGas": AsyncWeb3.to_wei(venues.gas_fee_cap_gwei, "gwei"),
                "maxPriorityFeePerGas": AsyncWeb3.to_wei(venues.gas_tip_cap_gwei, "gwei"),
                "chainId": self.connector.network.chain_id,
            })
            raw_transaction = self.keychain.sign_transaction(transaction)
            tx_hash = await w3.eth.send_raw_transaction(raw_transaction)
        except Exception as e:
            logger.error("Failed to execute swap", venue=self.name, side=side.value, error=str(e))
            raise TradeExecutionError(self.name, side.value, str(e)) from e

        transaction_id = AsyncWeb3.to_hex(tx_hash)
        logger.info(
            "Swap transaction submitted",
            venue=self.name,
            hash=transaction_id,
            symbol=symbol,
            side=side.value,
            elapsed_ms=f"{(time.perf_counter() - started) * 1000:.1f}",
        )
        return transaction_id

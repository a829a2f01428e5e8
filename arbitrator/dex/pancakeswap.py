"""
PancakeSwap V3 venue.

PancakeSwap V3 is a Uniswap V3 fork: same price encoding and router
interface, but its Swap event carries two extra protocol-fee fields.
"""

from decimal import Decimal

from arbitrator.config import get_config
from arbitrator.dex.abi import PANCAKESWAP_V3_POOL_ABI, PANCAKESWAP_V3_SWAP_SIGNATURE
from arbitrator.dex.pools import PANCAKESWAP
from arbitrator.dex.uniswap import UniswapV3Venue


class PancakeswapV3Venue(UniswapV3Venue):
    """A PancakeSwap V3 deployment on the connected chain."""

    VENUE_NAME = PANCAKESWAP
    POOL_ABI = PANCAKESWAP_V3_POOL_ABI
    SWAP_EVENT_SIGNATURE = PANCAKESWAP_V3_SWAP_SIGNATURE

    def _default_fee_rate(self) -> Decimal:
        return get_config().venues.pancakeswap_fee_rate

    def _default_router(self) -> str:
        return get_config().venues.pancakeswap_router

"""
Decentralized exchange venues, pool registry and price normalization.
"""

from arbitrator.dex.base import BaseVenue, PriceStream, ReconnectionPolicy
from arbitrator.dex.pancakeswap import PancakeswapV3Venue
from arbitrator.dex.pools import PANCAKESWAP, UNISWAP, get_pool_config, list_pools
from arbitrator.dex.pricing import normalize_price, price_to_sqrt_price_x96
from arbitrator.dex.uniswap import UniswapV3Venue

__all__ = [
    "BaseVenue",
    "PANCAKESWAP",
    "PancakeswapV3Venue",
    "PriceStream",
    "ReconnectionPolicy",
    "UNISWAP",
    "UniswapV3Venue",
    "get_pool_config",
    "list_pools",
    "normalize_price",
    "price_to_sqrt_price_x96",
]

"""
Static pool registry.

Maps venue -> chain -> symbol to the pool that trades that pair. Loaded at
import time and never mutated.
"""

from typing import Dict, List, Tuple

from arbitrator.exceptions import PoolNotFoundError
from arbitrator.models import PoolConfig

UNISWAP = "Uniswap"
PANCAKESWAP = "Pancakeswap"

# Token contracts
BSC_USDT = "0x55d398326f99059fF775485246999027B3197955"
BSC_WBNB = "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"
BSC_TESTNET_WBNB = "0xae13d989daC2f0dEbFf460aC112a837C89BAa7cd"
BSC_TESTNET_USDC = "0x64544969ed7EBf5f083679233325356EbE738930"
BSC_TESTNET_BUSD = "0xeD24FC36d5Ee211Ea25A80239Fb8C4Cfd80f12Ee"
ETH_WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
ETH_USDT = "0xdAC17F958D2ee523a2206206994597C13D831ec7"
ETH_WBTC = "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599"


POOLS: Dict[str, Dict[str, Dict[str, PoolConfig]]] = {
    UNISWAP: {
        "BSC": {
            "USDT/WBNB": PoolConfig(
                base_token="USDT",
                quote_token="WBNB",
                base_decimals=18,
                quote_decimals=18,
                address="0x47a90A2d92A8367A91EfA1906bFc8c1E05bf10c4",
                base_token_contract=BSC_USDT,
                quote_token_contract=BSC_WBNB,
                fee_tier=500,
            ),
        },
        "ethereum": {
            "WETH/USDT": PoolConfig(
                base_token="WETH",
                quote_token="USDT",
                base_decimals=18,
                quote_decimals=6,
                address="0x4e68Ccd3E89f51C3074ca5072bbAC773960dFa36",
                base_token_contract=ETH_WETH,
                quote_token_contract=ETH_USDT,
                fee_tier=3000,
            ),
            "WBTC/WETH": PoolConfig(
                base_token="WBTC",
                quote_token="WETH",
                base_decimals=8,
                quote_decimals=18,
                address="0x4585FE77225b41b697C938B018E2Ac67Ac5a20c0",
                base_token_contract=ETH_WBTC,
                quote_token_contract=ETH_WETH,
                fee_tier=500,
            ),
        },
    },
    PANCAKESWAP: {
        "BSC": {
            "USDT/WBNB": PoolConfig(
                base_token="USDT",
                quote_token="WBNB",
                base_decimals=18,
                quote_decimals=18,
                address="0x172fcD41E0913e95784454622d1c3724f546f849",
                test_address="0x5F52Ad4bD4f519AE79999400ad8B83A3D002fD92",
                base_token_contract=BSC_USDT,
                quote_token_contract=BSC_WBNB,
                fee_tier=100,
            ),
            "WBNB/USDC": PoolConfig(
                base_token="WBNB",
                quote_token="USDC",
                base_decimals=18,
                quote_decimals=6,
                test_address="0x172fcD41E0913e95784454622d1c3724f546f849",
                base_token_contract=BSC_TESTNET_WBNB,
                quote_token_contract=BSC_TESTNET_USDC,
                fee_tier=2500,
            ),
            "BUSD/WBNB": PoolConfig(
                base_token="BUSD",
                quote_token="WBNB",
                base_decimals=18,
                quote_decimals=18,
                test_address="0x58C6Fc654b3deE6839b65136f61cB9120d96BCc6",
                base_token_contract=BSC_TESTNET_BUSD,
                quote_token_contract=BSC_TESTNET_WBNB,
                fee_tier=2500,
            ),
        },
        "ethereum": {
            "WETH/USDT": PoolConfig(
                base_token="WETH",
                quote_token="USDT",
                base_decimals=18,
                quote_decimals=6,
                address="0x6CA298D2983aB03Aa1dA7679389D955A4eFEE15C",
                base_token_contract=ETH_WETH,
                quote_token_contract=ETH_USDT,
                fee_tier=500,
            ),
        },
    },
}


def get_pool_config(
    venue: str, symbol: str, chain_name: str, network: str = "mainnet"
) -> PoolConfig:
    """
    Look up the pool for a symbol on a venue.

    Raises:
        PoolNotFoundError: if the venue has no pool for the symbol, or the
            pool has no address on the requested network.
    """
    config = POOLS.get(venue, {}).get(chain_name, {}).get(symbol)
    if config is None or not config.address_for(network):
        raise PoolNotFoundError(venue, symbol, f"{chain_name} {network}")
    return config


def list_pools() -> List[Tuple[str, str, str, PoolConfig]]:
    """Flatten the registry into (venue, chain, symbol, config) rows."""
    rows = []
    for venue, chains in POOLS.items():
        for chain_name, pools in chains.items():
            for symbol, config in pools.items():
                rows.append((venue, chain_name, symbol, config))
    return rows


def shared_symbols(venue_a: str, venue_b: str, chain_name: str) -> List[str]:
    """Symbols both venues can trade on a chain."""
    a = set(POOLS.get(venue_a, {}).get(chain_name, {}))
    b = set(POOLS.get(venue_b, {}).get(chain_name, {}))
    return sorted(a & b)

"""
Minimal contract ABIs - only the entries the venues use.
"""

_SWAP_EVENT_INPUTS = [
    {"indexed": True, "name": "sender", "type": "address"},
    {"indexed": True, "name": "recipient", "type": "address"},
    {"indexed": False, "name": "amount0", "type": "int256"},
    {"indexed": False, "name": "amount1", "type": "int256"},
    {"indexed": False, "name": "sqrtPriceX96", "type": "uint160"},
    {"indexed": False, "name": "liquidity", "type": "uint128"},
    {"indexed": False, "name": "tick", "type": "int24"},
]

_LIQUIDITY_FUNCTION = {
    "inputs": [],
    "name": "liquidity",
    "outputs": [{"name": "", "type": "uint128"}],
    "stateMutability": "view",
    "type": "function",
}


def _slot0(fee_protocol_type: str) -> dict:
    return {
        "inputs": [],
        "name": "slot0",
        "outputs": [
            {"name": "sqrtPriceX96", "type": "uint160"},
            {"name": "tick", "type": "int24"},
            {"name": "observationIndex", "type": "uint16"},
            {"name": "observationCardinality", "type": "uint16"},
            {"name": "observationCardinalityNext", "type": "uint16"},
            {"name": "feeProtocol", "type": fee_protocol_type},
            {"name": "unlocked", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    }


UNISWAP_V3_SWAP_SIGNATURE = "Swap(address,address,int256,int256,uint160,uint128,int24)"

UNISWAP_V3_POOL_ABI = [
    {
        "anonymous": False,
        "inputs": _SWAP_EVENT_INPUTS,
        "name": "Swap",
        "type": "event",
    },
    _slot0("uint8"),
    _LIQUIDITY_FUNCTION,
]

# PancakeSwap V3 pools also report the protocol fee taken on each swap
PANCAKESWAP_V3_SWAP_SIGNATURE = (
    "Swap(address,address,int256,int256,uint160,uint128,int24,uint128,uint128)"
)

PANCAKESWAP_V3_POOL_ABI = [
    {
        "anonymous": False,
        "inputs": _SWAP_EVENT_INPUTS + [
            {"indexed": False, "name": "protocolFeesToken0", "type": "uint128"},
            {"indexed": False, "name": "protocolFeesToken1", "type": "uint128"},
        ],
        "name": "Swap",
        "type": "event",
    },
    _slot0("uint32"),
    _LIQUIDITY_FUNCTION,
]

# IV3SwapRouter (Uniswap SwapRouter02 / PancakeSwap SmartRouter)
SWAP_ROUTER_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"name": "tokenIn", "type": "address"},
                    {"name": "tokenOut", "type": "address"},
                    {"name": "fee", "type": "uint24"},
                    {"name": "recipient", "type": "address"},
                    {"name": "amountIn", "type": "uint256"},
                    {"name": "amountOutMinimum", "type": "uint256"},
                    {"name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
                "name": "params",
                "type": "tuple",
            }
        ],
        "name": "exactInputSingle",
        "outputs": [{"name": "amountOut", "type": "uint256"}],
        "stateMutability": "payable",
        "type": "function",
    }
]

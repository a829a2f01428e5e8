"""
Known blockchain networks and their RPC endpoints.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from arbitrator.config import get_config

MAINNET = "mainnet"
TESTNET = "testnet"


@dataclass(frozen=True)
class Network:
    """A node endpoint and the chain it serves."""
    name: str
    network: str  # mainnet or testnet
    ws_url: str
    http_url: str
    chain_name: str
    chain_id: int


def get_networks(infura_api_key: Optional[str] = None) -> Dict[str, Network]:
    """Return the network table, filling Infura URLs from configuration."""
    if infura_api_key is None:
        infura_api_key = get_config().chain.infura_api_key

    return {
        "BscMainnet": Network(
            name="BscMainnet",
            network=MAINNET,
            ws_url="wss://bsc-rpc.publicnode.com",
            http_url="https://bsc-rpc.publicnode.com",
            chain_name="BSC",
            chain_id=56,
        ),
        "BscTestnet": Network(
            name="BscTestnet",
            network=TESTNET,
            ws_url="wss://bsc-testnet-rpc.publicnode.com",
            http_url="https://bsc-testnet.bnbchain.org",
            chain_name="BSC",
            chain_id=97,
        ),
        "BscTestnetInfura": Network(
            name="BscTestnetInfura",
            network=TESTNET,
            ws_url=f"wss://bsc-testnet.infura.io/ws/v3/{infura_api_key}",
            http_url=f"https://bsc-testnet.infura.io/v3/{infura_api_key}",
            chain_name="BSC",
            chain_id=97,
        ),
        "BscMainnetInfura": Network(
            name="BscMainnetInfura",
            network=MAINNET,
            ws_url=f"wss://bsc-mainnet.infura.io/ws/v3/{infura_api_key}",
            http_url="https://bsc-rpc.publicnode.com",
            chain_name="BSC",
            chain_id=56,
        ),
        "EthMainnet": Network(
            name="EthMainnet",
            network=MAINNET,
            ws_url=f"wss://mainnet.infura.io/ws/v3/{infura_api_key}",
            http_url="https://ethereum.publicnode.com",
            chain_name="ethereum",
            chain_id=1,
        ),
        "EthSepolia": Network(
            name="EthSepolia",
            network=TESTNET,
            ws_url=f"wss://sepolia.infura.io/ws/v3/{infura_api_key}",
            http_url=f"https://sepolia.infura.io/v3/{infura_api_key}",
            chain_name="ethereum",
            chain_id=11155111,
        ),
    }


def get_network(name: Optional[str] = None) -> Network:
    """
    Resolve a network by name, defaulting to ACTIVE_CHAIN.

    RPC_WS_URL, when set, replaces the websocket endpoint.
    """
    config = get_config()
    name = name or config.chain.active_chain
    networks = get_networks()
    if name not in networks:
        raise KeyError(f"Unknown network {name!r}; expected one of {sorted(networks)}")

    network = networks[name]
    if config.chain.rpc_ws_url:
        network = Network(
            name=network.name,
            network=network.network,
            ws_url=config.chain.rpc_ws_url,
            http_url=network.http_url,
            chain_name=network.chain_name,
            chain_id=network.chain_id,
        )
    return network

"""
Blockchain connectivity: networks, node connection, signing and balances.
"""

from arbitrator.chain.connector import ChainConnector, LogSubscription
from arbitrator.chain.keychain import Keychain
from arbitrator.chain.networks import Network, get_network, get_networks
from arbitrator.chain.wallet import Wallet, to_readable

__all__ = [
    "ChainConnector",
    "Keychain",
    "LogSubscription",
    "Network",
    "Wallet",
    "get_network",
    "get_networks",
    "to_readable",
]

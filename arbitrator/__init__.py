"""
DEX Arbitrator: cross-venue arbitrage between decentralized exchange pools.
"""

__version__ = "0.3.0"

"""
Signing key holder for swap transactions.
"""

from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount

from arbitrator.config import get_config
from arbitrator.exceptions import ConfigurationError
from arbitrator.logger import get_logger


logger = get_logger("keychain")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Keychain:
    """Holds one local account and signs transactions with it."""

    def __init__(self, private_key: str = ""):
        self._account: Optional[LocalAccount] = None
        if private_key:
            self._account = Account.from_key(private_key)

    @classmethod
    def from_config(cls) -> "Keychain":
        config = get_config()
        if not config.wallet.is_configured():
            if config.is_paper_trading:
                logger.warning("No private key provided - running in paper trading mode with dummy address")
                return cls()
            raise ConfigurationError("WALLET_PRIVATE_KEY is required for live trading!")
        return cls(config.wallet.private_key)

    @property
    def address(self) -> str:
        if self._account is None:
            return ZERO_ADDRESS
        return self._account.address

    @property
    def can_sign(self) -> bool:
        return self._account is not None

    def sign_transaction(self, transaction: Dict[str, Any]) -> bytes:
        """Sign a transaction dict and return the raw bytes ready to broadcast."""
        if self._account is None:
            raise ConfigurationError("Keychain has no private key; cannot sign")
        signed = self._account.sign_transaction(transaction)
        return signed.raw_transaction

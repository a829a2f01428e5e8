"""
Token balances and spending approvals for the trading account.

The routers pull the input token with transferFrom, so each router needs an
ERC20 allowance from the trading account before its first live swap.
"""

import uuid
from decimal import Decimal
from typing import Optional

from web3 import AsyncWeb3

from arbitrator.chain.connector import ChainConnector
from arbitrator.chain.keychain import Keychain
from arbitrator.config import get_config
from arbitrator.exceptions import WalletError
from arbitrator.logger import get_logger


logger = get_logger("wallet")

MAX_UINT256 = 2**256 - 1
NATIVE_DECIMALS = 18

ERC20_ABI = [
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]


def to_readable(raw_amount: int, decimals: int) -> Decimal:
    """Scale a raw integer token amount down to whole tokens."""
    return Decimal(raw_amount).scaleb(-decimals)


class Wallet:
    """Reads balances and manages router allowances for the keychain's account."""

    def __init__(
        self,
        connector: ChainConnector,
        keychain: Keychain,
        paper_trading: Optional[bool] = None,
    ):
        self.connector = connector
        self.keychain = keychain
        self.paper_trading = get_config().is_paper_trading if paper_trading is None else paper_trading

    @property
    def address(self) -> str:
        return self.keychain.address

    def _token(self, w3: AsyncWeb3, token: str):
        return w3.eth.contract(address=AsyncWeb3.to_checksum_address(token), abi=ERC20_ABI)

    async def get_native_balance(self) -> int:
        """Native coin balance in wei."""
        try:
            w3 = self.connector.require_web3()
            return await w3.eth.get_balance(self.address)
        except Exception as e:
            raise WalletError(f"failed to read native balance: {e}") from e

    async def get_token_balance(self, token: str) -> int:
        """Raw ERC20 balance of the account."""
        try:
            w3 = self.connector.require_web3()
            return await self._token(w3, token).functions.balanceOf(self.address).call()
        except Exception as e:
            raise WalletError(f"failed to read balance of {token}: {e}") from e

    async def get_allowance(self, token: str, spender: str) -> int:
        """How much of token the spender may still pull from the account."""
        try:
            w3 = self.connector.require_web3()
            return await self._token(w3, token).functions.allowance(
                self.address, AsyncWeb3.to_checksum_address(spender)
            ).call()
        except Exception as e:
            raise WalletError(f"failed to read allowance of {token}: {e}") from e

    async def has_allowance(self, token: str, spender: str, amount: int = 1) -> bool:
        allowance = await self.get_allowance(token, spender)
        if allowance < amount:
            logger.warning(
                "Spender allowance too low, approval required",
                token=token,
                spender=spender,
                allowance=allowance,
                required=amount,
            )
            return False
        return True

    async def approve(self, token: str, spender: str, amount: int = MAX_UINT256) -> str:
        """
        Allow spender to transfer up to amount of token from the account.

        Returns the approval transaction hash, or a paper id in paper mode.

        Raises:
            WalletError: if the transaction could not be built, signed or sent.
        """
        logger.info("Approving token transfer", token=token, spender=spender, amount=str(amount))

        if self.paper_trading:
            transaction_id = f"paper-{uuid.uuid4().hex[:16]}"
            logger.info("📝 Paper approval recorded", token=token, transaction_id=transaction_id)
            return transaction_id

        venues = get_config().venues
        try:
            w3 = self.connector.require_web3()
            sender = self.address
            nonce = await w3.eth.get_transaction_count(sender, "pending")
            transaction = await self._token(w3, token).functions.approve(
                AsyncWeb3.to_checksum_address(spender), amount
            ).build_transaction({
                "from": sender,
                "nonce": nonce,
                "value": 0,
                "gas": venues.approval_gas_limit,
                "maxFeePerGas": AsyncWeb3.to_wei(venues.gas_fee_cap_gwei, "gwei"),
                "maxPriorityFeePerGas": AsyncWeb3.to_wei(venues.gas_tip_cap_gwei, "gwei"),
                "chainId": self.connector.network.chain_id,
            })
            raw_transaction = self.keychain.sign_transaction(transaction)
            tx_hash = await w3.eth.send_raw_transaction(raw_transaction)
        except Exception as e:
            logger.error("Failed to approve token transfer", token=token, spender=spender, error=str(e))
            raise WalletError(f"approval of {token} for {spender} failed: {e}") from e

        transaction_id = AsyncWeb3.to_hex(tx_hash)
        logger.info("Approval transaction submitted", token=token, spender=spender, hash=transaction_id)
        return transaction_id

    async def ensure_allowance(self, token: str, spender: str, amount: int) -> Optional[str]:
        """Approve spender when its allowance is below amount. Returns the approval hash if one was sent."""
        if await self.has_allowance(token, spender, amount):
            return None
        return await self.approve(token, spender)

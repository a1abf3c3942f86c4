"""
EVM Wallet Session

The active signing session a checkout runs under: one signer address, one
AsyncWeb3 client per network, broadcast and receipt wait.

Key Features:
    - Local signing with an eth_account key, or delegation to the node's
      ``eth_sendTransaction`` for remote signers
    - Per-network RPC resolution (explicit URL, infra key, public fallback)
    - Wallet-side gas and fee selection when a plan carries none

Dependencies:
    - web3.py: For blockchain RPC interaction
    - eth_account: For transaction signing
"""

from typing import Any, Dict, Optional

import structlog
from eth_account import Account
from web3 import AsyncWeb3, Web3
from web3.types import TxReceipt

from .constants import (
    get_network_config,
    get_private_key_from_env,
    get_receipt_timeout_from_env,
    get_rpc_key_from_env,
    get_rpc_url,
)
from .gas import fetch_fee_data
from .schemas import TransactionPlan
from ...engine.exceptions import ConfigurationError, UserRejectedError, is_user_rejection

logger = structlog.get_logger(__name__)


def to_hex_hash(tx_hash: Any) -> str:
    """Normalize a transaction hash returned by web3 to a 0x string."""
    if isinstance(tx_hash, str):
        return tx_hash if tx_hash.startswith("0x") else "0x" + tx_hash
    return Web3.to_hex(tx_hash)


class WalletSession:
    """
    Signing session injected by the hosting application.

    Attributes:
        account: Local eth_account signer, or None for remote signing
        wallet_address: Checksum address transactions are sent from

    Environment Variables:
        - EVM_PRIVATE_KEY: Signer key used when none is passed
        - EVM_RPC_KEY: Infra key for premium RPC endpoints
        - EVM_RECEIPT_TIMEOUT: Receipt wait timeout in seconds
    """

    def __init__(
        self,
        private_key: Optional[str] = None,
        address: Optional[str] = None,
        rpc_urls: Optional[Dict[int, str]] = None,
        request_timeout: int = 60,
        receipt_timeout: Optional[float] = None,
    ):
        """
        Initialize the session.

        Args:
            private_key: Signer key (0x hex). Falls back to ``EVM_PRIVATE_KEY``.
            address: Sender address for remote signing when no key is available.
            rpc_urls: Explicit RPC URL per chain id, overriding the network table.
            request_timeout: HTTP request timeout (seconds) for RPC calls.
            receipt_timeout: Receipt wait timeout (seconds) handed to web3.

        Raises:
            ConfigurationError: If neither a key nor an address is available.
        """
        resolved_pk = private_key or get_private_key_from_env()
        if resolved_pk:
            self.account = Account.from_key(resolved_pk)
            self.wallet_address = AsyncWeb3.to_checksum_address(self.account.address)
        elif address:
            self.account = None
            self.wallet_address = AsyncWeb3.to_checksum_address(address)
        else:
            raise ConfigurationError(
                "No signer available. Pass 'private_key' or 'address', or set "
                "the EVM_PRIVATE_KEY environment variable."
            )

        self._rpc_urls = dict(rpc_urls or {})
        self._infra_key = get_rpc_key_from_env()
        self._request_timeout = request_timeout
        self._receipt_timeout = (
            receipt_timeout if receipt_timeout is not None else get_receipt_timeout_from_env()
        )
        self._web3_instances: Dict[int, AsyncWeb3] = {}

    def _get_web3_instance(self, chain_id: int) -> AsyncWeb3:
        """
        Return the AsyncWeb3 client for ``chain_id``, creating it on first use.

        Raises:
            ConfigurationError: If no RPC URL is known for the network.
        """
        chain_id = int(chain_id)
        if chain_id in self._web3_instances:
            return self._web3_instances[chain_id]

        rpc_url = self._rpc_urls.get(chain_id) or get_rpc_url(chain_id, self._infra_key)
        if not rpc_url:
            raise ConfigurationError(f"No RPC URL configured for network {chain_id}")

        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": self._request_timeout}
        ))
        self._web3_instances[chain_id] = w3
        return w3

    def web3(self, chain_id: int) -> AsyncWeb3:
        """Public accessor for the network client."""
        return self._get_web3_instance(chain_id)

    def get_wallet_address(self) -> str:
        return self.wallet_address

    async def get_native_balance(self, chain_id: int) -> int:
        """Native currency balance of the signer, in wei."""
        w3 = self._get_web3_instance(chain_id)
        return int(await w3.eth.get_balance(self.wallet_address))

    async def send_transaction(self, plan: TransactionPlan, chain_id: int) -> str:
        """
        Broadcast ``plan`` and return its hash once the node accepts it.

        Does not wait for mining. Missing gas limit and fee parameters are
        chosen here, the way a wallet would. Exactly one transaction is
        broadcast per call. A wallet rejection (code 4001 or
        ``ACTION_REJECTED``) is raised as :class:`UserRejectedError`; other
        RPC and signing errors propagate unchanged.

        Args:
            plan: Transaction to broadcast.
            chain_id: Network to broadcast on.

        Returns:
            str: 0x-prefixed transaction hash.
        """
        w3 = self._get_web3_instance(chain_id)
        params = plan.to_tx_params()
        params["from"] = self.wallet_address
        params["chainId"] = int(chain_id)

        if "gas" not in params:
            params["gas"] = int(await w3.eth.estimate_gas(dict(params)))

        if not plan.has_fee_overrides:
            fee_data = await fetch_fee_data(w3)
            priced = plan.with_fees(fee_data)
            for key, value in priced.to_tx_params().items():
                if key in ("gasPrice", "maxFeePerGas", "maxPriorityFeePerGas"):
                    params[key] = value

        try:
            if self.account is not None:
                params["nonce"] = await w3.eth.get_transaction_count(self.wallet_address, "pending")
                signed_tx = self.account.sign_transaction(params)
                tx_hash = await w3.eth.send_raw_transaction(signed_tx.raw_transaction)
            else:
                tx_hash = await w3.eth.send_transaction(params)
        except Exception as e:
            if is_user_rejection(e):
                logger.info("transaction_rejected", network=chain_id, to=plan.to, error=str(e))
                raise UserRejectedError(f"Signer declined the transaction: {e}") from e
            raise

        tx_hex = to_hex_hash(tx_hash)
        network = get_network_config(chain_id)
        logger.info(
            "transaction_submitted",
            network=chain_id,
            to=plan.to,
            value=plan.value,
            gas=params.get("gas"),
            tx_hash=tx_hex,
            explorer=network.transaction_url(tx_hex) if network else None,
        )
        return tx_hex

    async def wait_for_receipt(self, tx_hash: str, chain_id: int) -> TxReceipt:
        """
        Block until ``tx_hash`` is mined.

        The wait is bounded only by the network client's timeout, which
        raises ``web3.exceptions.TimeExhausted``.
        """
        w3 = self._get_web3_instance(chain_id)
        return await w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._receipt_timeout)

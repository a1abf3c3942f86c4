"""
EVM Network Configuration Management

Provides unified access to the EVM networks a checkout can run on, the
environment-backed session settings (signer key, RPC key, swap purchaser,
receipt timeout) and the canonical amount conversions.
"""

import os
from typing import Dict, Optional
from decimal import Decimal, InvalidOperation
from pydantic import BaseModel, Field

import dotenv

dotenv.load_dotenv()


#: Zero address; stands for the native currency wherever a token is expected.
ZERO_ADDRESS: str = "0x0000000000000000000000000000000000000000"

#: Maximum uint256; the "unlimited" approval sentinel.
MAX_UINT256: int = 2**256 - 1

#: Decimals assumed for the native currency.
NATIVE_DECIMALS: int = 18

#: First lock version exposing array-based ``purchase`` and ``extend``.
BATCHED_PURCHASE_MIN_VERSION: int = 10

#: Gas limit safety margin applied on top of a successful estimate (130%).
GAS_LIMIT_NUMERATOR: int = 13
GAS_LIMIT_DENOMINATOR: int = 10

#: Default swap slippage buffer in basis points (1%).
DEFAULT_SLIPPAGE_BPS: int = 100

#: Default receipt wait passed to the network client (seconds).
DEFAULT_RECEIPT_TIMEOUT: float = 120.0


class EvmNetworkConfig(BaseModel):
    """EVM network configuration."""
    chain_id: int
    name: str
    native_symbol: str = Field(default="ETH", description="Native currency ticker")
    rpc_url: Optional[str] = Field(None, description="JSON-RPC endpoint URL template with {RPC_KEYS}")
    public_rpc_url: str = Field(..., description="Public RPC endpoint (fallback when no infra key)")
    explorer_url: str = Field(..., description="Block explorer URL")
    swap_purchaser_address: Optional[str] = Field(
        None, description="Swap purchaser contract used for swap-and-purchase"
    )

    def transaction_url(self, tx_hash: str) -> str:
        """Explorer link for a transaction hash."""
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"


# Premium RPC is used when an infra key is configured, otherwise public RPC.
_EVM_NETWORKS_DATA: Dict[int, Dict] = {
    1: {
        "name": "Ethereum Mainnet",
        "native_symbol": "ETH",
        "rpc_url": "https://mainnet.infura.io/v3/{RPC_KEYS}",
        "public_rpc_url": "https://eth.llamarpc.com",
        "explorer_url": "https://etherscan.io",
    },
    10: {
        "name": "Optimism",
        "native_symbol": "ETH",
        "rpc_url": "https://optimism-mainnet.infura.io/v3/{RPC_KEYS}",
        "public_rpc_url": "https://mainnet.optimism.io",
        "explorer_url": "https://optimistic.etherscan.io",
    },
    137: {
        "name": "Polygon Mainnet",
        "native_symbol": "POL",
        "rpc_url": "https://polygon-mainnet.infura.io/v3/{RPC_KEYS}",
        "public_rpc_url": "https://polygon-rpc.com",
        "explorer_url": "https://polygonscan.com",
    },
    8453: {
        "name": "Base Mainnet",
        "native_symbol": "ETH",
        "rpc_url": "https://base-mainnet.infura.io/v3/{RPC_KEYS}",
        "public_rpc_url": "https://mainnet.base.org",
        "explorer_url": "https://basescan.org",
    },
    42161: {
        "name": "Arbitrum One",
        "native_symbol": "ETH",
        "rpc_url": "https://arbitrum-mainnet.infura.io/v3/{RPC_KEYS}",
        "public_rpc_url": "https://arb1.arbitrum.io/rpc",
        "explorer_url": "https://arbiscan.io",
    },
    11155111: {
        "name": "Sepolia Testnet",
        "native_symbol": "ETH",
        "rpc_url": "https://sepolia.infura.io/v3/{RPC_KEYS}",
        "public_rpc_url": "https://rpc.sepolia.org",
        "explorer_url": "https://sepolia.etherscan.io",
    },
}


def get_network_config(chain_id: int) -> Optional[EvmNetworkConfig]:
    """
    Return the configuration for ``chain_id`` or None when unsupported.

    The swap purchaser address is taken from the ``EVM_SWAP_PURCHASER_<chain_id>``
    environment variable when set.
    """
    data = _EVM_NETWORKS_DATA.get(int(chain_id))
    if data is None:
        return None
    return EvmNetworkConfig(
        chain_id=int(chain_id),
        swap_purchaser_address=get_swap_purchaser_from_env(chain_id),
        **data,
    )


def get_rpc_url(chain_id: int, infra_key: Optional[str] = None) -> Optional[str]:
    """
    Build the RPC URL for ``chain_id``.

    Args:
        chain_id: EVM chain ID.
        infra_key: Optional infrastructure key substituted into the premium URL.

    Returns:
        The premium URL when an infra key is given, the public URL otherwise,
        or None for unknown networks.
    """
    config = get_network_config(chain_id)
    if config is None:
        return None
    if infra_key and config.rpc_url:
        return config.rpc_url.replace("{RPC_KEYS}", infra_key)
    return config.public_rpc_url


def get_private_key_from_env() -> Optional[str]:
    """
    Load the checkout signer private key from ``EVM_PRIVATE_KEY``.

    Returns None when unset; the session then delegates signing to the node
    (``eth_sendTransaction``).
    """
    return os.getenv("EVM_PRIVATE_KEY")


def get_rpc_key_from_env() -> Optional[str]:
    """Load the optional infrastructure API key from ``EVM_RPC_KEY``."""
    return os.getenv("EVM_RPC_KEY")


def get_swap_purchaser_from_env(chain_id: int) -> Optional[str]:
    """Load the swap purchaser address for ``chain_id`` from the environment."""
    return os.getenv(f"EVM_SWAP_PURCHASER_{int(chain_id)}")


def get_receipt_timeout_from_env() -> float:
    """Load the receipt wait timeout (seconds) from ``EVM_RECEIPT_TIMEOUT``."""
    raw = os.getenv("EVM_RECEIPT_TIMEOUT")
    if not raw:
        return DEFAULT_RECEIPT_TIMEOUT
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"EVM_RECEIPT_TIMEOUT must be a number, got {raw!r}") from e


def is_native_currency(token_address: Optional[str]) -> bool:
    """True when ``token_address`` is absent or the zero-address sentinel."""
    return not token_address or token_address.lower() == ZERO_ADDRESS


def amount_to_value(*, amount: float | int | str | Decimal, decimals: int) -> int:
    """Convert a human-readable token `amount` into smallest-unit integer `value`.

    Args:
        amount: Human-readable amount (e.g. 1.23 for USDC). Accepts float/int/str/Decimal.
        decimals: Token decimals (e.g. 6 for USDC).

    Returns:
        int: Smallest-unit integer value.

    Raises:
        ValueError: If inputs are invalid or the amount cannot be represented in smallest units.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        # str() avoids binary-float surprises (0.1 -> 0.100000000000000005...)
        dec_amount = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e

    if dec_amount < 0:
        raise ValueError("amount must be non-negative")

    scale = Decimal(10) ** decimals
    scaled = dec_amount * scale

    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"amount {amount!r} is not representable with decimals={decimals} "
            f"(would create fractional smallest units)"
        )

    return int(scaled)

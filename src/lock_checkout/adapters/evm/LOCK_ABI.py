"""
Lock and Swap Purchaser ABI Module

ABI fragments for the membership lock contract and the swap purchaser
contract. Only the entries the checkout reads, encodes or decodes are
listed.

Two purchase conventions exist:

* Batched (lock version >= 10): ``purchase(uint256[] _values, address[]
  _recipients, address[] _referrers, address[] _keyManagers, bytes[] _data)``
  and ``extend(uint256 _value, uint256 _tokenId, address _referrer, bytes _data)``.
* Single recipient (older locks): ``purchase(uint256 _value, address
  _recipient, address _referrer, address _keyManager, bytes _data)``; a
  purchase for an existing owner extends their key.

Usage:
    from LOCK_ABI import get_lock_read_abi

    lock = web3.eth.contract(address=lock_address, abi=get_lock_read_abi())
    price = await lock.functions.keyPrice().call()
"""

from typing import Dict, Any, List


def get_lock_read_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the lock views used before a purchase.

    Returns:
        List[Dict[str, Any]]: ``keyPrice``, ``tokenAddress``,
        ``publicLockVersion`` and ``tokenOfOwnerByIndex`` entries.
    """
    return [
        {
            "name": "keyPrice",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "uint256"}],
        },
        {
            "name": "tokenAddress",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "address"}],
        },
        {
            "name": "publicLockVersion",
            "type": "function",
            "stateMutability": "pure",
            "inputs": [],
            "outputs": [{"name": "", "type": "uint16"}],
        },
        {
            "name": "tokenOfOwnerByIndex",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {"name": "_keyOwner", "type": "address"},
                {"name": "_index", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "uint256"}],
        },
    ]


def get_lock_events_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the lock events inspected in receipts.

    ``Transfer`` is emitted when a key is minted and ``KeyExtended`` when an
    existing key is renewed. Locks older than version 10 renew through
    ``purchase`` and announce it with ``RenewKeyPurchase``, which names the
    owner but not the key id.
    """
    return [
        {
            "name": "Transfer",
            "type": "event",
            "anonymous": False,
            "inputs": [
                {"name": "from", "type": "address", "indexed": True},
                {"name": "to", "type": "address", "indexed": True},
                {"name": "tokenId", "type": "uint256", "indexed": True},
            ],
        },
        {
            "name": "KeyExtended",
            "type": "event",
            "anonymous": False,
            "inputs": [
                {"name": "tokenId", "type": "uint256", "indexed": True},
                {"name": "newTimestamp", "type": "uint256", "indexed": False},
            ],
        },
        {
            "name": "RenewKeyPurchase",
            "type": "event",
            "anonymous": False,
            "inputs": [
                {"name": "owner", "type": "address", "indexed": True},
                {"name": "newExpiration", "type": "uint256", "indexed": False},
            ],
        },
    ]


def get_batched_purchase_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for array-based ``purchase`` and ``extend`` (lock version >= 10).
    """
    return [
        {
            "name": "purchase",
            "type": "function",
            "stateMutability": "payable",
            "inputs": [
                {"name": "_values", "type": "uint256[]"},
                {"name": "_recipients", "type": "address[]"},
                {"name": "_referrers", "type": "address[]"},
                {"name": "_keyManagers", "type": "address[]"},
                {"name": "_data", "type": "bytes[]"},
            ],
            "outputs": [{"name": "", "type": "uint256[]"}],
        },
        {
            "name": "extend",
            "type": "function",
            "stateMutability": "payable",
            "inputs": [
                {"name": "_value", "type": "uint256"},
                {"name": "_tokenId", "type": "uint256"},
                {"name": "_referrer", "type": "address"},
                {"name": "_data", "type": "bytes"},
            ],
            "outputs": [],
        },
    ]


def get_single_purchase_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for single-recipient ``purchase`` (lock version < 10).
    """
    return [
        {
            "name": "purchase",
            "type": "function",
            "stateMutability": "payable",
            "inputs": [
                {"name": "_value", "type": "uint256"},
                {"name": "_recipient", "type": "address"},
                {"name": "_referrer", "type": "address"},
                {"name": "_keyManager", "type": "address"},
                {"name": "_data", "type": "bytes"},
            ],
            "outputs": [],
        }
    ]


def get_swap_purchaser_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the swap purchaser ``swapAndCall``.

    The contract swaps ``srcToken`` into the lock's currency through
    ``uniswapRouter`` (spending at most ``amountInMax``), then forwards
    ``callData`` to ``lock``.
    """
    return [
        {
            "name": "swapAndCall",
            "type": "function",
            "stateMutability": "payable",
            "inputs": [
                {"name": "lock", "type": "address"},
                {"name": "srcToken", "type": "address"},
                {"name": "amount", "type": "uint256"},
                {"name": "amountInMax", "type": "uint256"},
                {"name": "uniswapRouter", "type": "address"},
                {"name": "swapCalldata", "type": "bytes"},
                {"name": "callData", "type": "bytes"},
            ],
            "outputs": [{"name": "", "type": "bytes"}],
        }
    ]

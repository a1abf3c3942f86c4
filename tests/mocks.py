"""
Checkout Test Mocks Module

Mock blockchain state and utilities for testing the checkout engine without
network connectivity.

Key Components:
    - Mock addresses, keys, chain ids and prices
    - MockContract: per-address contract whose view results are configurable
    - MockWeb3Provider: AsyncWeb3 stand-in recording every broadcast and
      serving queued receipts
    - Log and receipt builders producing raw logs the real web3 event
      decoder accepts

Usage:
    from mocks import MockWeb3Provider, create_session, make_receipt

    provider = MockWeb3Provider()
    provider.contract_at(MOCK_LOCK_ADDRESS).set_result("keyPrice", MOCK_KEY_PRICE)
    session = create_session(provider)
"""

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, Mock
from types import SimpleNamespace

from eth_account import Account
from hexbytes import HexBytes
from web3 import AsyncWeb3, Web3

from lock_checkout.adapters.evm.adapter import WalletSession
from lock_checkout.adapters.evm.constants import ZERO_ADDRESS


# ========================================================================
# Mock Blockchain Constants
# ========================================================================

MOCK_CHAIN_ID = 8453
MOCK_CHAIN_ID_SOURCE = 10

MOCK_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
MOCK_SIGNER_ADDRESS = Account.from_key(MOCK_PRIVATE_KEY).address

MOCK_LOCK_ADDRESS = Web3.to_checksum_address("0x" + "a1" * 20)
MOCK_TOKEN_ADDRESS = Web3.to_checksum_address("0x" + "b2" * 20)
MOCK_SRC_TOKEN_ADDRESS = Web3.to_checksum_address("0x" + "c3" * 20)
MOCK_ROUTER_ADDRESS = Web3.to_checksum_address("0x" + "d4" * 20)
MOCK_SWAP_PURCHASER_ADDRESS = Web3.to_checksum_address("0x" + "e5" * 20)
MOCK_BRIDGE_ADDRESS = Web3.to_checksum_address("0x" + "f6" * 20)
MOCK_RECIPIENT = Web3.to_checksum_address("0x" + "17" * 20)
MOCK_RECIPIENT_2 = Web3.to_checksum_address("0x" + "28" * 20)

MOCK_KEY_PRICE = 5 * 10**18
MOCK_GAS_PRICE = 2_000_000_000
MOCK_BASE_FEE = 1_000_000_000
MOCK_PRIORITY_FEE = 100_000_000
MOCK_GAS_ESTIMATE = 200_000
MOCK_NATIVE_BALANCE = 100 * 10**18

TRANSFER_TOPIC = Web3.keccak(text="Transfer(address,address,uint256)")
KEY_EXTENDED_TOPIC = Web3.keccak(text="KeyExtended(uint256,uint256)")
RENEW_KEY_PURCHASE_TOPIC = Web3.keccak(text="RenewKeyPurchase(address,uint256)")


# ========================================================================
# Mock Web3 Provider Classes
# ========================================================================

class MockContract:
    """
    Mock contract for one address.

    Every view the engine reads (``keyPrice``, ``decimals``, ``allowance``,
    ...) is registered with :meth:`set_result`; unregistered names raise
    AttributeError instead of returning a silent Mock.
    """

    def __init__(self, address: str):
        self.address = address
        self.functions = SimpleNamespace()

    def set_result(self, name: str, value: Any = None, error: Optional[BaseException] = None) -> Mock:
        """Make ``functions.<name>(...).call()`` return ``value`` or raise ``error``."""
        call = Mock()
        call.call = AsyncMock(return_value=value) if error is None else AsyncMock(side_effect=error)
        function = Mock(return_value=call)
        setattr(self.functions, name, function)
        return function


async def _resolved(value: Any) -> Any:
    return value


class MockEth:
    """AsyncWeb3 ``eth`` namespace backed by a MockWeb3Provider."""

    def __init__(self, provider: "MockWeb3Provider"):
        self._provider = provider
        self.get_block = AsyncMock(side_effect=provider._get_block)
        self.estimate_gas = AsyncMock(return_value=provider.gas_estimate)
        self.get_transaction_count = AsyncMock(return_value=provider.tx_count)
        self.get_balance = AsyncMock(return_value=provider.native_balance)
        self.send_raw_transaction = AsyncMock(side_effect=provider._send_raw_transaction)
        self.send_transaction = AsyncMock(side_effect=provider._send_transaction)
        self.wait_for_transaction_receipt = AsyncMock(side_effect=provider._wait_for_receipt)
        self.contract = Mock(side_effect=provider._contract)

    @property
    def gas_price(self):
        return _resolved(self._provider.gas_price)

    @property
    def max_priority_fee(self):
        return _resolved(self._provider.priority_fee)


class MockWeb3Provider:
    """
    Mock AsyncWeb3 for one network.

    Attributes:
        contracts: Mock contracts by lower-cased address
        sent: Broadcast transactions in order (params dicts, or {"raw": ...})
        receipts: Queue of receipts served by wait_for_transaction_receipt;
            an empty queue yields a successful receipt without logs
        timeline: ("submitted" | "receipt", tx_hash) entries in call order
    """

    def __init__(
        self,
        gas_price: int = MOCK_GAS_PRICE,
        base_fee: Optional[int] = MOCK_BASE_FEE,
        priority_fee: int = MOCK_PRIORITY_FEE,
        gas_estimate: int = MOCK_GAS_ESTIMATE,
        native_balance: int = MOCK_NATIVE_BALANCE,
        tx_count: int = 0,
    ):
        self.gas_price = gas_price
        self.base_fee = base_fee
        self.priority_fee = priority_fee
        self.gas_estimate = gas_estimate
        self.native_balance = native_balance
        self.tx_count = tx_count

        self.contracts: Dict[str, MockContract] = {}
        self.sent: List[Dict[str, Any]] = []
        self.receipts: List[Dict[str, Any]] = []
        self.timeline: List[tuple] = []

        self.eth = MockEth(self)

    @staticmethod
    def to_checksum_address(address: str) -> str:
        return AsyncWeb3.to_checksum_address(address)

    def contract_at(self, address: str) -> MockContract:
        key = address.lower()
        if key not in self.contracts:
            self.contracts[key] = MockContract(address)
        return self.contracts[key]

    def queue_receipt(self, receipt: Dict[str, Any]) -> None:
        self.receipts.append(receipt)

    def _contract(self, address: str = None, abi: Any = None) -> MockContract:
        return self.contract_at(address)

    async def _get_block(self, block_identifier: Any) -> Dict[str, Any]:
        block = {"number": 100}
        if self.base_fee is not None:
            block["baseFeePerGas"] = self.base_fee
        return block

    def _record(self, entry: Dict[str, Any], tx_hash: HexBytes) -> HexBytes:
        self.sent.append(entry)
        self.timeline.append(("submitted", Web3.to_hex(tx_hash)))
        return tx_hash

    async def _send_transaction(self, params: Dict[str, Any]) -> HexBytes:
        return self._record(dict(params), Web3.keccak(text=f"tx-{len(self.sent)}"))

    async def _send_raw_transaction(self, raw: bytes) -> HexBytes:
        return self._record({"raw": bytes(raw)}, Web3.keccak(raw))

    async def _wait_for_receipt(self, tx_hash: Any, timeout: float = 120) -> Dict[str, Any]:
        self.timeline.append(("receipt", tx_hash if isinstance(tx_hash, str) else Web3.to_hex(tx_hash)))
        if self.receipts:
            return self.receipts.pop(0)
        return make_receipt()


def create_session(
    *providers: MockWeb3Provider,
    chain_ids: Optional[List[int]] = None,
    private_key: Optional[str] = None,
) -> WalletSession:
    """
    WalletSession wired to mock providers.

    Without ``private_key`` the session signs remotely, so broadcast params
    stay readable in ``provider.sent``.
    """
    if private_key:
        session = WalletSession(private_key=private_key)
    else:
        session = WalletSession(address=MOCK_SIGNER_ADDRESS)
    chain_ids = chain_ids or [MOCK_CHAIN_ID]
    for chain_id, provider in zip(chain_ids, providers):
        session._web3_instances[chain_id] = provider
    return session


def setup_lock(
    provider: MockWeb3Provider,
    version: int = 13,
    key_price: int = MOCK_KEY_PRICE,
    currency: str = ZERO_ADDRESS,
    lock_address: str = MOCK_LOCK_ADDRESS,
) -> MockContract:
    """Register the lock views with sensible defaults."""
    lock = provider.contract_at(lock_address)
    lock.set_result("publicLockVersion", version)
    lock.set_result("keyPrice", key_price)
    lock.set_result("tokenAddress", currency)
    return lock


def setup_token(
    provider: MockWeb3Provider,
    allowance: int = 0,
    balance: int = 10**30,
    decimals: int = 6,
    token_address: str = MOCK_TOKEN_ADDRESS,
) -> MockContract:
    """Register the ERC20 views with sensible defaults."""
    token = provider.contract_at(token_address)
    token.set_result("allowance", allowance)
    token.set_result("balanceOf", balance)
    token.set_result("decimals", decimals)
    return token


# ========================================================================
# Mock Logs and Receipts
# ========================================================================

def _address_topic(address: str) -> HexBytes:
    return HexBytes(b"\x00" * 12 + bytes.fromhex(address[2:]))


def _uint_word(value: int) -> HexBytes:
    return HexBytes(value.to_bytes(32, "big"))


def _log(emitter: str, topics: List[HexBytes], data: bytes, log_index: int) -> Dict[str, Any]:
    return {
        "address": emitter,
        "topics": topics,
        "data": HexBytes(data),
        "blockHash": HexBytes(b"\x12" * 32),
        "blockNumber": 100,
        "transactionHash": HexBytes(b"\x34" * 32),
        "transactionIndex": 0,
        "logIndex": log_index,
        "removed": False,
    }


def make_transfer_log(
    emitter: str,
    to: str,
    token_id: int,
    from_address: str = ZERO_ADDRESS,
    log_index: int = 0,
) -> Dict[str, Any]:
    """Key-shaped ``Transfer(from, to, tokenId)`` with all three arguments indexed."""
    topics = [TRANSFER_TOPIC, _address_topic(from_address), _address_topic(to), _uint_word(token_id)]
    return _log(emitter, topics, b"", log_index)


def make_erc20_transfer_log(emitter: str, from_address: str, to: str, amount: int, log_index: int = 0) -> Dict[str, Any]:
    """Token ``Transfer(from, to, value)`` with the value in data."""
    topics = [TRANSFER_TOPIC, _address_topic(from_address), _address_topic(to)]
    return _log(emitter, topics, bytes(_uint_word(amount)), log_index)


def make_key_extended_log(emitter: str, token_id: int, new_timestamp: int = 1_900_000_000, log_index: int = 0) -> Dict[str, Any]:
    topics = [KEY_EXTENDED_TOPIC, _uint_word(token_id)]
    return _log(emitter, topics, bytes(_uint_word(new_timestamp)), log_index)


def make_renew_key_purchase_log(
    emitter: str,
    owner: str,
    new_expiration: int = 1_900_000_000,
    log_index: int = 0,
) -> Dict[str, Any]:
    """Legacy lock renewal: ``RenewKeyPurchase(owner, newExpiration)``."""
    topics = [RENEW_KEY_PURCHASE_TOPIC, _address_topic(owner)]
    return _log(emitter, topics, bytes(_uint_word(new_expiration)), log_index)


def make_receipt(status: int = 1, logs: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    return {
        "transactionHash": HexBytes(b"\x34" * 32),
        "blockNumber": 100,
        "blockHash": HexBytes(b"\x12" * 32),
        "status": status,
        "gasUsed": 150_000,
        "effectiveGasPrice": MOCK_GAS_PRICE,
        "from": MOCK_SIGNER_ADDRESS,
        "logs": logs or [],
    }


def decode_call(abi: List[Dict[str, Any]], data: str) -> Dict[str, Any]:
    """Decode call data against ``abi`` into its named arguments."""
    _, params = Web3().eth.contract(abi=abi).decode_function_input(data)
    return dict(params)

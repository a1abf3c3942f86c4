"""
Lock Call Construction

Builds the transaction plans that purchase or renew keys:

* Direct purchase: one batched ``purchase`` for N recipients on locks that
  advertise array arguments (``publicLockVersion() >= 10``), otherwise one
  single-recipient ``purchase`` per recipient.
* Renewal: ``extend`` on batched locks; older locks renew through
  ``purchase`` for the existing owner.
* Swap-and-purchase: the direct call data wrapped in ``swapAndCall`` on the
  network's swap purchaser; the swap route decides the attached value.

Encoding is done offline; only the lock reads go to the network.
"""

from typing import List, Optional, Sequence

import structlog
from web3 import AsyncWeb3, Web3

from .constants import BATCHED_PURCHASE_MIN_VERSION, is_native_currency
from .LOCK_ABI import (
    get_batched_purchase_abi,
    get_lock_read_abi,
    get_single_purchase_abi,
    get_swap_purchaser_abi,
)
from .schemas import TransactionPlan
from ...engine.exceptions import ConfigurationError, RequestValidationError
from ...schemas.purchases import PurchaseRequest, SwapRoute

logger = structlog.get_logger(__name__)

# Provider-less client used only for ABI encoding.
_codec = Web3()


def _to_bytes(payload: str) -> bytes:
    return Web3.to_bytes(hexstr=payload) if payload and payload != "0x" else b""


def _checksum_all(addresses: Sequence[str]) -> List[str]:
    return [Web3.to_checksum_address(a) for a in addresses]


def encode_batched_purchase(
    amounts: Sequence[int],
    recipients: Sequence[str],
    referrers: Sequence[str],
    key_managers: Sequence[str],
    data: Sequence[str],
) -> str:
    """Call data for the array-based ``purchase``."""
    contract = _codec.eth.contract(abi=get_batched_purchase_abi())
    return contract.encode_abi("purchase", args=[
        list(amounts),
        _checksum_all(recipients),
        _checksum_all(referrers),
        _checksum_all(key_managers),
        [_to_bytes(d) for d in data],
    ])


def encode_single_purchase(amount: int, recipient: str, referrer: str, key_manager: str, data: str) -> str:
    """Call data for the single-recipient ``purchase``."""
    contract = _codec.eth.contract(abi=get_single_purchase_abi())
    return contract.encode_abi("purchase", args=[
        amount,
        Web3.to_checksum_address(recipient),
        Web3.to_checksum_address(referrer),
        Web3.to_checksum_address(key_manager),
        _to_bytes(data),
    ])


def encode_extend(amount: int, token_id: int, referrer: str, data: str) -> str:
    """Call data for ``extend``."""
    contract = _codec.eth.contract(abi=get_batched_purchase_abi())
    return contract.encode_abi("extend", args=[
        amount,
        token_id,
        Web3.to_checksum_address(referrer),
        _to_bytes(data),
    ])


class CallBuilder:
    """
    Builds purchase, renewal and swap-and-purchase plans for one network.

    Attributes:
        w3: AsyncWeb3 client used for lock capability reads
        swap_purchaser_address: Swap purchaser contract on this network, if any
    """

    def __init__(self, w3: AsyncWeb3, swap_purchaser_address: Optional[str] = None):
        self.w3 = w3
        self.swap_purchaser_address = swap_purchaser_address

    async def query_lock_version(self, lock_address: str) -> int:
        lock = self.w3.eth.contract(address=self.w3.to_checksum_address(lock_address), abi=get_lock_read_abi())
        return int(await lock.functions.publicLockVersion().call())

    async def supports_batched(self, lock_address: str) -> bool:
        """True when the lock accepts array-based purchase and ``extend``."""
        return await self.query_lock_version(lock_address) >= BATCHED_PURCHASE_MIN_VERSION

    async def query_token_id(self, lock_address: str, owner: str) -> int:
        """First key id owned by ``owner`` on the lock."""
        lock = self.w3.eth.contract(address=self.w3.to_checksum_address(lock_address), abi=get_lock_read_abi())
        return int(await lock.functions.tokenOfOwnerByIndex(self.w3.to_checksum_address(owner), 0).call())

    async def build_purchase_calls(
        self,
        request: PurchaseRequest,
        amounts: Sequence[int],
        currency_address: Optional[str],
    ) -> List[TransactionPlan]:
        """
        Build the plans that buy keys for every recipient of ``request``.

        Args:
            request: Purchase request (``renew`` is ignored here).
            amounts: Resolved base-unit amount per recipient.
            currency_address: Lock currency; native locks get ``value`` attached.

        Returns:
            One plan for batched locks, one plan per recipient otherwise.
        """
        lock = Web3.to_checksum_address(request.lock_address)
        native = is_native_currency(currency_address)
        referrers = request.resolved_referrers
        managers = request.resolved_key_managers
        data = request.resolved_data

        if await self.supports_batched(lock):
            call_data = encode_batched_purchase(amounts, request.recipients, referrers, managers, data)
            return [TransactionPlan(to=lock, data=call_data, value=sum(amounts) if native else 0)]

        plans = []
        for i, recipient in enumerate(request.recipients):
            call_data = encode_single_purchase(amounts[i], recipient, referrers[i], managers[i], data[i])
            plans.append(TransactionPlan(to=lock, data=call_data, value=amounts[i] if native else 0))
        return plans

    async def build_extend_call(
        self,
        request: PurchaseRequest,
        amount: int,
        currency_address: Optional[str],
    ) -> TransactionPlan:
        """
        Build the plan renewing the single recipient's key.

        The key id comes from ``request.token_ids`` or, when absent, from
        the recipient's first owned key. Locks without ``extend`` renew
        through ``purchase`` for the existing owner.
        """
        lock = Web3.to_checksum_address(request.lock_address)
        value = amount if is_native_currency(currency_address) else 0
        recipient = request.recipients[0]
        referrer = request.resolved_referrers[0]
        payload = request.resolved_data[0]

        if not await self.supports_batched(lock):
            call_data = encode_single_purchase(
                amount, recipient, referrer, request.resolved_key_managers[0], payload
            )
            return TransactionPlan(to=lock, data=call_data, value=value)

        if request.token_ids:
            token_id = request.token_ids[0]
        else:
            token_id = await self.query_token_id(lock, recipient)
        return TransactionPlan(to=lock, data=encode_extend(amount, token_id, referrer, payload), value=value)

    def wrap_swap(self, lock_address: str, inner: TransactionPlan, route: SwapRoute, amount: int) -> TransactionPlan:
        """
        Wrap ``inner`` in ``swapAndCall`` on the swap purchaser.

        The attached value is ``route.value``; the inner plan's value is
        discarded.

        Raises:
            ConfigurationError: If no swap purchaser is configured.
        """
        if not self.swap_purchaser_address:
            raise ConfigurationError("No swap purchaser contract configured for this network")

        purchaser = Web3.to_checksum_address(self.swap_purchaser_address)
        contract = _codec.eth.contract(abi=get_swap_purchaser_abi())
        call_data = contract.encode_abi("swapAndCall", args=[
            Web3.to_checksum_address(lock_address),
            Web3.to_checksum_address(route.src_token_address),
            amount,
            route.amount_in_max,
            Web3.to_checksum_address(route.router),
            _to_bytes(route.swap_calldata),
            _to_bytes(inner.data),
        ])
        logger.debug(
            "swap_wrapped",
            lock=lock_address,
            amount=amount,
            amount_in_max=route.amount_in_max,
            router=route.router,
        )
        return TransactionPlan(to=purchaser, data=call_data, value=route.value)

    async def build(
        self,
        request: PurchaseRequest,
        amounts: Sequence[int],
        currency_address: Optional[str],
    ) -> List[TransactionPlan]:
        """
        Select and build the plans for ``request``.

        ``renew`` and ``swap`` are orthogonal: a renewal can be swap-funded.

        Raises:
            RequestValidationError: If a swap would need more than one
                inner call (single-recipient lock, several recipients).
            ConfigurationError: If a swap is requested without a purchaser.
        """
        if request.renew:
            plans = [await self.build_extend_call(request, amounts[0], currency_address)]
        else:
            plans = await self.build_purchase_calls(request, amounts, currency_address)

        if request.swap is None:
            return plans
        if len(plans) != 1:
            raise RequestValidationError(
                "swap-and-purchase needs a lock that batches recipients; "
                f"this lock would need {len(plans)} separate purchases"
            )
        return [self.wrap_swap(request.lock_address, plans[0], request.swap, sum(amounts))]

"""
Purchase Orchestration

Sequences one purchase (or renewal) attempt:

    amounts -> allowance -> funds check -> call plans -> gas -> broadcast
    -> tx-hash callback -> confirmation

Every stage is awaited in order; nothing fans out across recipients. The
approval is mined before any spending call is built. Lookup, approval and
broadcast errors propagate unchanged and end the attempt; gas estimation
failures are absorbed by the estimator.
"""

import inspect
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

import structlog

from ..adapters.evm.adapter import WalletSession
from ..adapters.evm.allowances import ensure_allowance, query_erc20_balance
from ..adapters.evm.amounts import query_lock_currency, resolve_amounts
from ..adapters.evm.calls import CallBuilder
from ..adapters.evm.constants import get_swap_purchaser_from_env, is_native_currency
from ..adapters.evm.gas import apply_gas_estimate, estimate_gas
from ..adapters.evm.receipts import resolve_confirmation
from ..adapters.evm.schemas import TransactionPlan
from ..schemas.bases import PurchaseStatus
from ..schemas.purchases import CrossChainRoute, PurchaseOutcome, PurchaseRequest
from .exceptions import ConfigurationError, InsufficientValueError, RequestValidationError

logger = structlog.get_logger(__name__)

#: Called with each transaction hash as soon as the node accepts it.
SubmittedCallback = Callable[[str], Union[None, Awaitable[None]]]


async def _notify(callback: Optional[SubmittedCallback], tx_hash: str) -> None:
    if callback is None:
        return
    result = callback(tx_hash)
    if inspect.isawaitable(result):
        await result


class PurchaseOrchestrator:
    """
    Runs purchase attempts through one wallet session.

    Attributes:
        session: Signing session used for reads, approvals and broadcasts
        swap_purchaser_addresses: Swap purchaser contract per chain id;
            networks missing here fall back to ``EVM_SWAP_PURCHASER_<chain_id>``

    Example:
        orchestrator = PurchaseOrchestrator(WalletSession())
        outcome = await orchestrator.purchase(
            PurchaseRequest(lock_address=lock, network=8453, recipients=[me])
        )
        print(outcome.token_ids)
    """

    def __init__(
        self,
        session: WalletSession,
        swap_purchaser_addresses: Optional[Dict[int, str]] = None,
    ):
        self.session = session
        self.swap_purchaser_addresses = dict(swap_purchaser_addresses or {})

    def _swap_purchaser(self, chain_id: int) -> Optional[str]:
        return self.swap_purchaser_addresses.get(chain_id) or get_swap_purchaser_from_env(chain_id)

    def call_builder(self, chain_id: int) -> CallBuilder:
        return CallBuilder(self.session.web3(chain_id), self._swap_purchaser(chain_id))

    async def _check_funds(self, request: PurchaseRequest, amounts: List[int], currency: Optional[str]) -> None:
        """
        Fail before broadcast when the signer visibly cannot pay.

        Swaps are only checked for the native value they forward; the swap
        itself is bounded on chain by the slippage cap.
        """
        w3 = self.session.web3(request.network)
        if request.swap is not None:
            required, token = request.swap.value, None
        else:
            required, token = sum(amounts), currency

        if required == 0:
            return
        if is_native_currency(token):
            available = await self.session.get_native_balance(request.network)
        else:
            available = await query_erc20_balance(w3, token, self.session.wallet_address)

        if available < required:
            raise InsufficientValueError(
                f"Insufficient funds: {required} required, {available} available",
                required=required,
                available=available,
            )

    async def _approve(
        self,
        request: PurchaseRequest,
        amounts: List[int],
        currency: Optional[str],
        builder: CallBuilder,
    ) -> Optional[str]:
        """
        Make sure the spending contract may pull the payment.

        Direct purchases approve the lock for the key prices times the
        recurring payments; swaps approve the swap purchaser for the
        slippage-bounded input of the source token.
        """
        if request.swap is not None:
            if not builder.swap_purchaser_address:
                raise ConfigurationError(f"No swap purchaser contract configured for network {request.network}")
            token = request.swap.src_token_address
            spender = builder.swap_purchaser_address
            required = request.swap.amount_in_max
        else:
            token = currency
            spender = request.lock_address
            recurring = request.recurring_payments or [1] * request.size
            required = sum(amount * max(1, count) for amount, count in zip(amounts, recurring))

        cap = request.total_approval if request.total_approval is not None else required
        return await ensure_allowance(
            self.session, request.network, token, spender, required, cap=max(cap, required)
        )

    async def _legacy_renewal(
        self,
        request: PurchaseRequest,
        builder: CallBuilder,
    ) -> Tuple[Optional[str], Optional[int]]:
        """
        Owner and key id of a renewal on a lock without ``extend``.

        Such locks renew through ``purchase`` and report only the owner, so
        the key id is taken from the request or read from the lock before
        broadcast.
        """
        if not request.renew or await builder.supports_batched(request.lock_address):
            return None, None
        owner = request.recipients[0]
        if request.token_ids:
            return owner, request.token_ids[0]
        return owner, await builder.query_token_id(request.lock_address, owner)

    async def _submit(self, plan: TransactionPlan, chain_id: int, on_submitted: Optional[SubmittedCallback]) -> str:
        w3 = self.session.web3(chain_id)
        estimate = await estimate_gas(w3, plan, self.session.wallet_address)
        tx_hash = await self.session.send_transaction(apply_gas_estimate(plan, estimate), chain_id)
        await _notify(on_submitted, tx_hash)
        return tx_hash

    async def purchase(
        self,
        request: PurchaseRequest,
        on_submitted: Optional[SubmittedCallback] = None,
    ) -> PurchaseOutcome:
        """
        Buy (or renew) keys for every recipient of ``request``.

        Args:
            request: Validated purchase request.
            on_submitted: Optional callback receiving each transaction hash
                before its receipt is awaited.

        Returns:
            PurchaseOutcome: CONFIRMED with the key ids, or UNCONFIRMED when
            a mined transaction carried no key event.

        Raises:
            RequestValidationError: Swap requested on a single-recipient lock for N > 1.
            ConfigurationError: Swap requested without a swap purchaser.
            InsufficientValueError: Signer balance below the payment.
            ApprovalFailedError: Approval reverted or was not mined.
            TransactionFailedError: Purchase transaction reverted.
            UserRejectedError: Signer declined a transaction.
            Web3Exception: Lookup and broadcast errors, unchanged.
        """
        chain_id = request.network
        w3 = self.session.web3(chain_id)
        builder = self.call_builder(chain_id)
        logger.info(
            "purchase_started",
            lock=request.lock_address,
            network=chain_id,
            recipients=request.size,
            renew=request.renew,
            swap=request.swap is not None,
        )

        if request.swap is not None and request.size > 1 and not await builder.supports_batched(request.lock_address):
            raise RequestValidationError("swap-and-purchase for several recipients needs a lock that batches recipients")

        currency = request.currency_address
        if currency is None:
            currency = await query_lock_currency(w3, request.lock_address)

        amounts = await resolve_amounts(
            w3, request.lock_address, request.key_prices, request.size, request.decimals, currency
        )
        logger.debug("amounts_resolved", lock=request.lock_address, amounts=amounts, currency=currency)

        await self._check_funds(request, amounts, currency)
        approval_hash = await self._approve(request, amounts, currency, builder)

        plans = await builder.build(request, amounts, currency)
        renewed_owner, renewed_token_id = await self._legacy_renewal(request, builder)

        hashes: List[str] = []
        token_ids: List[int] = []
        confirmed = True
        for plan in plans:
            tx_hash = await self._submit(plan, chain_id, on_submitted)
            hashes.append(tx_hash)
            outcome = await resolve_confirmation(
                self.session,
                chain_id,
                tx_hash,
                request.lock_address,
                renew=request.renew,
                renewed_owner=renewed_owner,
                renewed_token_id=renewed_token_id,
            )
            token_ids.extend(outcome.token_ids)
            confirmed = confirmed and outcome.is_confirmed()

        result = PurchaseOutcome(
            status=PurchaseStatus.CONFIRMED if confirmed else PurchaseStatus.UNCONFIRMED,
            network=chain_id,
            transaction_hashes=([approval_hash] if approval_hash else []) + hashes,
            token_ids=token_ids,
            message=None if confirmed else "Transaction succeeded but no key event was found",
        )
        logger.info("purchase_finished", **result.to_log_dict())
        return result

    async def purchase_cross_chain(
        self,
        route: CrossChainRoute,
        on_submitted: Optional[SubmittedCallback] = None,
    ) -> PurchaseOutcome:
        """
        Send a pre-built bridge transaction on ``route.network``.

        The key is minted on the destination network by the bridge, so the
        outcome is SUBMITTED and carries no key id.
        """
        if route.value:
            available = await self.session.get_native_balance(route.network)
            if available < route.value:
                raise InsufficientValueError(
                    f"Insufficient funds: {route.value} required, {available} available",
                    required=route.value,
                    available=available,
                )

        plan = TransactionPlan(to=route.to, data=route.data, value=route.value)
        tx_hash = await self._submit(plan, route.network, on_submitted)
        logger.info("cross_chain_submitted", network=route.network, tx_hash=tx_hash)
        return PurchaseOutcome(
            status=PurchaseStatus.SUBMITTED,
            network=route.network,
            transaction_hashes=[tx_hash],
        )

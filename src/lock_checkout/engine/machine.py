"""
Checkout State Machine

Walks one user session through data collection, pricing, payment selection
and confirmation, running the purchase orchestrator once per confirm.

Transitions are a table from (state, event type) to a payload transform;
anything not in the table raises :class:`InvalidTransition`. At most one
purchase attempt runs per machine: a confirm arriving while one is in
flight raises :class:`PurchaseInFlightError` and the first attempt's
outcome stands.
"""

import asyncio
import inspect
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Type

import structlog

from ..schemas.bases import PurchaseStatus
from ..schemas.purchases import (
    CrossChainPayment,
    PurchaseOutcome,
    PurchaseRequest,
    SwapPayment,
)
from .events import (
    BaseEvent,
    ConfirmEvent,
    Dependencies,
    MintConfirmedEvent,
    MintFailedEvent,
    MintSubmittedEvent,
    PricingFailedEvent,
    PricingReadyEvent,
    ResetEvent,
    SelectLockEvent,
    SelectPaymentEvent,
    SelectRecipientsEvent,
    SubmitDataEvent,
)
from .exceptions import InvalidTransition, PurchaseInFlightError, classify_error
from .states import (
    CheckoutPayload,
    CheckoutState,
    ConfirmedPayload,
    ConfirmingPayload,
    DataCollectionPayload,
    ErrorPayload,
    MintingPayload,
    PaymentSelectedPayload,
    PricingPayload,
)

logger = structlog.get_logger(__name__)

TransitionHook = Callable[[CheckoutPayload, Dependencies], Awaitable[None]]
Transform = Callable[[CheckoutPayload, BaseEvent], CheckoutPayload]


# ==================== Transforms ====================

def _select_lock(payload: DataCollectionPayload, event: SelectLockEvent) -> DataCollectionPayload:
    context = payload.context.model_copy(update={"lock": event.lock})
    return DataCollectionPayload(context=context)


def _select_recipients(payload: DataCollectionPayload, event: SelectRecipientsEvent) -> DataCollectionPayload:
    context = payload.context.model_copy(update=event.model_dump())
    return DataCollectionPayload(context=context)


def _submit_data(payload: DataCollectionPayload, event: SubmitDataEvent) -> PricingPayload:
    if not payload.context.is_complete:
        raise InvalidTransition(
            "A lock and at least one recipient are required before pricing",
            state=payload.state,
            event_type=type(event).__name__,
        )
    context = payload.context.model_copy(update={"metadata": dict(event.metadata)})
    return PricingPayload(context=context)


def _pricing_ready(payload: PricingPayload, event: PricingReadyEvent) -> PricingPayload:
    return PricingPayload(context=payload.context, pricing=event.pricing)


def _pricing_failed(payload: PricingPayload, event: PricingFailedEvent) -> PricingPayload:
    return PricingPayload(context=payload.context, pricing_error=event.error_message)


def _select_payment(payload, event: SelectPaymentEvent) -> PaymentSelectedPayload:
    if isinstance(payload, PricingPayload) and not payload.is_ready:
        raise InvalidTransition(
            "Pricing is not available yet" if payload.pricing_error is None
            else f"Pricing failed: {payload.pricing_error}",
            state=payload.state,
            event_type=type(event).__name__,
        )
    return PaymentSelectedPayload(context=payload.context, pricing=payload.pricing, payment=event.payment)


def _confirm(payload, event: ConfirmEvent) -> ConfirmingPayload:
    return ConfirmingPayload(context=payload.context, pricing=payload.pricing, payment=payload.payment)


def _mint_submitted(payload, event: MintSubmittedEvent) -> MintingPayload:
    hashes = list(payload.transaction_hashes) if isinstance(payload, MintingPayload) else []
    return MintingPayload(
        context=payload.context,
        pricing=payload.pricing,
        payment=payload.payment,
        network=event.network,
        transaction_hashes=hashes + [event.transaction_hash],
    )


def _mint_confirmed(payload: MintingPayload, event: MintConfirmedEvent) -> ConfirmedPayload:
    outcome = event.outcome
    return ConfirmedPayload(
        network=outcome.network,
        status=outcome.status,
        confirmed=outcome.status == PurchaseStatus.CONFIRMED,
        token_ids=outcome.token_ids,
        transaction_hashes=outcome.transaction_hashes,
    )


def _mint_failed(payload, event: MintFailedEvent) -> ErrorPayload:
    tx_hash = event.transaction_hash
    if tx_hash is None and isinstance(payload, MintingPayload) and payload.transaction_hashes:
        tx_hash = payload.transaction_hashes[-1]
    return ErrorPayload(
        reason=event.reason,
        message=event.error_message,
        network=event.network,
        transaction_hash=tx_hash,
        context=payload.context,
        pricing=payload.pricing,
        payment=payload.payment,
    )


def _reset(payload, event: ResetEvent) -> DataCollectionPayload:
    return DataCollectionPayload()


TRANSITIONS: Dict[Tuple[CheckoutState, Type[BaseEvent]], Transform] = {
    (CheckoutState.DATA_COLLECTION, SelectLockEvent): _select_lock,
    (CheckoutState.DATA_COLLECTION, SelectRecipientsEvent): _select_recipients,
    (CheckoutState.DATA_COLLECTION, SubmitDataEvent): _submit_data,
    (CheckoutState.PRICING, PricingReadyEvent): _pricing_ready,
    (CheckoutState.PRICING, PricingFailedEvent): _pricing_failed,
    (CheckoutState.PRICING, SelectPaymentEvent): _select_payment,
    (CheckoutState.PAYMENT_METHOD_SELECTED, SelectPaymentEvent): _select_payment,
    (CheckoutState.PAYMENT_METHOD_SELECTED, ConfirmEvent): _confirm,
    (CheckoutState.CONFIRMING, MintSubmittedEvent): _mint_submitted,
    (CheckoutState.CONFIRMING, MintFailedEvent): _mint_failed,
    (CheckoutState.MINTING, MintSubmittedEvent): _mint_submitted,
    (CheckoutState.MINTING, MintConfirmedEvent): _mint_confirmed,
    (CheckoutState.MINTING, MintFailedEvent): _mint_failed,
    (CheckoutState.ERROR, ConfirmEvent): _confirm,
}


# ==================== Machine ====================

class CheckoutMachine:
    """
    Checkout controller for one user session.

    Attributes:
        deps: Orchestrator and pricing collaborator
        payload: Current state payload

    Example:
        machine = CheckoutMachine(Dependencies(orchestrator=orch, pricing=pricing))
        await machine.send(SelectLockEvent(lock=lock))
        await machine.send(SelectRecipientsEvent(recipients=[me]))
        await machine.send(SubmitDataEvent())
        await machine.compute_pricing()
        await machine.send(SelectPaymentEvent(payment=CryptoPayment()))
        result = await machine.confirm()
    """

    def __init__(self, deps: Dependencies, payload: Optional[CheckoutPayload] = None):
        self.deps = deps
        self.payload: CheckoutPayload = payload if payload is not None else DataCollectionPayload()
        self._in_flight = False
        self._hooks: Dict[CheckoutState, List[TransitionHook]] = {}

    @property
    def state(self) -> CheckoutState:
        return self.payload.state

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def hook(self, state: CheckoutState, hook_func: TransitionHook) -> None:
        """
        Register a hook run after every transition into ``state``.

        A failing hook is logged and does not affect the transition, so a
        broadcast purchase is always followed to its outcome.

        Raises:
            TypeError: If hook_func is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Hook must be a coroutine function, got {type(hook_func).__name__}")
        self._hooks.setdefault(state, []).append(hook_func)

    async def send(self, event: BaseEvent) -> CheckoutPayload:
        """
        Apply ``event`` to the current state.

        Raises:
            InvalidTransition: If the event is not valid in the current state.
            PurchaseInFlightError: If a reset arrives during a purchase attempt.
        """
        previous = self.state
        if isinstance(event, ResetEvent):
            if self._in_flight:
                raise PurchaseInFlightError(
                    "Cannot reset while a purchase is in flight", state=previous, event_type="ResetEvent"
                )
            transform: Optional[Transform] = _reset
        else:
            transform = TRANSITIONS.get((previous, type(event)))
        if transform is None:
            raise InvalidTransition(
                f"{type(event).__name__} is not valid in state {previous.value}",
                state=previous,
                event_type=type(event).__name__,
            )

        self.payload = transform(self.payload, event)
        logger.info("checkout_transition", transition=repr(event), from_state=previous.value, to_state=self.state.value)

        hooks = self._hooks.get(self.state, [])
        results = await asyncio.gather(
            *(hook(self.payload, self.deps) for hook in hooks), return_exceptions=True
        )
        for hook, result in zip(hooks, results):
            if isinstance(result, Exception):
                logger.warning(
                    "transition_hook_failed",
                    hook=getattr(hook, "__qualname__", repr(hook)),
                    state=self.state.value,
                    error=str(result),
                )
            elif isinstance(result, BaseException):
                raise result
        return self.payload

    async def compute_pricing(self) -> CheckoutPayload:
        """
        Ask the pricing collaborator for the current context.

        Pricing failures are recorded in the PRICING payload and block payment
        selection; they do not raise.
        """
        if not isinstance(self.payload, PricingPayload):
            raise InvalidTransition(
                f"Pricing is only computed in state {CheckoutState.PRICING.value}",
                state=self.state,
                event_type="compute_pricing",
            )
        if self.deps.pricing is None:
            return await self.send(PricingFailedEvent(error_message="No pricing source configured"))

        context = self.payload.context
        try:
            pricing = await self.deps.pricing.get_pricing(context.lock, list(context.recipients), dict(context.metadata))
        except Exception as e:
            logger.warning("pricing_failed", lock=context.lock.address, error=str(e))
            return await self.send(PricingFailedEvent(error_message=str(e)))
        return await self.send(PricingReadyEvent(pricing=pricing))

    def build_request(self, payload: ConfirmingPayload) -> PurchaseRequest:
        """
        Purchase request for a confirmed payment choice.

        Prices come from the pricing result so the user pays what was shown.
        """
        context = payload.context
        lock = context.lock
        prices = [p.amount for p in payload.pricing.prices] or None
        return PurchaseRequest.build(
            lock_address=lock.address,
            network=lock.network,
            recipients=context.recipients,
            key_prices=prices,
            decimals=lock.decimals,
            currency_address=lock.currency_address,
            key_managers=context.key_managers,
            referrers=context.referrers,
            data=context.data,
            recurring_payments=context.recurring_payments,
            total_approval=context.total_approval,
            renew=context.renew,
            token_ids=context.token_ids,
            swap=payload.payment.route if isinstance(payload.payment, SwapPayment) else None,
        )

    async def _run_purchase(self, payload: ConfirmingPayload) -> PurchaseOutcome:
        orchestrator = self.deps.orchestrator
        if isinstance(payload.payment, CrossChainPayment):
            route = payload.payment.route
            network = route.network
        else:
            route = None
            network = payload.context.lock.network

        async def on_submitted(tx_hash: str) -> None:
            await self.send(MintSubmittedEvent(network=network, transaction_hash=tx_hash))

        if route is not None:
            return await orchestrator.purchase_cross_chain(route, on_submitted=on_submitted)
        return await orchestrator.purchase(self.build_request(payload), on_submitted=on_submitted)

    async def confirm(self) -> CheckoutPayload:
        """
        Run the purchase for the selected payment method.

        Moves to CONFIRMING, then MINTING when the transaction hash is known,
        then CONFIRMED. Any failure of the attempt lands in ERROR with a
        classified reason; the in-flight flag is always cleared so the user
        can retry from ERROR.

        Returns:
            CheckoutPayload: ConfirmedPayload or ErrorPayload.

        Raises:
            PurchaseInFlightError: If an attempt is already running.
            InvalidTransition: If the current state cannot be confirmed.
        """
        if self._in_flight:
            raise PurchaseInFlightError(
                "A purchase is already in flight for this checkout",
                state=self.state,
                event_type="ConfirmEvent",
            )
        self._in_flight = True
        try:
            payload = await self.send(ConfirmEvent())
            try:
                outcome = await self._run_purchase(payload)
            except Exception as e:
                reason = classify_error(e)
                logger.warning("purchase_failed", reason=reason.value, error=str(e))
                network = payload.context.lock.network if payload.context.lock else None
                if isinstance(payload.payment, CrossChainPayment):
                    network = payload.payment.route.network
                return await self.send(MintFailedEvent(
                    reason=reason,
                    error_message=str(e),
                    network=network,
                    transaction_hash=getattr(e, "tx_hash", None),
                ))

            if self.state == CheckoutState.CONFIRMING and outcome.transaction_hash:
                await self.send(MintSubmittedEvent(network=outcome.network, transaction_hash=outcome.transaction_hash))
            return await self.send(MintConfirmedEvent(outcome=outcome))
        finally:
            self._in_flight = False

"""
Checkout states and their payloads.

Each state carries exactly the data valid in that state; the ``state`` field
discriminates the union, so nothing downstream has to guess which fields are
set.

    DATA_COLLECTION -> PRICING -> PAYMENT_METHOD_SELECTED -> CONFIRMING
        -> MINTING -> CONFIRMED
        -> ERROR (retry goes back to CONFIRMING)
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import Field
from typing_extensions import Annotated

from ..schemas.bases import CanonicalModel, ErrorReason, PurchaseStatus
from ..schemas.purchases import LockInfo, PaymentMethod, PricingResult


class CheckoutState(str, Enum):
    DATA_COLLECTION = "data_collection"
    PRICING = "pricing"
    PAYMENT_METHOD_SELECTED = "payment_method_selected"
    CONFIRMING = "confirming"
    MINTING = "minting"
    CONFIRMED = "confirmed"
    ERROR = "error"


class CheckoutContext(CanonicalModel):
    """
    What the user chose during data collection.

    Per-recipient lists, when set, follow ``recipients`` order; their
    lengths are checked when the purchase request is built.
    """

    lock: Optional[LockInfo] = None
    recipients: List[str] = Field(default_factory=list)
    key_managers: Optional[List[str]] = None
    referrers: Optional[List[str]] = None
    data: Optional[List[str]] = None
    recurring_payments: Optional[List[int]] = None
    total_approval: Optional[int] = None
    renew: bool = False
    token_ids: Optional[List[int]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return self.lock is not None and len(self.recipients) > 0


class DataCollectionPayload(CanonicalModel):
    state: Literal[CheckoutState.DATA_COLLECTION] = CheckoutState.DATA_COLLECTION
    context: CheckoutContext = Field(default_factory=CheckoutContext)


class PricingPayload(CanonicalModel):
    """Waiting for pricing; payment selection is blocked until ``pricing`` is set without error."""
    state: Literal[CheckoutState.PRICING] = CheckoutState.PRICING
    context: CheckoutContext
    pricing: Optional[PricingResult] = None
    pricing_error: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.pricing is not None and self.pricing_error is None


class PaymentSelectedPayload(CanonicalModel):
    state: Literal[CheckoutState.PAYMENT_METHOD_SELECTED] = CheckoutState.PAYMENT_METHOD_SELECTED
    context: CheckoutContext
    pricing: PricingResult
    payment: PaymentMethod


class ConfirmingPayload(CanonicalModel):
    state: Literal[CheckoutState.CONFIRMING] = CheckoutState.CONFIRMING
    context: CheckoutContext
    pricing: PricingResult
    payment: PaymentMethod


class MintingPayload(CanonicalModel):
    state: Literal[CheckoutState.MINTING] = CheckoutState.MINTING
    context: CheckoutContext
    pricing: PricingResult
    payment: PaymentMethod
    network: int
    transaction_hashes: List[str] = Field(default_factory=list)


class ConfirmedPayload(CanonicalModel):
    """
    Attempt finished on chain.

    ``confirmed`` is False when the transaction succeeded without a key
    event, or when only a cross-chain submission could be observed.
    """
    state: Literal[CheckoutState.CONFIRMED] = CheckoutState.CONFIRMED
    network: int
    status: PurchaseStatus
    confirmed: bool
    token_ids: List[int] = Field(default_factory=list)
    transaction_hashes: List[str] = Field(default_factory=list)

    @property
    def token_id(self) -> Optional[int]:
        return self.token_ids[0] if self.token_ids else None


class ErrorPayload(CanonicalModel):
    """Failed attempt; keeps the confirmed choices so the user can retry."""
    state: Literal[CheckoutState.ERROR] = CheckoutState.ERROR
    reason: ErrorReason
    message: str = ""
    network: Optional[int] = None
    transaction_hash: Optional[str] = None
    context: CheckoutContext
    pricing: PricingResult
    payment: PaymentMethod


CheckoutPayload = Annotated[
    Union[
        DataCollectionPayload,
        PricingPayload,
        PaymentSelectedPayload,
        ConfirmingPayload,
        MintingPayload,
        ConfirmedPayload,
        ErrorPayload,
    ],
    Field(discriminator="state"),
]

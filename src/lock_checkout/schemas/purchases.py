"""
Purchase Schema Models

Request, route and outcome models exchanged between the checkout state
machine and the purchase orchestrator.

Request classes:
    - PurchaseRequest: One purchase or renewal attempt for N recipients
    - SwapRoute: Router-mediated swap funding the purchase
    - CrossChainRoute: Pre-built bridge transaction on another network

Pricing classes:
    - LockInfo: Lock metadata collected during checkout
    - RecipientPrice / PricingResult: Output of the pricing collaborator

Payment classes:
    - CryptoPayment / SwapPayment / CrossChainPayment: Payment method chosen
      by the user (``method`` discriminates)

Result classes:
    - PurchaseOutcome: Key ids on success or a failure reason, never both
"""

from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import Field, ValidationError, field_validator, model_validator
from typing_extensions import Annotated, Self

from .bases import CanonicalModel, ErrorReason, PurchaseStatus
from ..adapters.evm.constants import (
    DEFAULT_SLIPPAGE_BPS,
    MAX_UINT256,
    ZERO_ADDRESS,
    amount_to_value,
)
from ..engine.exceptions import RequestValidationError


def validate_address(value: str, field_name: str = "address") -> str:
    """Check ``value`` is a 0x-prefixed 42-character hex address."""
    if not isinstance(value, str) or not value.startswith("0x"):
        raise ValueError(f"{field_name} must be a 0x-prefixed address")
    if len(value) != 42:
        raise ValueError(f"{field_name} must be 42 characters (0x + 40 hex), got {len(value)}")
    try:
        int(value[2:], 16)
    except ValueError:
        raise ValueError(f"{field_name} is not valid hexadecimal")
    return value


class SwapRoute(CanonicalModel):
    """
    Swap route funding a swap-and-purchase.

    The purchaser spends at most ``amount_in_max`` of ``src_token_address``
    through ``router`` and forwards ``value`` native currency with the call.

    Attributes:
        src_token_address: Token paid by the user (zero address for native).
        router: DEX router address.
        swap_calldata: Opaque router call payload (0x hex).
        value: Native value attached to the swap call.
        quote_amount: Quoted input amount in the source token's base units.
        slippage_bps: Slippage buffer in basis points (100 = 1%).

    Example::

        route = SwapRoute(
            src_token_address="0x...",
            router="0x...",
            swap_calldata="0x1234",
            quote_amount=1000,
        )
        route.amount_in_max  # 1010
    """

    src_token_address: str = Field(default=ZERO_ADDRESS, description="Source token (zero address = native)")
    router: str = Field(..., description="DEX router address")
    swap_calldata: str = Field(default="0x", description="Opaque router call payload")
    value: int = Field(default=0, ge=0, description="Native value forwarded with the swap call")
    quote_amount: int = Field(..., ge=0, description="Quoted input amount in base units")
    slippage_bps: int = Field(default=DEFAULT_SLIPPAGE_BPS, ge=0, le=10_000)

    @field_validator("src_token_address", "router")
    @classmethod
    def _check_address(cls, v: str, info) -> str:
        return validate_address(v, info.field_name)

    @property
    def amount_in_max(self) -> int:
        """Quoted input inflated by the slippage buffer, rounded down."""
        return self.quote_amount * (10_000 + self.slippage_bps) // 10_000

    @classmethod
    def from_quote(
        cls,
        *,
        quote: Union[Decimal, str, float],
        decimals: int,
        router: str,
        swap_calldata: str,
        src_token_address: str = ZERO_ADDRESS,
        value: int = 0,
        slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
    ) -> "SwapRoute":
        """Build a route from a human-readable quote in the source token."""
        return cls(
            src_token_address=src_token_address,
            router=router,
            swap_calldata=swap_calldata,
            value=value,
            quote_amount=amount_to_value(amount=quote, decimals=decimals),
            slippage_bps=slippage_bps,
        )


class CrossChainRoute(CanonicalModel):
    """Bridge route whose transaction is sent on ``network``."""

    network: int = Field(..., ge=1, description="Network the route transaction is sent on")
    to: str = Field(..., description="Bridge contract address")
    data: str = Field(default="0x", description="Encoded bridge call")
    value: int = Field(default=0, ge=0)
    symbol: Optional[str] = None

    @field_validator("to")
    @classmethod
    def _check_to(cls, v: str) -> str:
        return validate_address(v, "to")


class PurchaseRequest(CanonicalModel):
    """
    One purchase (or renewal) attempt for N recipients.

    Every per-recipient list, when present, must have exactly N entries;
    the check runs at construction so a malformed request never reaches
    the network. Build requests with :meth:`build` to get the failure as a
    :class:`RequestValidationError`; the bare constructor raises pydantic's
    ``ValidationError``. Instances are frozen: re-submitting means building
    a new request.

    Attributes:
        lock_address: Lock contract address.
        network: Chain id the lock lives on.
        recipients: Key recipients, order-significant.
        key_prices: Human-readable price per recipient (lock default when absent).
        decimals: Currency decimals, looked up when absent.
        currency_address: Lock currency, read from the lock when absent.
        key_managers: Key manager per recipient (zero address when absent).
        referrers: Referrer per recipient (zero address when absent).
        data: Arbitrary bytes per recipient (``0x`` when absent).
        recurring_payments: Recurring-payment count per recipient.
        total_approval: Approval cap in base units; ``"forever"`` or
            ``MAX_UINT256`` means unlimited.
        renew: Extend existing keys instead of minting new ones.
        token_ids: Keys to renew, looked up from the recipients when absent.
        swap: Swap route when paying through swap-and-purchase.
    """

    model_config = {"frozen": True, "populate_by_name": True}

    lock_address: str
    network: int = Field(..., ge=1)
    recipients: List[str] = Field(..., min_length=1)
    key_prices: Optional[List[Decimal]] = None
    decimals: Optional[int] = Field(None, ge=0)
    currency_address: Optional[str] = None
    key_managers: Optional[List[str]] = None
    referrers: Optional[List[str]] = None
    data: Optional[List[str]] = None
    recurring_payments: Optional[List[int]] = None
    total_approval: Optional[int] = Field(None, ge=0)
    renew: bool = False
    token_ids: Optional[List[int]] = None
    swap: Optional[SwapRoute] = None

    @field_validator("total_approval", mode="before")
    @classmethod
    def _forever_is_unlimited(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().lower() == "forever":
            return MAX_UINT256
        return v

    @field_validator("lock_address", "currency_address")
    @classmethod
    def _check_single_address(cls, v: Optional[str], info) -> Optional[str]:
        if v is None:
            return v
        return validate_address(v, info.field_name)

    @field_validator("recipients", "key_managers", "referrers")
    @classmethod
    def _check_address_list(cls, v: Optional[List[str]], info) -> Optional[List[str]]:
        if v is None:
            return v
        for item in v:
            validate_address(item, info.field_name)
        return v

    @model_validator(mode="after")
    def _check_per_recipient_lengths(self) -> Self:
        size = len(self.recipients)
        for name in ("key_prices", "key_managers", "referrers", "data", "recurring_payments", "token_ids"):
            values = getattr(self, name)
            if values is not None and len(values) != size:
                raise ValueError(
                    f"{name} has {len(values)} entries but there are {size} recipients"
                )
        if self.renew and size != 1:
            raise ValueError("renewal applies to exactly one recipient")
        return self

    @classmethod
    def build(cls, **fields: Any) -> "PurchaseRequest":
        """
        Validate ``fields`` into a request.

        Raises:
            RequestValidationError: If any field is malformed or a
                per-recipient list does not have one entry per recipient.
        """
        try:
            return cls(**fields)
        except ValidationError as e:
            raise RequestValidationError(str(e)) from e

    @property
    def size(self) -> int:
        return len(self.recipients)

    @property
    def resolved_referrers(self) -> List[str]:
        return list(self.referrers) if self.referrers else [ZERO_ADDRESS] * self.size

    @property
    def resolved_key_managers(self) -> List[str]:
        return list(self.key_managers) if self.key_managers else [ZERO_ADDRESS] * self.size

    @property
    def resolved_data(self) -> List[str]:
        return list(self.data) if self.data else ["0x"] * self.size

    @property
    def unlimited_approval(self) -> bool:
        return self.total_approval == MAX_UINT256


class LockInfo(CanonicalModel):
    """Lock metadata gathered during data collection."""

    address: str
    network: int = Field(..., ge=1)
    name: Optional[str] = None
    key_price: Optional[Decimal] = None
    currency_address: Optional[str] = None
    currency_symbol: Optional[str] = None
    decimals: Optional[int] = Field(None, ge=0)

    @field_validator("address")
    @classmethod
    def _check_address(cls, v: str) -> str:
        return validate_address(v, "address")


class RecipientPrice(CanonicalModel):
    """Price for one recipient, human-readable in the lock's currency."""

    user_address: str
    amount: Decimal = Field(..., ge=0)
    symbol: Optional[str] = None


class PricingResult(CanonicalModel):
    """
    Output of the pricing collaborator.

    Attributes:
        prices: One entry per recipient, in recipient order.
        total: Sum of all prices.
        swap: Swap route when the user can pay through swap-and-purchase.
        cross_chain: Bridge route when the user can pay from another network.
    """

    prices: List[RecipientPrice] = Field(default_factory=list)
    total: Decimal = Field(default=Decimal(0), ge=0)
    symbol: Optional[str] = None
    swap: Optional[SwapRoute] = None
    cross_chain: Optional[CrossChainRoute] = None


class CryptoPayment(CanonicalModel):
    """Pay directly in the lock's currency (native or ERC20)."""
    method: Literal["crypto"] = "crypto"


class SwapPayment(CanonicalModel):
    """Pay in another token swapped through a router."""
    method: Literal["swap_and_purchase"] = "swap_and_purchase"
    route: SwapRoute


class CrossChainPayment(CanonicalModel):
    """Pay from another network through a bridge route."""
    method: Literal["crosschain"] = "crosschain"
    route: CrossChainRoute


PaymentMethod = Annotated[
    Union[CryptoPayment, SwapPayment, CrossChainPayment],
    Field(discriminator="method"),
]


class PurchaseOutcome(CanonicalModel):
    """
    Result of one purchase attempt.

    Carries either the minted/extended key ids or a failure reason; a
    failed outcome never carries key ids.

    Attributes:
        status: CONFIRMED, UNCONFIRMED (mined, no key event) or SUBMITTED.
        network: Network the transaction was sent on.
        transaction_hashes: Hashes in broadcast order.
        token_ids: Key ids read from the lock's events.
        failure_reason: Classified failure, if the attempt failed.
        message: Human-readable detail.
    """

    status: Optional[PurchaseStatus] = None
    network: int = Field(..., ge=1)
    transaction_hashes: List[str] = Field(default_factory=list)
    token_ids: List[int] = Field(default_factory=list)
    failure_reason: Optional[ErrorReason] = None
    message: Optional[str] = None

    @model_validator(mode="after")
    def _success_xor_failure(self) -> Self:
        if self.failure_reason is not None and self.token_ids:
            raise ValueError("a failed outcome cannot carry key ids")
        if self.failure_reason is None and self.status is None:
            raise ValueError("an outcome needs a status or a failure reason")
        if self.failure_reason is not None and self.status is not None:
            raise ValueError("a failed outcome has no purchase status")
        return self

    @property
    def token_id(self) -> Optional[int]:
        """First key id, if any."""
        return self.token_ids[0] if self.token_ids else None

    @property
    def transaction_hash(self) -> Optional[str]:
        """Last broadcast transaction hash, if any."""
        return self.transaction_hashes[-1] if self.transaction_hashes else None

    def is_confirmed(self) -> bool:
        return self.status == PurchaseStatus.CONFIRMED

    def to_log_dict(self) -> Dict[str, Any]:
        """Plain dict suitable for structured logging."""
        return self.model_dump(mode="json", exclude_none=True)
